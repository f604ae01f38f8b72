"""facetcraft CLI - Main Entry Point.

The `facetcraft` command inspects the facets declared in a module.

Commands:
    inspect    - Describe every facet of a module
    projection - Print the projection expression of one facet
    dashboard  - Render an HTML report of a module's facets
    check      - Build every facet artifact and report faults
"""

import importlib
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from . import __version__, __cli_name__
from .utils.colors import (
    success, error, info, warning, dim, bold,
    banner, section, kv, badge, tree_item, bullet, table,
    _CHECK, _CROSS,
)


class FacetGroup(click.Group):
    """Click group subclass with branded help output."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if ctx.parent is None:
            banner("facetcraft", subtitle=f"v{__version__}  {_CHECK}  facet inspection")
            click.echo()
        super().format_help(ctx, formatter)

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Format command listing with aligned columns."""
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=48)))

        if commands:
            with formatter.section(click.style("Commands", fg="cyan", bold=True)):
                max_len = max(len(c[0]) for c in commands) + 2
                for name, help_text in commands:
                    formatter.write(f"  {click.style(name.ljust(max_len), fg='green')} {help_text}\n")


def _load_module(name: str):
    """Import ``name``, looking in the working directory first."""
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    try:
        return importlib.import_module(name)
    except ImportError as e:
        error(f"  {_CROSS} Cannot import module '{name}': {e}")
        sys.exit(1)


def _facets_of(module_name: str):
    from ..facets.extensions import discover_facets

    facets = discover_facets(_load_module(module_name))
    if not facets:
        warning(f"  No facets declared in '{module_name}'")
    return facets


@click.group(cls=FacetGroup)
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output (DEBUG logging)')
@click.option('--quiet', '-q', is_flag=True, help='Minimal output')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None,
              help='Load FACETCRAFT_* settings from this file')
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, env_file: Optional[str]):
    """Inspect, check and document facet declarations.

    \b
    Quick start:
      facetcraft inspect shop.facets
      facetcraft projection shop.facets:OrderSummary
      facetcraft check shop.facets
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if env_file:
        from ..config import ConfigLoader, configure

        loader = ConfigLoader.load(env_file=env_file)
        configure(**loader.build_settings().to_dict())


# ============================================================================
# Commands
# ============================================================================

def _print_facet(description: Dict[str, Any]) -> None:
    section(description["name"])
    if "fault" in description:
        fault = description["fault"]
        click.echo(f"  {badge(fault['code'], style='fail')} {fault['message']}")
        click.echo()
        return

    kv("source", description["source"])
    kv("shape", description["shape"])
    kv("max depth", str(description["max_depth"]))
    kv("reverse", "yes" if description["reverse"] else "no")
    click.echo()

    rows = []
    for member in description["members"]:
        origin = member.get("expression") or member.get("source", "")
        rows.append((member["name"], member["type"], member["origin"], origin))
    table(["member", "type", "origin", "from"], rows)

    nested = [m for m in description["members"] if "nested" in m]
    if nested:
        click.echo()
        dim("  nested")
        for i, member in enumerate(nested):
            shape = member["nested"]["collection"]
            suffix = f" [{shape}]" if shape else ""
            tree_item(f"{member['name']} -> {member['nested']['facet']}{suffix}",
                      last=i == len(nested) - 1, depth=1)

    if description["excluded_required"]:
        click.echo()
        dim("  defaulted on reverse")
        for name in description["excluded_required"]:
            bullet(name, indent=4)
    click.echo()


@cli.command('inspect')
@click.argument('module')
@click.option('--json', 'as_json', is_flag=True, help='Print the descriptions as JSON')
@click.pass_context
def inspect_cmd(ctx, module: str, as_json: bool):
    """
    Describe every facet declared in MODULE.

    Examples:
      facetcraft inspect shop.facets
      facetcraft inspect shop.facets --json
    """
    from ..facets.schema import describe_facet

    descriptions = [describe_facet(f) for f in _facets_of(module)]
    if as_json:
        click.echo(json.dumps(descriptions, indent=2, default=str))
        return
    for description in descriptions:
        _print_facet(description)
    if not ctx.obj['quiet']:
        info(f"  {len(descriptions)} facets in {module}")


@cli.command('projection')
@click.argument('target')
@click.pass_context
def projection_cmd(ctx, target: str):
    """
    Print the projection expression of TARGET (module:Facet).

    Examples:
      facetcraft projection shop.facets:OrderSummary
    """
    from ..facets.exceptions import FacetFault
    from ..facets.extensions import is_facet_class

    module_name, _, facet_name = target.partition(":")
    if not facet_name:
        error(f"  {_CROSS} Expected MODULE:FACET, got '{target}'")
        sys.exit(2)

    facet_type = getattr(_load_module(module_name), facet_name, None)
    if not is_facet_class(facet_type):
        error(f"  {_CROSS} '{facet_name}' is not a facet in {module_name}")
        sys.exit(1)

    try:
        projection = facet_type.projection()
    except FacetFault as e:
        error(f"  {_CROSS} {e.code}: {e.message}")
        sys.exit(1)

    click.echo(projection.as_text())
    if not ctx.obj['quiet'] and not projection.is_translatable:
        warning("  projection uses nodes outside the translatable set")


@cli.command('dashboard')
@click.argument('module')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default='facets.html',
              show_default=True, help='Where to write the HTML report')
@click.option('--title', default=None, help='Report title (defaults to the module name)')
@click.pass_context
def dashboard_cmd(ctx, module: str, output: str, title: Optional[str]):
    """
    Render an HTML report of MODULE's facets.

    Examples:
      facetcraft dashboard shop.facets -o docs/facets.html
    """
    from ..dashboard import render_dashboard

    html = render_dashboard(_facets_of(module), title=title or module)
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html, encoding="utf-8")
    if not ctx.obj['quiet']:
        success(f"  {_CHECK} Wrote {path}")


@cli.command('check')
@click.argument('module')
@click.pass_context
def check_cmd(ctx, module: str):
    """
    Build every artifact of MODULE's facets and report faults.

    Exits with status 1 if any facet is broken.

    Examples:
      facetcraft check shop.facets
    """
    from ..facets.extensions import check_declarations

    results = check_declarations(_facets_of(module))
    failed = 0
    for facet_type, fault in results:
        if fault is None:
            if not ctx.obj['quiet']:
                click.echo(f"  {badge('ok')} {facet_type.__qualname__}")
        else:
            failed += 1
            click.echo(f"  {badge(fault.code, style='fail')} {bold(facet_type.__qualname__)}: {fault.message}")

    click.echo()
    if failed:
        error(f"  {_CROSS} {failed} of {len(results)} facets have faults")
        sys.exit(1)
    success(f"  {_CHECK} {len(results)} facets OK")


def main():
    """Entry point for `facetcraft` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
