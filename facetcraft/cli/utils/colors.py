"""
facetcraft CLI: styled terminal output.

Output helpers:
    success(), error(), warning(), info(), dim(), bold()

Structural elements:
    banner() - header box with the tool name
    section() - section divider with title
    kv() - aligned key-value pair
    badge() - inline status badge  [✓ ok]  [✗ FC200]
    tree_item() - indented tree node (nested facets)
    table() - minimal aligned table (members)
    bullet() - bulleted list item

Everything goes through click.style, which honours NO_COLOR and dumb
terminals.
"""

from __future__ import annotations

import shutil
from typing import Optional, Sequence

import click

_TERM_WIDTH: Optional[int] = None


def _tw() -> int:
    """Terminal width, cached and clamped to a sane range."""
    global _TERM_WIDTH
    if _TERM_WIDTH is None:
        _TERM_WIDTH = max(40, min(shutil.get_terminal_size((80, 24)).columns, 120))
    return _TERM_WIDTH


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    click.echo(click.style(message, fg="red", bold=True), err=True)


def warning(message: str) -> None:
    click.echo(click.style(message, fg="yellow"))


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"))


def dim(message: str) -> None:
    click.echo(click.style(message, dim=True))


def bold(message: str) -> str:
    return click.style(message, bold=True)


# Heavy box (banner)
_H_TL = "\u250f"   # ┏
_H_TR = "\u2513"   # ┓
_H_BL = "\u2517"   # ┗
_H_BR = "\u251b"   # ┛
_H_H  = "\u2501"   # ━
_H_V  = "\u2503"   # ┃

# Light lines
_L_BL = "\u2514"   # └
_L_H  = "\u2500"   # ─
_L_LT = "\u251c"   # ├

_BULLET = "\u2022"     # •
_CHECK  = "\u2713"     # ✓
_CROSS  = "\u2717"     # ✗
_DOT    = "\u00b7"     # ·


def banner(title: str = "facetcraft", subtitle: str = "", *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
    Print a bordered banner with centred title.

        ┏━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━┓
        ┃                  facetcraft                  ┃
        ┃         v0.1.0  ✓  facet inspection          ┃
        ┗━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━┛
    """
    w = width or min(_tw(), 60)
    inner = w - 2
    click.echo(click.style(f"{_H_TL}{_H_H * inner}{_H_TR}", fg=fg))
    click.echo(click.style(f"{_H_V}{title.center(inner)}{_H_V}", fg=fg, bold=True))
    if subtitle:
        click.echo(click.style(f"{_H_V}{subtitle.center(inner)}{_H_V}", fg=fg))
    click.echo(click.style(f"{_H_BL}{_H_H * inner}{_H_BR}", fg=fg))


def section(title: str, *, width: Optional[int] = None, fg: str = "cyan") -> None:
    """
    Print a section header with a ruled line.

        ── OrderSummary ───────────────────────────
    """
    w = width or _tw()
    dashes = max(4, w - len(title) - 6)
    click.echo(click.style(f"{_L_H}{_L_H} {title} {_L_H * dashes}", fg=fg, bold=True))


def kv(key: str, value: str, *, key_width: int = 20, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        source:             shop.models.Order
        shape:              mutable_reference
    """
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{' ' * indent}{click.style(key + ':', fg='white')}{padding}{click.style(str(value), fg='cyan')}")


def badge(label: str, *, style: str = "ok") -> str:
    """Return an inline badge string (not echoed)."""
    colours = {
        "ok":   ("green",  f" {_CHECK} "),
        "fail": ("red",    f" {_CROSS} "),
        "warn": ("yellow", " ! "),
        "info": ("cyan",   f" {_DOT} "),
    }
    fg, icon = colours.get(style, ("white", f" {_DOT} "))
    return click.style(f"[{icon}{label}]", fg=fg)


def tree_item(text: str, *, last: bool = False, depth: int = 0, fg: str = "white") -> None:
    """
    Print an indented tree node.

        ├── lines -> LineSummary [list]
        └── customer -> CustomerSummary
    """
    connector = f"{_L_BL}{_L_H}{_L_H} " if last else f"{_L_LT}{_L_H}{_L_H} "
    click.echo(
        click.style("    " * depth, dim=True)
        + click.style(connector, dim=True)
        + click.style(text, fg=fg)
    )


def bullet(text: str, *, indent: int = 2, fg: str = "white") -> None:
    click.echo(f"{' ' * indent}{click.style(_BULLET, fg='cyan')} {click.style(text, fg=fg)}")


def table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    header_fg: str = "cyan",
    row_fg: str = "white",
    indent: int = 2,
) -> None:
    """
    Print a minimal aligned table.

        member        type            origin
        ───────────── ─────────────── ────────
        id            int             source
        total         Any             computed
    """
    prefix = " " * indent
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[:len(headers)]):
            widths[i] = max(widths[i], len(str(cell)))
    widths = [w + 2 for w in widths]

    click.echo(prefix + click.style("".join(h.ljust(widths[i]) for i, h in enumerate(headers)), fg=header_fg, bold=True))
    click.echo(prefix + click.style("".join(_L_H * (w - 1) + " " for w in widths), dim=True))
    for row in rows:
        line = "".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row[:len(headers)]))
        click.echo(prefix + click.style(line, fg=row_fg))
