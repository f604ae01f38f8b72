"""
Tests for the facetcraft command line.
"""

import json
import textwrap

import pytest
from click.testing import CliRunner

from facetcraft import __version__
from facetcraft.cli.__main__ import cli


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, list(args), obj={})


@pytest.fixture
def broken_module(tmp_path, monkeypatch):
    (tmp_path / "broken_facets.py").write_text(textwrap.dedent("""
        from dataclasses import dataclass

        from facetcraft.facets import Facet


        @dataclass
        class Point:
            x: int
            y: int


        class PointFacet(Facet):
            class Spec:
                source = Point


        class BadFacet(Facet):
            class Spec:
                source = Point
                shape = "record"
    """))
    monkeypatch.chdir(tmp_path)
    return "broken_facets"


class TestCli:

    def test_version(self, runner):
        result = invoke(runner, "--version")
        assert result.exit_code == 0
        assert f"facetcraft, version {__version__}" in result.output

    def test_help_lists_commands(self, runner):
        result = invoke(runner, "--help")
        assert result.exit_code == 0
        for command in ("inspect", "projection", "dashboard", "check"):
            assert command in result.output

    def test_unknown_module(self, runner):
        result = invoke(runner, "inspect", "no_such_module_here")
        assert result.exit_code == 1
        assert "Cannot import module" in result.output


class TestInspect:

    def test_text(self, runner):
        result = invoke(runner, "inspect", "sample_domain")
        assert result.exit_code == 0
        assert "CustomerFacet" in result.output
        assert "full_name" in result.output
        assert "11 facets in sample_domain" in result.output

    def test_json(self, runner):
        result = invoke(runner, "inspect", "sample_domain", "--json")
        assert result.exit_code == 0
        descriptions = json.loads(result.stdout)
        assert len(descriptions) == 11
        assert descriptions[0]["name"] == "AddressFacet"

    def test_quiet(self, runner):
        result = invoke(runner, "--quiet", "inspect", "sample_domain")
        assert "facets in sample_domain" not in result.output

    def test_broken_facet_is_listed(self, runner, broken_module):
        result = invoke(runner, "inspect", broken_module)
        assert result.exit_code == 0
        assert "PointFacet" in result.output
        assert "FC100" in result.output


class TestProjection:

    def test_prints_expression(self, runner):
        result = invoke(runner, "projection", "sample_domain:AddressFacet")
        assert result.exit_code == 0
        assert result.stdout.strip() == (
            "lambda src: AddressFacet(street=src.street, city=src.city, zip_code=src.zip_code)"
        )

    def test_bad_target(self, runner):
        result = invoke(runner, "projection", "sample_domain")
        assert result.exit_code == 2

    def test_not_a_facet(self, runner):
        result = invoke(runner, "projection", "sample_domain:Customer")
        assert result.exit_code == 1
        assert "is not a facet" in result.output

    def test_faulty_facet(self, runner, broken_module):
        result = invoke(runner, "projection", f"{broken_module}:BadFacet")
        assert result.exit_code == 1
        assert "FC100" in result.output


class TestDashboard:

    def test_writes_report(self, runner, tmp_path):
        target = tmp_path / "out" / "facets.html"
        result = invoke(runner, "dashboard", "sample_domain", "-o", str(target), "--title", "Shop")
        assert result.exit_code == 0
        html = target.read_text(encoding="utf-8")
        assert "<title>Shop</title>" in html
        assert "OrderFacet" in html


class TestCheck:

    def test_clean_module(self, runner):
        result = invoke(runner, "check", "sample_domain")
        assert result.exit_code == 0
        assert "11 facets OK" in result.output

    def test_broken_module(self, runner, broken_module):
        result = invoke(runner, "check", broken_module)
        assert result.exit_code == 1
        assert "BadFacet" in result.output
        assert "1 of 2 facets have faults" in result.output


class TestEnvFile:

    def test_settings_from_env_file(self, runner, tmp_path):
        env_file = tmp_path / "facet.env"
        env_file.write_text("FACETCRAFT_DEFAULT_MAX_DEPTH=4\n")
        result = invoke(runner, "--env-file", str(env_file), "inspect", "sample_domain", "--json")
        assert result.exit_code == 0
        descriptions = {d["name"]: d for d in json.loads(result.stdout)}
        assert descriptions["CustomerFacet"]["max_depth"] == 4
        assert descriptions["CategoryFacet"]["max_depth"] == 1
