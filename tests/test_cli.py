"""Tests for the command line interface."""

import textwrap

import pytest

from tests.infrastructure import run_cli, write, write_templates


@pytest.fixture
def templates(tmp_path):
    root = tmp_path / "templates"
    write_templates(root, {
        "hello.txt": "Hello {{ name }}!",
        "page.html": "{% extends 'base.html' %}{% block body %}{{ title }}{% endblock %}",
        "base.html": "<body>{% block body %}{% endblock %}</body>",
        "broken.txt": "{% for x in y %}",
    })
    return root


class TestRender:
    def test_render_by_name(self, templates):
        result = run_cli("render", "hello.txt", "--search-path", str(templates), "--var", "name=World")
        assert result.returncode == 0
        assert result.stdout == "Hello World!"

    def test_render_file_path(self, templates):
        result = run_cli("render", str(templates / "page.html"), "--var", "title=T")
        assert result.returncode == 0
        assert result.stdout == "<body>T</body>"

    def test_render_stdin(self):
        result = run_cli("render", "-", "--var", "x=1", stdin="[{{ x }}]")
        assert result.stdout == "[1]"

    def test_vars_file(self, templates, tmp_path):
        vars_file = write(tmp_path / "vars.yaml", "name: File\n")
        result = run_cli(
            "render", "hello.txt", "--search-path", str(templates),
            "--vars", str(vars_file), "--var", "name=Flag",
        )
        assert result.stdout == "Hello Flag!"

    def test_output_file(self, templates, tmp_path):
        out = tmp_path / "out.txt"
        result = run_cli("render", "hello.txt", "--search-path", str(templates), "--var", "name=X", "-o", str(out))
        assert result.returncode == 0
        assert result.stdout == ""
        assert out.read_text(encoding="utf-8") == "Hello X!"

    def test_async_flag(self, templates):
        result = run_cli("render", "hello.txt", "--search-path", str(templates), "--var", "name=A", "--async")
        assert result.stdout == "Hello A!"

    def test_config_file(self, templates, tmp_path):
        config = write(tmp_path / "jinx.yaml", textwrap.dedent("""
            search_path: [templates]
            autoescape: [html]
        """).lstrip())
        result = run_cli("render", "page.html", "--config", str(config), "--var", "title=<i>")
        assert result.stdout == "<body>&lt;i&gt;</body>"

    def test_syntax_error_exit_code(self, templates):
        result = run_cli("render", "broken.txt", "--search-path", str(templates))
        assert result.returncode == 2
        assert "Unexpected end of template" in result.stderr

    def test_missing_template(self, templates):
        result = run_cli("render", "nope.txt", "--search-path", str(templates))
        assert result.returncode == 2
        assert "nope.txt" in result.stderr

    def test_bad_var(self, templates):
        result = run_cli("render", "hello.txt", "--search-path", str(templates), "--var", "oops")
        assert result.returncode == 2
        assert "Invalid variable 'oops'. Expected 'KEY=VALUE'" in result.stderr

    def test_bad_config(self, tmp_path):
        config = write(tmp_path / "jinx.yaml", "unknown_option: 1\n")
        result = run_cli("render", "-", "--config", str(config), stdin="x")
        assert result.returncode == 2
        assert "Invalid configuration" in result.stderr


class TestInspect:
    def test_tokens(self):
        result = run_cli("tokens", "-", stdin="a{{ x }}")
        assert result.returncode == 0
        assert result.stdout.splitlines() == [
            "1:1\tDATA\t'a'",
            "1:2\tVARIABLE_BEGIN\t'{{'",
            "1:5\tNAME\t'x'",
            "1:7\tVARIABLE_END\t'}}'",
        ]

    def test_ast(self, templates):
        result = run_cli("ast", "hello.txt", "--search-path", str(templates))
        assert result.returncode == 0
        assert result.stdout.startswith("Template(")
        assert "Name(name='name'" in result.stdout

    def test_list(self, templates):
        result = run_cli("list", "--search-path", str(templates))
        assert result.stdout.splitlines() == ["base.html", "broken.txt", "hello.txt", "page.html"]

    def test_list_by_extension(self, templates):
        result = run_cli("list", "--search-path", str(templates), "--extension", "html")
        assert result.stdout.splitlines() == ["base.html", "page.html"]

    def test_list_without_search_path(self):
        result = run_cli("list")
        assert result.returncode == 2
        assert "No search path given" in result.stderr

    def test_version(self):
        result = run_cli("--version")
        assert result.returncode == 0
        assert result.stdout.startswith("jinx ")
