"""Tests for include, import and from-import."""

import pytest

from jinx import TemplateNotFound, TemplatesNotFound, UndefinedError


MODULE = "{% set bar = 23 %}{% macro foo() %}{{ x }}{% endmacro %}{% set _hidden = 1 %}"


@pytest.fixture
def import_env(dict_env):
    return dict_env({
        "module": MODULE,
        "header": "[{{ foo }}|{{ 23 }}]",
        "o_printer": "({{ o }})",
    })


class TestImports:
    """`import` and `from ... import`."""

    def test_import_without_context(self, import_env):
        tmpl = import_env.from_string("{% import 'module' as m %}[{{ m.foo() }}|{{ m.bar }}]")
        assert tmpl.render(x=42) == "[|23]"

    def test_import_with_context(self, import_env):
        tmpl = import_env.from_string("{% import 'module' as m with context %}[{{ m.foo() }}|{{ m.bar }}]")
        assert tmpl.render(x=42) == "[42|23]"

    def test_from_import(self, import_env):
        tmpl = import_env.from_string("{% from 'module' import foo, bar as baz with context %}{{ foo() }}{{ baz }}")
        assert tmpl.render(x=1) == "123"

    def test_private_names_are_not_exported(self, import_env):
        tmpl = import_env.from_string("{% import 'module' as m %}{{ m._hidden is undefined }}")
        assert tmpl.render() == "True"

    def test_missing_name_is_undefined(self, import_env):
        tmpl = import_env.from_string("{% from 'module' import nothing %}{{ nothing.attr }}")
        with pytest.raises(UndefinedError, match="does not export the requested name 'nothing'"):
            tmpl.render()

    def test_imported_names_are_not_reexported(self, dict_env):
        env = dict_env({
            "module": MODULE,
            "proxy": "{% import 'module' as inner %}{% set own = 1 %}",
        })
        module = env.get_template("proxy").module
        assert module.own == 1
        assert not hasattr(module, "inner")

    def test_module_string_is_rendered_body(self, dict_env):
        env = dict_env({"m": "body{% set x = 1 %}"})
        module = env.get_template("m").module
        assert str(module) == "body"
        assert module.x == 1

    def test_import_without_context_is_cached(self, import_env):
        template = import_env.get_template("module")
        assert template.module is template.module


class TestIncludes:
    """`include` statements."""

    def test_include_sees_context(self, import_env):
        tmpl = import_env.from_string('{% include "header" %}')
        assert tmpl.render(foo=42) == "[42|23]"

    def test_include_without_context(self, import_env):
        tmpl = import_env.from_string('{% include "header" without context %}')
        assert tmpl.render(foo=42) == "[|23]"

    def test_include_sees_loop_variables(self, import_env):
        tmpl = import_env.from_string("{% for o in [1, 2] %}{% include 'o_printer' %}{% endfor %}")
        assert tmpl.render() == "(1)(2)"

    def test_include_does_not_leak_assignments(self, dict_env):
        env = dict_env({"inner": "{% set y = 2 %}{{ y }}"})
        tmpl = env.from_string("{% set y = 1 %}{% include 'inner' %}{{ y }}")
        assert tmpl.render() == "21"

    def test_include_missing(self, import_env):
        with pytest.raises(TemplateNotFound, match="missing"):
            import_env.from_string('{% include "missing" %}').render()

    def test_include_ignore_missing(self, import_env):
        tmpl = import_env.from_string('[{% include "missing" ignore missing %}]')
        assert tmpl.render() == "[]"

    def test_include_first_existing_of_list(self, import_env):
        tmpl = import_env.from_string('{% include ["missing", "header"] %}')
        assert tmpl.render(foo=1) == "[1|23]"

    def test_include_none_of_list(self, import_env):
        with pytest.raises(TemplatesNotFound) as exc_info:
            import_env.from_string('{% include ["a", "b"] %}').render()
        assert exc_info.value.templates == ["a", "b"]

    def test_include_template_object(self, import_env):
        tmpl = import_env.from_string("{% include header %}")
        assert tmpl.render(header=import_env.get_template("header"), foo=5) == "[5|23]"


class TestErrorPaths:
    """Errors crossing template boundaries carry the path of each template."""

    def test_error_in_included_template(self, dict_env):
        env = dict_env({
            "outer": "{% include 'inner' %}",
            "inner": "\n{{ x.y }}",
        })
        with pytest.raises(UndefinedError) as exc_info:
            env.get_template("outer").render()
        message = str(exc_info.value)
        assert message.startswith("(outer)\n (inner) [Line 2")
        assert message.endswith("'x' is undefined")

    def test_error_in_string_template(self, env):
        with pytest.raises(UndefinedError) as exc_info:
            env.from_string("{{ x.y }}").render()
        assert str(exc_info.value).startswith("(unknown path) [Line 1")

    def test_error_in_parent_template(self, dict_env):
        env = dict_env({
            "base": "{{ missing.attr }}",
            "child": "{% extends 'base' %}",
        })
        with pytest.raises(UndefinedError) as exc_info:
            env.get_template("child").render()
        assert str(exc_info.value).startswith("(child)\n (base) [Line 1")
