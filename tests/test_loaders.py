"""Tests for template loaders and the template cache."""

import os

import pytest

from jinx import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    FunctionLoader,
    PrefixLoader,
    TemplateNotFound,
    TemplatesNotFound,
)
from jinx.loaders import split_template_path

from tests.infrastructure.file_utils import write, write_templates


class TestDictLoader:
    def test_get_template(self, dict_env):
        env = dict_env({"a.html": "A{{ x }}"})
        assert env.get_template("a.html").render(x=1) == "A1"

    def test_missing(self, dict_env):
        env = dict_env({})
        with pytest.raises(TemplateNotFound) as exc_info:
            env.get_template("nope.html")
        assert exc_info.value.name == "nope.html"

    def test_list_templates(self, dict_env):
        env = dict_env({"b.txt": "", "a.html": "", "c.html": ""})
        assert env.list_templates() == ["a.html", "b.txt", "c.html"]
        assert env.list_templates(extensions=["html"]) == ["a.html", "c.html"]
        assert env.list_templates(filter_func=lambda n: n.startswith("b")) == ["b.txt"]

    def test_list_templates_rejects_both_filters(self, dict_env):
        env = dict_env({})
        with pytest.raises(TypeError, match="either extensions or filter_func"):
            env.list_templates(extensions=["html"], filter_func=bool)


class TestFileSystemLoader:
    def test_nested_directories(self, fs_env):
        env = fs_env({"index.html": "{% include 'parts/head.html' %}", "parts/head.html": "HEAD"})
        assert env.get_template("index.html").render() == "HEAD"

    def test_filename_is_recorded(self, fs_env, tmp_path):
        env = fs_env({"a.txt": "x"})
        template = env.get_template("a.txt")
        assert template.filename == os.path.normpath(tmp_path / "a.txt")
        assert template.name == "a.txt"

    def test_search_path_order(self, tmp_path):
        write_templates(tmp_path / "one", {"a.txt": "one"})
        write_templates(tmp_path / "two", {"a.txt": "two", "b.txt": "two-b"})
        env = Environment(loader=FileSystemLoader([tmp_path / "one", tmp_path / "two"]))
        assert env.get_template("a.txt").render() == "one"
        assert env.get_template("b.txt").render() == "two-b"
        assert env.list_templates() == ["a.txt", "b.txt"]

    def test_parent_directory_is_rejected(self, fs_env):
        env = fs_env({"a.txt": "x"})
        with pytest.raises(TemplateNotFound):
            env.get_template("../a.txt")

    def test_list_templates(self, fs_env):
        env = fs_env({"a.txt": "", "sub/b.html": ""})
        assert env.list_templates() == ["a.txt", "sub/b.html"]

    def test_auto_reload(self, fs_env, tmp_path):
        env = fs_env({"a.txt": "old"})
        assert env.get_template("a.txt").render() == "old"
        path = tmp_path / "a.txt"
        write(path, "new")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert env.get_template("a.txt").render() == "new"

    def test_encoding(self, tmp_path):
        (tmp_path / "a.txt").write_bytes("héllo".encode("latin-1"))
        env = Environment(loader=FileSystemLoader(tmp_path, encoding="latin-1"))
        assert env.get_template("a.txt").render() == "héllo"


class TestOtherLoaders:
    def test_function_loader(self):
        sources = {"a": "A", "b": ("B", "b.txt", None)}
        env = Environment(loader=FunctionLoader(sources.get))
        assert env.get_template("a").render() == "A"
        assert env.get_template("b").filename == "b.txt"
        with pytest.raises(TemplateNotFound):
            env.get_template("c")

    def test_prefix_loader(self):
        env = Environment(loader=PrefixLoader({
            "app": DictLoader({"index.html": "APP"}),
            "lib": DictLoader({"macros.html": "LIB"}),
        }))
        assert env.get_template("app/index.html").render() == "APP"
        assert env.get_template("lib/macros.html").render() == "LIB"
        assert env.list_templates() == ["app/index.html", "lib/macros.html"]
        with pytest.raises(TemplateNotFound):
            env.get_template("other/index.html")
        with pytest.raises(TemplateNotFound):
            env.get_template("app/missing.html")

    def test_choice_loader(self):
        env = Environment(loader=ChoiceLoader([
            DictLoader({"a": "first"}),
            DictLoader({"a": "second", "b": "B"}),
        ]))
        assert env.get_template("a").render() == "first"
        assert env.get_template("b").render() == "B"
        assert env.list_templates() == ["a", "b"]
        with pytest.raises(TemplateNotFound):
            env.get_template("c")

    def test_no_loader(self, env):
        with pytest.raises(TypeError, match="no loader for this environment specified"):
            env.get_template("a")


class TestTemplateSelection:
    def test_select_template(self, dict_env):
        env = dict_env({"b": "B"})
        assert env.select_template(["a", "b"]).render() == "B"

    def test_select_template_none_found(self, dict_env):
        env = dict_env({})
        with pytest.raises(TemplatesNotFound, match="none of the templates given were found: a, b"):
            env.select_template(["a", "b"])

    def test_select_template_empty_list(self, dict_env):
        env = dict_env({})
        with pytest.raises(TemplatesNotFound, match="empty list"):
            env.select_template([])

    def test_get_or_select_template(self, dict_env):
        env = dict_env({"a": "A", "b": "B"})
        assert env.get_or_select_template("a").render() == "A"
        assert env.get_or_select_template(["x", "b"]).render() == "B"

    def test_environment_render(self, dict_env):
        env = dict_env({"a": "{{ x }}"})
        assert env.render("a", x=5) == "5"


class TestCache:
    def test_templates_are_cached(self, dict_env):
        env = dict_env({"a": "A"})
        assert env.get_template("a") is env.get_template("a")

    def test_changed_source_is_reloaded(self):
        mapping = {"a": "old"}
        env = Environment(loader=DictLoader(mapping))
        first = env.get_template("a")
        mapping["a"] = "new"
        assert not first.is_up_to_date
        assert env.get_template("a").render() == "new"

    def test_no_reload_when_disabled(self):
        mapping = {"a": "old"}
        env = Environment(loader=DictLoader(mapping), auto_reload=False)
        env.get_template("a")
        mapping["a"] = "new"
        assert env.get_template("a").render() == "old"

    def test_cache_disabled(self, dict_env):
        env = dict_env({"a": "A"}, cache_size=0)
        assert env.get_template("a") is not env.get_template("a")

    def test_cache_size_evicts_oldest(self, dict_env):
        env = dict_env({"a": "A", "b": "B"}, cache_size=1)
        first = env.get_template("a")
        env.get_template("b")
        assert env.get_template("a") is not first

    def test_globals_passed_to_get_template(self, dict_env):
        env = dict_env({"a": "{{ site }}"})
        assert env.get_template("a", globals={"site": "S"}).render() == "S"


class TestSplitTemplatePath:
    def test_segments(self):
        assert split_template_path("a/./b//c.html") == ["a", "b", "c.html"]

    def test_parent_reference(self):
        with pytest.raises(TemplateNotFound):
            split_template_path("a/../b")
