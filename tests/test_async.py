"""Tests for suspending (asynchronous) rendering."""

import asyncio

import pytest

from jinx import BaseLoader, ChoiceLoader, DictLoader, Environment, TemplateNotFound, TemplateRuntimeError


async def fetch(value=42):
    await asyncio.sleep(0)
    return value


async def agen(n=3):
    for i in range(1, n + 1):
        await asyncio.sleep(0)
        yield i


class Record:
    @property
    def title(self):
        return fetch("T")


class AsyncDictLoader(BaseLoader):
    """Loader whose get_source is a coroutine."""

    def __init__(self, mapping):
        self.mapping = mapping

    async def get_source(self, environment, template):
        await asyncio.sleep(0)
        if template not in self.mapping:
            raise TemplateNotFound(template)
        return self.mapping[template], None, None


@pytest.fixture
def async_env():
    return Environment(enable_async=True)


class TestSuspendingRender:
    """Awaitables and async iterables inside templates."""

    def test_awaitable_call(self, async_env):
        tmpl = async_env.from_string("{{ fetch() }}|{{ fetch(1) + 1 }}")
        assert asyncio.run(tmpl.render_async(fetch=fetch)) == "42|2"

    def test_awaitable_attribute(self, async_env):
        tmpl = async_env.from_string("{{ r.title }}")
        assert asyncio.run(tmpl.render_async(r=Record())) == "T"

    def test_async_for_loop(self, async_env):
        tmpl = async_env.from_string(
            "{% for x in agen() %}{{ x }}:{{ loop.index }}/{{ loop.length }}/{{ loop.revindex }} {% endfor %}"
        )
        assert asyncio.run(tmpl.render_async(agen=agen)) == "1:1/3/3 2:2/3/2 3:3/3/1 "

    def test_async_for_loop_with_filter(self, async_env):
        tmpl = async_env.from_string("{% for x in agen(6) if x is even %}{{ x }}{% endfor %}")
        assert asyncio.run(tmpl.render_async(agen=agen)) == "246"

    def test_filters_drain_async_iterables(self, async_env):
        tmpl = async_env.from_string("{{ agen()|list }}|{{ agen()|sum }}|{{ agen()|join(',') }}")
        assert asyncio.run(tmpl.render_async(agen=agen)) == "[1, 2, 3]|6|1,2,3"

    def test_macro_with_awaitable(self, async_env):
        tmpl = async_env.from_string("{% macro m() %}<{{ fetch() }}>{% endmacro %}{{ m() }}")
        assert asyncio.run(tmpl.render_async(fetch=fetch)) == "<42>"

    def test_render_runs_event_loop(self, async_env):
        tmpl = async_env.from_string("{{ fetch() }}")
        assert tmpl.render(fetch=fetch) == "42"

    def test_sync_values_in_async_mode(self, async_env):
        tmpl = async_env.from_string("{% for x in [1, 2] %}{{ x }}{% endfor %}")
        assert asyncio.run(tmpl.render_async()) == "12"

    def test_inheritance(self):
        env = Environment(
            loader=DictLoader({
                "base": "[{% block x %}{% endblock %}]",
                "child": "{% extends 'base' %}{% block x %}{{ fetch() }}{% endblock %}",
            }),
            enable_async=True,
        )
        tmpl = env.get_template("child")
        assert asyncio.run(tmpl.render_async(fetch=fetch)) == "[42]"

    def test_error_inside_awaitable(self, async_env):
        async def broken():
            raise ValueError("boom")

        tmpl = async_env.from_string("{{ broken() }}")
        with pytest.raises(ValueError, match="boom"):
            asyncio.run(tmpl.render_async(broken=broken))


class TestDirectMode:
    """Asynchronous values are rejected without enable_async."""

    def test_awaitable_in_direct_mode(self, env):
        tmpl = env.from_string("{{ fetch() }}")
        with pytest.raises(TemplateRuntimeError, match="asynchronous value encountered while rendering in direct mode"):
            tmpl.render(fetch=fetch)

    def test_async_iterable_in_direct_mode(self, env):
        tmpl = env.from_string("{% for x in agen() %}{{ x }}{% endfor %}")
        with pytest.raises(TemplateRuntimeError, match="asynchronous value encountered"):
            tmpl.render(agen=agen)

    def test_error_position(self, env):
        tmpl = env.from_string("line\n{{ fetch() }}")
        with pytest.raises(TemplateRuntimeError) as exc_info:
            tmpl.render(fetch=fetch)
        assert exc_info.value.lineno == 2


class TestAsyncLoaders:
    """Loaders returning awaitables."""

    def test_get_template_async(self):
        env = Environment(loader=AsyncDictLoader({"a": "{{ 1 + 1 }}"}), enable_async=True)

        async def run():
            template = await env.get_template_async("a")
            return await template.render_async()

        assert asyncio.run(run()) == "2"

    def test_include_through_async_loader(self):
        env = Environment(loader=AsyncDictLoader({"a": "<{% include 'b' %}>", "b": "B"}), enable_async=True)

        async def run():
            template = await env.get_template_async("a")
            return await template.render_async()

        assert asyncio.run(run()) == "<B>"

    def test_missing_template_async(self):
        env = Environment(loader=AsyncDictLoader({}), enable_async=True)
        with pytest.raises(TemplateNotFound):
            asyncio.run(env.get_template_async("nope"))

    def test_async_loader_in_direct_mode(self):
        env = Environment(loader=AsyncDictLoader({"a": "A"}))
        with pytest.raises(TemplateRuntimeError, match="asynchronous value encountered"):
            env.get_template("a")


class TestRenderCallback:
    """render_callback delivers `(error, output)`."""

    def test_direct_mode(self, env):
        results = []
        env.from_string("{{ x }}").render_callback({"x": 1}, lambda err, out: results.append((err, out)))
        assert results == [(None, "1")]

    def test_direct_mode_error(self, env):
        results = []
        env.from_string("{{ x.y }}").render_callback({}, lambda err, out: results.append((err, out)))
        error, output = results[0]
        assert output is None
        assert "'x' is undefined" in str(error)

    def test_suspending_mode_without_loop(self, async_env):
        results = []
        tmpl = async_env.from_string("{{ fetch() }}")
        tmpl.render_callback({"fetch": fetch}, lambda err, out: results.append((err, out)))
        assert results == [(None, "42")]

    def test_suspending_mode_inside_loop(self, async_env):
        results = []
        tmpl = async_env.from_string("{{ fetch() }}")

        async def run():
            task = tmpl.render_callback({"fetch": fetch}, lambda err, out: results.append((err, out)))
            await task

        asyncio.run(run())
        assert results == [(None, "42")]


class TestAwaitableVariables:
    """Context variables holding awaitables are resolved where they are used."""

    def test_printed(self, async_env):
        tmpl = async_env.from_string("{{ v }}")
        assert asyncio.run(tmpl.render_async(v=fetch(7))) == "7"

    def test_used_twice(self, async_env):
        tmpl = async_env.from_string("{{ v }}|{{ v + 1 }}")
        assert asyncio.run(tmpl.render_async(v=fetch(7))) == "7|8"

    def test_passed_to_filters(self, async_env):
        tmpl = async_env.from_string("{{ values|items|sum('1') }}|{{ values|length }}")
        values = fetch({"a": 1, "b": 2})
        assert asyncio.run(tmpl.render_async(values=values)) == "3|2"

    def test_passed_to_tests(self, async_env):
        tmpl = async_env.from_string("{% if v is even %}even{% endif %}")
        assert asyncio.run(tmpl.render_async(v=fetch(4))) == "even"

    def test_loop_source(self, async_env):
        tmpl = async_env.from_string("{% for x in items %}{{ x }}{% endfor %}")
        assert asyncio.run(tmpl.render_async(items=fetch([1, 2]))) == "12"

    def test_rejected_in_direct_mode(self, env):
        with pytest.raises(TemplateRuntimeError, match="asynchronous value encountered"):
            env.from_string("{{ v }}").render(v=fetch(7))


class TestFilteredLoopLength:
    """`loop.length` of a loop whose condition suspends."""

    @staticmethod
    async def ok(x):
        await asyncio.sleep(0)
        return x > 1

    def test_length(self, async_env):
        tmpl = async_env.from_string("{% for x in [1, 2, 3, 4, 5] if ok(x) %}{{ loop.length }}{% endfor %}")
        assert asyncio.run(tmpl.render_async(ok=self.ok)) == "4444"

    def test_revindex(self, async_env):
        tmpl = async_env.from_string(
            "{% for x in [1, 2, 3] if ok(x) %}{{ loop.revindex }}{{ loop.revindex0 }};{% endfor %}"
        )
        assert asyncio.run(tmpl.render_async(ok=self.ok)) == "21;10;"


DUAL_MODE_TEMPLATES = {
    "base": "<{% block title %}base{% endblock %}|{% block body %}{% endblock %}>",
    "part": "[{{ items|join(',') }}]",
    "macros": "{% macro pair(a, b=2) %}{{ a }}-{{ b }}{% endmacro %}",
    "macro": "{% macro m(a, b=2) %}{{ a }}-{{ b }}{% endmacro %}{{ m(1) }} {{ m(3, b=4) }}",
    "call": "{% macro wrap() %}({{ caller() }}){% endmacro %}{% call wrap() %}{{ nums|sum }}{% endcall %}",
    "filters": "{{ items|map('upper')|join(',') }}|{{ items|first }}|{{ 'a b'|title }}|{{ nums|select('odd')|list }}",
    "tests": "{% for x in nums %}{{ x is even }}{% if x is divisibleby(3) %}!{% endif %} {% endfor %}",
    "loop": (
        "{% for x in nums if x > 1 %}"
        "{{ loop.index }}/{{ loop.length }}/{{ loop.revindex }}/{{ loop.revindex0 }}"
        "{{ loop.cycle('a', 'b') }}{% if loop.last %}.{% endif %};"
        "{% else %}none{% endfor %}"
    ),
    "recursive": (
        "{% for node in tree recursive %}{{ node.name }}"
        "{% if node.children %}({{ loop(node.children) }}){% endif %}{% endfor %}"
    ),
    "child": (
        "{% extends 'base' %}{% block title %}child/{{ super() }}{% endblock %}"
        "{% block body %}{% for x in nums %}{{ x }}{% endfor %}{% endblock %}"
    ),
    "include": "{% include 'part' %}{% include 'missing' ignore missing %}",
    "import": "{% from 'macros' import pair %}{% import 'macros' as m %}{{ pair(1) }} {{ m.pair(5, 6) }}",
    "set": "{% set x %}{{ nums|length }}{% endset %}{% set ns = namespace(n=0) %}"
           "{% for i in nums %}{% set ns.n = ns.n + i %}{% endfor %}{{ x }}:{{ ns.n }}",
}

DUAL_MODE_CONTEXT = {
    "items": ["a", "b"],
    "nums": [1, 2, 3],
    "tree": [
        {"name": "a", "children": [{"name": "b", "children": []}]},
        {"name": "c", "children": []},
    ],
}


class TestDualMode:
    """The same templates render identically in direct and suspending mode."""

    @pytest.mark.parametrize("name", sorted(DUAL_MODE_TEMPLATES))
    def test_same_output(self, name):
        direct = Environment(loader=DictLoader(DUAL_MODE_TEMPLATES))
        suspending = Environment(loader=DictLoader(DUAL_MODE_TEMPLATES), enable_async=True)

        expected = direct.get_template(name).render(DUAL_MODE_CONTEXT)

        async def run():
            template = await suspending.get_template_async(name)
            return await template.render_async(DUAL_MODE_CONTEXT)

        assert asyncio.run(run()) == expected

    def test_loop_output(self):
        env = Environment(loader=DictLoader(DUAL_MODE_TEMPLATES))
        assert env.get_template("loop").render(DUAL_MODE_CONTEXT) == "1/2/2/1a;2/2/1/0b.;"


class TestChoiceLoaderAsync:
    """ChoiceLoader over loaders whose get_source is a coroutine."""

    def test_falls_through_to_next_loader(self):
        loader = ChoiceLoader([AsyncDictLoader({}), AsyncDictLoader({"a": "A"})])
        env = Environment(loader=loader, enable_async=True)
        source, filename, uptodate = asyncio.run(loader.get_source(env, "a"))
        assert source == "A"

    def test_mixed_loaders(self):
        loader = ChoiceLoader([AsyncDictLoader({}), DictLoader({"a": "sync"})])
        env = Environment(loader=loader, enable_async=True)
        assert asyncio.run(loader.get_source(env, "a"))[0] == "sync"

    def test_missing_everywhere(self):
        loader = ChoiceLoader([AsyncDictLoader({}), AsyncDictLoader({})])
        env = Environment(loader=loader, enable_async=True)
        with pytest.raises(TemplateNotFound):
            asyncio.run(loader.get_source(env, "a"))
