"""Tests for for loops, the loop variable and loop helpers."""

import pytest

from jinx import Environment


class TestForLoop:
    """Iteration, else branches, filtering and unpacking."""

    def test_simple(self, env):
        assert env.from_string("{% for i in seq %}{{ i }}{% endfor %}").render(seq=range(5)) == "01234"

    def test_else(self, env):
        tmpl = env.from_string("{% for item in seq %}XXX{% else %}empty{% endfor %}")
        assert tmpl.render(seq=[]) == "empty"

    def test_else_skipped_when_filter_accepts_something(self, env):
        tmpl = env.from_string("{% for x in seq if x > 1 %}{{ x }}{% else %}none{% endfor %}")
        assert tmpl.render(seq=[1, 2]) == "2"
        assert tmpl.render(seq=[1]) == "none"

    def test_undefined_iterable_is_empty(self, env):
        assert env.from_string("{% for x in missing %}{{ x }}{% else %}-{% endfor %}").render() == "-"

    def test_unpacking(self, env):
        tmpl = env.from_string("{% for k, v in d|dictsort %}{{ k }}={{ v }};{% endfor %}")
        assert tmpl.render(d={"b": 2, "a": 1}) == "a=1;b=2;"

    def test_unpacking_mismatch(self, env):
        tmpl = env.from_string("{% for a, b in seq %}{% endfor %}")
        with pytest.raises(ValueError, match=r"too many values to unpack \(expected 2\)"):
            tmpl.render(seq=[(1, 2, 3)])

    def test_loop_scoping(self, env):
        tmpl = env.from_string(
            "{% set x = 9 %}{% for i in [1, 2, 3] %}{% set x = 0 %}{{ x }}{{ i }}{% endfor %}{{ x }}"
        )
        assert tmpl.render() == "0102039"

    def test_generator_source(self, env):
        tmpl = env.from_string("{% for i in seq %}{{ i }}{% if loop.last %}!{% endif %}{% endfor %}")
        assert tmpl.render(seq=(i * 2 for i in range(3))) == "024!"


class TestLoopVariable:
    """Attributes and helpers of `loop`."""

    def test_counters_and_cycle(self, env):
        tmpl = env.from_string(
            "{% for c in 'abc' %}{{ loop.index }}{{ loop.revindex }}"
            "{{ loop.cycle('o', 'e') }}{% if loop.last %}!{% endif %}{% endfor %}"
        )
        assert tmpl.render() == "13o22e31o!"

    def test_first_and_index0(self, env):
        tmpl = env.from_string("{% for x in 'ab' %}{{ loop.index0 }}{{ loop.first }};{% endfor %}")
        assert tmpl.render() == "0True;1False;"

    def test_length_of_filtered_loop(self, env):
        tmpl = env.from_string("{% for x in seq if x is even %}{{ x }}{{ loop.length }}{% endfor %}")
        assert tmpl.render(seq=range(10)) == "0525456585"

    def test_length_of_iterator(self, env):
        tmpl = env.from_string("{% for x in seq %}{{ loop.length }}{{ loop.revindex0 }}|{% endfor %}")
        assert tmpl.render(seq=iter([1, 2, 3])) == "32|31|30|"

    def test_lookaround(self, env):
        tmpl = env.from_string(
            "{% for item in seq %}{{ loop.previtem|default('x') }}-{{ item }}-"
            "{{ loop.nextitem|default('x') }}|{% endfor %}"
        )
        assert tmpl.render(seq=list(range(4))) == "x-0-1|0-1-2|1-2-3|2-3-x|"

    def test_changed(self, env):
        tmpl = env.from_string("{% for item in seq %}{{ loop.changed(item) }},{% endfor %}")
        seq = [None, None, 1, 2, 2, 3, 4, 4, 4]
        assert tmpl.render(seq=seq) == "True,False,True,True,False,True,True,False,False,"

    def test_cycle_without_items(self, env):
        with pytest.raises(TypeError, match="no items for cycling given"):
            env.from_string("{% for x in [1] %}{{ loop.cycle() }}{% endfor %}").render()

    def test_loop_is_not_visible_outside(self, env):
        assert env.from_string("{% for x in [1] %}{% endfor %}{{ loop is undefined }}").render() == "True"

    def test_outer_loop_through_set(self, env):
        tmpl = env.from_string(
            "{% for a in [1, 2] %}{% set outer = loop %}"
            "{% for b in 'xy' %}{{ outer.index }}{{ loop.index }} {% endfor %}{% endfor %}"
        )
        assert tmpl.render() == "11 12 21 22 "


class TestRecursiveLoop:
    """`recursive` loops called through `loop(...)`."""

    SEQ = [
        {"a": 1, "b": [{"a": 1}, {"a": 2}]},
        {"a": 2, "b": [{"a": 1}, {"a": 2}]},
        {"a": 3, "b": [{"a": "a"}]},
    ]

    def test_recursive(self, env):
        tmpl = env.from_string(
            "{% for item in seq recursive %}[{{ item.a }}"
            "{% if item.b %}<{{ loop(item.b) }}>{% endif %}]{% endfor %}"
        )
        assert tmpl.render(seq=self.SEQ) == "[1<[1][2]>][2<[1][2]>][3<[a]>]"

    def test_depth(self, env):
        tmpl = env.from_string(
            "{% for item in seq recursive %}[{{ loop.depth }}:{{ item.a }}"
            "{% if item.b %}<{{ loop(item.b) }}>{% endif %}]{% endfor %}"
        )
        assert tmpl.render(seq=self.SEQ[2:]) == "[1:3<[2:a]>]"

    def test_call_without_recursive_marker(self, env):
        tmpl = env.from_string("{% for x in [1] %}{{ loop([]) }}{% endfor %}")
        with pytest.raises(TypeError, match="'recursive' marker"):
            tmpl.render()


class TestLoopControls:
    """break and continue from the loopcontrols extension."""

    def test_break_and_continue(self):
        env = Environment(extensions=["loopcontrols"])
        tmpl = env.from_string(
            "{% for i in range(10) %}{% if i is odd %}{% continue %}{% endif %}"
            "{% if i > 3 %}{% break %}{% endif %}{{ i }}{% endfor %}"
        )
        assert tmpl.render() == "02"

    def test_break_leaves_only_inner_loop(self):
        env = Environment(extensions=["loopcontrols"])
        tmpl = env.from_string(
            "{% for a in 'xy' %}{{ a }}{% for b in [1, 2] %}{{ b }}{% break %}{% endfor %}{% endfor %}"
        )
        assert tmpl.render() == "x1y1"


class TestLoopHelpers:
    """cycler, joiner and namespace globals."""

    def test_cycler(self, env):
        tmpl = env.from_string("{% set c = cycler('a', 'b') %}{{ c.next() }}{{ c.next() }}{{ c.next() }}")
        assert tmpl.render() == "aba"

    def test_joiner(self, env):
        tmpl = env.from_string("{% set j = joiner('|') %}{% for i in [1, 2, 3] %}{{ j() }}{{ i }}{% endfor %}")
        assert tmpl.render() == "1|2|3"

    def test_namespace_survives_loop(self, env):
        tmpl = env.from_string(
            "{% set ns = namespace(found=false) %}"
            "{% for i in [1, 2, 3] %}{% if i == 2 %}{% set ns.found = true %}{% endif %}{% endfor %}"
            "{{ ns.found }}"
        )
        assert tmpl.render() == "True"

    def test_range_limit(self, env):
        with pytest.raises(OverflowError, match="Range too big"):
            env.from_string("{{ range(10 ** 9)|length }}").render()
