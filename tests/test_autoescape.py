"""Tests for HTML autoescaping and markup handling."""

from markupsafe import Markup

from jinx import DictLoader, Environment
from jinx.config import select_autoescape


class TestAutoescape:
    """Escaping of expression output."""

    def test_off_by_default(self, env):
        assert env.from_string("{{ '<b>' }}").render() == "<b>"

    def test_on(self):
        env = Environment(autoescape=True)
        assert env.from_string("{{ x }}").render(x="<b>") == "&lt;b&gt;"

    def test_template_data_is_not_escaped(self):
        env = Environment(autoescape=True)
        assert env.from_string("<p>{{ x }}</p>").render(x="&") == "<p>&amp;</p>"

    def test_safe_filter(self):
        env = Environment(autoescape=True)
        assert env.from_string("{{ x|safe }}").render(x="<b>") == "<b>"

    def test_markup_values_pass_through(self):
        env = Environment(autoescape=True)
        assert env.from_string("{{ x }}").render(x=Markup("<b>")) == "<b>"

    def test_escape_filter_without_autoescape(self, env):
        assert env.from_string("{{ '<\">&'|e }}").render() == "&lt;&#34;&gt;&amp;"

    def test_forceescape(self, env):
        assert env.from_string("{{ '<'|forceescape|forceescape }}").render() == "&amp;lt;"

    def test_autoescape_block(self):
        env = Environment(autoescape=True)
        tmpl = env.from_string("{% autoescape false %}{{ x }}{% endautoescape %}|{{ x }}")
        assert tmpl.render(x="<>") == "<>|&lt;&gt;"

    def test_autoescape_block_enables(self, env):
        tmpl = env.from_string("{% autoescape true %}{{ x }}{% endautoescape %}{{ x }}")
        assert tmpl.render(x="<>") == "&lt;&gt;<>"

    def test_concat_escapes_plain_parts(self):
        env = Environment(autoescape=True)
        assert env.from_string("{{ '<a>' ~ x|safe }}").render(x="<b>") == "&lt;a&gt;<b>"

    def test_join_escapes_plain_items(self):
        env = Environment(autoescape=True)
        assert env.from_string("{{ ['<a>', '<b>'|safe]|join }}").render() == "&lt;a&gt;<b>"

    def test_set_block_is_markup(self):
        env = Environment(autoescape=True)
        tmpl = env.from_string("{% set x %}<b>{% endset %}{{ x }}")
        assert tmpl.render() == "<b>"

    def test_xmlattr(self):
        env = Environment(autoescape=True)
        tmpl = env.from_string("<a{{ d|xmlattr }}>")
        assert tmpl.render(d={"href": "/?a=1&b=2", "id": None}) == '<a href="/?a=1&amp;b=2">'


class TestSelectAutoescape:
    """Autoescape decided by the template name."""

    def test_predicate(self):
        predicate = select_autoescape(["html"], disabled_extensions=["txt"])
        assert predicate("page.html") is True
        assert predicate("PAGE.HTML") is True
        assert predicate("notes.txt") is False
        assert predicate("data.json") is False
        assert predicate(None) is True

    def test_by_template_name(self):
        env = Environment(
            loader=DictLoader({"a.html": "{{ x }}", "a.txt": "{{ x }}"}),
            autoescape=select_autoescape(["html"]),
        )
        assert env.get_template("a.html").render(x="<>") == "&lt;&gt;"
        assert env.get_template("a.txt").render(x="<>") == "<>"
