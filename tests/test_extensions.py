"""Tests for the extension hooks and the built-in extensions."""

import dataclasses
from dataclasses import dataclass
from typing import Tuple

import pytest

from jinx import Environment, Extension, TemplateSyntaxError
from jinx import nodes
from jinx.errors import CompileError
from jinx.extensions import CompilerRule
from jinx.extensions.builtin import ExprStmtExtension
from jinx.tokens import TokenType


@dataclass(frozen=True)
class Repeat(nodes.Stmt):
    count: nodes.Expr
    body: Tuple[nodes.Node, ...]


def compile_repeat(generator, node):
    count = generator.expression(node.count)
    body = generator.statements(node.body)

    def step(frame, buf):
        n = yield from count(frame)
        for _ in range(n):
            yield from body(frame, buf)

    return step


class RepeatExtension(Extension):
    """`{% repeat n %}...{% endrepeat %}` with its own node type."""

    tags = frozenset(["repeat"])

    def parse(self, parser):
        token = parser.stream.advance()
        count = parser.parse_expression()
        body = parser.parse_statements(("endrepeat",), drop_needle=True)
        return Repeat(count, body, lineno=token.line)

    def register_compilers(self):
        return [CompilerRule(Repeat, compile_repeat)]


class ShoutExtension(Extension):
    """`{% shout %}...{% endshout %}` calling back into the extension."""

    tags = frozenset(["shout"])

    def parse(self, parser):
        token = parser.stream.advance()
        body = parser.parse_statements(("endshout",), drop_needle=True)
        return nodes.CallBlock(self.call_method("_shout", lineno=token.line), (), (), body, lineno=token.line)

    def _shout(self, caller):
        return caller().upper()


class UpperDataExtension(Extension):
    """Uppercases template text through the token stream."""

    def filter_stream(self, stream):
        for token in stream:
            if token.type is TokenType.DATA:
                yield dataclasses.replace(token, value=token.value.upper())
            else:
                yield token


class FirstRewrite(Extension):
    priority = 10

    def preprocess(self, source, name, filename=None):
        return source.replace("a", "b")


class SecondRewrite(Extension):
    priority = 200

    def preprocess(self, source, name, filename=None):
        return source.replace("b", "c")


class TestCustomExtensions:
    """Hooks of user extensions."""

    def test_custom_node_with_compiler_rule(self):
        env = Environment(extensions=[RepeatExtension])
        assert env.from_string("{% repeat 3 %}x{% endrepeat %}").render() == "xxx"

    def test_call_method(self):
        env = Environment(extensions=[ShoutExtension])
        tmpl = env.from_string("{% shout %}hello {{ name }}{% endshout %}!")
        assert tmpl.render(name="bob") == "HELLO BOB!"

    def test_filter_stream(self):
        env = Environment(extensions=[UpperDataExtension])
        assert env.from_string("abc{{ 'x' }}").render() == "ABCx"

    def test_preprocess_runs_in_priority_order(self):
        env = Environment(extensions=[SecondRewrite, FirstRewrite])
        assert env.from_string("a").render() == "c"
        assert env.preprocess("ab") == "cc"

    def test_lookup_by_identifier(self):
        env = Environment(extensions=[ShoutExtension])
        extension = env.extensions[ShoutExtension.identifier]
        assert isinstance(extension, ShoutExtension)
        assert extension.environment is env

    def test_extension_by_import_path(self):
        env = Environment(extensions=["jinx.extensions.builtin.ExprStmtExtension"])
        assert isinstance(env.extensions[ExprStmtExtension.identifier], ExprStmtExtension)
        env = Environment(extensions=["jinx.extensions.builtin:ExprStmtExtension"])
        assert len(env.extensions) == 1

    def test_add_extension(self, env):
        env.add_extension("do")
        assert env.from_string("{% set l = [] %}{% do l.append(1) %}{{ l }}").render() == "[1]"

    def test_node_without_compiler_rule(self):
        class Bare(Extension):
            tags = frozenset(["bare"])

            def parse(self, parser):
                token = parser.stream.advance()
                return Repeat(nodes.Const(1), (), lineno=token.line)

        env = Environment(extensions=[Bare])
        with pytest.raises(CompileError, match="no compiler rule for node 'Repeat'"):
            env.from_string("{% bare %}")

    def test_unknown_tag_without_extension(self, env):
        with pytest.raises(TemplateSyntaxError, match="Encountered unknown tag 'repeat'"):
            env.from_string("{% repeat 2 %}{% endrepeat %}")


class TestBuiltinExtensions:
    """do, loopcontrols and debug."""

    def test_do(self):
        env = Environment(extensions=["do"])
        tmpl = env.from_string("{% set d = {} %}{% do d.update({'a': 1}) %}{{ d.a }}")
        assert tmpl.render() == "1"

    def test_break_outside_loop(self):
        env = Environment(extensions=["loopcontrols"])
        with pytest.raises(TemplateSyntaxError, match="'break' outside of a loop"):
            env.from_string("{% break %}")

    def test_continue_inside_nested_if(self):
        env = Environment(extensions=["loopcontrols"])
        tmpl = env.from_string("{% for i in [1, 2, 3] %}{% if i == 2 %}{% continue %}{% endif %}{{ i }}{% endfor %}")
        assert tmpl.render() == "13"

    def test_debug(self):
        env = Environment(extensions=["debug"])
        out = env.from_string("{% debug %}").render(x=1)
        assert "'x': 1" in out
        assert "'filters':" in out
        assert "'upper'" in out

    def test_debug_takes_no_arguments(self):
        env = Environment(extensions=["debug"])
        with pytest.raises(TemplateSyntaxError, match="the debug tag takes no arguments"):
            env.from_string("{% debug x %}")
