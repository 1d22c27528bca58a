"""
Recursive descent parser for the template language.

Consumes a TokenStream and builds a `nodes.Template`. Statement tags are
dispatched by name; names no built-in statement claims are offered to the
registered extensions.

Expression grammar (lowest precedence first):
tuple          → expression ("," expression)*
expression     → or_expr ("if" or_expr ("else" expression)?)*
or_expr        → and_expr ("or" and_expr)*
and_expr       → not_expr ("and" not_expr)*
not_expr       → "not" not_expr | compare
compare        → concat (("==" | "!=" | "<" | "<=" | ">" | ">=" | "in" | "not" "in") concat)*
concat         → additive ("~" additive)*
additive       → multiplicative (("+" | "-") multiplicative)*
multiplicative → power (("*" | "/" | "//" | "%") power)*
power          → unary ("**" unary)*
unary          → ("+" | "-") unary | filtered
filtered       → postfix ("|" filter | "is" test | call)*
postfix        → primary ("." NAME | "[" subscript "]" | call)*
primary        → NAME | STRING+ | INTEGER | FLOAT | "(" tuple ")" | list | dict
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

from . import nodes
from .errors import TemplateAssertionError, TemplateSyntaxError
from .tokens import Token, TokenStream, TokenType

logger = logging.getLogger(__name__)

_STATEMENT_TAGS = frozenset([
    "for", "if", "block", "extends", "print", "macro", "include",
    "from", "import", "set", "with", "autoescape", "call", "filter",
])
_COMPARE_OPERATORS = frozenset(["==", "!=", "<", "<=", ">", ">="])
_ADDITIVE = ("+", "-")
_MULTIPLICATIVE = ("*", "/", "//", "%")
_RESERVED_NAMES = frozenset(["true", "false", "none", "True", "False", "None"])
# Names that end a bare test argument (`x is divisibleby 3 and ...`).
_TEST_ARG_STOP = ("else", "or", "and", "if", "in", "not")


class Parser:
    """
    Template parser.

    Args:
        stream: Token stream of the template
        extensions: Tag name to extension parse hook mapping
        name: Template name for error messages
        filename: Template filename for error messages
    """

    def __init__(
        self,
        stream: TokenStream,
        extensions: Optional[Dict[str, Callable[["Parser"], object]]] = None,
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ):
        self.stream = stream
        self.name = name
        self.filename = filename
        self._extensions = dict(extensions or {})
        self._tag_stack: List[str] = []
        self._end_token_stack: List[Tuple[str, ...]] = []

    def is_inside(self, tag: str) -> bool:
        """Check whether a statement with the given tag name is open."""
        return tag in self._tag_stack

    # -- errors ---------------------------------------------------------------

    def fail(
        self,
        message: str,
        token: Optional[Token] = None,
        exc: Type[TemplateSyntaxError] = TemplateSyntaxError,
    ) -> None:
        """Raise a syntax error at the given (default: current) token."""
        token = token or self.stream.current
        raise exc(message, token.line, self.name, self.filename, colno=token.column)

    def _fail_unknown_tag(self, name: Optional[str], token: Token) -> None:
        if name is None:
            message = ["Unexpected end of template."]
        else:
            message = [f"Encountered unknown tag {name!r}."]

        if self._end_token_stack:
            expected = {tag for tags in self._end_token_stack for tag in tags}
            looking_for = " or ".join(repr(tag) for tag in self._end_token_stack[-1])
            if name is not None and name in expected:
                message.append(
                    "You probably made a nesting mistake. The parser is expecting "
                    f"this tag, but currently looking for {looking_for}."
                )
            else:
                message.append(f"Expected one of the following tags: {looking_for}.")

        if self._tag_stack:
            message.append(f"The innermost block that needs to be closed is {self._tag_stack[-1]!r}.")

        self.fail(" ".join(message), token)

    # -- template structure ---------------------------------------------------

    def parse(self) -> nodes.Template:
        """
        Parse the whole template.

        Returns:
            Root node of the AST

        Raises:
            TemplateSyntaxError: On the first syntax error
        """
        body = self.subparse()
        logger.debug(f"Parsed template {self.name or '<string>'}: {len(body)} top-level nodes")
        return nodes.Template(tuple(body), lineno=1)

    def subparse(self, end_tokens: Optional[Tuple[str, ...]] = None) -> List[nodes.Node]:
        """Parse template data and tags until one of `end_tokens` tags starts."""
        body: List[nodes.Node] = []
        data: List[nodes.Expr] = []

        def flush_data() -> None:
            if data:
                body.append(nodes.Output(tuple(data), lineno=data[0].lineno, colno=data[0].colno))
                del data[:]

        if end_tokens:
            self._end_token_stack.append(end_tokens)
        try:
            stream = self.stream
            while not stream.eos:
                token = stream.current
                if token.type is TokenType.DATA:
                    if token.value:
                        data.append(nodes.TemplateData(token.value, lineno=token.line, colno=token.column))
                    stream.advance()
                elif token.type is TokenType.VARIABLE_BEGIN:
                    stream.advance()
                    data.append(self.parse_tuple(with_condexpr=True))
                    stream.consume(TokenType.VARIABLE_END)
                elif token.type is TokenType.BLOCK_BEGIN:
                    flush_data()
                    stream.advance()
                    if end_tokens and stream.current.test_name(*end_tokens):
                        return body
                    result = self.parse_statement()
                    if isinstance(result, list):
                        body.extend(result)
                    else:
                        body.append(result)
                    stream.consume(TokenType.BLOCK_END)
                else:
                    raise AssertionError(f"internal parsing error: unexpected {token!r}")
            flush_data()
        finally:
            if end_tokens:
                self._end_token_stack.pop()
        return body

    def parse_statement(self):
        """Parse a single statement tag; the current token is its name."""
        token = self.stream.current
        if token.type is not TokenType.NAME:
            self.fail("tag name expected", token)

        self._tag_stack.append(token.value)
        pop_tag = True
        try:
            if token.value in _STATEMENT_TAGS:
                return getattr(self, f"_parse_{token.value}")()
            hook = self._extensions.get(token.value)
            if hook is not None:
                return hook(self)
            # The unknown tag is not an open block itself.
            self._tag_stack.pop()
            pop_tag = False
            self._fail_unknown_tag(token.value, token)
        finally:
            if pop_tag:
                self._tag_stack.pop()

    def parse_statements(self, end_tokens: Tuple[str, ...], drop_needle: bool = False) -> Tuple[nodes.Node, ...]:
        """
        Parse a statement body up to one of `end_tokens`.

        The current token must close the opening tag. With `drop_needle`
        the end tag name is consumed; otherwise it stays current.
        """
        self.stream.skip_op(":")
        self.stream.consume(TokenType.BLOCK_END)
        result = self.subparse(end_tokens)
        if self.stream.eos:
            self._fail_unknown_tag(None, self.stream.current)
        if drop_needle:
            self.stream.advance()
        return tuple(result)

    # -- statements -----------------------------------------------------------

    def _parse_for(self) -> nodes.For:
        token = self.stream.consume(TokenType.NAME, "for")
        target = self.parse_assign_target(extra_end_rules=("in",))
        if any(n.name == "loop" for n in _store_names(target)):
            self.fail("Cannot assign to special loop variable in for-loop", token, TemplateAssertionError)
        self.stream.consume(TokenType.NAME, "in")
        iterable = self.parse_tuple(with_condexpr=False, extra_end_rules=("recursive",))
        test = None
        if self.stream.skip_name("if"):
            test = self.parse_expression()
        recursive = self.stream.skip_name("recursive")
        body = self.parse_statements(("endfor", "else"))
        else_: Tuple[nodes.Node, ...] = ()
        if self.stream.advance().value != "endfor":
            else_ = self.parse_statements(("endfor",), drop_needle=True)
        return nodes.For(target, iterable, body, else_, test, recursive, lineno=token.line, colno=token.column)

    def _parse_if(self) -> nodes.If:
        token = self.stream.consume(TokenType.NAME, "if")
        test = self.parse_tuple(with_condexpr=False)
        body = self.parse_statements(("elif", "else", "endif"))
        branches: List[nodes.If] = []
        else_: Tuple[nodes.Node, ...] = ()
        while True:
            tag = self.stream.advance()
            if tag.value == "elif":
                elif_test = self.parse_tuple(with_condexpr=False)
                elif_body = self.parse_statements(("elif", "else", "endif"))
                branches.append(nodes.If(elif_test, elif_body, lineno=tag.line, colno=tag.column))
                continue
            if tag.value == "else":
                else_ = self.parse_statements(("endif",), drop_needle=True)
            break
        return nodes.If(test, body, tuple(branches), else_, lineno=token.line, colno=token.column)

    def _parse_with(self) -> nodes.With:
        token = self.stream.advance()
        targets: List[nodes.Expr] = []
        values: List[nodes.Expr] = []
        while not self.stream.match(TokenType.BLOCK_END):
            if targets:
                self.stream.consume(TokenType.OPERATOR, ",")
            targets.append(_with_ctx(self.parse_assign_target(), "param"))
            self.stream.consume(TokenType.OPERATOR, "=")
            values.append(self.parse_expression())
        body = self.parse_statements(("endwith",), drop_needle=True)
        return nodes.With(tuple(targets), tuple(values), body, lineno=token.line, colno=token.column)

    def _parse_autoescape(self) -> nodes.Scope:
        token = self.stream.advance()
        option = nodes.Keyword("autoescape", self.parse_expression(), lineno=token.line)
        body = self.parse_statements(("endautoescape",), drop_needle=True)
        modifier = nodes.ScopedEvalContextModifier((option,), body, lineno=token.line, colno=token.column)
        return nodes.Scope((modifier,), lineno=token.line, colno=token.column)

    def _parse_block(self) -> nodes.Block:
        token = self.stream.advance()
        name = self.stream.consume(TokenType.NAME).value
        scoped = required = False
        while self.stream.current.test_name("scoped", "required"):
            modifier = self.stream.advance()
            if modifier.value == "scoped":
                if scoped:
                    self.fail("duplicate 'scoped' modifier on block", modifier)
                if required:
                    self.fail("the 'scoped' modifier must come before 'required'", modifier)
                scoped = True
            else:
                if required:
                    self.fail("duplicate 'required' modifier on block", modifier)
                required = True

        if self.stream.current.test_op("-"):
            self.fail(
                "Block names have to be valid identifiers and may not contain "
                "hyphens, use an underscore instead."
            )

        body = self.parse_statements(("endblock",), drop_needle=True)

        if required:
            for child in body:
                if not isinstance(child, nodes.Output) or any(
                    not isinstance(item, nodes.TemplateData) or not item.data.isspace()
                    for item in child.nodes
                ):
                    self.fail("Required blocks can only contain comments or whitespace", token)

        end_name = self.stream.current
        if end_name.type is TokenType.NAME:
            if end_name.value != name:
                self.fail(f"mismatched block name: expected 'endblock {name}', got 'endblock {end_name.value}'")
            self.stream.advance()
        return nodes.Block(name, body, scoped, required, lineno=token.line, colno=token.column)

    def _parse_extends(self) -> nodes.Extends:
        token = self.stream.advance()
        return nodes.Extends(self.parse_expression(), lineno=token.line, colno=token.column)

    def _parse_context_modifier(self, default: bool) -> bool:
        current = self.stream.current
        if current.test_name("with", "without") and self.stream.peek().test_name("context"):
            self.stream.skip(2)
            return current.value == "with"
        return default

    def _parse_include(self) -> nodes.Include:
        token = self.stream.advance()
        template = self.parse_expression()
        ignore_missing = False
        if self.stream.current.test_name("ignore") and self.stream.peek().test_name("missing"):
            ignore_missing = True
            self.stream.skip(2)
        with_context = self._parse_context_modifier(True)
        return nodes.Include(template, with_context, ignore_missing, lineno=token.line, colno=token.column)

    def _parse_import(self) -> nodes.Import:
        token = self.stream.advance()
        template = self.parse_expression()
        self.stream.consume(TokenType.NAME, "as")
        target = self.parse_assign_target(name_only=True).name
        with_context = self._parse_context_modifier(False)
        return nodes.Import(template, target, with_context, lineno=token.line, colno=token.column)

    def _parse_from(self) -> nodes.FromImport:
        token = self.stream.advance()
        template = self.parse_expression()
        self.stream.consume(TokenType.NAME, "import")
        names: List[Tuple[str, Optional[str]]] = []
        with_context: Optional[bool] = None

        def context_modifier() -> bool:
            nonlocal with_context
            current = self.stream.current
            if current.test_name("with", "without") and self.stream.peek().test_name("context"):
                with_context = current.value == "with"
                self.stream.skip(2)
                return True
            return False

        while True:
            if names:
                self.stream.consume(TokenType.OPERATOR, ",")
            if self.stream.current.type is TokenType.NAME:
                if context_modifier():
                    break
                target = self.parse_assign_target(name_only=True)
                if target.name.startswith("_"):
                    self.fail(
                        "names starting with an underline can not be imported",
                        exc=TemplateAssertionError,
                    )
                if self.stream.skip_name("as"):
                    alias = self.parse_assign_target(name_only=True)
                    names.append((target.name, alias.name))
                else:
                    names.append((target.name, None))
                if context_modifier() or not self.stream.current.test_op(","):
                    break
            else:
                self.stream.consume(TokenType.NAME)

        return nodes.FromImport(
            template, tuple(names), bool(with_context), lineno=token.line, colno=token.column
        )

    def _parse_signature(self) -> Tuple[Tuple[nodes.Name, ...], Tuple[nodes.Expr, ...]]:
        args: List[nodes.Name] = []
        defaults: List[nodes.Expr] = []
        self.stream.consume(TokenType.OPERATOR, "(")
        while not self.stream.current.test_op(")"):
            if args:
                self.stream.consume(TokenType.OPERATOR, ",")
            arg = _with_ctx(self.parse_assign_target(name_only=True), "param")
            if self.stream.skip_op("="):
                defaults.append(self.parse_expression())
            elif defaults:
                self.fail("non-default argument follows default argument")
            args.append(arg)
        self.stream.consume(TokenType.OPERATOR, ")")
        return tuple(args), tuple(defaults)

    def _parse_call(self) -> nodes.CallBlock:
        token = self.stream.advance()
        if self.stream.current.test_op("("):
            args, defaults = self._parse_signature()
        else:
            args, defaults = (), ()
        call = self.parse_expression()
        if not isinstance(call, nodes.Call):
            self.fail("expected call", token)
        body = self.parse_statements(("endcall",), drop_needle=True)
        return nodes.CallBlock(call, args, defaults, body, lineno=token.line, colno=token.column)

    def _parse_filter(self) -> nodes.FilterBlock:
        token = self.stream.advance()
        filter_node = self._parse_filter_chain(None, start_inline=True)
        body = self.parse_statements(("endfilter",), drop_needle=True)
        return nodes.FilterBlock(body, filter_node, lineno=token.line, colno=token.column)

    def _parse_macro(self) -> nodes.Macro:
        token = self.stream.advance()
        name = self.parse_assign_target(name_only=True).name
        args, defaults = self._parse_signature()
        body = self.parse_statements(("endmacro",), drop_needle=True)
        return nodes.Macro(name, args, defaults, body, lineno=token.line, colno=token.column)

    def _parse_print(self) -> nodes.Output:
        token = self.stream.advance()
        items: List[nodes.Expr] = []
        while not self.stream.match(TokenType.BLOCK_END):
            if items:
                self.stream.consume(TokenType.OPERATOR, ",")
            items.append(self.parse_expression())
        return nodes.Output(tuple(items), lineno=token.line, colno=token.column)

    def _parse_set(self):
        token = self.stream.advance()
        target = self.parse_assign_target(with_namespace=True)
        if self.stream.skip_op("="):
            expr = self.parse_tuple()
            return nodes.Assign(target, expr, lineno=token.line, colno=token.column)
        filter_node = self._parse_filter_chain(None)
        body = self.parse_statements(("endset",), drop_needle=True)
        return nodes.AssignBlock(target, filter_node, body, lineno=token.line, colno=token.column)

    # -- assignment targets ---------------------------------------------------

    def parse_assign_target(
        self,
        with_tuple: bool = True,
        name_only: bool = False,
        extra_end_rules: Optional[Sequence[str]] = None,
        with_namespace: bool = False,
    ):
        """
        Parse an assignment target.

        Args:
            with_tuple: Allow `a, b` unpacking targets
            name_only: Only accept a single name
            extra_end_rules: Name tokens that terminate a tuple target
            with_namespace: Accept `ns.attr` namespace targets

        Raises:
            TemplateSyntaxError: If the target is not assignable
        """
        stream = self.stream
        if name_only:
            token = stream.consume(TokenType.NAME)
            target = nodes.Name(token.value, "store", lineno=token.line, colno=token.column)
        elif with_namespace and stream.current.type is TokenType.NAME and stream.peek().test_op("."):
            token = stream.advance()
            stream.advance()
            attr = stream.consume(TokenType.NAME)
            target = nodes.NSRef(token.value, attr.value, lineno=token.line, colno=token.column)
        else:
            if with_tuple:
                target = self.parse_tuple(simplified=True, extra_end_rules=extra_end_rules)
            else:
                target = self._parse_primary()
            target = _with_ctx(target, "store")

        if not _can_assign(target):
            self.fail(f"can't assign to {type(target).__name__.rstrip('_').lower()!r}")
        return target

    # -- expressions ----------------------------------------------------------

    def parse_expression(self, with_condexpr: bool = True) -> nodes.Expr:
        """Parse a single expression, optionally with `a if b else c`."""
        if with_condexpr:
            return self._parse_condexpr()
        return self._parse_or()

    def parse_tuple(
        self,
        simplified: bool = False,
        with_condexpr: bool = True,
        extra_end_rules: Optional[Sequence[str]] = None,
        explicit_parentheses: bool = False,
    ) -> nodes.Expr:
        """
        Parse a comma separated expression list.

        A single expression without a trailing comma is returned as is;
        otherwise a `Tuple_` node is built.
        """
        lineno, colno = self.stream.current.line, self.stream.current.column
        if simplified:
            parse = self._parse_primary
        elif with_condexpr:
            parse = self.parse_expression
        else:
            def parse():
                return self.parse_expression(with_condexpr=False)

        items: List[nodes.Expr] = []
        is_tuple = False
        while True:
            if items:
                self.stream.consume(TokenType.OPERATOR, ",")
            if self._is_tuple_end(extra_end_rules):
                break
            items.append(parse())
            if self.stream.current.test_op(","):
                is_tuple = True
            else:
                break

        if not is_tuple:
            if items:
                return items[0]
            if not explicit_parentheses:
                self.fail(f"Expected an expression, got {self.stream.current.describe()!r}")
        return nodes.Tuple_(tuple(items), "load", lineno=lineno, colno=colno)

    def _is_tuple_end(self, extra_end_rules: Optional[Sequence[str]]) -> bool:
        current = self.stream.current
        if current.type in (TokenType.VARIABLE_END, TokenType.BLOCK_END, TokenType.EOF):
            return True
        if current.test_op(")"):
            return True
        if extra_end_rules is not None:
            return current.test_name(*extra_end_rules)
        return False

    def _parse_condexpr(self) -> nodes.Expr:
        token = self.stream.current
        expr1 = self._parse_or()
        while self.stream.skip_name("if"):
            test = self._parse_or()
            expr2 = self._parse_condexpr() if self.stream.skip_name("else") else None
            expr1 = nodes.CondExpr(test, expr1, expr2, lineno=token.line, colno=token.column)
        return expr1

    def _parse_or(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_and()
        while self.stream.skip_name("or"):
            right = self._parse_and()
            left = nodes.BinOp("or", left, right, lineno=token.line, colno=token.column)
        return left

    def _parse_and(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_not()
        while self.stream.skip_name("and"):
            right = self._parse_not()
            left = nodes.BinOp("and", left, right, lineno=token.line, colno=token.column)
        return left

    def _parse_not(self) -> nodes.Expr:
        token = self.stream.current
        if token.test_name("not"):
            self.stream.advance()
            return nodes.UnaryOp("not", self._parse_not(), lineno=token.line, colno=token.column)
        return self._parse_compare()

    def _parse_compare(self) -> nodes.Expr:
        token = self.stream.current
        expr = self._parse_concat()
        ops: List[nodes.Operand] = []
        stream = self.stream
        while True:
            current = stream.current
            if current.type is TokenType.OPERATOR and current.value in _COMPARE_OPERATORS:
                stream.advance()
                ops.append(nodes.Operand(current.value, self._parse_concat(), lineno=current.line))
            elif current.test_name("in"):
                stream.advance()
                ops.append(nodes.Operand("in", self._parse_concat(), lineno=current.line))
            elif current.test_name("not") and stream.peek().test_name("in"):
                stream.skip(2)
                ops.append(nodes.Operand("notin", self._parse_concat(), lineno=current.line))
            else:
                break
        if not ops:
            return expr
        return nodes.Compare(expr, tuple(ops), lineno=token.line, colno=token.column)

    def _parse_concat(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_additive()
        while self.stream.skip_op("~"):
            left = nodes.BinOp("~", left, self._parse_additive(), lineno=token.line, colno=token.column)
        return left

    def _parse_additive(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_multiplicative()
        while self.stream.current.test_op(*_ADDITIVE):
            op = self.stream.advance().value
            left = nodes.BinOp(op, left, self._parse_multiplicative(), lineno=token.line, colno=token.column)
        return left

    def _parse_multiplicative(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_power()
        while self.stream.current.test_op(*_MULTIPLICATIVE):
            op = self.stream.advance().value
            left = nodes.BinOp(op, left, self._parse_power(), lineno=token.line, colno=token.column)
        return left

    def _parse_power(self) -> nodes.Expr:
        token = self.stream.current
        left = self._parse_unary()
        while self.stream.skip_op("**"):
            left = nodes.BinOp("**", left, self._parse_unary(), lineno=token.line, colno=token.column)
        return left

    def _parse_unary(self) -> nodes.Expr:
        token = self.stream.current
        if token.test_op("-", "+"):
            self.stream.advance()
            return nodes.UnaryOp(token.value, self._parse_unary(), lineno=token.line, colno=token.column)
        node = self._parse_postfix(self._parse_primary())
        return self._parse_filter_expr(node)

    def _parse_primary(self) -> nodes.Expr:
        token = self.stream.current
        pos = dict(lineno=token.line, colno=token.column)
        if token.type is TokenType.NAME:
            self.stream.advance()
            if token.value in ("true", "True"):
                return nodes.Const(True, **pos)
            if token.value in ("false", "False"):
                return nodes.Const(False, **pos)
            if token.value in ("none", "None"):
                return nodes.Const(None, **pos)
            return nodes.Name(token.value, "load", **pos)
        if token.type is TokenType.STRING:
            parts = [self.stream.advance().value]
            while self.stream.current.type is TokenType.STRING:
                parts.append(self.stream.advance().value)
            return nodes.Const("".join(parts), **pos)
        if token.type is TokenType.INTEGER:
            self.stream.advance()
            return nodes.Const(int(token.value), **pos)
        if token.type is TokenType.FLOAT:
            self.stream.advance()
            return nodes.Const(float(token.value), **pos)
        if token.test_op("("):
            self.stream.advance()
            node = self.parse_tuple(explicit_parentheses=True)
            self.stream.consume(TokenType.OPERATOR, ")")
            return node
        if token.test_op("["):
            return self._parse_list()
        if token.test_op("{"):
            return self._parse_dict()
        self.fail(f"unexpected {token.describe()!r}", token)

    def _parse_list(self) -> nodes.List:
        token = self.stream.consume(TokenType.OPERATOR, "[")
        items: List[nodes.Expr] = []
        while not self.stream.current.test_op("]"):
            if items:
                self.stream.consume(TokenType.OPERATOR, ",")
            if self.stream.current.test_op("]"):
                break
            items.append(self.parse_expression())
        self.stream.consume(TokenType.OPERATOR, "]")
        return nodes.List(tuple(items), lineno=token.line, colno=token.column)

    def _parse_dict(self) -> nodes.Dict:
        token = self.stream.consume(TokenType.OPERATOR, "{")
        items: List[nodes.Pair] = []
        while not self.stream.current.test_op("}"):
            if items:
                self.stream.consume(TokenType.OPERATOR, ",")
            if self.stream.current.test_op("}"):
                break
            key = self.parse_expression()
            self.stream.consume(TokenType.OPERATOR, ":")
            value = self.parse_expression()
            items.append(nodes.Pair(key, value, lineno=key.lineno, colno=key.colno))
        self.stream.consume(TokenType.OPERATOR, "}")
        return nodes.Dict(tuple(items), lineno=token.line, colno=token.column)

    def _parse_postfix(self, node: nodes.Expr) -> nodes.Expr:
        while True:
            current = self.stream.current
            if current.test_op(".", "["):
                node = self._parse_subscript(node)
            elif current.test_op("("):
                node = self._parse_call_expr(node)
            else:
                return node

    def _parse_filter_expr(self, node: nodes.Expr) -> nodes.Expr:
        while True:
            current = self.stream.current
            if current.test_op("|"):
                node = self._parse_filter_chain(node)
            elif current.test_name("is"):
                node = self._parse_test(node)
            elif current.test_op("("):
                node = self._parse_call_expr(node)
            else:
                return node

    def _parse_subscript(self, node: nodes.Expr) -> nodes.Expr:
        token = self.stream.advance()
        if token.value == ".":
            attr = self.stream.advance()
            if attr.type is TokenType.NAME:
                return nodes.Getattr(node, attr.value, lineno=token.line, colno=token.column)
            if attr.type is TokenType.INTEGER:
                index = nodes.Const(int(attr.value), lineno=attr.line, colno=attr.column)
                return nodes.Getitem(node, index, lineno=token.line, colno=token.column)
            self.fail("expected name or number", attr)

        args: List[nodes.Expr] = []
        while not self.stream.current.test_op("]"):
            if args:
                self.stream.consume(TokenType.OPERATOR, ",")
            args.append(self._parse_subscribed())
        self.stream.consume(TokenType.OPERATOR, "]")
        if len(args) == 1:
            arg = args[0]
        else:
            arg = nodes.Tuple_(tuple(args), "load", lineno=token.line, colno=token.column)
        return nodes.Getitem(node, arg, lineno=token.line, colno=token.column)

    def _parse_subscribed(self) -> nodes.Expr:
        token = self.stream.current
        args: List[Optional[nodes.Expr]] = []
        if token.test_op(":"):
            self.stream.advance()
            args.append(None)
        else:
            node = self.parse_expression()
            if not self.stream.current.test_op(":"):
                return node
            self.stream.advance()
            args.append(node)

        if self.stream.current.test_op(":", "]", ","):
            args.append(None)
        else:
            args.append(self.parse_expression())

        if self.stream.skip_op(":"):
            if self.stream.current.test_op("]", ","):
                args.append(None)
            else:
                args.append(self.parse_expression())
        else:
            args.append(None)
        return nodes.Slice(*args, lineno=token.line, colno=token.column)

    def _parse_call_args(self):
        """
        Parse `(...)` call arguments.

        Returns:
            Tuple (args, kwargs, dyn_args, dyn_kwargs)
        """
        token = self.stream.consume(TokenType.OPERATOR, "(")
        args: List[nodes.Expr] = []
        kwargs: List[nodes.Keyword] = []
        dyn_args: Optional[nodes.Expr] = None
        dyn_kwargs: Optional[nodes.Expr] = None
        require_comma = False

        def ensure(valid: bool) -> None:
            if not valid:
                self.fail("invalid syntax for function call expression", token)

        stream = self.stream
        while not stream.current.test_op(")"):
            if require_comma:
                stream.consume(TokenType.OPERATOR, ",")
                if stream.current.test_op(")"):
                    break
            if stream.current.test_op("*"):
                ensure(dyn_args is None and dyn_kwargs is None)
                stream.advance()
                dyn_args = self.parse_expression()
            elif stream.current.test_op("**"):
                ensure(dyn_kwargs is None)
                stream.advance()
                dyn_kwargs = self.parse_expression()
            elif stream.current.type is TokenType.NAME and stream.peek().test_op("="):
                ensure(dyn_kwargs is None)
                key = stream.advance()
                stream.advance()
                value = self.parse_expression()
                kwargs.append(nodes.Keyword(key.value, value, lineno=key.line, colno=key.column))
            else:
                ensure(dyn_args is None and dyn_kwargs is None and not kwargs)
                args.append(self.parse_expression())
            require_comma = True

        stream.consume(TokenType.OPERATOR, ")")
        return tuple(args), tuple(kwargs), dyn_args, dyn_kwargs

    def _parse_call_expr(self, node: nodes.Expr) -> nodes.Call:
        token = self.stream.current
        args, kwargs, dyn_args, dyn_kwargs = self._parse_call_args()
        return nodes.Call(node, args, kwargs, dyn_args, dyn_kwargs, lineno=token.line, colno=token.column)

    def _parse_dotted_name(self) -> str:
        name = self.stream.consume(TokenType.NAME).value
        while self.stream.skip_op("."):
            name += "." + self.stream.consume(TokenType.NAME).value
        return name

    def _parse_filter_chain(self, node: Optional[nodes.Expr], start_inline: bool = False):
        while self.stream.current.test_op("|") or start_inline:
            if not start_inline:
                self.stream.advance()
            token = self.stream.current
            name = self._parse_dotted_name()
            if self.stream.current.test_op("("):
                args, kwargs, dyn_args, dyn_kwargs = self._parse_call_args()
            else:
                args, kwargs, dyn_args, dyn_kwargs = (), (), None, None
            node = nodes.Filter(node, name, args, kwargs, dyn_args, dyn_kwargs, lineno=token.line, colno=token.column)
            start_inline = False
        return node

    def _parse_test(self, node: nodes.Expr) -> nodes.Expr:
        token = self.stream.advance()
        negated = self.stream.skip_name("not")
        name = self._parse_dotted_name()
        current = self.stream.current
        args: Tuple[nodes.Expr, ...] = ()
        kwargs: Tuple[nodes.Keyword, ...] = ()
        dyn_args = dyn_kwargs = None
        if current.test_op("("):
            args, kwargs, dyn_args, dyn_kwargs = self._parse_call_args()
        elif (
            current.type in (TokenType.NAME, TokenType.STRING, TokenType.INTEGER, TokenType.FLOAT)
            or current.test_op("[", "{")
        ) and not current.test_name(*_TEST_ARG_STOP):
            if current.test_name("is"):
                self.fail("You cannot chain multiple tests with is")
            args = (self._parse_postfix(self._parse_primary()),)
        result: nodes.Expr = nodes.Test(
            node, name, args, kwargs, dyn_args, dyn_kwargs, lineno=token.line, colno=token.column
        )
        if negated:
            result = nodes.UnaryOp("not", result, lineno=token.line, colno=token.column)
        return result


def _with_ctx(node: nodes.Expr, ctx: str) -> nodes.Expr:
    """Return a copy of an assignment target with the given context."""
    if isinstance(node, nodes.Name):
        return nodes.Name(node.name, ctx, lineno=node.lineno, colno=node.colno)
    if isinstance(node, nodes.Tuple_):
        items = tuple(_with_ctx(item, ctx) for item in node.items)
        return nodes.Tuple_(items, ctx, lineno=node.lineno, colno=node.colno)
    return node


def _can_assign(node: nodes.Expr) -> bool:
    if isinstance(node, nodes.Name):
        return node.name not in _RESERVED_NAMES
    if isinstance(node, nodes.Tuple_):
        return all(_can_assign(item) for item in node.items)
    return isinstance(node, nodes.NSRef)


def _store_names(node: nodes.Expr) -> List[nodes.Name]:
    if isinstance(node, nodes.Name):
        return [node]
    if isinstance(node, nodes.Tuple_):
        return [name for item in node.items for name in _store_names(item)]
    return []


__all__ = [
    "Parser",
]
