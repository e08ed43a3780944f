"""Recursive-descent parser producing tagged-tuple trees.

Grammar (lowest precedence first)::

    S    -> E $
    E    -> T = E                        T must be a variable or a call
         -> T {(+|-) T} [(==|!=|<|<=|>|>=) E]
    T    -> F {(*|/|//|%|<nothing>) F}
    F    -> [-] X [(^|**) F]             no leading '-' for an implicit-multiplication operand
    X    -> ( E )
         -> NUM
         -> ID [{'} ( ARGS )]
    ARGS -> [E {, E}]

Comparisons recurse into a whole E, so ``a < b < c`` parses as
``a < (b < c)`` rather than as a left-to-right chain.

The parser is hand-written rather than generated with ``ply.yacc``: whether a
leading ``-`` is allowed depends on the caller (not after an implicit
multiplication), which an LALR grammar cannot express without duplicating
every factor rule.
"""
from __future__ import annotations

import logging

from calcas import config
from calcas.errors import ExpressionError
from calcas.lexer import tokenize
from calcas.utils.ast_utils import ASTNode, OPERATOR_TAGS
from calcas.utils.print_utils import _pformat

logger = logging.getLogger(__name__)

EXPRESSION_OPS = frozenset({"EQUALS", "PLUS", "MINUS", "EQ", "NE", "LT", "LE", "GT", "GE"})
TERM_OPS = frozenset({"TIMES", "DIVIDE", "INTDIV", "MOD"})


class Parser:
    """Parser over one statement's token list.

    ``parsing_impl_mult`` is the only piece of context-sensitive state: it is
    set while the right operand of an implicit multiplication is parsed, so
    that ``2 -3`` reads as a subtraction instead of ``2 * (-3)``.  Entering a
    parenthesised expression or an exponent saves it on ``state_stack`` and
    clears it.
    """

    def __init__(self, tokens: list):
        self.tokens = tokens
        self.pos = 0
        self.parsing_impl_mult = False
        self.state_stack: list[bool] = []
        self.depth = 0

    # Token access
    def _peek(self):
        if self.pos == len(self.tokens):
            return None
        return self.tokens[self.pos]

    def _advance(self):
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _peek_type(self) -> str | None:
        tok = self._peek()
        return None if tok is None else tok.type

    def _expect_closer(self) -> None:
        if self._peek_type() != "RPAREN":
            raise ExpressionError("unclosed/mismatched parenthesis")
        self._advance()

    # Parser state
    def _push_state(self) -> None:
        self.depth += 1
        if self.depth > config.MAX_EXPRESSION_DEPTH:
            raise ExpressionError("expression nested too deeply")
        self.state_stack.append(self.parsing_impl_mult)
        self.parsing_impl_mult = False

    def _pop_state(self) -> None:
        self.parsing_impl_mult = self.state_stack.pop()
        self.depth -= 1

    # Grammar rules
    def parse_statement(self) -> ASTNode:
        """S -> E $"""
        if not self.tokens:
            raise ExpressionError("empty expression")
        tree = self.parse_expression()
        tok = self._peek()
        if tok is None:
            return tree
        if tok.type == "RPAREN":
            raise ExpressionError("unmatched parenthesis")
        raise ExpressionError(f"unexpected token `{tok.value}`")

    def parse_expression(self) -> ASTNode | None:
        """E -> T = E | T {(+|-) T} [cmp E]"""
        self._push_state()
        try:
            return self._parse_expression()
        finally:
            self._pop_state()

    def _parse_expression(self) -> ASTNode | None:
        lhs = self.parse_term()
        if lhs is None:
            return None

        while True:
            if self._peek_type() not in EXPRESSION_OPS:
                return lhs
            op = self._advance().value

            if op == "=":
                check_assignment_target(lhs)

            is_sum = op in ("+", "-")
            rhs = self.parse_term() if is_sum else self.parse_expression()
            if rhs is None:
                raise ExpressionError(f"expected operand after `{op}`")
            lhs = (OPERATOR_TAGS[op], lhs, rhs)

            if not is_sum:
                return lhs

    def parse_term(self) -> ASTNode | None:
        """T -> F {(*|/|//|%|<nothing>) F}"""
        lhs = self.parse_factor()
        if lhs is None:
            return None

        while True:
            implicit = self._peek_type() not in TERM_OPS
            op = "*" if implicit else self._advance().value

            if implicit:
                self.parsing_impl_mult = True
            rhs = self.parse_factor()
            self.parsing_impl_mult = False

            if rhs is None:
                if implicit:
                    return lhs
                raise ExpressionError(f"expected operand after `{op}`")
            lhs = (OPERATOR_TAGS[op], lhs, rhs)

    def parse_factor(self) -> ASTNode | None:
        """F -> [-] X [(^|**) F]"""
        if self._peek() is None:
            return None

        negated = False
        if self._peek_type() == "MINUS" and not self.parsing_impl_mult:
            self._advance()
            negated = True

        base = self.parse_primary()
        if base is None:
            if negated:
                raise ExpressionError("unexpected negation")
            return None

        if self._peek_type() == "POWER":
            op = self._advance().value
            self._push_state()
            try:
                exponent = self.parse_factor()
            finally:
                self._pop_state()
            if exponent is None:
                raise ExpressionError(f"expected operand after `{op}`")
            base = ("pow", base, exponent)

        return ("neg", base) if negated else base

    def parse_primary(self) -> ASTNode | None:
        """X -> ( E ) | NUM | ID [{'} ( ARGS )]"""
        tok = self._peek()
        if tok is None:
            return None

        if tok.type == "NUMBER":
            self._advance()
            return ("num", tok.value)

        if tok.type == "LPAREN":
            self._advance()
            inner = self.parse_expression()
            if inner is None:
                raise ExpressionError("empty or invalid parenthetical")
            self._expect_closer()
            return inner

        if tok.type != "ID":
            return None
        self._advance()
        name = tok.value

        order = 0
        while self._peek_type() == "PRIME":
            self._advance()
            order += 1

        if self._peek_type() != "LPAREN":
            if order:
                raise ExpressionError("trailing apostrophe")
            return ("var", name)

        self._advance()
        args = self.parse_arguments()
        self._expect_closer()

        if order:
            return ("deriv", name, args, order)
        return ("call", name, args)

    def parse_arguments(self) -> list[ASTNode]:
        """ARGS -> [E {, E}]"""
        args: list[ASTNode] = []
        node = self.parse_expression()
        if node is None:
            return args
        args.append(node)

        while self._peek_type() == "COMMA":
            self._advance()
            node = self.parse_expression()
            if node is None:
                raise ExpressionError("expected argument after `,`")
            args.append(node)
        return args


def check_assignment_target(lhs: ASTNode) -> None:
    """Validate the left side of ``=``.

    A variable is always assignable.  A call is a function definition and
    every argument must be a distinct plain identifier.  The evaluator runs
    the same check again because macro expansion may build new assignments.
    """
    if lhs[0] == "var":
        return
    if lhs[0] != "call":
        raise ExpressionError("invalid lhs in assignment")

    seen: set[str] = set()
    for arg in lhs[2]:
        if arg[0] != "var":
            raise ExpressionError("cannot assign to a function with a non-identifier parameter")
        if arg[1] in seen:
            raise ExpressionError(f"argument id `{arg[1]}` used twice in function assignment")
        seen.add(arg[1])


def parse_statement(tokens: list) -> ASTNode:
    """Parse a full statement; every token must be consumed.

    Examples
    --------
    >>> from calcas.lexer import tokenize
    >>> parse_statement(tokenize("2x - 1"))
    ('sub', ('mul', ('num', 2.0), ('var', 'x')), ('num', 1.0))
    """
    tree = Parser(tokens).parse_statement()
    logger.debug("parsed tree:\n%s", _pformat(tree))
    return tree


def parse(text: str) -> ASTNode:
    """Tokenize and parse *text*."""
    return parse_statement(tokenize(text))
