"""Module for parsing filter strings into filter expression trees."""

import re
from typing import NamedTuple

from memvec.common.data_types import FilterValue
from memvec.common.errors import FilterParseError

from .filter_expr import And, Compare, ComparisonOp, Eq, FilterExpr, In, Or


class Token(NamedTuple):
    """Token emitted by the lexer while parsing filter strings."""

    type: str
    value: str


_OP_PRECEDENCE = {
    "OR": 1,
    "AND": 2,
}


_TOKEN_SPEC = [
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("UNSUPPORTED_OP", r"!=|<>|>=|<="),
    ("EQ", r"="),
    ("GT", r">"),
    ("LT", r"<"),
    ("STRING", r"'(?:[^']|'')*'"),
    ("IDENT", r"[A-Za-z0-9_\.\-]+"),
    ("WS", r"\s+"),
    ("MISMATCH", r"."),
]

_TOKEN_RE = re.compile(
    "|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC)
)

_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?\d+\.\d+")

_KEYWORDS = ("AND", "OR", "IN")


def _tokenize(s: str) -> list[Token]:
    tokens: list[Token] = []
    for m in _TOKEN_RE.finditer(s):
        kind = m.lastgroup
        value = m.group()
        if kind == "WS":
            continue
        if kind == "MISMATCH":
            raise FilterParseError(f"Unexpected character {value!r} at position {m.start()}")
        if kind == "UNSUPPORTED_OP":
            raise FilterParseError(
                f"Unsupported operator {value!r}: only =, <, > and IN are allowed"
            )
        if kind == "STRING":
            # Strip quotes and unescape doubled quotes
            tokens.append(Token("STRING", value[1:-1].replace("''", "'")))
        elif kind == "IDENT":
            upper = value.upper()
            if upper in _KEYWORDS:
                tokens.append(Token(upper, upper))
            else:
                tokens.append(Token("IDENT", value))
        else:
            tokens.append(Token(kind, value))
    return tokens


_SCALAR_OPS: dict[str, ComparisonOp] = {
    "EQ": "=",
    "GT": ">",
    "LT": "<",
}


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _accept(self, *types: str) -> Token | None:
        tok = self._peek()
        if tok and tok.type in types:
            self.pos += 1
            return tok
        return None

    def _expect(self, *types: str) -> Token:
        tok = self._peek()
        if not tok or tok.type not in types:
            expected = " or ".join(types)
            actual = tok.type if tok else "EOF"
            raise FilterParseError(f"Expected {expected}, got {actual}")
        self.pos += 1
        return tok

    def parse(self) -> FilterExpr | None:
        if not self.tokens:
            return None
        expr = self._parse_expression()
        if self._peek() is not None:
            raise FilterParseError(f"Unexpected token: {self._peek()}")
        return expr

    def _parse_expression(self, min_prec: int = 1) -> FilterExpr:
        expr = self._parse_primary()

        while True:
            tok = self._peek()
            if not tok or tok.type not in _OP_PRECEDENCE:
                break

            prec = _OP_PRECEDENCE[tok.type]
            if prec < min_prec:
                break

            self.pos += 1
            rhs = self._parse_expression(prec + 1)
            expr = _join(tok.type, expr, rhs)

        return expr

    def _parse_primary(self) -> FilterExpr:
        if self._accept("LPAREN"):
            expr = self._parse_expression()
            self._expect("RPAREN")
            # Parenthesized groups must not be merged into the enclosing chain.
            return _Group(expr)
        return self._parse_predicate()

    def _parse_predicate(self) -> FilterExpr:
        field_tok = self._expect("IDENT", "STRING")
        field = field_tok.value

        op_tok = self._accept("EQ", "GT", "LT")
        if op_tok:
            value = self._parse_value()
            op = _SCALAR_OPS[op_tok.type]
            if op == "=":
                return Eq(field=field, value=value)
            return Compare(op=op, field=field, value=value)

        if self._accept("IN"):
            return In(field=field, values=self._parse_value_list())

        raise FilterParseError(
            f"Expected operator after field {field}: "
            "comparison (=, >, <) or membership (IN)"
        )

    def _parse_value_list(self) -> list[FilterValue]:
        self._expect("LPAREN")
        values = [self._parse_value()]
        while self._accept("COMMA"):
            values.append(self._parse_value())
        self._expect("RPAREN")
        return values

    def _parse_value(self) -> FilterValue:
        tok = self._expect("IDENT", "STRING")
        raw = tok.value
        # If it's a string literal, return it as-is
        if tok.type == "STRING":
            return raw
        upper = raw.upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False
        if upper == "NULL":
            return None
        if _INT_RE.fullmatch(raw):
            return int(raw)
        if _FLOAT_RE.fullmatch(raw):
            return float(raw)
        return raw


class _Group:
    """Parenthesized sub-expression, unwrapped once parsing is complete."""

    def __init__(self, expr: FilterExpr) -> None:
        self.expr = expr


def _join(connective: str, left: FilterExpr, right: FilterExpr) -> FilterExpr:
    node_type = And if connective == "AND" else Or
    children: list[FilterExpr] = []
    for side in (left, right):
        if isinstance(side, node_type):
            children.extend(side.filters)
        else:
            children.append(side)
    return node_type(children)


def _unwrap(expr: FilterExpr) -> FilterExpr:
    if isinstance(expr, _Group):
        return _unwrap(expr.expr)
    if isinstance(expr, And):
        return And(_unwrap(child) for child in expr.filters)
    if isinstance(expr, Or):
        return Or(_unwrap(child) for child in expr.filters)
    return expr


def parse_filter(spec: str | None) -> FilterExpr | None:
    """
    Parse the given textual filter specification.

    Grammar:
        expr      := term (OR term)*
        term      := primary (AND primary)*
        primary   := '(' expr ')' | predicate
        predicate := field ('=' | '<' | '>') value | field IN '(' value (',' value)* ')'
        value     := 'quoted string' | integer | float | true | false | null | bare word

    String literals escape a single quote by doubling it ('it''s').
    Chains of the same connective are flattened into one And/Or node.
    """
    if spec is None:
        return None
    spec = spec.strip()
    if not spec:
        return None
    tokens = _tokenize(spec)
    expr = _Parser(tokens).parse()
    return _unwrap(expr) if expr is not None else None
