"""Compile FilterExpr trees into parameterized SQLite WHERE clauses."""

import logging
import math
from dataclasses import dataclass, field

from memvec.common.data_types import FilterValue
from memvec.common.errors import InvalidFilterError

from .filter_expr import And, Compare, Eq, FilterExpr, In, Or

logger = logging.getLogger(__name__)

BindValue = str | int | float | None

TAUTOLOGY = "1"

_COMPARISON_OPS = frozenset({"<", "=", ">"})


@dataclass(frozen=True)
class CompiledFilter:
    """A WHERE clause fragment and the named parameters it binds."""

    clause: str
    params: dict[str, BindValue] = field(default_factory=dict)


def json_path_for_field(field_name: str) -> str:
    """
    Build a SQLite JSON path addressing a single top-level metadata key.

    The key is quoted, so path metacharacters such as '.', '[' and '$'
    are part of the key name rather than path navigation.
    SQLite cannot escape '"' or '\\' inside a quoted label,
    so such keys are rejected.
    """
    if not isinstance(field_name, str) or not field_name:
        raise InvalidFilterError(f"Filter field must be a non-empty string, got {field_name!r}")
    if '"' in field_name or "\\" in field_name:
        raise InvalidFilterError(
            f"Filter field {field_name!r} contains a quote or backslash"
        )
    if any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in field_name):
        raise InvalidFilterError(
            f"Filter field {field_name!r} contains a control character"
        )
    return f'$."{field_name}"'


class _FilterCompiler:
    """Compiles FilterExpr trees into SQL WHERE clauses with bound parameters."""

    def __init__(self, metadata_column: str, param_prefix: str) -> None:
        self._metadata_column = metadata_column
        self._param_prefix = param_prefix
        self._param_counter = 0
        self.params: dict[str, BindValue] = {}

    def _bind(self, value: BindValue) -> str:
        self._param_counter += 1
        name = f"{self._param_prefix}{self._param_counter}"
        self.params[name] = value
        return f":{name}"

    def _json_extract(self, field_name: str) -> str:
        path = self._bind(json_path_for_field(field_name))
        return f"json_extract({self._metadata_column}, {path})"

    def compile(self, expr: FilterExpr) -> str:
        if isinstance(expr, Eq):
            return self._compile_comparison("=", expr.field, expr.value)
        if isinstance(expr, Compare):
            return self._compile_comparison(expr.op, expr.field, expr.value)
        if isinstance(expr, In):
            return self._compile_in(expr)
        if isinstance(expr, And):
            return self._compile_connective("AND", expr.filters)
        if isinstance(expr, Or):
            return self._compile_connective("OR", expr.filters)
        raise InvalidFilterError(f"Unsupported filter expression type: {type(expr)!r}")

    def _compile_connective(
        self,
        connective: str,
        filters: tuple[FilterExpr, ...],
    ) -> str:
        if not filters:
            raise InvalidFilterError(
                f"{connective} filter requires at least one child expression"
            )
        if len(filters) == 1:
            return self.compile(filters[0])
        return f" {connective} ".join(f"({self.compile(child)})" for child in filters)

    def _compile_comparison(self, op: str, field_name: str, value: FilterValue) -> str:
        if op not in _COMPARISON_OPS:
            raise InvalidFilterError(f"Unsupported comparison operator: {op!r}")
        json_path = self._json_extract(field_name)
        if value is None:
            if op != "=":
                raise InvalidFilterError(
                    f"Cannot order field {field_name!r} against null"
                )
            return f"{json_path} IS NULL"
        return f"{json_path} {op} {self._bind(_bind_value(value))}"

    def _compile_in(self, expr: In) -> str:
        if not expr.values:
            raise InvalidFilterError(
                f"IN filter on field {expr.field!r} requires at least one value"
            )
        json_path = self._json_extract(expr.field)
        placeholders = []
        for value in expr.values:
            if value is None:
                raise InvalidFilterError(
                    f"IN filter on field {expr.field!r} cannot contain null"
                )
            placeholders.append(self._bind(_bind_value(value)))
        return f"{json_path} IN ({', '.join(placeholders)})"


def _bind_value(value: FilterValue) -> BindValue:
    """Convert a filter literal to the value json_extract would produce."""
    # json_extract yields 1/0 for JSON true/false.
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidFilterError(f"Filter value must be finite, got {value!r}")
    if isinstance(value, (int, float, str)):
        return value
    raise InvalidFilterError(f"Unsupported filter value type: {type(value).__name__}")


def compile_filter(
    expr: FilterExpr | None,
    *,
    metadata_column: str = "e.metadata",
    param_prefix: str = "_fv",
) -> CompiledFilter:
    """
    Compile a filter expression into a parameterized WHERE clause fragment.

    Field names and literal values are never interpolated into the clause;
    both are passed as named parameters.

    Args:
        expr (FilterExpr | None):
            Filter expression tree.
            If None, a tautology matching every row is returned.
        metadata_column (str):
            SQL expression of the JSON metadata column
            (default: 'e.metadata').
        param_prefix (str):
            Prefix for generated parameter names
            (default: '_fv').

    Returns:
        CompiledFilter:
            The clause and the parameters to bind alongside it.

    Raises:
        InvalidFilterError:
            If the expression is malformed,
            e.g. an empty And/Or or an unaddressable field name.

    """
    if expr is None:
        return CompiledFilter(clause=TAUTOLOGY)

    compiler = _FilterCompiler(metadata_column, param_prefix)
    clause = compiler.compile(expr)
    logger.debug("Compiled filter %r into %s", expr, clause)
    return CompiledFilter(clause=clause, params=compiler.params)
