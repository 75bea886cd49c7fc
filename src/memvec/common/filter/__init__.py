"""Public exports for metadata filtering."""

from .filter_expr import And, Compare, ComparisonOp, Eq, FilterExpr, In, Or
from .filter_parser import parse_filter
from .sql_filter_util import CompiledFilter, compile_filter

__all__ = [
    "And",
    "Compare",
    "ComparisonOp",
    "CompiledFilter",
    "Eq",
    "FilterExpr",
    "In",
    "Or",
    "compile_filter",
    "parse_filter",
]
