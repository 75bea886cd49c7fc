"""Filter expression tree for metadata predicates."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Protocol

from memvec.common.data_types import FilterValue


class FilterExpr(Protocol):
    """Marker protocol for filter expression nodes."""


ComparisonOp = Literal["<", "=", ">"]


@dataclass(frozen=True)
class Eq(FilterExpr):
    """Equality of a metadata field against a value."""

    field: str
    value: FilterValue


@dataclass(frozen=True)
class Compare(FilterExpr):
    """Scalar comparison of a metadata field against a value."""

    op: ComparisonOp
    field: str
    value: FilterValue


@dataclass(frozen=True)
class In(FilterExpr):
    """Membership test of a metadata field against a list of values."""

    field: str
    values: tuple[FilterValue, ...]

    def __init__(self, field: str, values: Iterable[FilterValue]) -> None:
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class And(FilterExpr):
    """Logical conjunction of filter expressions."""

    filters: tuple[FilterExpr, ...]

    def __init__(self, filters: Iterable[FilterExpr]) -> None:
        object.__setattr__(self, "filters", tuple(filters))


@dataclass(frozen=True)
class Or(FilterExpr):
    """Logical disjunction of filter expressions."""

    filters: tuple[FilterExpr, ...]

    def __init__(self, filters: Iterable[FilterExpr]) -> None:
        object.__setattr__(self, "filters", tuple(filters))
