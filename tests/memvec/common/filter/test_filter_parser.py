import pytest

from memvec.common.errors import FilterParseError, InvalidFilterError
from memvec.common.filter import And, Compare, Eq, In, Or, parse_filter


def test_parse_filter_empty_string() -> None:
    assert parse_filter("") is None
    assert parse_filter("   ") is None
    assert parse_filter(None) is None


def test_parse_filter_simple_equality() -> None:
    assert parse_filter("owner = 'alice'") == Eq(field="owner", value="alice")


def test_parse_filter_bare_word_is_string() -> None:
    assert parse_filter("type = animal") == Eq(field="type", value="animal")


def test_parse_filter_comparisons() -> None:
    expr = parse_filter("count > 10 AND pi < 3.14")
    assert expr == And(
        [
            Compare(op=">", field="count", value=10),
            Compare(op="<", field="pi", value=3.14),
        ]
    )


def test_parse_filter_literal_types() -> None:
    expr = parse_filter(
        "count = 10 AND neg = -3 AND pi = 3.14 AND done = true AND flag = FALSE AND gone = null"
    )
    assert isinstance(expr, And)
    assert [child.value for child in expr.filters] == [10, -3, 3.14, True, False, None]


def test_parse_filter_quoted_digits_stay_strings() -> None:
    assert parse_filter("zip = '02139'") == Eq(field="zip", value="02139")


def test_parse_filter_in_clause() -> None:
    expr = parse_filter("priority in (HIGH, 'LOW', 3)")
    assert expr == In(field="priority", values=["HIGH", "LOW", 3])


def test_parse_filter_and_or_precedence() -> None:
    expr = parse_filter("owner = alice OR priority = HIGH AND status = OPEN")
    assert expr == Or(
        [
            Eq(field="owner", value="alice"),
            And(
                [
                    Eq(field="priority", value="HIGH"),
                    Eq(field="status", value="OPEN"),
                ]
            ),
        ]
    )


def test_parse_filter_flattens_chains() -> None:
    expr = parse_filter("a = 1 AND b = 2 AND c = 3")
    assert expr == And([Eq("a", 1), Eq("b", 2), Eq("c", 3)])


def test_parse_filter_parentheses_group() -> None:
    expr = parse_filter("(a = 1 OR b = 2) AND c = 3")
    assert expr == And([Or([Eq("a", 1), Eq("b", 2)]), Eq("c", 3)])


def test_parse_filter_parenthesized_chain_is_not_merged() -> None:
    expr = parse_filter("(a = 1 AND b = 2) AND c = 3")
    assert expr == And([And([Eq("a", 1), Eq("b", 2)]), Eq("c", 3)])


def test_parse_filter_doubled_quote_escape() -> None:
    assert parse_filter("name = 'it''s'") == Eq(field="name", value="it's")


def test_parse_filter_quoted_field_name() -> None:
    assert parse_filter("'my key' = 1") == Eq(field="my key", value=1)


@pytest.mark.parametrize(
    "spec",
    [
        "owner =",
        "owner alice",
        "owner = 'alice' AND",
        "(owner = alice",
        "owner IN ()",
        "owner = alice)",
    ],
)
def test_parse_filter_syntax_errors(spec: str) -> None:
    with pytest.raises(FilterParseError):
        parse_filter(spec)


@pytest.mark.parametrize("spec", ["a >= 1", "a <= 1", "a != 1", "a <> 1"])
def test_parse_filter_rejects_unsupported_operators(spec: str) -> None:
    with pytest.raises(FilterParseError, match="Unsupported operator"):
        parse_filter(spec)


def test_parse_filter_rejects_stray_characters() -> None:
    with pytest.raises(FilterParseError, match="Unexpected character"):
        parse_filter("a = 1; DROP TABLE docs")


def test_filter_parse_error_is_invalid_filter_error() -> None:
    assert issubclass(FilterParseError, InvalidFilterError)
    assert issubclass(FilterParseError, ValueError)


def test_filter_nodes_are_immutable_and_hashable() -> None:
    expr = And([Eq("a", 1), In("b", [1, 2])])
    assert isinstance(expr.filters, tuple)
    assert isinstance(expr.filters[1].values, tuple)
    assert hash(expr) == hash(And([Eq("a", 1), In("b", (1, 2))]))
    with pytest.raises(AttributeError):
        expr.filters = ()  # type: ignore[misc]
