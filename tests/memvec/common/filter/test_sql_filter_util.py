"""Tests for compile_filter, executed against an in-memory SQLite database.

The compiled clause is run with bound parameters so that the tests cover
both the rendered SQL structure and SQLite's JSON semantics.
"""

import json

import pytest
from sqlalchemy import create_engine, text

from memvec.common.errors import InvalidFilterError
from memvec.common.filter import And, Compare, Eq, In, Or, compile_filter, parse_filter
from memvec.common.filter.sql_filter_util import TAUTOLOGY, json_path_for_field

ROWS = {
    "alpha": {"count": 5, "score": 1.5, "active": True, "tag": "a"},
    "beta": {"count": 10, "score": 2.5, "active": False, "tag": "b"},
    "gamma": {"count": 15, "score": 3.5, "active": True, "tag": "c"},
    "delta": {"count": 20, "score": 4.5, "active": False, "tag": "d", "owner": None},
    "tricky": {
        "a.b": "dotted",
        "x[0]": "bracketed",
        "$": "dollar",
        "it's": "apostrophe",
        "semi;colon": "semi",
        "tag": "x' OR '1'='1",
    },
}


@pytest.fixture(scope="module")
def connection():
    engine = create_engine("sqlite:///:memory:")
    with engine.connect() as conn:
        conn.execute(text("CREATE TABLE items (name TEXT, metadata TEXT)"))
        for name, metadata in ROWS.items():
            conn.execute(
                text("INSERT INTO items (name, metadata) VALUES (:name, :metadata)"),
                {"name": name, "metadata": json.dumps(metadata)},
            )
        yield conn


def _query_names(connection, expr) -> set[str]:
    compiled = compile_filter(expr)
    rows = connection.execute(
        text(f"SELECT e.name FROM items e WHERE {compiled.clause}"),
        compiled.params,
    )
    return {row[0] for row in rows}


def test_none_is_tautology(connection) -> None:
    compiled = compile_filter(None)
    assert compiled.clause == TAUTOLOGY
    assert compiled.params == {}
    assert _query_names(connection, None) == set(ROWS)


def test_eq_string(connection) -> None:
    assert _query_names(connection, Eq("tag", "b")) == {"beta"}


def test_eq_int(connection) -> None:
    assert _query_names(connection, Eq("count", 10)) == {"beta"}


def test_eq_bool(connection) -> None:
    assert _query_names(connection, Eq("active", True)) == {"alpha", "gamma"}
    assert _query_names(connection, Eq("active", False)) == {"beta", "delta"}


def test_eq_none_matches_null_and_missing(connection) -> None:
    assert _query_names(connection, Eq("owner", None)) == set(ROWS)
    assert _query_names(connection, Eq("count", None)) == {"tricky"}


def test_int_ordering_is_numeric(connection) -> None:
    assert _query_names(connection, Compare(">", "count", 10)) == {"gamma", "delta"}
    assert _query_names(connection, Compare("<", "count", 10)) == {"alpha"}
    assert _query_names(connection, Compare("=", "count", 10)) == {"beta"}


def test_float_ordering(connection) -> None:
    assert _query_names(connection, Compare(">", "score", 2.0)) == {
        "beta",
        "gamma",
        "delta",
    }


def test_in(connection) -> None:
    assert _query_names(connection, In("tag", ["a", "c", "zzz"])) == {"alpha", "gamma"}
    assert _query_names(connection, In("count", [5, 20])) == {"alpha", "delta"}


def test_and_or(connection) -> None:
    expr = Or(
        [
            And([Compare(">", "count", 5), Eq("active", True)]),
            Eq("tag", "a"),
        ]
    )
    assert _query_names(connection, expr) == {"alpha", "gamma"}


def test_single_child_connective(connection) -> None:
    assert _query_names(connection, And([Eq("tag", "a")])) == {"alpha"}
    assert compile_filter(Or([Eq("tag", "a")])).clause == compile_filter(Eq("tag", "a")).clause


def test_parsed_filter_executes(connection) -> None:
    expr = parse_filter("count > 5 AND (tag = 'c' OR tag = d)")
    assert _query_names(connection, expr) == {"gamma", "delta"}


@pytest.mark.parametrize("expr", [And([]), Or([]), And([Eq("a", 1), Or([])])])
def test_empty_connective_is_rejected(expr) -> None:
    with pytest.raises(InvalidFilterError, match="at least one child"):
        compile_filter(expr)


def test_empty_in_is_rejected() -> None:
    with pytest.raises(InvalidFilterError):
        compile_filter(In("tag", []))


@pytest.mark.parametrize("op", [">=", "<=", "!=", "LIKE", "; DROP TABLE items"])
def test_unsupported_operator_is_rejected(op) -> None:
    with pytest.raises(InvalidFilterError, match="Unsupported comparison operator"):
        compile_filter(Compare(op, "count", 1))  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "expr",
    [
        Compare(">", "count", None),
        In("tag", ["a", None]),
        Eq("tag", ["a"]),  # type: ignore[arg-type]
        Eq("score", float("nan")),
    ],
)
def test_unsupported_values_are_rejected(expr) -> None:
    with pytest.raises(InvalidFilterError):
        compile_filter(expr)


def test_unknown_node_is_rejected() -> None:
    with pytest.raises(InvalidFilterError, match="Unsupported filter expression"):
        compile_filter("tag = 'a'")  # type: ignore[arg-type]


# --- Injection resistance ---


def test_literals_and_fields_are_never_interpolated() -> None:
    compiled = compile_filter(
        And([Eq("secret_field", "secret_value"), In("other", ["in_value_one", "in_value_two"])])
    )
    assert "secret_field" not in compiled.clause
    assert "secret_value" not in compiled.clause
    assert "in_value_one" not in compiled.clause
    assert set(compiled.params.values()) == {
        '$."secret_field"',
        "secret_value",
        '$."other"',
        "in_value_one",
        "in_value_two",
    }


def test_param_prefix_is_configurable() -> None:
    compiled = compile_filter(Eq("tag", "a"), param_prefix="_q")
    assert all(name.startswith("_q") for name in compiled.params)
    assert ":_q1" in compiled.clause


@pytest.mark.parametrize(
    "value",
    [
        "a' OR '1'='1",
        "a'; DROP TABLE items; --",
        "a\" OR 1=1 --",
        "') OR 1=1 --",
    ],
)
def test_quote_in_value_does_not_change_structure(connection, value) -> None:
    assert _query_names(connection, Eq("tag", value)) == set()
    # The table survived.
    assert _query_names(connection, Eq("tag", "a")) == {"alpha"}


def test_value_matching_injection_payload_exactly(connection) -> None:
    assert _query_names(connection, Eq("tag", "x' OR '1'='1")) == {"tricky"}


@pytest.mark.parametrize(
    ("field", "expected"),
    [
        ("a.b", {"tricky"}),
        ("x[0]", {"tricky"}),
        ("$", {"tricky"}),
        ("it's", {"tricky"}),
        ("semi;colon", {"tricky"}),
    ],
)
def test_json_path_metacharacters_address_literal_keys(connection, field, expected) -> None:
    assert _query_names(connection, Compare(">", field, "")) == expected


def test_dotted_field_is_not_nested_access(connection) -> None:
    # "a.b" must not be read as key "b" inside object "a".
    assert _query_names(connection, Eq("a.b", "dotted")) == {"tricky"}
    assert _query_names(connection, Eq("a", "dotted")) == set()


def test_injection_in_field_name_is_inert(connection) -> None:
    field = "tag') OR 1=1 --"
    assert _query_names(connection, Eq(field, "a")) == set()


@pytest.mark.parametrize("field", ['ta"g', "ta\\g", "", "tag\n", "tag\x00"])
def test_unaddressable_field_names_are_rejected(field) -> None:
    with pytest.raises(InvalidFilterError):
        json_path_for_field(field)
    with pytest.raises(InvalidFilterError):
        compile_filter(Eq(field, "a"))
