import uuid

import pytest

from fetchbench.domain.errors import InvalidRequestError, UnknownFieldError
from fetchbench.domain.predicates import And, Eq, IsNull, Not, Or, parse_equality, where_clause

ID_A = uuid.UUID(int=1, version=4)
ID_B = uuid.UUID(int=2, version=4)

# 40 rows match A, 30 match B, 5 of them match both
ONLY_A, ONLY_B, BOTH, NEITHER = 35, 25, 5, 25
EXACTLY_ONE_SIDE = 60


def _rows():
    rows = []
    rows += [{"client_id": 1, "databook_id": ID_B} for _ in range(ONLY_A)]
    rows += [{"client_id": 2, "databook_id": ID_A} for _ in range(ONLY_B)]
    rows += [{"client_id": 1, "databook_id": ID_A} for _ in range(BOTH)]
    rows += [{"client_id": 2, "databook_id": ID_B} for _ in range(NEITHER)]
    return rows


def test_symmetric_difference_counts_rows_matching_exactly_one_side():
    a = Eq("client_id", 1)
    b = Eq("databook_id", ID_A)
    xor = (a | b) & ~(a & b)

    rows = _rows()
    matched = [row for row in rows if xor.matches(row)]

    assert sum(1 for row in rows if a.matches(row)) == 40
    assert sum(1 for row in rows if b.matches(row)) == 30
    assert len(matched) == EXACTLY_ONE_SIDE


def test_symmetric_difference_compiles_to_one_where_clause(schema):
    a = Eq("client_id", 1)
    b = Eq("databook_id", ID_A)
    xor = (a | b) & ~(a & b)

    sql, params = where_clause(xor, schema)

    assert sql == (
        ' WHERE (("client_id" = %s OR "databook_id" = %s) '
        'AND NOT (("client_id" = %s AND "databook_id" = %s)))'
    )
    assert params == [1, ID_A, 1, ID_A]


def test_operators_flatten_same_kind_nodes():
    a, b, c = Eq("client_id", 1), Eq("client_id", 2), Eq("client_id", 3)
    assert (a & b) & c == And((a, b, c))
    assert a | (b | c) == Or((a, b, c))
    assert ~a == Not(a)


def test_null_column_matches_neither_equality_nor_its_negation():
    row = {"knowledge_end_date": None}
    eq = Eq("knowledge_end_date", "2024-01-01")
    assert not eq.matches(row)
    assert not (~eq).matches(row)
    assert IsNull("knowledge_end_date").matches(row)
    assert Eq("knowledge_end_date", None).matches(row)


def test_unknown_propagates_through_and_or():
    row = {"client_id": 1, "knowledge_end_date": None}
    unknown = Eq("knowledge_end_date", "2024-01-01")
    assert (Eq("client_id", 1) | unknown).evaluate(row) is True
    assert (Eq("client_id", 2) | unknown).evaluate(row) is None
    assert (Eq("client_id", 2) & unknown).evaluate(row) is False
    assert (Eq("client_id", 1) & unknown).evaluate(row) is None


def test_eq_none_compiles_to_is_null(schema):
    assert Eq("knowledge_end_date", None).compile(schema) == ('"knowledge_end_date" IS NULL', [])


def test_empty_groups_compile_to_constants(schema):
    assert And(()).compile(schema) == ("TRUE", [])
    assert Or(()).compile(schema) == ("FALSE", [])


def test_uuid_comparison_ignores_representation():
    assert Eq("databook_id", str(ID_A)).matches({"databook_id": ID_A})


def test_compile_rejects_unknown_columns(schema):
    with pytest.raises(UnknownFieldError):
        Eq("nope", 1).compile(schema)


def test_no_predicate_means_no_where_clause(schema):
    assert where_clause(None, schema) == ("", [])


def test_parse_equality_coerces_value(schema):
    assert parse_equality("client_id=42", schema) == Eq("client_id", 42)
    assert parse_equality(f"databook_id = {ID_B}", schema) == Eq("databook_id", ID_B)
    with pytest.raises(InvalidRequestError):
        parse_equality("client_id", schema)


def test_columns_collects_referenced_names():
    predicate = Eq("client_id", 1) | ~IsNull("knowledge_end_date")
    assert predicate.columns() == frozenset({"client_id", "knowledge_end_date"})
