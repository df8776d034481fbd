from datetime import timedelta

import psycopg
import pytest

from fetchbench.domain.errors import (
    FieldAccessError,
    InvalidRequestError,
    TypeMismatchError,
    UnknownFieldError,
    UpdateFailedError,
)
from fetchbench.domain.expressions import F
from fetchbench.domain.predicates import Eq
from fetchbench.executor import Executor, read_field
from fetchbench.infrastructure.tracking import TRANSACTION, WRITE

UPDATED_ROWS = 42


def _update_responder(rowcount=UPDATED_ROWS):
    def respond(sql, params):
        assert sql.startswith("UPDATE ")
        return rowcount

    return respond


def test_update_runs_one_statement_inside_a_transaction(fake_db, schema):
    fake, conn, _ = fake_db(responder=_update_responder())

    report = Executor(conn, schema).update(
        {"knowledge_end_date": F("knowledge_begin_date") + timedelta(days=10)},
        where=Eq("client_id", 3),
    )

    assert report.rows_updated == UPDATED_ROWS
    assert report.sql == (
        'UPDATE "benchmark_records" SET "knowledge_end_date" = ("knowledge_begin_date" + %s) '
        'WHERE "client_id" = %s'
    )
    assert fake.statements == [(report.sql, [timedelta(days=10), 3])]
    assert fake.transactions == ["BEGIN", "COMMIT"]
    assert conn.counter.by_kind[WRITE] == 1
    assert conn.counter.by_kind[TRANSACTION] == 2
    assert report.round_trips == 3


def test_update_with_several_assignments_and_null(fake_db, schema):
    fake, conn, _ = fake_db(responder=_update_responder())

    report = Executor(conn, schema).update({"client_id": F("client_id") + 1, "knowledge_end_date": None})

    assert report.sql == (
        'UPDATE "benchmark_records" SET "client_id" = ("client_id" + %s), "knowledge_end_date" = NULL'
    )
    assert fake.statements[0][1] == [1]


def test_update_wraps_plain_values(fake_db, schema):
    fake, conn, _ = fake_db(responder=_update_responder())

    Executor(conn, schema).update({"data": {"status": "archived"}})

    sql, params = fake.statements[0]
    assert sql == 'UPDATE "benchmark_records" SET "data" = %s'
    assert params[0].obj == {"status": "archived"}


@pytest.mark.parametrize(
    "assignments",
    [
        {"knowledge_end_date": F("databook_id") + 1},
        {"knowledge_end_date": F("knowledge_begin_date") + 1},
        {"client_id": F("knowledge_begin_date") + timedelta(days=1)},
        {"knowledge_end_date": timedelta(days=1)},
        {"client_id": F("client_id") * 1.5},
    ],
)
def test_type_mismatch_sends_nothing(fake_db, schema, assignments):
    fake, conn, _ = fake_db(responder=_update_responder())

    with pytest.raises(TypeMismatchError):
        Executor(conn, schema).update(assignments)

    assert fake.statements == []
    assert fake.transactions == []
    assert conn.round_trips == 0


@pytest.mark.parametrize(
    "assignments, error",
    [
        ({}, InvalidRequestError),
        ({"id": 5}, InvalidRequestError),
        ({"client_id": None}, InvalidRequestError),
        ({"nope": 1}, UnknownFieldError),
    ],
)
def test_invalid_assignments_are_rejected_up_front(fake_db, schema, assignments, error):
    fake, conn, _ = fake_db(responder=_update_responder())

    with pytest.raises(error):
        Executor(conn, schema).update(assignments)

    assert fake.statements == []


def test_database_error_rolls_back_and_is_wrapped(fake_db, schema):
    def respond(sql, params):
        raise psycopg.errors.DataError("timestamp out of range")

    fake, conn, _ = fake_db(responder=respond)

    with pytest.raises(UpdateFailedError) as exc_info:
        Executor(conn, schema).update(
            {"knowledge_end_date": F("knowledge_begin_date") + timedelta(days=10)}
        )

    assert fake.transactions == ["BEGIN", "ROLLBACK"]
    assert "timestamp out of range" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, psycopg.Error)


def test_read_field_dispatches_on_item_kind():
    assert read_field({"a": 1}, "a") == 1
    with pytest.raises(KeyError):
        read_field({"a": 1}, "b")
    with pytest.raises(FieldAccessError):
        read_field(7, "a")
