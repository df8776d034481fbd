import pytest

from fetchbench.domain.errors import UnknownFieldError
from fetchbench.domain.lazy import LazyValue, LiveRecord
from fetchbench.domain.models import BenchmarkRecord


class CountingLoader:
    def __init__(self, source):
        self.source = source
        self.calls = []

    def __call__(self, pk, field):
        self.calls.append((pk, field))
        return self.source[field]


def test_lazy_value_loads_once():
    calls = []

    def loader():
        calls.append(1)
        return "value"

    cell = LazyValue.deferred(loader)
    assert not cell.is_loaded
    assert cell.get() == "value"
    assert cell.get() == "value"
    assert cell.is_loaded
    assert calls == [1]


def test_lazy_value_failed_load_can_be_retried():
    attempts = []

    def loader():
        attempts.append(1)
        if len(attempts) == 1:
            raise LookupError("gone")
        return "value"

    cell = LazyValue.deferred(loader)
    with pytest.raises(LookupError):
        cell.get()
    assert not cell.is_loaded
    assert cell.get() == "value"
    assert len(attempts) == 2


def test_lazy_value_requires_value_or_loader():
    with pytest.raises(ValueError):
        LazyValue()
    assert LazyValue.loaded(None).get() is None


def test_live_record_defers_unselected_columns(schema, rows_factory):
    full = rows_factory(3)[2]
    loader = CountingLoader(full)
    record = LiveRecord.from_row({"id": 3, "client_id": full["client_id"]}, schema, loader)

    assert record.pk == 3
    assert record.is_loaded("client_id")
    assert "data" in record.deferred_fields
    assert record["client_id"] == full["client_id"]
    assert loader.calls == []

    assert record.get("data") == full["data"]
    assert record.get("data") == full["data"]
    assert loader.calls == [(3, "data")]


def test_live_record_to_model_loads_every_deferred_column(schema, rows_factory):
    full = rows_factory(4)[3]
    loader = CountingLoader(full)
    record = LiveRecord.from_row({"id": 4}, schema, loader)

    model = record.to_model()

    assert isinstance(model, BenchmarkRecord)
    assert model.id == 4
    assert model.databook_id == full["databook_id"]
    assert len(loader.calls) == len(schema.field_names) - 1
    assert record.deferred_fields == ()


def test_live_record_unknown_field(schema):
    record = LiveRecord.from_row({"id": 1}, schema, CountingLoader({}))
    with pytest.raises(UnknownFieldError):
        record.get("nope")
    assert "pk=1" in repr(record)
