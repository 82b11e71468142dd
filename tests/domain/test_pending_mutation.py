from __future__ import annotations

import pytest

from optisync.domain.model import MutationType, PendingMutation, UserPatch

from tests.helpers.users import BASE_TIME, make_draft


def test_mutation_ids_use_timestamp_prefix() -> None:
    mutation = PendingMutation.delete("u1", now=BASE_TIME)

    millis = int(BASE_TIME.timestamp() * 1000)
    assert mutation.id.startswith(f"mutation-{millis}-")
    assert mutation.payload == {"user_id": "u1"}
    assert mutation.target_id == "u1"


def test_record_uses_epoch_millis_and_camel_case_target() -> None:
    mutation = PendingMutation.update("u7", UserPatch(name="New"), now=BASE_TIME)

    record = mutation.to_record()

    assert record["type"] == "update"
    assert record["timestamp"] == int(BASE_TIME.timestamp() * 1000)
    assert record["targetId"] == "u7"
    assert record["payload"] == {"name": "New"}
    assert PendingMutation.from_record(record) == mutation


def test_create_record_has_no_target() -> None:
    mutation = PendingMutation.create(make_draft(), now=BASE_TIME)

    record = mutation.to_record()

    assert "targetId" not in record
    assert PendingMutation.from_record(record).type is MutationType.CREATE


@pytest.mark.parametrize(
    "record",
    [
        "not-an-object",
        {"type": "delete", "timestamp": 1},
        {"id": "m1", "type": "delete", "timestamp": "yesterday"},
        {"id": "m1", "type": "explode", "timestamp": 1},
        {"id": "m1", "type": "delete", "timestamp": 1, "payload": []},
    ],
)
def test_from_record_rejects_malformed_records(record: object) -> None:
    with pytest.raises(ValueError):
        PendingMutation.from_record(record)


def test_age_is_measured_in_seconds() -> None:
    mutation = PendingMutation.delete("u1", now=BASE_TIME)

    assert mutation.age(BASE_TIME.replace(minute=2)) == 120.0
