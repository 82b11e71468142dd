"""Pending mutation records kept until the server confirms them."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .user import UserDraft, UserPatch


class MutationType(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


def _epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def new_mutation_id(*, now: datetime | None = None) -> str:
    stamp = _epoch_millis(now or datetime.now(UTC))
    return f"mutation-{stamp}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True, slots=True, kw_only=True)
class PendingMutation:
    id: str
    type: MutationType
    timestamp: datetime
    payload: Mapping[str, object] = field(default_factory=dict[str, object])
    target_id: str | None = None

    @classmethod
    def create(cls, draft: UserDraft, *, now: datetime) -> PendingMutation:
        return cls(
            id=new_mutation_id(now=now),
            type=MutationType.CREATE,
            timestamp=now,
            payload=draft.attributes(),
        )

    @classmethod
    def update(cls, user_id: str, patch: UserPatch, *, now: datetime) -> PendingMutation:
        return cls(
            id=new_mutation_id(now=now),
            type=MutationType.UPDATE,
            timestamp=now,
            payload=patch.changes(),
            target_id=user_id,
        )

    @classmethod
    def delete(cls, user_id: str, *, now: datetime) -> PendingMutation:
        return cls(
            id=new_mutation_id(now=now),
            type=MutationType.DELETE,
            timestamp=now,
            payload={"user_id": user_id},
            target_id=user_id,
        )

    def age(self, now: datetime) -> float:
        """Age in seconds relative to ``now``."""
        return (now - self.timestamp).total_seconds()

    def to_record(self) -> dict[str, object]:
        record: dict[str, object] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": _epoch_millis(self.timestamp),
            "payload": dict(self.payload),
        }
        if self.target_id is not None:
            record["targetId"] = self.target_id
        return record

    @classmethod
    def from_record(cls, record: object) -> PendingMutation:
        """Rebuild a mutation from its JSON record.

        Raises ``ValueError`` when the record is malformed.
        """
        if not isinstance(record, dict):
            raise ValueError("mutation record must be an object")
        data = cast(dict[str, Any], record)
        mutation_id = data.get("id")
        if not isinstance(mutation_id, str) or not mutation_id:
            raise ValueError("mutation record is missing an id")
        timestamp = data.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int | float):
            raise ValueError(f"mutation {mutation_id} has an invalid timestamp")
        payload = data.get("payload", {})
        if not isinstance(payload, dict):
            raise ValueError(f"mutation {mutation_id} has an invalid payload")
        target_id = data.get("targetId")
        if target_id is not None and not isinstance(target_id, str):
            raise ValueError(f"mutation {mutation_id} has an invalid target id")
        return cls(
            id=mutation_id,
            type=MutationType(data.get("type")),
            timestamp=datetime.fromtimestamp(timestamp / 1000, tz=UTC),
            payload=cast(dict[str, object], payload),
            target_id=target_id,
        )
