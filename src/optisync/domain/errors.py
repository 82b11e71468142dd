"""Error taxonomy of the mutation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from optisync.domain.conflicts import ConflictReport


class OptisyncError(RuntimeError):
    """Base class for engine errors."""


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str


class RemoteServiceError(OptisyncError):
    """The remote service failed (network, 5xx or a rejected request)."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        field_errors: Sequence[FieldError] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.field_errors = tuple(field_errors)


class EntityNotFoundError(RemoteServiceError):
    """The server reports that the target record does not exist."""

    def __init__(self, entity_id: str, message: str | None = None) -> None:
        super().__init__(message or f"User with id {entity_id} not found", status=404)
        self.entity_id = entity_id


class EntityVanishedError(EntityNotFoundError):
    """Raised after an update found its target deleted elsewhere and evicted it."""


class ConflictDetectedError(OptisyncError):
    """The record changed server-side since it was cached; the caller must choose."""

    def __init__(self, report: ConflictReport) -> None:
        fields = ", ".join(sorted(report.differences)) or "unknown fields"
        super().__init__(f"User {report.server_version.id} was modified elsewhere ({fields})")
        self.report = report


class StorageUnavailableError(OptisyncError):
    """The durable store could not be read or written."""
