"""Public domain model surface."""

from __future__ import annotations

from optisync.domain.model.clock import Clock, utcnow
from optisync.domain.model.mutation import MutationType, PendingMutation, new_mutation_id
from optisync.domain.model.user import (
    MUTABLE_FIELDS,
    TEMPORARY_ID_PREFIX,
    User,
    UserDraft,
    UserPatch,
    new_temporary_id,
)

__all__ = [
    "MUTABLE_FIELDS",
    "TEMPORARY_ID_PREFIX",
    "Clock",
    "MutationType",
    "PendingMutation",
    "User",
    "UserDraft",
    "UserPatch",
    "new_mutation_id",
    "new_temporary_id",
    "utcnow",
]
