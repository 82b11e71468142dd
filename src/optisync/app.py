"""Application wiring and boot sequence."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from optisync.adapters.memory import InMemoryDurableSlot, InMemoryUserService
from optisync.adapters.notifications import LoggingNotifier
from optisync.adapters.sqlalchemy import UnavailableDurableSlot, durable_slot, is_started, startup
from optisync.adapters.users_api import HttpUserService
from optisync.config import EngineConfig, get_engine_config
from optisync.domain.cache import EntityCache
from optisync.domain.errors import StorageUnavailableError
from optisync.domain.model import utcnow
from optisync.domain.mutation_log import PersistentMutationLog
from optisync.domain.orchestrator import EngineContext, MutationOrchestrator
from optisync.domain.undo import UndoRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from optisync.domain.model import Clock
    from optisync.domain.ports import DurableSlot, Notifier, UserService

log = getLogger(__name__)


def build_engine(
    service: UserService,
    slot: DurableSlot,
    *,
    config: EngineConfig | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utcnow,
) -> MutationOrchestrator:
    """Assemble an orchestrator and the state it owns."""

    engine_config = config or EngineConfig()
    context = EngineContext(
        cache=EntityCache(fresh_for=engine_config.freshness, clock=clock),
        log=PersistentMutationLog(slot, max_age=engine_config.staleness, clock=clock),
        undo=UndoRegistry(window_seconds=engine_config.undo_window_seconds, clock=clock),
        notifier=notifier or LoggingNotifier(),
        clock=clock,
    )
    return MutationOrchestrator(service, context)


def open_durable_slot(queue_key: str, *, database_uri: str | None = None) -> DurableSlot:
    """Return the SQLAlchemy slot for ``queue_key``.

    When the database cannot be opened the returned slot raises on every call,
    which puts the mutation log into its in-memory mode.
    """
    if not is_started():
        try:
            startup(database_uri=database_uri)
        except StorageUnavailableError as exc:
            log.warning("Durable store unavailable: %s", exc)
            return UnavailableDurableSlot(str(exc))
    return durable_slot(queue_key)


@asynccontextmanager
async def running_engine(
    *,
    demo: bool = False,
    database_uri: str | None = None,
    config: EngineConfig | None = None,
    notifier: Notifier | None = None,
) -> AsyncIterator[MutationOrchestrator]:
    """Boot an engine, replay leftovers from a previous run, and close it afterwards.

    ``demo`` swaps the remote service and the durable store for in-process ones.
    """

    engine_config = config or get_engine_config()
    service: UserService
    slot: DurableSlot
    if demo:
        service = InMemoryUserService()
        slot = InMemoryDurableSlot()
    else:
        service = HttpUserService()
        slot = open_durable_slot(engine_config.queue_key, database_uri=database_uri)

    orchestrator = build_engine(service, slot, config=engine_config, notifier=notifier)
    if orchestrator.context.log.degraded:
        log.warning("Durable mutation log unavailable; continuing in memory")

    try:
        result = await orchestrator.replay_pending()
        if result.attempted:
            log.info(
                "Replay finished: completed=%d, failed=%d",
                len(result.completed),
                len(result.failed),
            )
        yield orchestrator
    finally:
        orchestrator.close()
        if isinstance(service, HttpUserService):
            await service.aclose()
