"""
Background Notification Relay
=============================

Runs every ``RELAY_INTERVAL_SECONDS`` (default 2 s).

Every ledger mutation writes its notification into ``ride_events`` in the
same transaction as the state change (transactional outbox).  This worker
drains unpublished rows to the Redis pub/sub channel so observers learn
about state changes without polling the ledger.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one instance drains the outbox at
  a time across multiple API processes.
* **SELECT ... FOR UPDATE** on the batch keeps a second relay (e.g. one whose
  lock expired mid-cycle) from stamping the same rows.

Delivery is at-least-once: if publishing succeeds but the commit fails the
batch is published again next cycle.  Subscribers de-duplicate on
``sequence``.
"""

from __future__ import annotations

import asyncio
import logging

from ridescrow.config import settings
from ridescrow.infrastructure.database import async_session_factory
from ridescrow.infrastructure.locks import DistributedLock, LockNotAcquired
from ridescrow.infrastructure.redis_client import EventPublisher, get_redis
from ridescrow.infrastructure.repositories import RideEventRepository

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_relay_loop() -> None:
    global _task, _stop_event
    if not settings.relay_enabled:
        logger.info("Notification relay disabled")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Notification relay started (interval=%.1fs)", settings.relay_interval_seconds
    )


async def stop_relay_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Notification relay stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: relay one batch then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_relay_cycle()
        except Exception:
            logger.exception("Unhandled error in relay cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.relay_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_relay_cycle(session_factory=None, redis=None) -> int:
    """Publish one batch of pending events.  Returns how many were sent."""
    session_factory = session_factory or async_session_factory
    redis = redis or await get_redis()
    try:
        async with DistributedLock(redis, "event_relay", ttl_seconds=60):
            return await _publish_batch(session_factory, redis)
    except LockNotAcquired:
        logger.debug("Lock held by another relay – skipping cycle")
        return 0


async def _publish_batch(session_factory, redis) -> int:
    async with session_factory() as session:
        repo = RideEventRepository(session)
        publisher = EventPublisher(redis)

        events = await repo.get_unpublished_for_update(settings.relay_batch_size)
        sent = []
        for event in events:
            try:
                await publisher.publish(event)
            except Exception:
                # keep ordering: stop at the first failure, retry next cycle
                logger.exception("Failed to publish event %d", event.id)
                break
            sent.append(event)

        repo.mark_published(sent)
        await session.commit()
        if sent:
            logger.info("Relay cycle: %d events published", len(sent))
        return len(sent)
