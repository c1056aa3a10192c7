"""OutboxDispatcher — background consumer of notification_outbox.

Each cycle claims a batch of due rows, pushes them to the sink and records
the outcome in the same transaction. A row that keeps failing is retried with
exponential backoff and finally parked as DEAD after `max_attempts`. A sink
that does not answer within `delivery_timeout` counts as a failed delivery.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.fm_common.datetime_utils import utc_after
from src.fm_notification.domain.repository import (
    NotificationSinkProtocol,
    OutboxRepositoryProtocol,
)
from src.fm_notification.infrastructure.persistence import OutboxRepository

logger = logging.getLogger(__name__)

_MAX_BACKOFF_SECONDS = 300.0


class OutboxDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sink: NotificationSinkProtocol,
        repo: OutboxRepositoryProtocol | None = None,
        batch_size: int | None = None,
        max_attempts: int | None = None,
        poll_interval: float | None = None,
        delivery_timeout: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._sink = sink
        self._repo: OutboxRepositoryProtocol = repo or OutboxRepository()
        self._batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
        self._max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
        self._poll_interval = poll_interval or settings.OUTBOX_POLL_INTERVAL_SECONDS
        self._delivery_timeout = (
            settings.OUTBOX_DELIVERY_TIMEOUT_SECONDS
            if delivery_timeout is None
            else delivery_timeout
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def backoff_seconds(self, attempts: int) -> float:
        """Delay before the next try after `attempts` failed deliveries."""
        return min(self._poll_interval * (2 ** attempts), _MAX_BACKOFF_SECONDS)

    async def dispatch_once(self) -> int:
        """Deliver one batch. Returns the number of rows delivered."""
        delivered = 0
        async with self._session_factory() as db:
            try:
                messages = await self._repo.claim_due(db, self._batch_size)
                for msg in messages:
                    try:
                        await asyncio.wait_for(
                            self._sink.deliver(msg.event), timeout=self._delivery_timeout
                        )
                    except asyncio.TimeoutError:
                        error = f"delivery timed out after {self._delivery_timeout:g}s"
                    except Exception as exc:
                        error = str(exc) or type(exc).__name__
                    else:
                        await self._repo.mark_delivered(db, msg.id)
                        delivered += 1
                        continue
                    attempts = msg.attempts + 1
                    dead = attempts >= self._max_attempts
                    if dead:
                        logger.error(
                            "Outbox message %d dead after %d attempts: %s",
                            msg.id, attempts, error,
                        )
                    else:
                        logger.warning(
                            "Outbox message %d delivery failed (attempt %d): %s",
                            msg.id, attempts, error,
                        )
                    await self._repo.mark_attempt_failed(
                        db,
                        msg.id,
                        error,
                        utc_after(self.backoff_seconds(attempts)),
                        dead,
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return delivered

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Outbox dispatcher already running")
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox dispatcher started (interval=%.1fs)", self._poll_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Outbox dispatcher stopped")

    async def _run_loop(self) -> None:
        while True:
            try:
                delivered = await self.dispatch_once()
            except Exception:
                logger.exception("Outbox dispatch cycle failed")
                delivered = 0
            # A full batch means more rows are probably due: go again immediately
            if delivered < self._batch_size:
                await asyncio.sleep(self._poll_interval)
