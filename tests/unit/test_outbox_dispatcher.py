"""Unit tests for the notification outbox: Notifier, OutboxDispatcher, RedisNotificationSink."""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.fm_notification.application.dispatcher import OutboxDispatcher
from src.fm_notification.application.notifier import Notifier
from src.fm_notification.domain.events import NotificationEvent, OutboxMessage
from src.fm_notification.infrastructure.redis_sink import RedisNotificationSink


def _message(msg_id: int, attempts: int = 0) -> OutboxMessage:
    return OutboxMessage(
        id=msg_id,
        event=NotificationEvent("PAYMENT_RELEASED", f"m-{msg_id}", "user-1", {"amount": 5000}),
        status="PENDING",
        attempts=attempts,
    )


class _SessionContext:
    def __init__(self, db: AsyncMock) -> None:
        self._db = db

    async def __aenter__(self) -> AsyncMock:
        return self._db

    async def __aexit__(self, *exc: Any) -> bool:
        return False


def _session_factory(db: AsyncMock) -> MagicMock:
    return MagicMock(side_effect=lambda: _SessionContext(db))


class TestNotifier:
    async def test_enqueues_event(self, db: AsyncMock, outbox: Any) -> None:
        ok = await Notifier(outbox=outbox).notify(db, "MILESTONE_SUBMITTED", "1001", "client-1")
        assert ok is True
        (event,) = outbox.events
        assert event.event_type == "MILESTONE_SUBMITTED"
        assert event.payload == {}
        db.begin_nested.assert_called_once()

    async def test_failure_is_swallowed(self, db: AsyncMock, outbox: Any) -> None:
        outbox.fail = True
        ok = await Notifier(outbox=outbox).notify(db, "PAYMENT_RELEASED", "1001", "user-1")
        assert ok is False


class TestDispatchOnce:
    async def test_delivers_and_marks(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = [_message(1), _message(2)]
        sink = AsyncMock()
        dispatcher = OutboxDispatcher(_session_factory(db), sink, repo=repo, batch_size=10)

        delivered = await dispatcher.dispatch_once()

        assert delivered == 2
        assert sink.deliver.await_count == 2
        assert repo.mark_delivered.await_count == 2
        repo.mark_attempt_failed.assert_not_awaited()
        db.commit.assert_awaited_once()

    async def test_failed_delivery_is_rescheduled(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = [_message(1, attempts=2)]
        sink = AsyncMock()
        sink.deliver.side_effect = ConnectionError("redis down")
        dispatcher = OutboxDispatcher(
            _session_factory(db), sink, repo=repo, max_attempts=8, poll_interval=1.0
        )

        delivered = await dispatcher.dispatch_once()

        assert delivered == 0
        args = repo.mark_attempt_failed.call_args.args
        assert args[1] == 1
        assert args[2] == "redis down"
        assert args[4] is False
        db.commit.assert_awaited_once()

    async def test_hung_sink_counts_as_failed_delivery(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = [_message(1), _message(2)]
        sink = AsyncMock()

        async def _deliver(event: NotificationEvent) -> None:
            if event.entity_id == "m-1":
                await asyncio.sleep(5)

        sink.deliver.side_effect = _deliver
        dispatcher = OutboxDispatcher(
            _session_factory(db), sink, repo=repo, delivery_timeout=0.01
        )

        delivered = await dispatcher.dispatch_once()

        assert delivered == 1
        args = repo.mark_attempt_failed.call_args.args
        assert args[1] == 1
        assert args[2] == "delivery timed out after 0.01s"
        assert args[4] is False
        repo.mark_delivered.assert_awaited_once_with(db, 2)
        db.commit.assert_awaited_once()

    async def test_last_attempt_parks_message_as_dead(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = [_message(1, attempts=7)]
        sink = AsyncMock()
        sink.deliver.side_effect = ConnectionError("redis down")
        dispatcher = OutboxDispatcher(_session_factory(db), sink, repo=repo, max_attempts=8)

        await dispatcher.dispatch_once()

        assert repo.mark_attempt_failed.call_args.args[4] is True

    async def test_one_failure_does_not_block_the_batch(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = [_message(1), _message(2)]
        sink = AsyncMock()
        sink.deliver.side_effect = [ConnectionError("boom"), None]
        dispatcher = OutboxDispatcher(_session_factory(db), sink, repo=repo)

        assert await dispatcher.dispatch_once() == 1
        repo.mark_delivered.assert_awaited_once_with(db, 2)

    async def test_claim_failure_rolls_back(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.side_effect = RuntimeError("db gone")
        dispatcher = OutboxDispatcher(_session_factory(db), AsyncMock(), repo=repo)

        with pytest.raises(RuntimeError):
            await dispatcher.dispatch_once()
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestBackoff:
    def test_exponential_and_capped(self) -> None:
        dispatcher = OutboxDispatcher(MagicMock(), AsyncMock(), repo=AsyncMock(), poll_interval=2.0)
        assert dispatcher.backoff_seconds(1) == 4.0
        assert dispatcher.backoff_seconds(3) == 16.0
        assert dispatcher.backoff_seconds(20) == 300.0


class TestLifecycle:
    async def test_start_and_stop(self) -> None:
        db = AsyncMock()
        repo = AsyncMock()
        repo.claim_due.return_value = []
        dispatcher = OutboxDispatcher(
            _session_factory(db), AsyncMock(), repo=repo, poll_interval=0.01
        )

        await dispatcher.start()
        assert dispatcher.is_running
        await asyncio.sleep(0.03)
        await dispatcher.stop()

        assert not dispatcher.is_running
        assert repo.claim_due.await_count >= 1

    async def test_stop_without_start(self) -> None:
        dispatcher = OutboxDispatcher(MagicMock(), AsyncMock(), repo=AsyncMock())
        await dispatcher.stop()
        assert not dispatcher.is_running


class TestRedisSink:
    async def test_publishes_json_on_channel(self) -> None:
        redis = AsyncMock()
        sink = RedisNotificationSink(redis=redis, channel="fm:test")
        event = NotificationEvent("WITHDRAWAL_FAILED", "9001", "user-1", {"amount": 100})

        await sink.deliver(event)

        channel, message = redis.publish.call_args.args
        assert channel == "fm:test"
        assert json.loads(message) == {
            "event_type": "WITHDRAWAL_FAILED",
            "entity_id": "9001",
            "recipient_id": "user-1",
            "payload": {"amount": 100},
        }
