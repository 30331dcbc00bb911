"""Unit tests for the PostgreSQL change subscriber."""

import asyncio
import json
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from indexsync.domain.indexing.model.job import IndexingOperation
from indexsync.infrastructure.event.subscriber import (
    PostgresChangeSubscriber,
    parse_notification,
    parse_timestamp,
)
from indexsync.infrastructure.queue.memory import InMemoryIndexingQueue

CHANNEL = "search_indexing_changes"


def payload(**overrides) -> str:
    data = {
        "id": "review:r1",
        "entityType": "review",
        "entityId": "r1",
        "operation": "UPSERT",
        "cursor": "2024-01-01T00:00:00.000Z",
    }
    data.update(overrides)
    return json.dumps(data)


def make_connection() -> MagicMock:
    connection = MagicMock()
    connection.add_listener = AsyncMock()
    connection.remove_listener = AsyncMock()
    connection.close = AsyncMock()
    connection.is_closed.return_value = False
    return connection


class TestParseTimestamp:
    def test_epoch_millis(self):
        assert parse_timestamp(1700000000000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)

    def test_iso_with_zulu(self):
        assert parse_timestamp("2024-01-01T00:00:00.000Z") == datetime(2024, 1, 1, tzinfo=UTC)

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2024-01-01T12:30:00") == datetime(2024, 1, 1, 12, 30, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "yesterday", True, ["2024-01-01"]])
    def test_unparsable_is_none(self, value):
        assert parse_timestamp(value) is None


class TestParseNotification:
    def test_valid_payload(self):
        event = parse_notification(payload(maxAttempts=3, metadata={"source": "trigger"}))

        assert event is not None
        assert event.id == "review:r1"
        assert event.entity_id == "r1"
        assert event.operation is IndexingOperation.UPSERT
        assert event.cursor == datetime(2024, 1, 1, tzinfo=UTC)
        assert event.max_attempts == 3
        assert event.metadata == {"source": "trigger"}

    def test_bad_cursor_becomes_none(self):
        event = parse_notification(payload(cursor="not a date"))

        assert event is not None
        assert event.cursor is None

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "{not json",
            "[1, 2]",
            payload(operation="TRUNCATE"),
            payload(entityType="user"),
            payload(entityId=""),
            json.dumps({"id": "review:r1"}),
        ],
    )
    def test_malformed_payload_is_dropped(self, raw):
        assert parse_notification(raw) is None

    def test_invalid_json_is_logged_as_error(self, caplog):
        with caplog.at_level(logging.ERROR):
            parse_notification("{oops")

        assert "Failed to parse change notification payload" in caplog.text


class TestHandlePayload:
    @pytest.mark.asyncio
    async def test_enqueues_parsed_event(self):
        queue = InMemoryIndexingQueue()
        subscriber = PostgresChangeSubscriber(AsyncMock(), queue, CHANNEL)

        event = await subscriber.handle_payload(payload(operation="DELETE"))

        assert event is not None
        jobs = await queue.reserve_batch(10)
        assert [(j.id, j.operation) for j in jobs] == [("review:r1", IndexingOperation.DELETE)]

    @pytest.mark.asyncio
    async def test_malformed_payload_enqueues_nothing(self):
        queue = InMemoryIndexingQueue()
        subscriber = PostgresChangeSubscriber(AsyncMock(), queue, CHANNEL)

        assert await subscriber.handle_payload("garbage") is None
        assert await queue.pending_count() == 0

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_logged_not_raised(self, caplog):
        queue = AsyncMock()
        queue.enqueue.side_effect = RuntimeError("database is gone")
        subscriber = PostgresChangeSubscriber(AsyncMock(), queue, CHANNEL)

        with caplog.at_level(logging.ERROR):
            result = await subscriber.handle_payload(payload())

        assert result is None
        assert "Failed to enqueue indexing event review:r1" in caplog.text


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_listens_once(self):
        connection = make_connection()
        connect = AsyncMock(return_value=connection)
        subscriber = PostgresChangeSubscriber(connect, InMemoryIndexingQueue(), CHANNEL)

        await subscriber.start()
        await subscriber.start()

        assert subscriber.listening
        connect.assert_awaited_once()
        connection.add_listener.assert_awaited_once_with(CHANNEL, subscriber._on_notification)
        connection.add_termination_listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_unlistens_and_closes_once(self):
        connection = make_connection()
        subscriber = PostgresChangeSubscriber(
            AsyncMock(return_value=connection), InMemoryIndexingQueue(), CHANNEL
        )
        await subscriber.start()

        await subscriber.stop()
        await subscriber.stop()

        assert not subscriber.listening
        connection.remove_listener.assert_awaited_once_with(CHANNEL, subscriber._on_notification)
        connection.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_skips_unlisten_on_closed_connection(self):
        connection = make_connection()
        connection.is_closed.return_value = True
        subscriber = PostgresChangeSubscriber(
            AsyncMock(return_value=connection), InMemoryIndexingQueue(), CHANNEL
        )
        await subscriber.start()

        await subscriber.stop()

        connection.remove_listener.assert_not_awaited()
        connection.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_before_start_is_a_no_op(self):
        connect = AsyncMock()
        subscriber = PostgresChangeSubscriber(connect, InMemoryIndexingQueue(), CHANNEL)

        await subscriber.stop()

        connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notification_is_enqueued_before_stop_returns(self):
        connection = make_connection()
        queue = InMemoryIndexingQueue()
        subscriber = PostgresChangeSubscriber(AsyncMock(return_value=connection), queue, CHANNEL)
        await subscriber.start()

        subscriber._on_notification(connection, 42, CHANNEL, payload())
        await subscriber.stop()

        assert await queue.pending_count() == 1

    @pytest.mark.asyncio
    async def test_notification_on_other_channel_is_ignored(self):
        connection = make_connection()
        queue = InMemoryIndexingQueue()
        subscriber = PostgresChangeSubscriber(AsyncMock(return_value=connection), queue, CHANNEL)
        await subscriber.start()

        subscriber._on_notification(connection, 42, "other_channel", payload())
        await asyncio.sleep(0)
        await subscriber.stop()

        assert await queue.pending_count() == 0

    @pytest.mark.asyncio
    async def test_termination_clears_connection(self, caplog):
        connection = make_connection()
        subscriber = PostgresChangeSubscriber(
            AsyncMock(return_value=connection), InMemoryIndexingQueue(), CHANNEL
        )
        await subscriber.start()

        with caplog.at_level(logging.ERROR):
            subscriber._on_termination(connection)

        assert not subscriber.listening
        assert "terminated" in caplog.text
        await asyncio.wait_for(subscriber.stop(), timeout=1)

    @pytest.mark.asyncio
    async def test_stop_after_termination_still_drains_enqueues(self):
        connection = make_connection()
        queue = InMemoryIndexingQueue()
        subscriber = PostgresChangeSubscriber(
            AsyncMock(return_value=connection), queue, CHANNEL, reconnect_delay=60
        )
        await subscriber.start()

        subscriber._on_notification(connection, 42, CHANNEL, payload())
        subscriber._on_termination(connection)
        await asyncio.wait_for(subscriber.stop(), timeout=1)

        assert await queue.pending_count() == 1

    @pytest.mark.asyncio
    async def test_termination_reconnects(self):
        first, second = make_connection(), make_connection()
        connect = AsyncMock(side_effect=[first, second])
        subscriber = PostgresChangeSubscriber(
            connect, InMemoryIndexingQueue(), CHANNEL, reconnect_delay=0
        )
        await subscriber.start()

        subscriber._on_termination(first)
        for _ in range(100):
            if subscriber.listening:
                break
            await asyncio.sleep(0.01)

        assert subscriber.listening
        assert connect.await_count == 2
        second.add_listener.assert_awaited_once_with(CHANNEL, subscriber._on_notification)

        await subscriber.stop()
        second.close.assert_awaited_once()
        first.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stop_cancels_failing_reconnects(self, caplog):
        connection = make_connection()
        attempts = 0

        async def connect():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                return connection
            raise OSError("connection refused")

        subscriber = PostgresChangeSubscriber(
            connect, InMemoryIndexingQueue(), CHANNEL, reconnect_delay=0.01
        )
        await subscriber.start()

        with caplog.at_level(logging.WARNING):
            subscriber._on_termination(connection)
            for _ in range(100):
                if attempts >= 3:
                    break
                await asyncio.sleep(0.01)
            await asyncio.wait_for(subscriber.stop(), timeout=1)

        assert attempts >= 3
        assert "connection refused" in caplog.text
        settled = attempts
        await asyncio.sleep(0.05)
        assert attempts == settled
        assert not subscriber.listening
