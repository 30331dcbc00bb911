"""Change subscriber - turns relational change notifications into queued jobs.

Notifications arrive over PostgreSQL LISTEN/NOTIFY as JSON payloads of the
form ``{"id", "entityType", "entityId", "operation", "cursor"?,
"availableAt"?, "metadata"?, "maxAttempts"?}``. Malformed payloads are logged
and dropped; the relational store stays the source of truth and a backfill
repairs anything lost.
"""

import asyncio
import json
import logging
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable

import asyncpg
from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from indexsync.domain.indexing.model.job import EntityType, IndexingEvent, IndexingOperation
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.shared.model.value import CamelValueObject

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "search_indexing_changes"
DEFAULT_RECONNECT_DELAY = 5.0

Connector = Callable[[], Awaitable[asyncpg.Connection]]


class ChangeNotification(CamelValueObject):
    """Wire shape of one notification payload."""

    id: str = Field(min_length=1)
    entity_type: EntityType
    entity_id: str = Field(min_length=1)
    operation: IndexingOperation
    cursor: Any = None
    available_at: Any = None
    metadata: dict[str, Any] | None = None
    max_attempts: int | None = Field(default=None, ge=1)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch milliseconds or an ISO-8601 string; None when unparsable."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    return None


def parse_notification(payload: str | None) -> IndexingEvent | None:
    """Build an IndexingEvent from a raw payload, or None if it must be dropped."""
    if not payload:
        logger.warning("Received change notification without payload")
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse change notification payload: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Invalid change notification payload: {payload!r}")
        return None

    try:
        notification = ChangeNotification.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(
            f"Invalid change notification payload: {payload!r} ({e.error_count()} errors)"
        )
        return None

    return IndexingEvent(
        id=notification.id,
        entity_type=notification.entity_type,
        entity_id=notification.entity_id,
        operation=notification.operation,
        cursor=parse_timestamp(notification.cursor),
        available_at=parse_timestamp(notification.available_at),
        metadata=notification.metadata,
        max_attempts=notification.max_attempts,
    )


class PostgresChangeSubscriber:
    """Holds one long-lived LISTEN connection and enqueues parsed events.

    ``start`` and ``stop`` are idempotent. Each notification is enqueued in
    its own task; ``stop`` waits for in-flight enqueues before closing the
    connection. When the connection drops, the subscriber reconnects every
    ``reconnect_delay`` seconds until it is listening again or stopped.
    Notifications sent while disconnected are lost; a backfill repairs them.
    """

    def __init__(
        self,
        connect: Connector,
        queue: IndexingQueue,
        channel: str = DEFAULT_CHANNEL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self._connect = connect
        self._queue = queue
        self._channel = channel
        self._reconnect_delay = reconnect_delay
        self._connection: asyncpg.Connection | None = None
        self._active = False
        self._pending: set[asyncio.Task] = set()
        self._reconnect_task: asyncio.Task | None = None

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def listening(self) -> bool:
        return self._connection is not None

    async def start(self) -> None:
        if self._active:
            return

        await self._listen()
        self._active = True

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False

        reconnect_task, self._reconnect_task = self._reconnect_task, None
        if reconnect_task is not None and not reconnect_task.done():
            reconnect_task.cancel()
            try:
                await reconnect_task
            except asyncio.CancelledError:
                pass

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        connection, self._connection = self._connection, None
        if connection is not None:
            connection.remove_termination_listener(self._on_termination)
            if not connection.is_closed():
                await connection.remove_listener(self._channel, self._on_notification)
                await connection.close()
        logger.info(f"Unsubscribed from change notifications on channel {self._channel}")

    async def handle_payload(self, payload: str | None) -> IndexingEvent | None:
        """Parse and enqueue one payload. Returns the enqueued event, if any."""
        event = parse_notification(payload)
        if event is None:
            return None

        try:
            await self._queue.enqueue(event)
        except Exception:
            logger.exception(f"Failed to enqueue indexing event {event.id} from notification")
            return None

        logger.debug(f"Enqueued {event.operation.value} job {event.id} for {event.entity_id}")
        return event

    async def _listen(self) -> None:
        connection = await self._connect()
        connection.add_termination_listener(self._on_termination)
        await connection.add_listener(self._channel, self._on_notification)
        self._connection = connection
        logger.info(f"Subscribed to change notifications on channel {self._channel}")

    async def _reconnect(self) -> None:
        while self._active and self._connection is None:
            await asyncio.sleep(self._reconnect_delay)
            try:
                await self._listen()
            except Exception as e:
                logger.warning(
                    f"Reconnecting to channel {self._channel} failed, "
                    f"retrying in {self._reconnect_delay}s: {e}"
                )

    def _on_notification(
        self,
        connection: asyncpg.Connection,
        pid: int,
        channel: str,
        payload: str,
    ) -> None:
        if channel != self._channel:
            return
        task = asyncio.get_running_loop().create_task(self.handle_payload(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_termination(self, connection: asyncpg.Connection) -> None:
        logger.error(f"Change subscriber connection on channel {self._channel} terminated")
        self._connection = None
        if self._active and (self._reconnect_task is None or self._reconnect_task.done()):
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())
