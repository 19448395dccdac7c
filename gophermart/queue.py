"""A durable message queue kept in a SQL table."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_NAME = "order_queue"

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_id_type = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _queue_table(metadata: sa.MetaData, name: str) -> sa.Table:
    if not _NAME_RE.fullmatch(name):
        raise ValueError(f"invalid queue name: {name!r}")
    return sa.Table(
        name,
        metadata,
        sa.Column("id", _id_type, primary_key=True, autoincrement=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            default=_utc_now,
            server_default=sa.func.now(),
        ),
        sa.Column("payload", sa.Text, nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consumed_count", sa.Integer, nullable=False, default=0, server_default=sa.text("0")),
    )


def create_table_query(queue_name: str = DEFAULT_QUEUE_NAME) -> str:
    """Return the PostgreSQL statement that creates the table for a queue."""
    table = _queue_table(sa.MetaData(), queue_name)
    statement = CreateTable(table, if_not_exists=True)
    return str(statement.compile(dialect=postgresql.dialect())).strip()


@dataclass(frozen=True)
class Message:
    """A message taken from the queue."""

    id: int
    payload: str
    consumed_count: int


def _engine_for(uri: str) -> sa.Engine:
    if uri.startswith("postgres://"):
        uri = "postgresql://" + uri[len("postgres://"):]
    connect_args = {"check_same_thread": False} if uri.startswith("sqlite") else {}
    return sa.create_engine(uri, connect_args=connect_args)


class MessageQueue:
    """Publishes and consumes JSON messages stored in a database table."""

    def __init__(self, database_uri: str, name: str = DEFAULT_QUEUE_NAME) -> None:
        self.name = name
        self._metadata = sa.MetaData()
        self._table = _queue_table(self._metadata, name)
        self._engine = _engine_for(database_uri)
        try:
            self._metadata.create_all(self._engine)
        except Exception:
            self._engine.dispose()
            raise

    def __enter__(self) -> MessageQueue:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def publish(self, payload: Any) -> int:
        """Store a message and return its id.

        A string is taken as ready JSON text and must parse; anything else is
        serialised to JSON.
        """
        if isinstance(payload, str):
            json.loads(payload)
            text = payload
        else:
            text = json.dumps(payload)
        with self._engine.begin() as conn:
            result = conn.execute(sa.insert(self._table).values(payload=text))
            message_id = int(result.inserted_primary_key[0])
        logger.info("message published with id %d", message_id)
        return message_id

    def fetch(self) -> Message | None:
        """Take the next unprocessed message, least tried first, or None."""
        table = self._table
        with self._engine.begin() as conn:
            row = conn.execute(
                sa.select(table.c.id, table.c.payload, table.c.consumed_count)
                .where(table.c.processed_at.is_(None))
                .order_by(table.c.consumed_count, table.c.id)
                .limit(1)
                .with_for_update(skip_locked=True)
            ).one_or_none()
            if row is None:
                return None
            count = int(row.consumed_count) + 1
            conn.execute(
                sa.update(table).where(table.c.id == row.id).values(consumed_count=count)
            )
        return Message(id=int(row.id), payload=row.payload, consumed_count=count)

    def acknowledge(self, message_id: int) -> None:
        """Mark a message as processed so it is not delivered again."""
        table = self._table
        with self._engine.begin() as conn:
            result = conn.execute(
                sa.update(table)
                .where(table.c.id == message_id, table.c.processed_at.is_(None))
                .values(processed_at=_utc_now())
            )
        if result.rowcount == 0:
            raise KeyError(message_id)

    def run(
        self,
        handler: Callable[[Message], bool],
        stop_event: threading.Event | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        """Feed messages to ``handler`` until ``stop_event`` is set.

        A message is acknowledged when the handler returns true; when it
        returns false or raises, the message stays queued for a later try.
        """
        stop = stop_event if stop_event is not None else threading.Event()
        while not stop.is_set():
            message = self.fetch()
            if message is None:
                stop.wait(poll_interval)
                continue
            try:
                processed = handler(message)
            except Exception:
                logger.exception("handler failed for message %d", message.id)
                processed = False
            if processed:
                self.acknowledge(message.id)
            else:
                stop.wait(poll_interval)

    def close(self) -> None:
        """Release all database connections."""
        self._engine.dispose()