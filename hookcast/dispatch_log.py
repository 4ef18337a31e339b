"""Dispatch log - records every webhook response to SQLite for later inspection."""
import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from hookcast.dispatch.records import WebhookResponse
from hookcast.dispatch.stream import ResponseStream

logger = logging.getLogger(__name__)


class DispatchLog:
    """Persistent log of dispatch results."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS dispatches (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    trigger_id TEXT,
                    topic TEXT NOT NULL,
                    endpoint TEXT NOT NULL,
                    status_code INTEGER,
                    ok INTEGER NOT NULL,
                    error TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_dispatches_topic ON dispatches(topic)
            """)

    def log(self, record: WebhookResponse) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO dispatches (timestamp, trigger_id, topic, endpoint, status_code, ok, error)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    (record.received_at or datetime.now(timezone.utc)).isoformat(),
                    record.trigger_id,
                    record.topic,
                    record.endpoint,
                    record.status_code,
                    int(record.ok),
                    record.error.reason if record.error else None,
                ),
            )

    def get_recent(self, limit: int = 100, topic: str | None = None) -> list[dict]:
        """Most recent dispatches first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT id, timestamp, trigger_id, topic, endpoint, status_code, ok, error
                FROM dispatches
                WHERE (? IS NULL OR topic = ?)
                ORDER BY id DESC
                LIMIT ?
                """,
                (topic, topic, limit),
            )
            rows = cursor.fetchall()
        return [
            {
                "id": r["id"],
                "timestamp": r["timestamp"],
                "trigger_id": r["trigger_id"],
                "topic": r["topic"],
                "endpoint": r["endpoint"],
                "status_code": r["status_code"],
                "ok": bool(r["ok"]),
                "error": r["error"],
            }
            for r in rows
        ]

    def attach(self, stream: ResponseStream) -> asyncio.Task:
        """Subscribe to `stream` and log every record until it closes."""
        sub = stream.subscribe()

        async def consume() -> None:
            async with sub:
                async for record in sub:
                    try:
                        self.log(record)
                    except sqlite3.Error as e:
                        logger.error("Failed to log dispatch for %s: %s", record.endpoint, e)

        return asyncio.get_running_loop().create_task(consume())
