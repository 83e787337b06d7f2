# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
SQLite primary tier for the customer record store.

Records are kept as JSON payloads keyed by id. The connection is opened
lazily on first use, bounded by a timeout, and reused for the lifetime of
the process. Blocking sqlite3 calls run in the default executor.
"""

import asyncio
import functools
import logging
import os
import sqlite3
from collections.abc import Callable
from typing import Any

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from ..errors import (
    DuplicateRecord,
    ReadFailure,
    SerializationFailure,
    StoreError,
    StoreUnavailable,
    WriteFailure,
)
from ..models.customer import CustomerRecord
from .base import CustomerStorage

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIMEOUT = 5.0
BUSY_TIMEOUT_SECONDS = 5.0

SCHEMA = """
    CREATE TABLE IF NOT EXISTS customers (
        id TEXT PRIMARY KEY,
        created_at INTEGER NOT NULL,
        payload TEXT NOT NULL
    )
"""


def is_lock_error(exception: BaseException) -> bool:
    """Only 'database is locked/busy' errors are transient."""
    if not isinstance(exception, sqlite3.OperationalError):
        return False
    message = str(exception).lower()
    return "locked" in message or "busy" in message


retry_when_locked = retry(
    retry=retry_if_exception(is_lock_error),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


class SqliteCustomerStore(CustomerStorage):
    """
    SQLite based primary storage.

    Failing to open the database (disabled tier, unwritable path, timeout)
    raises StoreUnavailable; a later call tries to open it again.
    """

    def __init__(self, db_path: str, open_timeout: float = DEFAULT_OPEN_TIMEOUT, enabled: bool = True):
        """
        Args:
            db_path: Path to the SQLite database file (":memory:" for tests)
            open_timeout: Seconds to wait for the connection before giving up
            enabled: When False every operation raises StoreUnavailable
        """
        self.db_path = db_path
        self.open_timeout = open_timeout
        self.enabled = enabled
        self.conn: sqlite3.Connection | None = None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    def _connect(self) -> sqlite3.Connection:
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT_SECONDS, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            with conn:
                conn.execute(SCHEMA)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    async def open(self) -> sqlite3.Connection:
        if self.conn is not None:
            return self.conn
        if not self.enabled:
            raise StoreUnavailable("Primary storage is disabled")

        async with self._open_lock:
            if self.conn is not None:
                return self.conn

            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(None, self._connect)
            try:
                self.conn = await asyncio.wait_for(asyncio.shield(future), timeout=self.open_timeout)
            except asyncio.TimeoutError as e:
                # The worker thread keeps going; close whatever it opens late
                future.add_done_callback(self._close_abandoned)
                raise StoreUnavailable(
                    f"Timed out after {self.open_timeout}s opening primary storage at {self.db_path}"
                ) from e
            except (sqlite3.Error, OSError) as e:
                raise StoreUnavailable(f"Could not open primary storage at {self.db_path}: {e}") from e

            logger.info(f"Primary storage opened at: {self.db_path}")
            return self.conn

    @staticmethod
    def _close_abandoned(future: "asyncio.Future[sqlite3.Connection]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        future.result().close()
        logger.debug("Closed primary connection that finished opening after the timeout")

    async def _execute(self, operation: Callable[..., Any], *args: Any, failure: type[StoreError]) -> Any:
        conn = await self.open()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(operation, conn, *args))
        except sqlite3.Error as e:
            raise failure(f"{operation.__name__} failed on {self.db_path}: {e}") from e

    @staticmethod
    @retry_when_locked
    def _select_all(conn: sqlite3.Connection) -> list[tuple[str, str]]:
        return conn.execute("SELECT id, payload FROM customers ORDER BY rowid").fetchall()

    @staticmethod
    @retry_when_locked
    def _insert(conn: sqlite3.Connection, record: CustomerRecord) -> None:
        try:
            with conn:
                conn.execute(
                    "INSERT INTO customers (id, created_at, payload) VALUES (?, ?, ?)",
                    (record.id, record.created_at, record.to_json()),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecord(record.id) from e

    @staticmethod
    @retry_when_locked
    def _upsert(conn: sqlite3.Connection, record: CustomerRecord) -> CustomerRecord:
        with conn:
            # createdAt is fixed at first insert; an update never moves it
            row = conn.execute("SELECT created_at FROM customers WHERE id = ?", (record.id,)).fetchone()
            if row is not None:
                record = record.preserving_created_at(row[0])
            conn.execute(
                "INSERT INTO customers (id, created_at, payload) VALUES (?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (record.id, record.created_at, record.to_json()),
            )
        return record

    @staticmethod
    @retry_when_locked
    def _delete_one(conn: sqlite3.Connection, record_id: str) -> bool:
        with conn:
            cursor = conn.execute("DELETE FROM customers WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    @staticmethod
    @retry_when_locked
    def _delete_all(conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute("DELETE FROM customers")

    @staticmethod
    @retry_when_locked
    def _count(conn: sqlite3.Connection) -> int:
        return conn.execute("SELECT COUNT(*) FROM customers").fetchone()[0]

    async def get_all(self) -> list[CustomerRecord]:
        rows = await self._execute(self._select_all, failure=ReadFailure)
        records = []
        for record_id, payload in rows:
            try:
                records.append(CustomerRecord.from_json(payload))
            except SerializationFailure as e:
                logger.warning(f"Skipping unreadable primary row {record_id}: {e}")
        return records

    async def add(self, record: CustomerRecord) -> None:
        await self._execute(self._insert, record, failure=WriteFailure)
        logger.debug(f"Primary storage added {record.id}")

    async def update(self, record: CustomerRecord) -> None:
        stored = await self._execute(self._upsert, record, failure=WriteFailure)
        if stored.created_at != record.created_at:
            logger.warning(
                f"Ignored createdAt change for {record.id}: kept {stored.created_at}, got {record.created_at}"
            )
        logger.debug(f"Primary storage updated {record.id}")

    async def delete(self, record_id: str) -> bool:
        return await self._execute(self._delete_one, record_id, failure=WriteFailure)

    async def clear(self) -> None:
        await self._execute(self._delete_all, failure=WriteFailure)
        logger.info(f"Primary storage cleared: {self.db_path}")

    async def count(self) -> int:
        return await self._execute(self._count, failure=ReadFailure)

    async def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.info("Primary storage connection closed")
