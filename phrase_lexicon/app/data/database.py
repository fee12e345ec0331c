"""Entry store contract and its SQLite-backed implementation."""

from __future__ import annotations

import json
import os
import queue
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Generator, Iterable, List, Optional, Protocol, Sequence, Tuple

from phrase_lexicon.core import (
    MAX_QUERY_VALUES,
    Entry,
    InvalidArgument,
    StoreLookupFailure,
    StorePersistFailure,
)
from phrase_lexicon.core.entry import LIST_FIELDS
from phrase_lexicon.utils.observability import get_logger


class EntryStore(Protocol):
    """Operations the lookup pipeline needs from a persistent entry store."""

    def exact_lookup(self, phrase: str) -> Optional[Entry]:
        ...

    def combination_lookup(
        self,
        combinations: Sequence[str],
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Entry]:
        ...

    def persist(self, entry: Entry) -> str:
        ...


def check_query_values(name: str, values: Sequence[str]) -> List[str]:
    """Return ``values`` as a list, refusing more than the store accepts per filter."""

    values = list(values)
    if len(values) > MAX_QUERY_VALUES:
        raise InvalidArgument(
            f"{name} holds {len(values)} values; the store accepts at most {MAX_QUERY_VALUES}"
        )
    return values


def _ensure_parent_directory(path: str) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteEntryRepository:
    """Pooled SQLite implementation of :class:`EntryStore`.

    List fields are stored as JSON arrays on the ``entries`` row; combinations
    live in ``entry_combinations`` so the any-of lookup can use an index.
    ``phrase`` is unique, which makes :meth:`persist` safe to call twice for
    the same phrase.
    """

    def __init__(
        self,
        db_path: str,
        *,
        pool_size: int = 4,
        pool_timeout: float = 5.0,
    ) -> None:
        self.db_path = db_path
        self._pool_size = max(1, int(pool_size))
        self._pool_timeout = max(0.0, float(pool_timeout))
        self._pool: queue.Queue = queue.Queue(maxsize=self._pool_size)
        self._pool_semaphore = threading.BoundedSemaphore(self._pool_size)
        self._logger = get_logger(__name__).bind(
            component="sqlite_entry_repository",
            db_path=db_path,
        )
        self._logger.info(
            "SQLite entry repository initialised",
            context={"pool_size": self._pool_size, "pool_timeout": self._pool_timeout},
        )

    # Connection pool -------------------------------------------------------
    def _create_connection(self) -> sqlite3.Connection:
        _ensure_parent_directory(self.db_path)
        connection = sqlite3.connect(self.db_path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        try:
            connection.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as exc:
            self._logger.warning("SQLite WAL mode unavailable", context={"error": str(exc)})
        return connection

    def _acquire_connection(self) -> sqlite3.Connection:
        if not self._pool_semaphore.acquire(timeout=self._pool_timeout or None):
            self._logger.error(
                "Database connection pool exhausted",
                context={"pool_size": self._pool_size, "timeout": self._pool_timeout},
            )
            raise TimeoutError("Database connection pool exhausted")

        try:
            return self._pool.get_nowait()
        except queue.Empty:
            try:
                return self._create_connection()
            except Exception:
                self._pool_semaphore.release()
                raise

    def _release_connection(self, connection: sqlite3.Connection) -> None:
        try:
            self._pool.put_nowait(connection)
        except queue.Full:
            connection.close()
        finally:
            self._pool_semaphore.release()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        connection = self._acquire_connection()
        try:
            yield connection
            if connection.in_transaction:
                connection.commit()
        except Exception as exc:
            if connection.in_transaction:
                connection.rollback()
            self._logger.error("SQLite operation failed", context={"error": str(exc)})
            raise
        finally:
            self._release_connection(connection)

    def close(self) -> None:
        """Close every pooled connection."""

        while True:
            try:
                connection = self._pool.get_nowait()
            except queue.Empty:
                break
            connection.close()

    # Schema ----------------------------------------------------------------
    def ensure_database(self) -> int:
        """Create the schema when missing and return the number of stored entries."""

        self._logger.info("Ensuring database availability")
        with self._connect() as conn:
            self._initialise_schema(conn)
            (count,) = conn.execute("SELECT COUNT(*) FROM entries").fetchone()
        row_count = int(count)
        self._logger.info("Database schema verified", context={"row_count": row_count})
        return row_count

    def _initialise_schema(self, connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY,
                phrase TEXT NOT NULL UNIQUE,
                word_count INTEGER NOT NULL,
                types TEXT NOT NULL DEFAULT '[]',
                meanings TEXT NOT NULL DEFAULT '[]',
                synonyms TEXT NOT NULL DEFAULT '[]',
                translations TEXT NOT NULL DEFAULT '[]',
                examples TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL
            )
            """
        )
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS entry_combinations (
                entry_id INTEGER NOT NULL REFERENCES entries(id),
                position INTEGER NOT NULL,
                combination TEXT NOT NULL,
                PRIMARY KEY (entry_id, position)
            )
            """
        )
        connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_entry_combinations_value
            ON entry_combinations (combination, entry_id)
            """
        )

    def count_entries(self) -> int:
        try:
            with self._connect() as conn:
                (count,) = conn.execute("SELECT COUNT(*) FROM entries").fetchone()
        except (sqlite3.Error, TimeoutError) as exc:
            raise StoreLookupFailure(f"Counting entries failed: {exc}") from exc
        return int(count)

    # Reads -----------------------------------------------------------------
    def _load_combinations(
        self,
        connection: sqlite3.Connection,
        entry_ids: Sequence[int],
    ) -> Dict[int, List[str]]:
        combinations: Dict[int, List[str]] = {entry_id: [] for entry_id in entry_ids}
        if not entry_ids:
            return combinations
        rows = connection.execute(
            f"""
            SELECT entry_id, combination
            FROM entry_combinations
            WHERE entry_id IN ({_placeholders(len(entry_ids))})
            ORDER BY entry_id, position
            """,
            tuple(entry_ids),
        ).fetchall()
        for row in rows:
            combinations[int(row["entry_id"])].append(row["combination"])
        return combinations

    def _rows_to_entries(
        self,
        connection: sqlite3.Connection,
        rows: Sequence[sqlite3.Row],
    ) -> List[Entry]:
        combinations = self._load_combinations(connection, [int(row["id"]) for row in rows])
        return [
            Entry(
                phrase=row["phrase"],
                combinations=tuple(combinations[int(row["id"])]),
                record_id=str(row["id"]),
                **{name: json.loads(row[name] or "[]") for name in LIST_FIELDS},
            )
            for row in rows
        ]

    def exact_lookup(self, phrase: str) -> Optional[Entry]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM entries WHERE phrase = ? LIMIT 1",
                    (phrase,),
                ).fetchall()
                entries = self._rows_to_entries(conn, rows)
        except (sqlite3.Error, TimeoutError) as exc:
            raise StoreLookupFailure(f"Exact lookup failed for {phrase!r}: {exc}") from exc
        return entries[0] if entries else None

    def combination_lookup(
        self,
        combinations: Sequence[str],
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Entry]:
        """Return entries indexed under any of ``combinations``.

        Entries whose phrase appears in ``exclude`` are left out. Both
        arguments are limited to :data:`MAX_QUERY_VALUES` values.
        """

        wanted = check_query_values("combinations", combinations)
        excluded = check_query_values("exclude", exclude or ())
        if not wanted:
            return []

        query = (
            "SELECT * FROM entries WHERE id IN ("
            "SELECT entry_id FROM entry_combinations "
            f"WHERE combination IN ({_placeholders(len(wanted))}))"
        )
        params: List[str] = list(wanted)
        if excluded:
            query += f" AND phrase NOT IN ({_placeholders(len(excluded))})"
            params.extend(excluded)
        query += " ORDER BY id"

        try:
            with self._connect() as conn:
                rows = conn.execute(query, tuple(params)).fetchall()
                return self._rows_to_entries(conn, rows)
        except (sqlite3.Error, TimeoutError) as exc:
            raise StoreLookupFailure(f"Combination lookup failed: {exc}") from exc

    # Writes ----------------------------------------------------------------
    def _insert_entry(self, connection: sqlite3.Connection, entry: Entry) -> Tuple[str, bool]:
        existing = connection.execute(
            "SELECT id FROM entries WHERE phrase = ?",
            (entry.phrase,),
        ).fetchone()
        if existing is not None:
            return str(existing["id"]), False

        cursor = connection.execute(
            """
            INSERT INTO entries (
                phrase, word_count, types, meanings, synonyms, translations, examples, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.phrase,
                entry.word_count,
                *(json.dumps(list(getattr(entry, name))) for name in LIST_FIELDS),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        entry_id = int(cursor.lastrowid)
        connection.executemany(
            "INSERT INTO entry_combinations (entry_id, position, combination) VALUES (?, ?, ?)",
            [(entry_id, position, value) for position, value in enumerate(entry.combinations)],
        )
        return str(entry_id), True

    def persist(self, entry: Entry) -> str:
        """Write ``entry`` and return its record id.

        A phrase that is already stored is not written again; the existing
        record id is returned instead.
        """

        try:
            with self._connect() as conn:
                record_id, created = self._insert_entry(conn, entry)
        except (sqlite3.Error, TimeoutError) as exc:
            raise StorePersistFailure(f"Persisting {entry.phrase!r} failed: {exc}") from exc

        if created:
            self._logger.info("Entry persisted", context={"phrase": entry.phrase, "id": record_id})
        else:
            self._logger.warning(
                "Entry already stored; skipping duplicate write",
                context={"phrase": entry.phrase, "id": record_id},
            )
        return record_id

    def import_entries(self, entries: Iterable[Entry]) -> int:
        """Bulk insert ``entries`` in one transaction; returns how many were new."""

        created_count = 0
        try:
            with self._connect() as conn:
                self._initialise_schema(conn)
                for entry in entries:
                    _, created = self._insert_entry(conn, entry)
                    created_count += int(created)
        except (sqlite3.Error, TimeoutError) as exc:
            raise StorePersistFailure(f"Bulk import failed: {exc}") from exc
        self._logger.info("Bulk import finished", context={"created": created_count})
        return created_count


__all__ = ["EntryStore", "SQLiteEntryRepository", "check_query_values"]
