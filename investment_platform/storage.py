"""
Storage Backend Module

A small document store: every table maps a string id to a JSON object.
Records are plain dataclasses (see ``StorageRecord``) whose Decimal amounts,
datetimes and enums are flattened to strings before they are written, so the
same data round-trips through the in-memory backend used by tests and the
SQLite backend used in deployments.

Both backends serialize access through one re-entrant lock and support
``atomic()`` blocks: writes inside a block become visible together or not
at all.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Dict, List, Optional, Any, Tuple, Union
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
import copy
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from contextlib import contextmanager


Document = Dict[str, Any]


def _to_storable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_storable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_storable(v) for v in value]
    return value


def _matches(document: Document, filters: Document) -> bool:
    """Equality match on top-level keys; a missing key never matches"""
    return all(key in document and document[key] == value for key, value in filters.items())


@dataclass
class StorageRecord:
    """
    Base for persisted records.

    Subclasses list the fields ``from_dict`` has to revive from their stored
    string form: ``_decimal_fields``, ``_datetime_fields`` (``created_at`` and
    ``updated_at`` are always revived) and ``_enum_fields`` mapping a field
    name to its Enum type.
    """
    id: str
    created_at: datetime
    updated_at: datetime

    _decimal_fields: ClassVar[Tuple[str, ...]] = ()
    _datetime_fields: ClassVar[Tuple[str, ...]] = ()
    _enum_fields: ClassVar[Dict[str, type]] = {}

    def to_dict(self) -> Document:
        return {key: _to_storable(value) for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Document) -> 'StorageRecord':
        # Documents written by older versions may carry fields we dropped
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}

        for name in ('created_at', 'updated_at') + tuple(cls._datetime_fields):
            if isinstance(values.get(name), str):
                values[name] = datetime.fromisoformat(values[name])
        for name in cls._decimal_fields:
            if values.get(name) is not None:
                values[name] = Decimal(str(values[name]))
        for name, enum_type in cls._enum_fields.items():
            if values.get(name) is not None:
                values[name] = enum_type(values[name])

        return cls(**values)

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class StorageInterface(ABC):
    """
    Document store contract.

    ``load``, ``load_all`` and ``find`` hand out copies; mutating a returned
    document never changes stored state until it is passed back to ``save``.
    ``delete`` reports whether a document was removed.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._in_transaction = False

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        ...

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        ...

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def find(self, table: str, filters: Document) -> List[Document]:
        ...

    @abstractmethod
    def count(self, table: str) -> int:
        ...

    @abstractmethod
    def clear_table(self, table: str) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    def find_one(self, table: str, filters: Document) -> Optional[Document]:
        results = self.find(table, filters)
        return results[0] if results else None

    def begin_transaction(self) -> None:
        self._in_transaction = True

    def commit(self) -> None:
        self._in_transaction = False

    def rollback(self) -> None:
        self._in_transaction = False

    @contextmanager
    def atomic(self):
        """
        Group writes into one transaction.

        The storage lock is held for the whole block, so other threads see
        either none or all of its writes. A block opened inside another one
        joins it; only the outermost block commits or rolls back.
        """
        with self._lock:
            outermost = not self._in_transaction
            if outermost:
                self.begin_transaction()
            try:
                yield
                if outermost:
                    self.commit()
            except Exception:
                if outermost:
                    self.rollback()
                raise


class InMemoryStorage(StorageInterface):
    """Dict-backed store for tests; rollback restores a deep-copied snapshot"""

    def __init__(self):
        super().__init__()
        self._tables: Dict[str, Dict[str, Document]] = {}
        self._snapshot: Optional[Dict[str, Dict[str, Document]]] = None

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        # Normalize through JSON so memory holds what SQLite would hold
        document = json.loads(json.dumps(data, default=str))
        with self._lock:
            self._table(table)[record_id] = document

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            document = self._table(table).get(record_id)
            return copy.deepcopy(document) if document is not None else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            return [copy.deepcopy(doc) for doc in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Document) -> List[Document]:
        with self._lock:
            return [
                copy.deepcopy(doc) for doc in self._table(table).values()
                if _matches(doc, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}

    def begin_transaction(self) -> None:
        with self._lock:
            if not self._in_transaction:
                self._snapshot = copy.deepcopy(self._tables)
                self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            self._snapshot = None
            self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction and self._snapshot is not None:
                self._tables = self._snapshot
            self._snapshot = None
            self._in_transaction = False

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    One SQLite table per document table: ``id``, the JSON ``data`` and the
    first-write and last-write timestamps. Rows are read back in insertion
    order. Outside an ``atomic()`` block every write commits immediately.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        super().__init__()
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level='DEFERRED'
        )
        self._connection.row_factory = sqlite3.Row
        self._known_tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _prepare(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("
            "id TEXT PRIMARY KEY, data TEXT NOT NULL, "
            "created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
        )
        self._connection.execute(
            f"CREATE INDEX IF NOT EXISTS ix_{table}_created ON {table}(created_at)"
        )
        self._autocommit()
        self._known_tables.add(table)

    def _autocommit(self) -> None:
        if not self._in_transaction:
            self._connection.commit()

    def _execute(self, table: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Run ``sql`` against ``table``, creating the table on first use"""
        with self._lock:
            self._prepare(table)
            return self._connection.execute(sql.format(table=table), params)

    def _documents(self, table: str) -> List[Document]:
        with self._lock:
            rows = self._execute(table, "SELECT data FROM {table} ORDER BY created_at, rowid").fetchall()
        return [json.loads(row['data']) for row in rows]

    def save(self, table: str, record_id: str, data: Document) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._execute(
                table,
                "INSERT INTO {table} (id, data, created_at, updated_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at",
                (record_id, json.dumps(data, default=str), now, now),
            )
            self._autocommit()

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            row = self._execute(table, "SELECT data FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        return self._documents(table)

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._execute(table, "DELETE FROM {table} WHERE id = ?", (record_id,))
            self._autocommit()
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            row = self._execute(table, "SELECT 1 FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return row is not None

    def find(self, table: str, filters: Document) -> List[Document]:
        return [doc for doc in self._documents(table) if _matches(doc, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            return self._execute(table, "SELECT COUNT(*) FROM {table}").fetchone()[0]

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._execute(table, "DELETE FROM {table}")
            self._autocommit()

    def begin_transaction(self) -> None:
        # The DEFERRED connection opens the real transaction on the first write
        with self._lock:
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False
                # DDL issued inside the transaction was undone as well
                self._known_tables.clear()

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


def create_storage(backend: str = "sqlite", database_path: str = ":memory:") -> StorageInterface:
    """Build a storage backend by name ("memory" or "sqlite")"""
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(database_path)
    raise ValueError(f"Unknown storage backend: {backend}")
