"""SQLite-backed task and record store."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from datetime import datetime, timedelta
from pathlib import Path

from taskpilot.commands.errors import StoreError
from taskpilot.commands.types import StatusType
from taskpilot.store.models import (
    CLOSED_STATUSES,
    OPEN_STATUSES,
    Item,
    ItemKind,
    ItemQuery,
)

_LOGGER = logging.getLogger(__name__)
_COLUMNS = (
    "id, kind, content, category, status, target_time, schedule, comment, "
    "created_at, updated_at"
)


class TaskStore:
    """Durable store for tasks, records and the last listing order."""

    def __init__(
        self,
        sqlite_path: Path,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Create store and ensure required schema exists.

        Args:
            sqlite_path: SQLite file path for items.
            clock: Local-time clock used for timestamps.
        """
        self._sqlite_path = sqlite_path
        self._clock = clock
        self._sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    def now(self) -> datetime:
        """Return the store's reference time."""
        return self._clock().replace(microsecond=0)

    def add_item(
        self,
        kind: ItemKind,
        content: str,
        *,
        category: str | None = None,
        target_time: datetime | None = None,
        schedule: str | None = None,
    ) -> Item:
        """Insert one task or record.

        Args:
            kind: Item kind.
            content: Item text.
            category: Optional category; ``default`` when unset.
            target_time: Deadline for tasks, event time for records.
            schedule: Recurrence keyword for recurring tasks.

        Returns:
            Persisted item.
        """
        if not content.strip():
            raise StoreError("content must not be empty")
        stamp = format_time(self.now())
        with self._transaction() as conn:
            cursor = conn.execute(
                (
                    "INSERT INTO items "
                    "(kind, content, category, status, target_time, schedule, "
                    "created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
                ),
                (
                    kind.value,
                    content.strip(),
                    category or "default",
                    StatusType.ONGOING.value,
                    format_time(target_time) if target_time else None,
                    schedule,
                    stamp,
                    stamp,
                ),
            )
            item_id = int(cursor.lastrowid or 0)
        return self.require(item_id)

    def get(self, item_id: int) -> Item | None:
        """Read one item by id."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM items WHERE id = ?", (item_id,)
            ).fetchone()
        return _row_to_item(row) if row else None

    def require(self, item_id: int) -> Item:
        """Read one item by id, failing when absent."""
        item = self.get(item_id)
        if item is None:
            raise StoreError(f"item {item_id} does not exist")
        return item

    def update_item(
        self,
        item_id: int,
        *,
        content: str | None = None,
        add_content: str | None = None,
        category: str | None = None,
        target_time: datetime | None = None,
        schedule: str | None = None,
        status: StatusType | None = None,
        comment: str | None = None,
    ) -> Item:
        """Apply a partial update to one item.

        Returns:
            Updated item.

        Raises:
            StoreError: If the item is missing or storage fails.
        """
        current = self.require(item_id)
        new_content = content.strip() if content else current.content
        if add_content:
            new_content = f"{new_content} {add_content.strip()}"
        values = {
            "content": new_content,
            "category": category or current.category,
            "target_time": format_time(target_time) if target_time else current.target_time,
            "schedule": schedule or current.schedule,
            "status": (status or current.status).value,
            "comment": comment if comment is not None else current.comment,
            "updated_at": format_time(self.now()),
        }
        assignments = ", ".join(f"{key} = ?" for key in values)
        with self._transaction() as conn:
            conn.execute(
                f"UPDATE items SET {assignments} WHERE id = ?",
                (*values.values(), item_id),
            )
        return self.require(item_id)

    def delete_item(self, item_id: int) -> Item:
        """Delete one item and return its last state."""
        item = self.require(item_id)
        with self._transaction() as conn:
            conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            conn.execute("DELETE FROM listing_cache WHERE item_id = ?", (item_id,))
        return item

    def list_items(self, query: ItemQuery) -> tuple[Item, ...]:
        """List items matching filters and remember their order for indexing.

        Args:
            query: Listing filters.

        Returns:
            Matching items, tasks ordered by deadline and records by time.
        """
        clauses = ["kind = ?"]
        params: list[object] = [query.kind.value]
        statuses = _status_filter(query.kind, query.status)
        if statuses:
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(sorted(status.value for status in statuses))
        if query.category:
            clauses.append("category = ?")
            params.append(query.category)
        if query.search:
            clauses.append("content LIKE ?")
            params.append(f"%{query.search}%")
        if query.days is not None:
            clauses.append("created_at >= ?")
            params.append(format_time(self.now() - timedelta(days=query.days)))
        if query.no_deadline:
            clauses.append("target_time IS NULL")
        if query.target_min:
            clauses.append("target_time > ?")
            params.append(query.target_min)
        if query.target_max:
            clauses.append("target_time <= ?")
            params.append(query.target_max)
        order = (
            "ORDER BY target_time IS NULL, target_time, id"
            if query.kind == ItemKind.TASK
            else "ORDER BY COALESCE(target_time, created_at), id"
        )
        sql = f"SELECT {_COLUMNS} FROM items WHERE {' AND '.join(clauses)} {order} LIMIT ?"
        params.append(query.limit)
        with self._transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        items = tuple(_row_to_item(row) for row in rows)
        self._remember_listing(items)
        return items

    def resolve_index(self, index: int) -> int:
        """Map a 1-based index from the last listing to an item id.

        Raises:
            StoreError: If no listing is cached or the index is out of range.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT item_id FROM listing_cache WHERE position = ?", (index,)
            ).fetchone()
            count = conn.execute("SELECT COUNT(*) FROM listing_cache").fetchone()[0]
        if row is None:
            if count == 0:
                raise StoreError("no cached listing; run 'list task' first")
            raise StoreError(f"index {index} is out of range (last listing has {count})")
        return int(row[0])

    def find_open_by_content(self, text: str) -> tuple[Item, ...]:
        """Find open tasks whose content contains ``text`` (case-insensitive)."""
        statuses = sorted(status.value for status in OPEN_STATUSES)
        with self._transaction() as conn:
            rows = conn.execute(
                (
                    f"SELECT {_COLUMNS} FROM items "
                    "WHERE kind = ? AND LOWER(content) LIKE ? "
                    f"AND status IN ({', '.join('?' for _ in statuses)}) ORDER BY id"
                ),
                (ItemKind.TASK.value, f"%{text.lower()}%", *statuses),
            ).fetchall()
        return tuple(_row_to_item(row) for row in rows)

    def categories(self) -> tuple[str, ...]:
        """Return distinct categories ordered by use count."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT category FROM items GROUP BY category "
                "ORDER BY COUNT(*) DESC, category"
            ).fetchall()
        return tuple(str(row[0]) for row in rows)

    def _remember_listing(self, items: tuple[Item, ...]) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM listing_cache")
            conn.executemany(
                "INSERT INTO listing_cache (position, item_id) VALUES (?, ?)",
                [(position, item.id) for position, item in enumerate(items, start=1)],
            )

    def _initialize(self) -> None:
        """Create required schema if missing."""
        with self._transaction() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS items ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT,"
                "kind TEXT NOT NULL,"
                "content TEXT NOT NULL,"
                "category TEXT NOT NULL DEFAULT 'default',"
                "status TEXT NOT NULL,"
                "target_time TEXT,"
                "schedule TEXT,"
                "comment TEXT,"
                "created_at TEXT NOT NULL,"
                "updated_at TEXT NOT NULL"
                ")"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_items_kind_target "
                "ON items (kind, target_time)"
            )
            conn.execute(
                "CREATE TABLE IF NOT EXISTS listing_cache ("
                "position INTEGER PRIMARY KEY,"
                "item_id INTEGER NOT NULL"
                ")"
            )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection and commit, mapping sqlite failures to StoreError."""
        try:
            with closing(self._connect()) as conn:
                yield conn
                conn.commit()
        except sqlite3.Error as exc:
            _LOGGER.debug("task store failure: %s", exc)
            raise StoreError(f"task store failure: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        """Create sqlite connection with WAL journaling.

        Returns:
            SQLite connection.
        """
        conn = sqlite3.connect(self._sqlite_path)
        conn.execute("PRAGMA journal_mode=WAL;")
        return conn


def _status_filter(kind: ItemKind, status: StatusType | None) -> frozenset[StatusType]:
    if status is None:
        return OPEN_STATUSES if kind == ItemKind.TASK else frozenset()
    if status == StatusType.ALL:
        return frozenset()
    if status == StatusType.OPEN:
        return OPEN_STATUSES
    if status == StatusType.CLOSED:
        return CLOSED_STATUSES
    return frozenset({status})


def format_time(moment: datetime) -> str:
    """Return the stored string form of a local datetime."""
    return moment.replace(microsecond=0).isoformat(timespec="seconds")


def _row_to_item(row: tuple[object, ...]) -> Item:
    return Item(
        id=int(row[0]),  # type: ignore[arg-type]
        kind=ItemKind(str(row[1])),
        content=str(row[2]),
        category=str(row[3]),
        status=StatusType(str(row[4])),
        target_time=str(row[5]) if row[5] is not None else None,
        schedule=str(row[6]) if row[6] is not None else None,
        comment=str(row[7]) if row[7] is not None else None,
        created_at=str(row[8]),
        updated_at=str(row[9]),
    )
