import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime

from ..counter import Counter, IncrementOutcome, Participant, new_counter_id
from ..errors import NotFound
from .locks import KeyedLocks


class SQLiteCounterStore:
    """Durable counter store backed by SQLite.

    Each mutation loads the counter, applies the change and writes it back in
    a single BEGIN IMMEDIATE transaction while holding the counter's lock, so
    the goal check and the update commit together or not at all.
    """

    def __init__(self, db_path="/data/tasbih.db"):
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        # sqlite has a single writer, the connection itself is shared
        self._conn_lock = threading.Lock()
        self._locks = KeyedLocks()
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS counters (
                id TEXT PRIMARY KEY,
                goal INTEGER NOT NULL,
                created_by TEXT NOT NULL,
                current_count INTEGER NOT NULL DEFAULT 0,
                is_completed INTEGER NOT NULL DEFAULT 0,
                version INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS participants (
                counter_id TEXT NOT NULL REFERENCES counters(id),
                name TEXT NOT NULL,
                count INTEGER NOT NULL DEFAULT 0,
                position INTEGER NOT NULL,
                PRIMARY KEY (counter_id, name)
            );
        """)

    @contextmanager
    def _transaction(self):
        with self._conn_lock:
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
            else:
                self.conn.execute("COMMIT")

    def _load(self, conn, counter_id):
        row = conn.execute("SELECT * FROM counters WHERE id = ?", (counter_id,)).fetchone()
        if not row:
            raise NotFound(f"counter {counter_id} not found")

        counter = Counter(row["id"], row["goal"], row["created_by"])
        counter.current_count = row["current_count"]
        counter.is_completed = bool(row["is_completed"])
        counter.version = row["version"]
        counter.created_at = datetime.fromisoformat(row["created_at"])
        counter.updated_at = datetime.fromisoformat(row["updated_at"])

        rows = conn.execute(
            "SELECT name, count FROM participants WHERE counter_id = ? ORDER BY position",
            (counter_id,),
        ).fetchall()
        counter.participants = {r["name"]: Participant(r["name"], r["count"]) for r in rows}
        return counter

    def _save(self, conn, counter):
        conn.execute(
            """UPDATE counters
               SET current_count = ?, is_completed = ?, version = ?, updated_at = ?
               WHERE id = ?""",
            (
                counter.current_count,
                int(counter.is_completed),
                counter.version,
                counter.updated_at.isoformat(),
                counter.id,
            ),
        )
        for position, participant in enumerate(counter.participants.values()):
            conn.execute(
                """INSERT INTO participants (counter_id, name, count, position)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT (counter_id, name) DO UPDATE SET count = excluded.count""",
                (counter.id, participant.name, participant.count, position),
            )

    def create(self, goal, created_by):
        counter_id = new_counter_id()
        counter = Counter(counter_id, goal, created_by)
        with self._transaction() as conn:
            while conn.execute("SELECT 1 FROM counters WHERE id = ?", (counter.id,)).fetchone():
                counter.id = new_counter_id()
            conn.execute(
                """INSERT INTO counters
                   (id, goal, created_by, current_count, is_completed, version, created_at, updated_at)
                   VALUES (?, ?, ?, 0, 0, 0, ?, ?)""",
                (
                    counter.id,
                    counter.goal,
                    counter.created_by,
                    counter.created_at.isoformat(),
                    counter.updated_at.isoformat(),
                ),
            )
            self._save(conn, counter)
        self._locks.register(counter.id)
        return counter.id

    def _lock(self, counter_id):
        lock = self._locks.get(counter_id)
        if lock is None:
            # counters written before this process started are registered on first use
            with self._conn_lock:
                row = self.conn.execute("SELECT 1 FROM counters WHERE id = ?", (counter_id,)).fetchone()
            if not row:
                raise NotFound(f"counter {counter_id} not found")
            lock = self._locks.register(counter_id)
        return lock

    def get(self, counter_id):
        with self._conn_lock:
            return self._load(self.conn, counter_id)

    def add_participant(self, counter_id, name):
        with self._lock(counter_id), self._transaction() as conn:
            counter = self._load(conn, counter_id)
            if counter.add_participant(name):
                self._save(conn, counter)
            return counter

    def atomic_increment(self, counter_id, name):
        with self._lock(counter_id), self._transaction() as conn:
            counter = self._load(conn, counter_id)
            transitioned = counter.increment(name)
            self._save(conn, counter)
            return IncrementOutcome(counter, transitioned)

    def reset(self, counter_id, requesting_name):
        with self._lock(counter_id), self._transaction() as conn:
            counter = self._load(conn, counter_id)
            counter.reset(requesting_name)
            self._save(conn, counter)
            return counter

    def counter_ids(self):
        with self._conn_lock:
            rows = self.conn.execute("SELECT id FROM counters ORDER BY created_at").fetchall()
        return [r["id"] for r in rows]

    def close(self):
        with self._conn_lock:
            self.conn.close()
