"""Journal Entry Repository

日付ごとのジャーナル本文を保存するSQLiteリポジトリ。

Related Classes: JournalEntry (models.py)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .exceptions import StorageError
from .models import JournalEntry

logger = logging.getLogger(__name__)


class JournalRepository:
    """SQLiteベースのジャーナル管理。1日1エントリ。"""

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = Path(db_path)
        # 他の接続がロックを保持している場合の待ち時間（秒）
        self.timeout = timeout
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create database directory: {e}") from e
        self.ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """接続を開き、終了時に必ず閉じる。sqlite3.ErrorはStorageErrorに変換"""
        try:
            # isolation_level=None: トランザクションは明示的に制御する
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Database operation failed on {self.db_path}: {e}") from e
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """entriesテーブルを作成（冪等）"""
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS entries (
                    id    INTEGER PRIMARY KEY,
                    day   INTEGER NOT NULL,
                    month INTEGER NOT NULL,
                    year  INTEGER NOT NULL,
                    body  TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_entries_date ON entries(year, month, day)"
            )
        logger.debug(f"Database initialized: {self.db_path}")

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> JournalEntry:
        return JournalEntry(
            id=row["id"],
            day=row["day"],
            month=row["month"],
            year=row["year"],
            body=row["body"],
        )

    @staticmethod
    def _exists(conn: sqlite3.Connection, day: int, month: int, year: int) -> bool:
        row = conn.execute(
            "SELECT 1 FROM entries WHERE day = ? AND month = ? AND year = ? LIMIT 1",
            (day, month, year),
        ).fetchone()
        return row is not None

    @staticmethod
    def _insert(
        conn: sqlite3.Connection, day: int, month: int, year: int, body: str
    ) -> JournalEntry:
        cursor = conn.execute(
            "INSERT INTO entries (day, month, year, body) VALUES (?, ?, ?, ?)",
            (day, month, year, body),
        )
        return JournalEntry(id=cursor.lastrowid, day=day, month=month, year=year, body=body)

    def exists_for_date(self, day: int, month: int, year: int) -> bool:
        with self._connection() as conn:
            return self._exists(conn, day, month, year)

    def insert_entry(self, day: int, month: int, year: int, body: str) -> JournalEntry:
        """無条件にINSERTする。重複チェックは呼び出し側の責任"""
        with self._connection() as conn:
            return self._insert(conn, day, month, year, body)

    def insert_if_absent(
        self, day: int, month: int, year: int, body: str
    ) -> Optional[JournalEntry]:
        """存在チェックとINSERTを1トランザクションで行う

        Returns:
            追加したエントリ。既にその日のエントリがある場合はNone
        """
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                if self._exists(conn, day, month, year):
                    conn.execute("ROLLBACK")
                    return None
                entry = self._insert(conn, day, month, year, body)
                conn.execute("COMMIT")
                return entry
            except sqlite3.Error:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def fetch_for_date(self, day: int, month: int, year: int) -> list[JournalEntry]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, day, month, year, body FROM entries
                WHERE day = ? AND month = ? AND year = ?
                ORDER BY id
                """,
                (day, month, year),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def list_entries(self) -> list[JournalEntry]:
        """全エントリを日付順に取得（CLI表示用）"""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, day, month, year, body FROM entries ORDER BY year, month, day, id"
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]
