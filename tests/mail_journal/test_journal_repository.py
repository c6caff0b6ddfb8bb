"""JournalRepositoryのテスト"""

import sqlite3

import pytest

from src.mail_journal.exceptions import StorageError
from src.mail_journal.repository import JournalRepository


@pytest.fixture
def repo(tmp_path) -> JournalRepository:
    return JournalRepository(tmp_path / "journal.db")


def test_ensure_schema_is_idempotent(tmp_path):
    db_path = tmp_path / "nested" / "journal.db"
    repo = JournalRepository(db_path)
    repo.ensure_schema()
    repo.ensure_schema()

    # 同じファイルを開き直しても問題ない
    again = JournalRepository(db_path)
    assert db_path.exists()
    assert again.list_entries() == []


def test_round_trip_keeps_body_verbatim(repo):
    """保存時には本文をトリムしない"""
    body = "  Walked the dog.\nWrote some code.  \n"
    created = repo.insert_entry(5, 3, 2024, body)

    entries = repo.fetch_for_date(5, 3, 2024)
    assert len(entries) == 1
    assert entries[0].id == created.id
    assert entries[0].body == body
    assert entries[0].date.isoformat() == "2024-03-05"


def test_exists_for_date_matches_all_components(repo):
    repo.insert_entry(5, 3, 2024, "entry")

    assert repo.exists_for_date(5, 3, 2024) is True
    assert repo.exists_for_date(6, 3, 2024) is False
    assert repo.exists_for_date(5, 4, 2024) is False
    assert repo.exists_for_date(5, 3, 2023) is False


def test_fetch_for_date_empty(repo):
    assert repo.fetch_for_date(1, 1, 2020) == []


def test_insert_if_absent_keeps_first_entry(repo):
    first = repo.insert_if_absent(5, 3, 2024, "first")
    second = repo.insert_if_absent(5, 3, 2024, "second")

    assert first is not None
    assert second is None
    entries = repo.fetch_for_date(5, 3, 2024)
    assert [e.body for e in entries] == ["first"]


def test_insert_if_absent_other_day(repo):
    repo.insert_if_absent(5, 3, 2024, "first")
    assert repo.insert_if_absent(6, 3, 2024, "next day") is not None
    assert len(repo.list_entries()) == 2


def test_list_entries_ordered_by_date(repo):
    repo.insert_entry(1, 2, 2024, "feb")
    repo.insert_entry(31, 12, 2023, "dec")
    repo.insert_entry(15, 1, 2024, "jan")

    assert [e.body for e in repo.list_entries()] == ["dec", "jan", "feb"]


def test_unreachable_store_raises_storage_error(tmp_path):
    """ディレクトリをDBファイルとして開こうとすると失敗する"""
    with pytest.raises(StorageError):
        JournalRepository(tmp_path)


def test_two_repositories_on_same_file_keep_one_entry(tmp_path):
    """別インスタンスから先に書かれた日には追加しない"""
    db_path = tmp_path / "journal.db"
    repo_a = JournalRepository(db_path)
    repo_b = JournalRepository(db_path)

    assert repo_b.exists_for_date(5, 3, 2024) is False
    repo_a.insert_if_absent(5, 3, 2024, "from a")

    assert repo_b.insert_if_absent(5, 3, 2024, "from b") is None
    assert [e.body for e in repo_b.fetch_for_date(5, 3, 2024)] == ["from a"]


def test_insert_if_absent_with_concurrent_writer(tmp_path):
    """他の接続が書き込みロック中ならStorageError、解放後は重複を検出する"""
    db_path = tmp_path / "journal.db"
    repo = JournalRepository(db_path, timeout=0.1)

    other = sqlite3.connect(db_path, isolation_level=None)
    try:
        other.execute("BEGIN IMMEDIATE")
        other.execute(
            "INSERT INTO entries (day, month, year, body) VALUES (?, ?, ?, ?)",
            (5, 3, 2024, "from other"),
        )

        with pytest.raises(StorageError):
            repo.insert_if_absent(5, 3, 2024, "from repo")

        other.execute("COMMIT")
    finally:
        other.close()

    assert repo.insert_if_absent(5, 3, 2024, "from repo") is None
    assert [e.body for e in repo.fetch_for_date(5, 3, 2024)] == ["from other"]
