"""
メールボックスポーラー

IMAP over TLSで受信箱を検索し、認可された送信者からの未読返信を取得する。
検索と取得はそれぞれ独立した接続で行い、tickを跨いだセッションは持たない。

関連:
  - parser.parse_message: 取得した生メッセージの解析
  - service.MailJournalService: 毎tickこのクラスを呼び出す
"""

from __future__ import annotations

import imaplib
import logging
import re
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Iterator, Optional

from .config import JournalConfig
from .exceptions import MailboxError, MessageParseError
from .models import InboundEmail
from .parser import parse_message

logger = logging.getLogger(__name__)

# IMAPの日付書式はロケールに依存しない英語の月名を使う
_IMAP_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_UID_RE = re.compile(rb"UID (\d+)")


def imap_date(day: date) -> str:
    """dateをIMAP SEARCHの日付書式（例: 05-Mar-2024）に変換"""
    return f"{day.day:02d}-{_IMAP_MONTHS[day.month - 1]}-{day.year}"


class MailboxPoller:
    """新着ジャーナル返信の検索と取得"""

    def __init__(
        self,
        config: JournalConfig,
        imap_factory: Optional[Callable[..., imaplib.IMAP4]] = None,
    ):
        """
        初期化

        Args:
            config: アプリケーション設定
            imap_factory: IMAP接続ファクトリ（テスト用にDI可能）
        """
        self.config = config
        self.imap_factory = imap_factory or imaplib.IMAP4_SSL

    @contextmanager
    def _session(self) -> Iterator[imaplib.IMAP4]:
        """接続→ログイン→受信箱選択。終了時に必ずログアウト"""
        host = self.config.journal_email_imap
        try:
            conn = self.imap_factory(
                host, self.config.imap_port, timeout=self.config.network_timeout_seconds
            )
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"Failed to connect to IMAP server {host}: {e}") from e

        try:
            conn.login(self.config.journal_email, self.config.journal_email_password)
            typ, data = conn.select(self.config.imap_mailbox)
            if typ != "OK":
                raise MailboxError(f"Failed to select mailbox {self.config.imap_mailbox}: {data}")
            yield conn
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxError(f"IMAP operation failed on {host}: {e}") from e
        finally:
            try:
                conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug(f"IMAP logout failed: {e}")

    def search_unseen_since_today(
        self, authorized_sender: str, now: Optional[datetime] = None
    ) -> set[str]:
        """
        当日（UTC）以降に届いた、認可送信者からの未読メッセージを検索

        Args:
            authorized_sender: 認可された送信者アドレス
            now: 現在時刻（省略時はUTC現在時刻）

        Returns:
            該当メッセージのUID集合（通常は空集合）

        Raises:
            MailboxError: 接続・認証・検索に失敗した場合
        """
        now = now or datetime.now(timezone.utc)
        since = imap_date(now.astimezone(timezone.utc).date())

        with self._session() as conn:
            typ, data = conn.uid(
                "SEARCH", "UNSEEN", "FROM", f'"{authorized_sender}"', "SINCE", since
            )
            if typ != "OK":
                raise MailboxError(f"IMAP search failed: {data}")

        uids: set[str] = set()
        for chunk in data:
            if chunk:
                uids.update(uid.decode() for uid in chunk.split())
        return uids

    def fetch(self, message_ids: Iterable[str]) -> list[InboundEmail]:
        """
        指定UIDのメッセージを取得してInboundEmailに変換

        解析できないメッセージは警告を出してスキップし、残りの処理を続ける。

        Args:
            message_ids: 取得するUID

        Returns:
            InboundEmailのリスト

        Raises:
            MailboxError: 接続・認証・取得に失敗した場合
        """
        ids = sorted({str(m) for m in message_ids}, key=lambda m: int(m) if m.isdigit() else 0)
        if not ids:
            return []

        id_set = ",".join(ids)
        logger.info(f"Fetching emails from sequence: {id_set}")

        with self._session() as conn:
            typ, data = conn.uid("FETCH", id_set, "(RFC822)")
            if typ != "OK":
                raise MailboxError(f"IMAP fetch failed: {data}")

        emails: list[InboundEmail] = []
        for item in data:
            # 応答は (エンベロープ行, 本文) のタプルと区切りの b")" が交互に並ぶ
            if not isinstance(item, tuple) or len(item) < 2:
                continue
            envelope, raw = item[0], item[1]
            match = _UID_RE.search(envelope) if isinstance(envelope, bytes) else None
            uid = match.group(1).decode() if match else None
            try:
                emails.append(parse_message(raw, message_id=uid))
            except MessageParseError as e:
                logger.warning(f"Skipping malformed email (uid={uid}): {e}")
        return emails
