"""
Mail Journal制御ループ

毎tick、新着メールの取り込み → ストア更新 → リマインダー送信判定を行う。

エラーの扱い:
  - MailboxError / MailerError: ログに残して当該ステップをスキップし、ループは継続
  - MessageParseError: MailboxPoller内で該当メッセージのみスキップ
  - StorageError: 致命的。呼び出し元（CLI）まで伝播させる

関連クラス:
  - mailbox.MailboxPoller / mailer.Mailer / repository.JournalRepository
  - scheduler.ReminderSchedule: このクラスが唯一所有するスケジュール状態
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import JournalConfig
from .exceptions import MailboxError, MailerError
from .mailbox import MailboxPoller
from .mailer import Mailer
from .models import InboundEmail, IngestOutcome
from .repository import JournalRepository
from .scheduler import ReminderSchedule

logger = logging.getLogger(__name__)

DUPLICATE_ENTRY_MESSAGE = "You already submitted a journal entry for today!"
LOOKBACK_DAYS = 365


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MailJournalService:
    """メール駆動ジャーナルの制御ループ"""

    def __init__(
        self,
        config: JournalConfig,
        repository: JournalRepository,
        poller: Optional[MailboxPoller] = None,
        mailer: Optional[Mailer] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        初期化

        Args:
            config: アプリケーション設定
            repository: ジャーナルストア
            poller: メールボックスポーラー（テスト用にDI可能）
            mailer: メール送信器（テスト用にDI可能）
            clock: 現在時刻（UTC）を返す関数
            sleep: tick間の待機関数
        """
        self.config = config
        self.repository = repository
        self.poller = poller or MailboxPoller(config)
        self.mailer = mailer or Mailer(config)
        self.clock = clock
        self.sleep = sleep
        self._running = False

        self.schedule = ReminderSchedule.starting_at(self.clock(), config.utc_reminder_hour)
        if self.schedule.fired:
            logger.info(
                "Journal reminder for today has been sent. "
                f"Next reminder scheduled for {self.schedule.next_fire}"
            )
        else:
            logger.info(f"Journal reminder for today is scheduled at {self.schedule.next_fire}")

    def is_authorized(self, sender: str) -> bool:
        """送信者が認可アドレスそのもの、または "Name <address>" 形式か"""
        target = self.config.target_email
        return sender == target or f"<{target}>" in sender

    def ingest(self, inbound: InboundEmail) -> IngestOutcome:
        """受信メール1件をストアに反映する（その日の最初のエントリのみ採用）"""
        if not self.is_authorized(inbound.sender):
            logger.info(f"Ignoring email from {inbound.sender}")
            return IngestOutcome.UNAUTHORIZED

        day = inbound.entry_date
        entry = self.repository.insert_if_absent(day.day, day.month, day.year, inbound.body)
        if entry is None:
            logger.info(
                f"Journal entry for {day.isoformat()} was already submitted, ignoring new entry."
            )
            try:
                self.mailer.send_error(DUPLICATE_ENTRY_MESSAGE)
            except MailerError as e:
                logger.error(f"Failed to send duplicate entry notice: {e}", exc_info=True)
            return IngestOutcome.DUPLICATE

        logger.info(
            f"Stored journal entry for {day.isoformat()} "
            f"(id={entry.id}, subject={inbound.subject!r})"
        )
        return IngestOutcome.STORED

    def _process_mail(self, now: datetime) -> None:
        try:
            uids = self.poller.search_unseen_since_today(self.config.target_email, now=now)
            if not uids:
                return
            logger.info(f"{len(uids)} new email(s)")
            emails = self.poller.fetch(uids)
        except MailboxError as e:
            logger.error(f"Mailbox check failed, skipping this tick: {e}", exc_info=True)
            return

        for inbound in emails:
            self.ingest(inbound)

    def _process_reminder(self, now: datetime) -> None:
        if not self.schedule.is_due(now):
            return

        # 送信失敗時に毎tick再送しないよう、先にスケジュールを進める
        self.schedule.mark_fired(now)

        lookback = now.date() - timedelta(days=LOOKBACK_DAYS)
        entries = self.repository.fetch_for_date(lookback.day, lookback.month, lookback.year)
        try:
            self.mailer.send_reminder(entries)
        except MailerError as e:
            logger.error(f"Failed to send journal reminder: {e}", exc_info=True)
            return

        logger.info(
            f"Journal reminder for {now} sent. "
            f"Next reminder scheduled for {self.schedule.next_fire}"
        )

    def tick(self, now: Optional[datetime] = None) -> None:
        """制御ループ1回分の処理"""
        now = (now or self.clock()).astimezone(timezone.utc)
        self._process_mail(now)
        self._process_reminder(now)

    def run_forever(self, max_ticks: Optional[int] = None) -> None:
        """
        メインループ

        Args:
            max_ticks: 実行するtick数の上限（テスト用、Noneで無限）
        """
        self._running = True
        logger.info("Mail Journal running.")

        ticks = 0
        while self._running:
            self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.sleep(self.config.poll_interval_seconds)

        self._running = False
        logger.info("Mail Journal stopped.")

    def stop(self) -> None:
        """ループを停止（シグナルハンドラから呼ばれる）"""
        self._running = False
