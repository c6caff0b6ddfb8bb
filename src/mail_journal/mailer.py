"""
メール送信モジュール

リマインダーとエラー通知をSMTP（STARTTLS + AUTH PLAIN）で送信する。
1回の送信ごとにセッションを開き、送信後に明示的にQUITする。
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.errors import MessageError
from email.headerregistry import Address
from email.message import EmailMessage
from typing import Callable, Iterable, Optional

from .config import JournalConfig
from .exceptions import MailerError
from .models import JournalEntry

logger = logging.getLogger(__name__)

SENDER_NAME = "Mail Journal"
REMINDER_SUBJECT = "Daily Journal Entry"
ERROR_SUBJECT = "Error"
REMINDER_PROMPT = "How was your day today? Reply to this email with your daily journal entry."
LOOKBACK_HEADER = "\n\nOn this day, one year ago:\n"


def render_reminder_body(entries: Iterable[JournalEntry]) -> str:
    """リマインダー本文を生成。1年前のエントリがあれば引用して追記する"""
    body = REMINDER_PROMPT
    quoted = [f'"{entry.body.strip()}"' for entry in entries]
    if quoted:
        body += LOOKBACK_HEADER + "\n".join(quoted)
    return body


class Mailer:
    """リマインダー・エラー通知の送信"""

    def __init__(
        self,
        config: JournalConfig,
        smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None,
    ):
        """
        初期化

        Args:
            config: アプリケーション設定
            smtp_factory: SMTP接続ファクトリ（テスト用にDI可能）
        """
        self.config = config
        self.smtp_factory = smtp_factory or smtplib.SMTP

    def _build_message(self, subject: str, text: str) -> EmailMessage:
        msg = EmailMessage()
        try:
            msg["From"] = Address(SENDER_NAME, addr_spec=self.config.journal_email)
            msg["To"] = Address(self.config.target_name, addr_spec=self.config.target_email)
        except (ValueError, MessageError) as e:
            raise MailerError(f"Invalid email address in config: {e}") from e
        msg["Subject"] = subject
        msg.set_content(text)
        return msg

    def _send(self, msg: EmailMessage) -> None:
        """1通を送信。トランスポート障害はMailerErrorに変換"""
        host = self.config.journal_email_smtp
        try:
            smtp = self.smtp_factory(
                host,
                self.config.smtp_port,
                local_hostname=self.config.journal_domain,
                timeout=self.config.network_timeout_seconds,
            )
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"Failed to connect to SMTP server {host}: {e}") from e

        try:
            smtp.ehlo()
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
            # 認証方式はPLAINに固定する
            smtp.user = self.config.journal_email
            smtp.password = self.config.journal_email_password
            smtp.auth("PLAIN", smtp.auth_plain)
            smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"Failed to send email via {host}: {e}") from e
        finally:
            try:
                smtp.quit()
            except (smtplib.SMTPException, OSError) as e:
                logger.debug(f"SMTP quit failed: {e}")

    def send_reminder(self, entries_one_year_ago: Iterable[JournalEntry]) -> None:
        """日次リマインダーを送信"""
        text = render_reminder_body(entries_one_year_ago)
        self._send(self._build_message(REMINDER_SUBJECT, text))

    def send_error(self, message: str) -> None:
        """エラー通知を送信（同日の重複エントリ拒否に使用）"""
        self._send(self._build_message(ERROR_SUBJECT, message))
