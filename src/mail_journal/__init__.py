"""
Mail Journal

メールだけで完結する日記アシスタント。
毎日決まった時刻（UTC）にリマインダーを送り、認可された送信者からの返信を
その日のジャーナルエントリとしてSQLiteに保存する。
"""

from src.mail_journal.config import JournalConfig, load_or_create_config
from src.mail_journal.exceptions import (
    ConfigurationError,
    MailboxError,
    MailerError,
    MailJournalError,
    MessageParseError,
    StorageError,
)
from src.mail_journal.models import InboundEmail, IngestOutcome, JournalEntry
from src.mail_journal.repository import JournalRepository
from src.mail_journal.service import MailJournalService

__all__ = [
    "JournalConfig",
    "load_or_create_config",
    "MailJournalError",
    "ConfigurationError",
    "StorageError",
    "MailboxError",
    "MessageParseError",
    "MailerError",
    "InboundEmail",
    "IngestOutcome",
    "JournalEntry",
    "JournalRepository",
    "MailJournalService",
]
