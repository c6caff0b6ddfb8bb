"""
設定管理モジュール

関連クラス:
  - service.MailJournalService: この設定を使用する制御ループ
  - mailbox.MailboxPoller / mailer.Mailer: IMAP/SMTP接続設定を使用
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path("config") / "mail_journal.yaml"
CONFIG_PATH_ENV = "MAIL_JOURNAL_CONFIG"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LogConfig(BaseModel):
    """ログ設定"""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    file: str = "logs/mail_journal.log"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.upper() not in LOG_LEVELS:
            raise ValueError(f"log.level must be one of {', '.join(LOG_LEVELS)}")
        return value.upper()


class JournalConfig(BaseModel):
    """アプリケーション設定クラス（起動時に一度だけ読み込む）"""

    model_config = ConfigDict(frozen=True)

    # ジャーナルの書き手
    target_email: str = Field(..., description="Authorized author address")
    target_name: str = Field(..., description="Authorized author display name")

    # ストア
    db_filename: str = Field(..., description="SQLite database file")

    # ジャーナル用メールボックス
    journal_email_smtp: str = Field(..., description="SMTP host")
    journal_email_imap: str = Field(..., description="IMAP host")
    journal_email: str = Field(..., description="Journal mailbox address")
    journal_email_password: str = Field(..., description="Journal mailbox password")

    # リマインダー送信時刻（UTC）
    utc_reminder_hour: int = Field(..., ge=0, le=23, description="Reminder hour in UTC (0-23)")

    imap_port: int = 993
    imap_mailbox: str = "INBOX"
    smtp_port: int = 587
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    network_timeout_seconds: float = Field(default=30.0, gt=0)

    log: LogConfig = Field(default_factory=LogConfig)

    @property
    def journal_domain(self) -> str:
        """EHLOで名乗る自ドメイン"""
        return self.journal_email.rsplit("@", 1)[-1]

    @classmethod
    def from_yaml(cls, config_path: Path) -> "JournalConfig":
        """YAMLファイルから設定を読み込む

        Args:
            config_path: 設定ファイルパス

        Returns:
            JournalConfig: 設定インスタンス

        Raises:
            ConfigurationError: 読み込み・パース・検証に失敗した場合
        """
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data: Any = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e

        if not isinstance(yaml_data, dict):
            raise ConfigurationError(
                f"Failed to load config: {config_path} must contain a mapping of settings"
            )

        # 範囲外の時刻は他の検証エラーと区別して分かりやすく報告する
        hour = yaml_data.get("utc_reminder_hour")
        if isinstance(hour, int) and not isinstance(hour, bool) and not 0 <= hour <= 23:
            raise ConfigurationError(
                "Config error! utc_reminder_hour must be an integer between 0 and 23 (inclusive)."
            )

        try:
            return cls.model_validate(yaml_data)
        except ValidationError as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e


def default_config_data() -> Dict[str, Any]:
    """初回起動時に書き出すテンプレート（プレースホルダ値）"""
    return {
        "target_email": "john.smith@example.com",
        "target_name": "John Smith",
        "db_filename": "mail-journal.db",
        "journal_email_smtp": "smtp.example.com",
        "journal_email_imap": "imap.example.com",
        "journal_email": "mail-journal@example.com",
        "journal_email_password": "password",
        "utc_reminder_hour": 0,
        "imap_port": 993,
        "imap_mailbox": "INBOX",
        "smtp_port": 587,
        "poll_interval_seconds": 2.0,
        "network_timeout_seconds": 30.0,
        "log": {"level": "INFO", "file": "logs/mail_journal.log"},
    }


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """設定ファイルパスを決定（引数 > 環境変数 > 既定パス）"""
    if config_path:
        return Path(config_path)
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def write_default_config(config_path: Path) -> None:
    """デフォルト設定テンプレートを書き出す"""
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(default_config_data(), f, sort_keys=False, allow_unicode=True)
    except OSError as e:
        raise ConfigurationError(f"Failed to write config file {config_path}: {e}") from e


def _is_blank(config_path: Path) -> bool:
    """空（または空白のみ）の設定ファイルか"""
    try:
        return config_path.read_text(encoding="utf-8").strip() == ""
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}") from e


def load_or_create_config(config_path: Path) -> Optional[JournalConfig]:
    """設定を読み込む。ファイルが無いか空ならテンプレートを作成してNoneを返す

    Args:
        config_path: 設定ファイルパス

    Returns:
        JournalConfig、または新規作成した場合はNone

    Raises:
        ConfigurationError: 既存ファイルが不正な場合
    """
    if not config_path.exists() or _is_blank(config_path):
        write_default_config(config_path)
        return None
    return JournalConfig.from_yaml(config_path)
