"""JournalConfigのテスト"""

import pytest
import yaml
from pydantic import ValidationError

from src.mail_journal.config import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    JournalConfig,
    default_config_data,
    load_or_create_config,
    resolve_config_path,
)
from src.mail_journal.exceptions import ConfigurationError


def test_missing_config_creates_default_template(tmp_path):
    """設定ファイルが無い場合はテンプレートを作成してNoneを返す"""
    path = tmp_path / "config" / "mail_journal.yaml"

    assert load_or_create_config(path) is None
    assert path.exists()

    with open(path, "r", encoding="utf-8") as f:
        written = yaml.safe_load(f)
    assert written == default_config_data()
    for key in (
        "target_email",
        "target_name",
        "db_filename",
        "journal_email_smtp",
        "journal_email_imap",
        "journal_email",
        "journal_email_password",
        "utc_reminder_hour",
    ):
        assert key in written


@pytest.mark.parametrize("content", ["", "\n  \n"])
def test_empty_config_is_treated_as_first_run(tmp_path, content):
    """既存でも空の設定ファイルは初回起動と同じくテンプレートで上書きする"""
    path = tmp_path / "mail_journal.yaml"
    path.write_text(content, encoding="utf-8")

    assert load_or_create_config(path) is None
    with open(path, "r", encoding="utf-8") as f:
        assert yaml.safe_load(f) == default_config_data()


def test_default_template_is_loadable(tmp_path):
    """作成したテンプレートはそのまま読み込める"""
    path = tmp_path / "mail_journal.yaml"
    load_or_create_config(path)

    config = load_or_create_config(path)
    assert isinstance(config, JournalConfig)
    assert config.target_email == "john.smith@example.com"
    assert config.target_name == "John Smith"
    assert config.db_filename == "mail-journal.db"
    assert config.utc_reminder_hour == 0
    assert config.imap_port == 993
    assert config.smtp_port == 587
    assert config.network_timeout_seconds == 30.0


def test_load_valid_config(write_config):
    path = write_config(utc_reminder_hour=21)
    config = JournalConfig.from_yaml(path)

    assert config.utc_reminder_hour == 21
    assert config.journal_email == "mail-journal@example.com"
    assert config.journal_domain == "example.com"
    assert config.log.level == "DEBUG"


def test_malformed_yaml_raises(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("target_email: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        JournalConfig.from_yaml(path)


def test_non_mapping_yaml_raises(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        JournalConfig.from_yaml(path)


def test_missing_required_field_raises(tmp_path, config_data):
    del config_data["journal_email_password"]
    path = tmp_path / "partial.yaml"
    path.write_text(yaml.safe_dump(config_data), encoding="utf-8")

    with pytest.raises(ConfigurationError, match="journal_email_password"):
        JournalConfig.from_yaml(path)


@pytest.mark.parametrize("hour", [-1, 24, 100])
def test_reminder_hour_out_of_range(write_config, hour):
    """reminder_hourが0-23の範囲外なら起動時エラー"""
    path = write_config(utc_reminder_hour=hour)

    with pytest.raises(ConfigurationError, match="between 0 and 23"):
        JournalConfig.from_yaml(path)


def test_reminder_hour_out_of_range_as_string(write_config):
    path = write_config(utc_reminder_hour="25")

    with pytest.raises(ConfigurationError):
        JournalConfig.from_yaml(path)


@pytest.mark.parametrize("hour", [0, 23])
def test_reminder_hour_bounds_accepted(write_config, hour):
    path = write_config(utc_reminder_hour=hour)
    assert JournalConfig.from_yaml(path).utc_reminder_hour == hour


def test_config_is_immutable(config):
    with pytest.raises(ValidationError):
        config.utc_reminder_hour = 3


def test_resolve_config_path(monkeypatch, tmp_path):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    assert resolve_config_path() == DEFAULT_CONFIG_PATH

    monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "env.yaml"))
    assert resolve_config_path() == tmp_path / "env.yaml"

    # 引数が最優先
    assert resolve_config_path(tmp_path / "arg.yaml") == tmp_path / "arg.yaml"


def test_unknown_log_level_raises(write_config):
    path = write_config(log={"level": "verbose", "file": "logs/mail_journal.log"})

    with pytest.raises(ConfigurationError, match="log.level"):
        JournalConfig.from_yaml(path)


def test_log_level_is_normalized(write_config):
    path = write_config(log={"level": "warning", "file": ""})
    assert JournalConfig.from_yaml(path).log.level == "WARNING"


def test_network_timeout_defaults_when_omitted(tmp_path, config_data):
    del config_data["network_timeout_seconds"]
    path = tmp_path / "mail_journal.yaml"
    path.write_text(yaml.safe_dump(config_data), encoding="utf-8")

    assert JournalConfig.from_yaml(path).network_timeout_seconds == 30.0


@pytest.mark.parametrize("timeout", [0, -5])
def test_network_timeout_must_be_positive(write_config, timeout):
    path = write_config(network_timeout_seconds=timeout)

    with pytest.raises(ConfigurationError, match="network_timeout_seconds"):
        JournalConfig.from_yaml(path)
