"""Mail Journalテスト用の共通フィクスチャ"""

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from src.mail_journal.config import JournalConfig, default_config_data


@pytest.fixture
def config_data(tmp_path) -> dict[str, Any]:
    """テスト用の設定辞書（DBはtmp_path配下）"""
    data = default_config_data()
    data["db_filename"] = str(tmp_path / "journal.db")
    data["utc_reminder_hour"] = 9
    data["log"] = {"level": "DEBUG", "file": str(tmp_path / "logs" / "mail_journal.log")}
    return data


@pytest.fixture
def config(config_data) -> JournalConfig:
    return JournalConfig.model_validate(config_data)


@pytest.fixture
def write_config(tmp_path, config_data) -> Callable[..., Path]:
    """設定YAMLを書き出すヘルパー（キーを上書き可能）"""

    def _write(**overrides: Any) -> Path:
        path = tmp_path / "config" / "mail_journal.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {**config_data, **overrides}
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        return path

    return _write
