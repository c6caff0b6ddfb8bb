"""
ロギング設定モジュール

コンソール（stderr）とログファイルの両方へ出力する。
log_fileが空文字の場合はコンソールのみ。
"""

import logging
from pathlib import Path
from typing import List

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(log_level: str = "INFO", log_file: str = "logs/mail_journal.log") -> None:
    """
    ロガーのセットアップ

    Args:
        log_level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルのパス
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(
        level=logging.getLevelName(log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
    )
