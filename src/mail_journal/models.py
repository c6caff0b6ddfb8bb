"""Mail Journal Models

ジャーナルエントリと受信メールのデータモデル定義。

Related Classes: JournalRepository (repository.py), parse_message (parser.py)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass(slots=True)
class JournalEntry:
    """永続化済みジャーナルエントリの表現

    1日（UTC暦日）につき最大1件。日付はday/month/yearの整数で保持する。
    """

    id: int
    day: int
    month: int
    year: int
    body: str

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


@dataclass(slots=True)
class InboundEmail:
    """受信したジャーナル返信メール（永続化しない）"""

    sender: str  # Fromヘッダの生の値（"Name <addr>" 形式を含む）
    subject: str  # ログ出力のみに使用
    timestamp: datetime  # Dateヘッダ由来、UTCのaware datetime
    body: str  # 最初のMIMEサブパート本文。サブパートが無い場合は空文字
    message_id: Optional[str] = None  # 取得時のIMAP UID

    @property
    def entry_date(self) -> date:
        return self.timestamp.date()


class IngestOutcome(str, Enum):
    """受信メール1件の取り込み結果"""

    STORED = "stored"
    DUPLICATE = "duplicate"
    UNAUTHORIZED = "unauthorized"
