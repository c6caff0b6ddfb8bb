"""
受信メッセージのパーサー

生のRFC822バイト列からInboundEmailを組み立てる純粋関数。
ネットワークやストアにはアクセスしない。
"""

from __future__ import annotations

import email
import email.header
from datetime import timezone
from email.errors import HeaderParseError
from email.message import Message
from email.utils import parsedate_to_datetime
from typing import Optional

from .exceptions import MessageParseError
from .models import InboundEmail

REQUIRED_HEADERS = ("From", "Subject", "Date")


def _decode_header_value(value: str) -> str:
    parts = email.header.decode_header(value)
    out: list[str] = []
    for text, charset in parts:
        if isinstance(text, bytes):
            enc = charset or "utf-8"
            try:
                out.append(text.decode(enc, errors="replace"))
            except LookupError:
                out.append(text.decode("utf-8", errors="replace"))
        else:
            out.append(text)
    return "".join(out)


def _decode_part(part: Message) -> str:
    """サブパートの本文をcharsetに従ってデコード"""
    # multipart/alternative等の入れ子は先頭パートを辿る
    while part.is_multipart():
        subparts = part.get_payload()
        if not subparts:
            return ""
        part = subparts[0]

    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")


def parse_message(raw: bytes, message_id: Optional[str] = None) -> InboundEmail:
    """
    生メッセージをInboundEmailに変換

    Args:
        raw: RFC822形式のメッセージ
        message_id: 取得元のIMAP UID（ログ用）

    Returns:
        InboundEmail

    Raises:
        MessageParseError: 必須ヘッダ欠落、DateヘッダやSubjectヘッダが不正な場合
    """
    try:
        msg = email.message_from_bytes(raw)
    except (TypeError, ValueError) as e:
        raise MessageParseError(f"Failed to parse email: {e}") from e

    missing = [name for name in REQUIRED_HEADERS if msg.get(name) is None]
    if missing:
        raise MessageParseError(f"Email is missing required header(s): {', '.join(missing)}")

    date_value = str(msg["Date"])
    try:
        timestamp = parsedate_to_datetime(date_value)
        if timestamp is None:
            raise ValueError("unrecognized date format")
        # "-0000"（タイムゾーン不明）はnaiveで返るのでUTCとみなす
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        else:
            timestamp = timestamp.astimezone(timezone.utc)
    except (TypeError, ValueError, IndexError, OverflowError) as e:
        raise MessageParseError(f"Failed to parse email timestamp {date_value!r}: {e}") from e

    subject_value = str(msg["Subject"])
    try:
        subject = _decode_header_value(subject_value)
    except (HeaderParseError, UnicodeError) as e:
        raise MessageParseError(f"Failed to decode email subject {subject_value!r}: {e}") from e

    body = ""
    if msg.is_multipart():
        subparts = msg.get_payload()
        if subparts:
            body = _decode_part(subparts[0])

    return InboundEmail(
        sender=str(msg["From"]),
        subject=subject,
        timestamp=timestamp,
        body=body,
        message_id=message_id,
    )
