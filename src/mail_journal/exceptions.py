"""Mail Journalのカスタム例外定義

制御ループはここで定義した例外の種類によって
「プロセス終了」「当該tickのスキップ」「当該メッセージのスキップ」を判定する。
"""


class MailJournalError(Exception):
    """Mail Journal基底例外"""

    pass


class ConfigurationError(MailJournalError):
    """設定ファイルの読み込み・検証エラー（起動時に致命的）"""

    pass


class StorageError(MailJournalError):
    """SQLiteストアへのアクセスエラー（致命的）"""

    pass


class MailboxError(MailJournalError):
    """IMAP接続・認証・検索・取得のエラー（tickをスキップ）"""

    pass


class MessageParseError(MailJournalError):
    """個別メッセージの解析エラー（該当メッセージのみスキップ）"""

    pass


class MailerError(MailJournalError):
    """SMTP送信エラー（tickをスキップ）"""

    pass
