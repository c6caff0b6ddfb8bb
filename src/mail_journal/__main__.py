"""Mail Journal実行用エントリポイント

Usage:
    python -m src.mail_journal <command> [options]
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
