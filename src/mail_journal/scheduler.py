"""
日次リマインダーのスケジュール状態

制御ループが1つだけ所有するプロセス内状態。永続化はしないため、
再起動すると当日の送信時刻を過ぎていればその日のリマインダーは送らない。
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


@dataclass
class ReminderSchedule:
    """次回送信時刻（UTC）と「本日送信済み」フラグ"""

    next_fire: datetime
    fired: bool = False

    @classmethod
    def starting_at(cls, now: datetime, reminder_hour: int) -> "ReminderSchedule":
        """
        起動時のスケジュールを計算

        当日0時(UTC) + reminder_hour を過ぎていれば当日分は送信済み扱いとし、
        次回は翌日の同時刻とする。

        Args:
            now: 現在時刻（aware datetime）
            reminder_hour: 送信時刻（0-23, UTC）
        """
        now = now.astimezone(timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        slot = midnight + timedelta(hours=reminder_hour)
        if now < slot:
            return cls(next_fire=slot, fired=False)
        return cls(next_fire=slot + ONE_DAY, fired=True)

    def is_due(self, now: datetime) -> bool:
        """このtickでリマインダーを送るべきか"""
        if self.fired and now >= self.next_fire:
            # 次の送信時刻に到達した = 新しい日
            self.fired = False
        return not self.fired and now >= self.next_fire

    def mark_fired(self, now: datetime) -> None:
        """送信済みにして、次回を24時間後に進める（欠けた日の再送はしない）"""
        self.fired = True
        self.next_fire += ONE_DAY
        while self.next_fire <= now:
            self.next_fire += ONE_DAY
