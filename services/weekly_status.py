import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from engine.errors import ValidationError
from engine.models import (
    AccountingRules,
    DailyStatus,
    DayStatus,
    ManualStatus,
    ShiftConfig,
    WorkStatus,
)
from engine.work_status import compute_daily_status

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass(frozen=True)
class DayView:
    day: date
    status: DayStatus
    daily: Optional[DailyStatus]
    is_override: bool = False

    @property
    def weekday(self) -> str:
        return WEEKDAY_NAMES[self.day.weekday()]


def week_start(reference: date) -> date:
    """referenceを含む週の月曜日"""
    return reference - timedelta(days=reference.weekday())


def day_view(
    event_store,
    shift: ShiftConfig,
    day: date,
    rules: Optional[AccountingRules] = None,
) -> DayView:
    """1日分の表示用ステータス（手動ステータスが優先）"""
    key = day.isoformat()
    override = event_store.load_manual_override(key)
    if override is not None:
        return DayView(day=day, status=override, daily=None, is_override=True)

    daily = compute_daily_status(
        event_store.load_events_for_date(key), shift, work_date=day, rules=rules
    )
    return DayView(day=day, status=daily.status, daily=daily)


def build_week(
    event_store,
    shift: ShiftConfig,
    reference: date,
    today: Optional[date] = None,
    rules: Optional[AccountingRules] = None,
) -> list[DayView]:
    """referenceを含む週（月〜日）の7日分のステータス。未来日は計算しない"""
    today = today or reference
    start = week_start(reference)
    views = []
    for offset in range(7):
        day = start + timedelta(days=offset)
        if day > today:
            views.append(DayView(day=day, status=WorkStatus.UNKNOWN, daily=None))
        else:
            views.append(day_view(event_store, shift, day, rules=rules))
    return views


@dataclass(frozen=True)
class MonthSummary:
    """月間集計。時間は日次ステータスの丸め済みの値を合計する"""

    year: int
    month: int
    days: list[DayView]
    total_work_time: float = 0.0
    total_overtime: float = 0.0
    counts: dict = field(default_factory=dict)

    @property
    def worked_days(self) -> int:
        """complete または RV の日数"""
        return self.counts.get(WorkStatus.COMPLETE.value, 0) + self.counts.get(WorkStatus.RV.value, 0)


def build_month(
    event_store,
    shift: ShiftConfig,
    year: int,
    month: int,
    today: Optional[date] = None,
    rules: Optional[AccountingRules] = None,
) -> MonthSummary:
    """指定月の日別ステータスと合計（未来日は unknown として数えるだけ）"""
    last_day = calendar.monthrange(year, month)[1]
    today = today or date(year, month, last_day)

    days = []
    work = Decimal("0")
    overtime = Decimal("0")
    counts: dict = {}
    for number in range(1, last_day + 1):
        day = date(year, month, number)
        if day > today:
            view = DayView(day=day, status=WorkStatus.UNKNOWN, daily=None)
        else:
            view = day_view(event_store, shift, day, rules=rules)
        days.append(view)
        counts[view.status.value] = counts.get(view.status.value, 0) + 1
        if view.daily is not None:
            work += Decimal(str(view.daily.total_work_time))
            overtime += Decimal(str(view.daily.overtime))

    return MonthSummary(
        year=year,
        month=month,
        days=days,
        total_work_time=float(work),
        total_overtime=float(overtime),
        counts=counts,
    )


def set_manual_status(
    event_store, day: date, status: Optional[ManualStatus], today: date
) -> None:
    """手動ステータスを設定する。未来日は設定できない（解除は可）"""
    if status is not None and day > today:
        raise ValidationError(f"未来日には手動ステータスを設定できません: {day.isoformat()}")
    event_store.set_manual_override(day.isoformat(), status)
