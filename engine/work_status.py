"""日次の勤務状態判定エンジン

1日分のイベントログとシフト設定から DailyStatus を導出する純粋関数群。
I/O や現在時刻には依存しない。
"""
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from engine.errors import ValidationError
from engine.models import (
    AccountingRules,
    ActionType,
    DailyStatus,
    Event,
    ManualStatus,
    ShiftConfig,
    WorkStatus,
)
from engine.time_utils import (
    at_time,
    duration_minutes,
    format_clock,
    minutes_between,
    minutes_to_hours,
    round_up_to_block,
)

MISSING_PUNCH_REMARK = "Missing punch."

DISPLAY = {
    WorkStatus.COMPLETE: ("✅", "complete"),
    WorkStatus.INCOMPLETE: ("❗", "incomplete"),
    WorkStatus.RV: ("RV", "late / early leave"),
    WorkStatus.UNKNOWN: ("❓", "not updated"),
    ManualStatus.LEAVE: ("📩", "leave"),
    ManualStatus.SICK: ("🛌", "sick"),
    ManualStatus.HOLIDAY: ("🎌", "holiday"),
    ManualStatus.ABSENT: ("❌", "absent"),
}


def display_status(status) -> tuple[str, str]:
    """ステータスを (アイコン, ラベル) に変換する"""
    return DISPLAY[status]


def _first_of_each_type(events: Iterable[Event]) -> dict[ActionType, Event]:
    """種別ごとに最初のイベントだけを採用する（後続の重複は無視）"""
    first: dict[ActionType, Event] = {}
    for event in sorted(events, key=lambda e: e.timestamp):
        first.setdefault(event.type, event)
    return first


def _shift_bounds(day: date, shift: ShiftConfig) -> tuple[datetime, datetime, datetime]:
    start = at_time(day, shift.start_time)
    office_end = at_time(day, shift.office_end_time)
    end = at_time(day, shift.end_time)

    # 夜勤: 開始より前の終了時刻は翌日
    if end < start:
        end += timedelta(days=1)
    if office_end < start:
        office_end += timedelta(days=1)
    return start, office_end, end


def _overtime_note(overtime: float) -> str:
    return f"OT {overtime:.2f}h." if overtime > 0 else ""


def compute_daily_status(
    events: list[Event],
    shift: Optional[ShiftConfig],
    work_date: Optional[date] = None,
    rules: Optional[AccountingRules] = None,
) -> DailyStatus:
    """イベントログとシフト設定から日次ステータスを算出する"""
    if not events or shift is None:
        return DailyStatus.unknown()

    rules = rules or AccountingRules()
    if work_date is None:
        work_date = min(e.timestamp for e in events).date()

    try:
        start, office_end, end = _shift_bounds(work_date, shift)
    except ValidationError:
        return DailyStatus.unknown()

    first = _first_of_each_type(events)
    go_work = first.get(ActionType.GO_WORK)
    check_in = first.get(ActionType.CHECK_IN)
    check_out = first.get(ActionType.CHECK_OUT)

    has_punches = check_in is not None and check_out is not None
    only_go_work = go_work is not None and len(events) == 1 and shift.only_go_work_mode
    completed = (
        ActionType.COMPLETE in first
        or only_go_work
        or (has_punches and rules.credit_full_shift_on_punches)
    )

    if has_punches and not rules.credit_full_shift_on_punches:
        return _measured_status(check_in.timestamp, check_out.timestamp, start, office_end, end, rules)

    if completed:
        return _completed_status(check_in, check_out, start, office_end, end)

    return DailyStatus(
        status=WorkStatus.INCOMPLETE,
        check_in_time=format_clock(check_in.timestamp) if check_in else None,
        check_out_time=format_clock(check_out.timestamp) if check_out else None,
        remarks=MISSING_PUNCH_REMARK,
    )


def _completed_status(
    check_in: Optional[Event],
    check_out: Optional[Event],
    start: datetime,
    office_end: datetime,
    end: datetime,
) -> DailyStatus:
    """完了扱いの日: 所定のシフト時間を満額計上する"""
    if check_in is not None and check_out is not None:
        actual_in = check_in.timestamp
        actual_out = check_out.timestamp
        if actual_out < actual_in:
            actual_out += timedelta(days=1)
    else:
        # 出勤のみモード、または打刻なしで完了
        actual_in, actual_out = start, end

    overtime_minutes = 0
    if actual_out > office_end:
        overtime_minutes = max(0, minutes_between(office_end, actual_out))

    overtime = minutes_to_hours(overtime_minutes)
    return DailyStatus(
        status=WorkStatus.COMPLETE,
        check_in_time=format_clock(actual_in),
        check_out_time=format_clock(actual_out),
        total_work_time=minutes_to_hours(minutes_between(start, end)),
        overtime=overtime,
        remarks=_overtime_note(overtime),
    )


def _measured_status(
    check_in: datetime,
    check_out: datetime,
    start: datetime,
    office_end: datetime,
    end: datetime,
    rules: AccountingRules,
) -> DailyStatus:
    """実打刻から遅刻・早退・残業を算出する"""
    block = rules.penalty_block_minutes

    late_minutes = 0
    if check_in > start:
        late_minutes = round_up_to_block(minutes_between(start, check_in), block)

    early_minutes = 0
    if check_out < office_end:
        early_minutes = round_up_to_block(minutes_between(check_out, office_end), block)

    overtime_minutes = 0
    if check_out > office_end:
        late_end = min(check_out, end)
        overtime_minutes = max(0, minutes_between(office_end, late_end))

    worked = duration_minutes(check_in, check_out)
    total_minutes = max(0, worked - late_minutes - early_minutes)
    overtime = minutes_to_hours(overtime_minutes)

    notes = []
    if late_minutes > 0:
        notes.append(f"Late {late_minutes} min.")
    if early_minutes > 0:
        notes.append(f"Early leave {early_minutes} min.")
    if overtime > 0:
        notes.append(_overtime_note(overtime))

    status = WorkStatus.RV if late_minutes > 0 or early_minutes > 0 else WorkStatus.COMPLETE
    return DailyStatus(
        status=status,
        check_in_time=format_clock(check_in),
        check_out_time=format_clock(check_out),
        total_work_time=minutes_to_hours(total_minutes),
        overtime=overtime,
        remarks=" ".join(notes),
        late_minutes=late_minutes,
        early_minutes=early_minutes,
    )
