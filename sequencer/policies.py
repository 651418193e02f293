"""任意のポリシー層

ボタンの活性/非活性（時刻ゲート）と自動リセットを戦略オブジェクトとして注入する。
状態遷移そのものの妥当性には影響しない。
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from engine.models import ActionType, SessionStatus, ShiftConfig
from engine.time_utils import at_time
from sequencer.state import SessionState, TIMESTAMP_FIELDS


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[str] = None
    remaining_minutes: int = 0


ALLOWED = GateDecision(allowed=True)


def _remaining(until: datetime, now: datetime) -> int:
    return math.ceil((until - now).total_seconds() / 60)


class ActionGate(ABC):
    """アクションボタンを押せるかどうかの判定"""

    @abstractmethod
    def check(
        self, session: SessionState, action: str, shift: ShiftConfig, now: datetime
    ) -> GateDecision:
        ...


class StartWindowGate(ActionGate):
    """出勤打刻はシフト開始の lead_minutes 分前から"""

    def __init__(self, lead_minutes: int = 30):
        self._lead = lead_minutes

    def check(self, session, action, shift, now):
        if action != ActionType.CHECK_IN.value:
            return ALLOWED
        opens_at = at_time(date.fromisoformat(session["today"]), shift.start_time) - timedelta(
            minutes=self._lead
        )
        if now < opens_at:
            return GateDecision(
                allowed=False,
                reason=f"check_in opens at {opens_at:%H:%M}",
                remaining_minutes=_remaining(opens_at, now),
            )
        return ALLOWED


class MinWorkHoursGate(ActionGate):
    """退勤打刻は出勤から min_work_hours 経過後"""

    def check(self, session, action, shift, now):
        if action != ActionType.CHECK_OUT.value:
            return ALLOWED
        if not session["check_in_time"] or not shift.min_work_hours:
            return ALLOWED
        opens_at = datetime.fromisoformat(session["check_in_time"]) + timedelta(
            hours=shift.min_work_hours
        )
        if now < opens_at:
            return GateDecision(
                allowed=False,
                reason=f"minimum {shift.min_work_hours:g}h of work not reached",
                remaining_minutes=_remaining(opens_at, now),
            )
        return ALLOWED


class MinIntervalGate(ActionGate):
    """直前アクションから一定時間経過するまで次のアクションを止める"""

    def __init__(self, previous: ActionType, action: ActionType, minutes: int):
        self._previous = previous
        self._action = action
        self._minutes = minutes

    def check(self, session, action, shift, now):
        if action != self._action.value or self._minutes <= 0:
            return ALLOWED
        previous_time = session[TIMESTAMP_FIELDS[self._previous.value]]
        if not previous_time:
            return ALLOWED
        opens_at = datetime.fromisoformat(previous_time) + timedelta(minutes=self._minutes)
        if now < opens_at:
            return GateDecision(
                allowed=False,
                reason=f"wait {self._minutes} min after {self._previous.value}",
                remaining_minutes=_remaining(opens_at, now),
            )
        return ALLOWED


class CompositeGate(ActionGate):
    """最初に不許可を返したゲートの判定を採用する"""

    def __init__(self, gates: list[ActionGate]):
        self._gates = list(gates)

    def check(self, session, action, shift, now):
        for gate in self._gates:
            decision = gate.check(session, action, shift, now)
            if not decision.allowed:
                return decision
        return ALLOWED


# 夜勤でこれらの状態にある間は、翌日になってもセッションを勤務開始日に留める
OVERNIGHT_ACTIVE = (
    SessionStatus.GO_WORK.value,
    SessionStatus.CHECK_IN.value,
    SessionStatus.PUNCH.value,
)


def holds_shift_day(session: SessionState, shift: Optional[ShiftConfig], now: datetime) -> bool:
    """夜勤の勤務中セッションは次のシフト開始までその勤務日のまま"""
    if shift is None or not shift.overnight or session["status"] not in OVERNIGHT_ACTIVE:
        return False
    next_start = at_time(date.fromisoformat(session["today"]) + timedelta(days=1), shift.start_time)
    return now < next_start


class AutoResetPolicy:
    """日付跨ぎ、または退勤/完了から一定時間経過でセッションをリセットする"""

    def __init__(self, at_midnight: bool = True, hours_after_end: Optional[float] = 2):
        self._at_midnight = at_midnight
        self._hours_after_end = hours_after_end

    def should_reset(
        self, session: SessionState, now: datetime, shift: Optional[ShiftConfig] = None
    ) -> Optional[str]:
        """リセットすべきならその理由を、不要ならNoneを返す"""
        if self._at_midnight and session["today"] != now.date().isoformat():
            if holds_shift_day(session, shift, now):
                return None
            return "date_changed"

        if self._hours_after_end is None:
            return None
        if session["status"] not in (SessionStatus.CHECK_OUT.value, SessionStatus.COMPLETE.value):
            return None
        end_time = session["complete_time"] or session["check_out_time"]
        if end_time and now - datetime.fromisoformat(end_time) >= timedelta(
            hours=self._hours_after_end
        ):
            return "hours_after_end"
        return None


def gates_from_config(config: dict) -> Optional[ActionGate]:
    """time_gates 設定からゲートを組み立てる（無効ならNone）"""
    rules = config["time_gates"]
    if not rules["enabled"]:
        return None
    return CompositeGate(
        [
            StartWindowGate(lead_minutes=rules["check_in_lead_minutes"]),
            MinWorkHoursGate(),
            MinIntervalGate(
                ActionType.GO_WORK, ActionType.CHECK_IN, rules["go_work_to_check_in_minutes"]
            ),
            MinIntervalGate(
                ActionType.CHECK_IN, ActionType.CHECK_OUT, rules["check_in_to_check_out_minutes"]
            ),
        ]
    )


def auto_reset_from_config(config: dict) -> AutoResetPolicy:
    rules = config["auto_reset"]
    return AutoResetPolicy(
        at_midnight=rules["at_midnight"],
        hours_after_end=rules["hours_after_end"],
    )
