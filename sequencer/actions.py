"""アクションシーケンサー（状態機械）

idle → go_work → check_in → [punch] → check_out → complete
"""
import logging
from datetime import datetime
from typing import Optional

from engine.errors import StaleStateError
from engine.models import ActionType, Event, SessionStatus, ShiftConfig
from sequencer.state import SessionState, TIMESTAMP_FIELDS, new_session

logger = logging.getLogger(__name__)

TRANSITIONS = {
    SessionStatus.IDLE: ActionType.GO_WORK,
    SessionStatus.GO_WORK: ActionType.CHECK_IN,
    SessionStatus.CHECK_IN: ActionType.CHECK_OUT,  # showPunch時は punch
    SessionStatus.PUNCH: ActionType.CHECK_OUT,
    SessionStatus.CHECK_OUT: ActionType.COMPLETE,
    SessionStatus.COMPLETE: ActionType.COMPLETE,
}

# 状態の進行順。これより小さい順位のアクションは後戻りになる
RANK = {status.value: i for i, status in enumerate(SessionStatus)}


def next_action(current_status: str, shift: ShiftConfig) -> ActionType:
    """現在の状態とシフト設定から次に実行可能なアクションを返す"""
    status = SessionStatus(current_status)
    if shift.only_go_work_mode and status != SessionStatus.GO_WORK:
        return ActionType.GO_WORK
    if status == SessionStatus.CHECK_IN and shift.show_punch:
        return ActionType.PUNCH
    return TRANSITIONS[status]


def apply_action(
    session: SessionState,
    action: str,
    timestamp: datetime,
    shift_id: Optional[str] = None,
) -> tuple[SessionState, Optional[Event]]:
    """アクションを適用した新しいセッションと追加イベントを返す

    complete済み・後戻り・同一イベントの再送は何もしない（event は None）。
    """
    action = ActionType(action)
    if session["status"] == SessionStatus.COMPLETE.value:
        return session, None
    if RANK[action.value] < RANK[session["status"]]:
        logger.info("後戻りのアクションを無視: %s → %s", session["status"], action.value)
        return session, None

    event = Event(type=action, timestamp=timestamp, shift_id=shift_id)
    record = event.to_dict()
    if any(
        e["type"] == record["type"] and e["timestamp"] == record["timestamp"]
        for e in session["events"]
    ):
        return session, None

    updated = dict(session)
    updated["events"] = [*session["events"], record]
    updated["status"] = action.value
    updated[TIMESTAMP_FIELDS[action.value]] = record["timestamp"]
    return updated, event


def reset_session(today: str) -> SessionState:
    """idleに戻し、タイムスタンプとイベントログを破棄する"""
    return new_session(today)


def replay_events(events: list[Event], today: str) -> SessionState:
    """イベントログを時刻順に再生してセッション状態を再構築する"""
    session = new_session(today)
    ordered = sorted(events, key=lambda e: e.timestamp)
    for event in ordered:
        record = event.to_dict()
        session["status"] = event.type.value
        session[TIMESTAMP_FIELDS[event.type.value]] = record["timestamp"]
        session["events"].append(record)
    return session


def check_consistency(session: SessionState, events: list[Event]) -> None:
    """セッション状態とイベントログが一致しなければStaleStateErrorを送出"""
    expected = replay_events(events, session["today"])
    for key in ("status", *TIMESTAMP_FIELDS.values()):
        if session[key] != expected[key]:
            raise StaleStateError(
                f"{key}: session={session[key]!r} log={expected[key]!r}"
            )


def reconcile(session: SessionState, events: list[Event]) -> SessionState:
    """ログを正としてセッション状態を再構築する"""
    try:
        check_consistency(session, events)
        return session
    except StaleStateError as e:
        logger.warning("セッション状態がログと不一致のため再構築します: %s", e)
        return replay_events(events, session["today"])
