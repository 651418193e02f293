# sequencer/nodes/rollover_node.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from engine.errors import CollaboratorFailure
from engine.models import ShiftConfig
from sequencer.actions import replay_events, reset_session
from sequencer.policies import AutoResetPolicy, holds_shift_day
from sequencer.state import SessionState

logger = logging.getLogger(__name__)

REMINDER_ACTIONS = ["go_work", "check_in", "check_out"]


def resolve_shift_day(event_store, shift: Optional[ShiftConfig], now: datetime) -> str:
    """現在時刻が属する勤務日（夜勤の勤務中は前日）"""
    today = now.date().isoformat()
    if event_store is None or shift is None or not shift.overnight:
        return today
    previous = (now.date() - timedelta(days=1)).isoformat()
    session = replay_events(event_store.load_events_for_date(previous), previous)
    if holds_shift_day(session, shift, now):
        return previous
    return today


def schedule_day_reminders(
    today: str,
    reminders=None,
    shift: Optional[ShiftConfig] = None,
    done: tuple = (),
) -> list[str]:
    """指定日のリマインドを予約する。実行済みのアクションは除く

    失敗は警告として返す。
    """
    if reminders is None or shift is None:
        return []
    warnings = []
    actions = REMINDER_ACTIONS + (["punch"] if shift.show_punch else [])
    for action in actions:
        if action in done:
            continue
        try:
            reminders.schedule_reminder(action, today, shift)
        except Exception as e:
            failure = CollaboratorFailure("notification", str(e))
            logger.warning("リマインド予約に失敗しました(%s): %s", action, failure)
            warnings.append(str(failure))
    return warnings


def perform_reset(
    today: str,
    event_store=None,
    reminders=None,
    shift: Optional[ShiftConfig] = None,
) -> tuple[SessionState, list[str]]:
    """セッションをidleに戻し、当日ログと日次ステータスを破棄してリマインドを再予約する

    協調者の失敗は警告として返し、リセット自体は中断しない。
    """
    warnings = []
    if event_store is not None:
        try:
            event_store.clear_events(today)
            event_store.delete_daily_status(today)
        except Exception as e:
            failure = CollaboratorFailure("persistence", str(e))
            logger.warning("リセット時の永続化に失敗しました: %s", failure)
            warnings.append(str(failure))

    warnings += schedule_day_reminders(today, reminders, shift)

    session = reset_session(today)
    session["warnings"] = warnings
    return session, warnings


def roll_over(
    today: str,
    event_store=None,
    reminders=None,
    shift: Optional[ShiftConfig] = None,
) -> tuple[SessionState, list[str]]:
    """新しい勤務日のログからセッションを再構築し、その日のリマインドを予約する"""
    events = event_store.load_events_for_date(today) if event_store is not None else []
    session = replay_events(events, today)
    done = tuple(e["type"] for e in session["events"])
    warnings = schedule_day_reminders(today, reminders, shift, done=done)
    session["warnings"] = warnings
    return session, warnings


def rollover_node(
    state: SessionState,
    clock=None,
    reset_policy: Optional[AutoResetPolicy] = None,
    event_store=None,
    reminders=None,
    shift: Optional[ShiftConfig] = None,
) -> dict:
    """日付跨ぎ・終業後経過によるセッションの自動リセットを行うノード"""
    if reset_policy is None:
        return {}

    now = clock.now()
    reason = reset_policy.should_reset(state, now, shift)
    if reason is None:
        return {}

    logger.info("セッションを自動リセットします: %s", reason)
    if reason == "date_changed":
        today = resolve_shift_day(event_store, shift, now)
        session, _ = roll_over(today, event_store, reminders, shift)
    else:
        session, _ = perform_reset(now.date().isoformat(), event_store, reminders, shift)

    # リクエスト内容は引き継ぐ
    for key in ("requested_action", "timestamp", "extra"):
        session[key] = state[key]
    session["warnings"] = [*state["warnings"], *session["warnings"]]
    return dict(session)
