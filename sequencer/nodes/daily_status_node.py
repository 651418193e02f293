# sequencer/nodes/daily_status_node.py
import logging
from datetime import date
from typing import Optional

from engine.errors import CollaboratorFailure
from engine.models import AccountingRules, Event, ShiftConfig
from engine.work_status import compute_daily_status
from sequencer.state import SessionState

logger = logging.getLogger(__name__)


def daily_status_node(
    state: SessionState,
    shift: ShiftConfig = None,
    rules: Optional[AccountingRules] = None,
    event_store=None,
) -> dict:
    """当日の勤務状態を再計算して保存するノード"""
    events = [Event.from_dict(e) for e in state["events"]]
    daily = compute_daily_status(
        events, shift, work_date=date.fromisoformat(state["today"]), rules=rules
    )
    result = {"daily_status": daily.to_dict()}

    if event_store is not None:
        try:
            event_store.save_daily_status(state["today"], daily)
        except Exception as e:
            failure = CollaboratorFailure("persistence", str(e))
            logger.warning("日次ステータスの保存に失敗しました: %s", failure)
            result["warnings"] = [*state["warnings"], str(failure)]
    return result
