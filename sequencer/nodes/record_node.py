# sequencer/nodes/record_node.py
from datetime import datetime

from engine.models import ShiftConfig
from sequencer.actions import apply_action
from sequencer.state import SessionState


def record_node(state: SessionState, shift: ShiftConfig = None) -> dict:
    """アクションをセッションとイベントログに反映するノード"""
    updated, event = apply_action(
        state,
        state["requested_action"],
        datetime.fromisoformat(state["timestamp"]),
        shift_id=shift.shift_id if shift else None,
    )
    if event is None:
        return {"action_taken": "noop"}

    return {
        "status": updated["status"],
        "events": updated["events"],
        "go_work_time": updated["go_work_time"],
        "check_in_time": updated["check_in_time"],
        "punch_time": updated["punch_time"],
        "check_out_time": updated["check_out_time"],
        "complete_time": updated["complete_time"],
        "action_taken": event.type.value,
    }
