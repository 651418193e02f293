# sequencer/nodes/gate_node.py
from typing import Optional

from engine.models import SessionStatus, ShiftConfig
from sequencer.actions import next_action
from sequencer.policies import ActionGate
from sequencer.state import SessionState


def gate_node(
    state: SessionState,
    shift: ShiftConfig = None,
    gate: Optional[ActionGate] = None,
    clock=None,
) -> dict:
    """実行するアクションを決定し、時刻ゲートを確認するノード"""
    if state["status"] == SessionStatus.COMPLETE.value:
        return {"action_taken": "noop"}

    now = clock.now()
    action = state["requested_action"] or next_action(state["status"], shift).value
    timestamp = state["timestamp"] or now.isoformat()

    if gate is not None and not state["extra"].get("force"):
        decision = gate.check(state, action, shift, now)
        if not decision.allowed:
            return {
                "requested_action": action,
                "action_taken": "gated",
                "error_message": decision.reason,
                "extra": {**state["extra"], "remaining_minutes": decision.remaining_minutes},
            }

    return {
        "requested_action": action,
        "timestamp": timestamp,
        "error_message": None,
    }
