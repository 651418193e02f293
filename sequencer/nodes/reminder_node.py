# sequencer/nodes/reminder_node.py
import logging

from engine.errors import CollaboratorFailure
from sequencer.state import SessionState

logger = logging.getLogger(__name__)


def reminder_node(state: SessionState, reminders=None) -> dict:
    """実行済みアクションの当日リマインドを取り消すノード"""
    if reminders is None:
        return {}

    try:
        reminders.cancel_reminder(state["action_taken"], state["today"])
    except Exception as e:
        failure = CollaboratorFailure("notification", str(e))
        logger.warning("リマインドの取消に失敗しました: %s", failure)
        return {"warnings": [*state["warnings"], str(failure)]}
    return {}
