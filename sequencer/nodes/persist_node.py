# sequencer/nodes/persist_node.py
import logging

from engine.errors import CollaboratorFailure
from engine.models import Event
from sequencer.state import SessionState

logger = logging.getLogger(__name__)


def persist_node(state: SessionState, event_store=None) -> dict:
    """追加したイベントを永続化するノード（失敗しても遷移は取り消さない）"""
    if event_store is None:
        return {}

    event = Event.from_dict(state["events"][-1])
    try:
        event_store.append_event(state["today"], event)
    except Exception as e:
        failure = CollaboratorFailure("persistence", str(e))
        logger.warning("イベントの保存に失敗しました: %s", failure)
        return {"warnings": [*state["warnings"], str(failure)]}
    return {}
