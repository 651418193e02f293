# sequencer/graph.py
from langgraph.graph import StateGraph, END
from sequencer.state import SessionState

STOP_ACTIONS = ("noop", "gated")


def route_after_gate(state: SessionState) -> str:
    if state["action_taken"] in STOP_ACTIONS:
        return "end"
    return "record"


def route_after_record(state: SessionState) -> str:
    if state["action_taken"] in STOP_ACTIONS:
        return "end"
    return "persist"


def build_graph(
    shift=None,
    clock=None,
    event_store=None,
    reminders=None,
    gate=None,
    reset_policy=None,
    rules=None,
):
    """アクション実行パイプラインのグラフを構築して返す

    各ノード関数は協調者への依存を持つため、functools.partialでラップして
    LangGraphが期待する (state) -> dict シグネチャに合わせる。
    協調者を省略した場合、そのノードは何もしない（テスト用）。
    """
    from functools import partial
    from sequencer.nodes.rollover_node import rollover_node
    from sequencer.nodes.gate_node import gate_node
    from sequencer.nodes.record_node import record_node
    from sequencer.nodes.persist_node import persist_node
    from sequencer.nodes.reminder_node import reminder_node
    from sequencer.nodes.daily_status_node import daily_status_node

    rollover_wrapped = partial(
        rollover_node,
        clock=clock,
        reset_policy=reset_policy,
        event_store=event_store,
        reminders=reminders,
        shift=shift,
    )
    gate_wrapped = partial(gate_node, shift=shift, gate=gate, clock=clock)
    record_wrapped = partial(record_node, shift=shift)
    persist_wrapped = partial(persist_node, event_store=event_store)
    reminder_wrapped = partial(reminder_node, reminders=reminders)
    daily_status_wrapped = partial(
        daily_status_node, shift=shift, rules=rules, event_store=event_store
    )

    workflow = StateGraph(SessionState)

    workflow.add_node("rollover", rollover_wrapped)
    workflow.add_node("gate", gate_wrapped)
    workflow.add_node("record", record_wrapped)
    workflow.add_node("persist", persist_wrapped)
    workflow.add_node("reminder", reminder_wrapped)
    workflow.add_node("daily_status", daily_status_wrapped)

    workflow.set_entry_point("rollover")
    workflow.add_edge("rollover", "gate")

    workflow.add_conditional_edges(
        "gate",
        route_after_gate,
        {"record": "record", "end": END},
    )
    workflow.add_conditional_edges(
        "record",
        route_after_record,
        {"persist": "persist", "end": END},
    )

    workflow.add_edge("persist", "reminder")
    workflow.add_edge("reminder", "daily_status")
    workflow.add_edge("daily_status", END)

    return workflow.compile()
