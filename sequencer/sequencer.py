import logging
from datetime import datetime
from typing import Optional

from engine.models import AccountingRules, ActionType, ShiftConfig
from sequencer.actions import next_action, reconcile, replay_events
from sequencer.graph import build_graph
from sequencer.nodes.rollover_node import perform_reset, resolve_shift_day, roll_over
from sequencer.policies import ALLOWED, ActionGate, AutoResetPolicy, GateDecision
from sequencer.state import SessionState
from services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class ActionSequencer:
    """1日分の打刻セッションを管理する

    イベントログが常に正であり、セッション状態はログから再構築できる投影。
    """

    def __init__(
        self,
        shift: ShiftConfig,
        event_store,
        reminders=None,
        clock: Optional[Clock] = None,
        gate: Optional[ActionGate] = None,
        reset_policy: Optional[AutoResetPolicy] = None,
        rules: Optional[AccountingRules] = None,
    ):
        self._shift = shift
        self._event_store = event_store
        self._reminders = reminders
        self._clock = clock or SystemClock()
        self._gate = gate
        self._reset_policy = reset_policy
        self._graph = build_graph(
            shift=shift,
            clock=self._clock,
            event_store=event_store,
            reminders=reminders,
            gate=gate,
            reset_policy=reset_policy,
            rules=rules,
        )
        self._session: Optional[SessionState] = None

    @property
    def session(self) -> SessionState:
        if self._session is None:
            self.load()
        return self._session

    def load(self, today: Optional[str] = None) -> SessionState:
        """永続化済みログからセッションを読み込む（既存状態はログに合わせる）

        today 省略時は現在の勤務日（夜勤の勤務中は前日）。
        """
        today = today or resolve_shift_day(self._event_store, self._shift, self._clock.now())
        events = self._event_store.load_events_for_date(today)
        if self._session is not None and self._session["today"] == today:
            self._session = reconcile(self._session, events)
        else:
            self._session = replay_events(events, today)
        return self._session

    def refresh(self) -> SessionState:
        """他プロセスの書き込みを取り込み、現在のセッションをログに合わせる"""
        self._event_store.refresh()
        return self.load(self.session["today"])

    def next_action(self) -> ActionType:
        return next_action(self.session["status"], self._shift)

    def gate_status(self) -> GateDecision:
        """次のアクションボタンが押せるかどうか"""
        if self._gate is None:
            return ALLOWED
        return self._gate.check(
            self.session, self.next_action().value, self._shift, self._clock.now()
        )

    def press(self, force: bool = False) -> SessionState:
        """次のアクションを現在時刻で実行する"""
        return self._run(None, None, force=force)

    def apply(self, action: str, timestamp: Optional[datetime] = None) -> SessionState:
        """指定アクションを適用する（時刻ゲートは適用しない）"""
        return self._run(ActionType(action).value, timestamp, force=True)

    def reset(self) -> SessionState:
        """当日のセッションとログを破棄してidleに戻す"""
        today = resolve_shift_day(self._event_store, self._shift, self._clock.now())
        self._session, warnings = perform_reset(
            today, self._event_store, self._reminders, self._shift
        )
        for warning in warnings:
            logger.warning("リセット時の警告: %s", warning)
        return self._session

    def check_auto_reset(self) -> Optional[str]:
        """自動リセット条件を満たしていればリセットし、その理由を返す"""
        if self._reset_policy is None:
            return None
        now = self._clock.now()
        reason = self._reset_policy.should_reset(self.session, now, self._shift)
        if reason == "date_changed":
            today = resolve_shift_day(self._event_store, self._shift, now)
            self._session, warnings = roll_over(
                today, self._event_store, self._reminders, self._shift
            )
            for warning in warnings:
                logger.warning("日付切替時の警告: %s", warning)
        elif reason is not None:
            self.reset()
        return reason

    def _run(self, action: Optional[str], timestamp: Optional[datetime], force: bool) -> SessionState:
        request = dict(self.session)
        request.update(
            {
                "requested_action": action,
                "timestamp": timestamp.isoformat() if timestamp else None,
                "action_taken": None,
                "error_message": None,
                "warnings": [],
                "extra": {"force": force},
            }
        )
        self._session = self._graph.invoke(request)
        return self._session
