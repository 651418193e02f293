from datetime import datetime

from engine.models import ActionType, ShiftConfig
from sequencer.policies import (
    AutoResetPolicy,
    CompositeGate,
    MinIntervalGate,
    MinWorkHoursGate,
    StartWindowGate,
    auto_reset_from_config,
    gates_from_config,
)
from sequencer.state import new_session
from services.config_loader import DEFAULT_CONFIG

SHIFT = ShiftConfig(
    start_time="08:00", office_end_time="17:00", end_time="17:00", min_work_hours=4
)


def _make_state(**overrides):
    base = new_session("2026-02-22")
    base.update(overrides)
    return base


def _mock_time(hour, minute=0, day=22):
    return datetime(2026, 2, day, hour, minute, 0)


def test_start_window_closed():
    """開始30分前より早い出勤打刻は不可"""
    state = _make_state(status="go_work")
    decision = StartWindowGate(30).check(state, "check_in", SHIFT, _mock_time(7, 0))
    assert decision.allowed is False
    assert decision.remaining_minutes == 30


def test_start_window_open():
    state = _make_state(status="go_work")
    assert StartWindowGate(30).check(state, "check_in", SHIFT, _mock_time(7, 30)).allowed


def test_start_window_ignores_other_actions():
    state = _make_state()
    assert StartWindowGate(30).check(state, "go_work", SHIFT, _mock_time(5, 0)).allowed


def test_min_work_hours_gate():
    """出勤から4時間経過するまで退勤不可"""
    state = _make_state(status="check_in", check_in_time="2026-02-22T08:00:00")
    gate = MinWorkHoursGate()
    decision = gate.check(state, "check_out", SHIFT, _mock_time(11, 0))
    assert decision.allowed is False
    assert decision.remaining_minutes == 60
    assert gate.check(state, "check_out", SHIFT, _mock_time(12, 0)).allowed


def test_min_work_hours_without_setting():
    shift = ShiftConfig(start_time="08:00", office_end_time="17:00", end_time="17:00")
    state = _make_state(status="check_in", check_in_time="2026-02-22T08:00:00")
    assert MinWorkHoursGate().check(state, "check_out", shift, _mock_time(8, 1)).allowed


def test_min_interval_gate():
    gate = MinIntervalGate(ActionType.GO_WORK, ActionType.CHECK_IN, 5)
    state = _make_state(status="go_work", go_work_time="2026-02-22T07:50:00")
    decision = gate.check(state, "check_in", SHIFT, _mock_time(7, 52))
    assert decision.allowed is False
    assert decision.remaining_minutes == 3
    assert gate.check(state, "check_in", SHIFT, _mock_time(7, 55)).allowed


def test_composite_gate_first_denial_wins():
    gate = CompositeGate([StartWindowGate(30), MinWorkHoursGate()])
    state = _make_state(status="go_work")
    decision = gate.check(state, "check_in", SHIFT, _mock_time(6, 0))
    assert decision.allowed is False
    assert "check_in" in decision.reason


def test_gates_from_config_disabled():
    assert gates_from_config(DEFAULT_CONFIG) is None


def test_gates_from_config_enabled():
    config = {**DEFAULT_CONFIG, "time_gates": {**DEFAULT_CONFIG["time_gates"], "enabled": True}}
    assert isinstance(gates_from_config(config), CompositeGate)


def test_auto_reset_date_changed():
    """日付が変わったらリセット"""
    policy = AutoResetPolicy()
    state = _make_state(status="check_in")
    assert policy.should_reset(state, _mock_time(0, 5, day=23)) == "date_changed"
    assert policy.should_reset(state, _mock_time(23, 55)) is None


def test_auto_reset_hours_after_end():
    policy = AutoResetPolicy(at_midnight=False, hours_after_end=2)
    state = _make_state(status="check_out", check_out_time="2026-02-22T17:00:00")
    assert policy.should_reset(state, _mock_time(18, 59)) is None
    assert policy.should_reset(state, _mock_time(19, 0)) == "hours_after_end"


def test_auto_reset_hours_after_end_prefers_complete_time():
    policy = AutoResetPolicy(at_midnight=False, hours_after_end=2)
    state = _make_state(
        status="complete",
        check_out_time="2026-02-22T17:00:00",
        complete_time="2026-02-22T18:00:00",
    )
    assert policy.should_reset(state, _mock_time(19, 30)) is None


def test_auto_reset_ignores_active_shift():
    policy = AutoResetPolicy(at_midnight=False, hours_after_end=2)
    state = _make_state(status="check_in", check_in_time="2026-02-22T08:00:00")
    assert policy.should_reset(state, _mock_time(20, 0)) is None


def test_auto_reset_from_config_defaults():
    policy = auto_reset_from_config(DEFAULT_CONFIG)
    state = _make_state(status="complete", complete_time="2026-02-22T17:00:00")
    assert policy.should_reset(state, _mock_time(23, 0)) is None


NIGHT_SHIFT = ShiftConfig(start_time="22:00", office_end_time="06:00", end_time="06:00")


def test_shift_overnight_flag():
    assert NIGHT_SHIFT.overnight is True
    assert SHIFT.overnight is False


def test_auto_reset_holds_overnight_shift_in_progress():
    """夜勤の勤務中は日付が変わってもリセットしない"""
    policy = AutoResetPolicy(hours_after_end=None)
    state = _make_state(status="check_in", check_in_time="2026-02-22T22:05:00")
    assert policy.should_reset(state, _mock_time(6, 10, day=23), NIGHT_SHIFT) is None
    # 次のシフト開始以降は切り替える
    assert policy.should_reset(state, _mock_time(22, 0, day=23), NIGHT_SHIFT) == "date_changed"


def test_auto_reset_overnight_shift_after_check_out():
    policy = AutoResetPolicy(hours_after_end=None)
    state = _make_state(status="check_out", check_out_time="2026-02-23T06:10:00")
    assert policy.should_reset(state, _mock_time(6, 30, day=23), NIGHT_SHIFT) == "date_changed"


def test_auto_reset_day_shift_ignores_hold():
    policy = AutoResetPolicy(hours_after_end=None)
    state = _make_state(status="check_in", check_in_time="2026-02-22T08:00:00")
    assert policy.should_reset(state, _mock_time(0, 5, day=23), SHIFT) == "date_changed"
