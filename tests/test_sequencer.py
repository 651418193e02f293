from datetime import datetime
from unittest.mock import MagicMock

from engine.models import ActionType, Event, ShiftConfig
from engine.work_status import compute_daily_status
from sequencer.policies import AutoResetPolicy, MinWorkHoursGate
from sequencer.sequencer import ActionSequencer
from services.clock import FixedClock
from services.event_store import InMemoryEventStore

SHIFT = ShiftConfig(
    start_time="08:00",
    office_end_time="17:00",
    end_time="19:00",
    min_work_hours=4,
    shift_id="day",
)


def _make_sequencer(now=datetime(2026, 2, 22, 7, 0), **kwargs):
    clock = FixedClock(now)
    store = kwargs.pop("event_store", None) or InMemoryEventStore([SHIFT])
    reminders = kwargs.pop("reminders", None) or MagicMock()
    sequencer = ActionSequencer(
        shift=kwargs.pop("shift", SHIFT),
        event_store=store,
        reminders=reminders,
        clock=clock,
        **kwargs,
    )
    return sequencer, clock, store, reminders


def test_press_full_day():
    """ボタンを順に押すと go_work → check_in → check_out → complete"""
    sequencer, clock, store, reminders = _make_sequencer()
    taken = []
    for hour in (7, 8, 17, 18):
        clock.set(datetime(2026, 2, 22, hour, 0))
        taken.append(sequencer.press()["action_taken"])

    assert taken == ["go_work", "check_in", "check_out", "complete"]
    state = sequencer.session
    assert state["status"] == "complete"
    assert state["daily_status"]["status"] == "complete"
    assert state["daily_status"]["total_work_time"] == 9.0
    assert reminders.cancel_reminder.call_count == 4


def test_press_after_complete_is_noop():
    """complete後は何も記録しない"""
    sequencer, clock, store, _ = _make_sequencer()
    for hour in (7, 8, 17, 18):
        clock.set(datetime(2026, 2, 22, hour, 0))
        sequencer.press()
    before = store.load_events_for_date("2026-02-22")

    clock.set(datetime(2026, 2, 22, 18, 30))
    state = sequencer.press()

    assert state["action_taken"] == "noop"
    assert store.load_events_for_date("2026-02-22") == before


def test_session_matches_log_after_each_action():
    sequencer, clock, store, _ = _make_sequencer()
    for hour in (7, 8, 17):
        clock.set(datetime(2026, 2, 22, hour, 0))
        state = sequencer.press()
        log = store.load_events_for_date("2026-02-22")
        assert state["status"] == log[-1].type.value
        assert len(state["events"]) == len(log)


def test_gated_press_and_force():
    sequencer, clock, store, _ = _make_sequencer(gate=MinWorkHoursGate())
    sequencer.apply("go_work", datetime(2026, 2, 22, 7, 0))
    sequencer.apply("check_in", datetime(2026, 2, 22, 8, 0))

    clock.set(datetime(2026, 2, 22, 10, 0))
    assert sequencer.gate_status().allowed is False
    state = sequencer.press()
    assert state["action_taken"] == "gated"
    assert state["status"] == "check_in"

    state = sequencer.press(force=True)
    assert state["action_taken"] == "check_out"


def test_apply_explicit_action():
    sequencer, _, store, _ = _make_sequencer()
    state = sequencer.apply("check_in", datetime(2026, 2, 22, 8, 17))
    assert state["status"] == "check_in"
    assert store.load_events_for_date("2026-02-22")[0].type == ActionType.CHECK_IN


def test_persistence_failure_keeps_transition():
    """保存失敗でもメモリ上の遷移は進み、警告が残る"""
    store = InMemoryEventStore([SHIFT])
    store.append_event = MagicMock(side_effect=OSError("disk full"))
    sequencer, _, _, _ = _make_sequencer(event_store=store)

    state = sequencer.press()

    assert state["status"] == "go_work"
    assert state["warnings"] == ["persistence: disk full"]


def test_load_replays_persisted_log():
    sequencer, clock, store, _ = _make_sequencer()
    sequencer.press()
    clock.set(datetime(2026, 2, 22, 8, 0))
    sequencer.press()

    fresh, _, _, _ = _make_sequencer(now=datetime(2026, 2, 22, 9, 0), event_store=store)
    assert fresh.session["status"] == "check_in"
    assert fresh.next_action() == ActionType.CHECK_OUT


def test_reset_then_replay():
    """リセット後は unknown、元のログを再生すると元の状態に戻る"""
    sequencer, clock, store, reminders = _make_sequencer()
    for hour in (7, 8, 17):
        clock.set(datetime(2026, 2, 22, hour, 0))
        sequencer.press()
    original_log = store.load_events_for_date("2026-02-22")
    original_status = sequencer.session["daily_status"]

    state = sequencer.reset()

    assert state["status"] == "idle"
    assert store.load_events_for_date("2026-02-22") == []
    assert store.load_daily_status("2026-02-22") is None
    assert compute_daily_status(store.load_events_for_date("2026-02-22"), SHIFT).status.value == "unknown"
    scheduled = [c.args[0] for c in reminders.schedule_reminder.call_args_list]
    assert scheduled == ["go_work", "check_in", "check_out"]

    replay, _, _, _ = _make_sequencer(now=datetime(2026, 2, 22, 18, 0))
    for event in original_log:
        replay.apply(event.type.value, event.timestamp)
    assert replay.session["daily_status"] == original_status
    assert replay.session["status"] == "check_out"


def test_reset_schedules_punch_reminder_when_enabled():
    shift = ShiftConfig(
        start_time="08:00", office_end_time="17:00", end_time="17:00", show_punch=True
    )
    sequencer, _, _, reminders = _make_sequencer(shift=shift)
    sequencer.reset()
    scheduled = [c.args[0] for c in reminders.schedule_reminder.call_args_list]
    assert "punch" in scheduled


def test_midnight_rollover_on_press():
    sequencer, clock, store, _ = _make_sequencer(reset_policy=AutoResetPolicy())
    for hour in (7, 8, 17, 18):
        clock.set(datetime(2026, 2, 22, hour, 0))
        sequencer.press()

    clock.set(datetime(2026, 2, 23, 7, 0))
    state = sequencer.press()

    assert state["today"] == "2026-02-23"
    assert state["action_taken"] == "go_work"
    assert len(store.load_events_for_date("2026-02-22")) == 4
    assert len(store.load_events_for_date("2026-02-23")) == 1


def test_check_auto_reset_after_end():
    sequencer, clock, store, _ = _make_sequencer(
        reset_policy=AutoResetPolicy(at_midnight=False, hours_after_end=2)
    )
    for hour in (7, 8, 17):
        clock.set(datetime(2026, 2, 22, hour, 0))
        sequencer.press()

    clock.set(datetime(2026, 2, 22, 18, 0))
    assert sequencer.check_auto_reset() is None

    clock.set(datetime(2026, 2, 22, 19, 30))
    assert sequencer.check_auto_reset() == "hours_after_end"
    assert sequencer.session["status"] == "idle"
    assert store.load_events_for_date("2026-02-22") == []


def test_check_auto_reset_without_policy():
    sequencer, _, _, _ = _make_sequencer()
    assert sequencer.check_auto_reset() is None


NIGHT_SHIFT = ShiftConfig(
    start_time="22:00", office_end_time="06:00", end_time="06:00", shift_id="night"
)


def test_overnight_shift_checks_out_next_morning():
    """夜勤は日付を跨いでも勤務開始日のセッションで退勤できる"""
    sequencer, clock, store, _ = _make_sequencer(
        now=datetime(2026, 2, 22, 21, 50),
        shift=NIGHT_SHIFT,
        reset_policy=AutoResetPolicy(hours_after_end=None),
    )
    sequencer.press()
    clock.set(datetime(2026, 2, 22, 22, 5))
    sequencer.press()

    clock.set(datetime(2026, 2, 23, 6, 10))
    assert sequencer.check_auto_reset() is None
    state = sequencer.press()

    assert state["action_taken"] == "check_out"
    assert state["today"] == "2026-02-22"
    assert [e.type.value for e in store.load_events_for_date("2026-02-22")] == [
        "go_work",
        "check_in",
        "check_out",
    ]
    assert store.load_events_for_date("2026-02-23") == []
    daily = store.load_daily_status("2026-02-22")
    assert daily.status.value == "RV"
    assert daily.late_minutes == 30
    assert daily.early_minutes == 0


def test_overnight_shift_fresh_process_resumes_previous_day():
    """別プロセス（CLI）から翌朝に読み込んでも前日の勤務を継続する"""
    store = InMemoryEventStore([NIGHT_SHIFT])
    first, clock, _, _ = _make_sequencer(
        now=datetime(2026, 2, 22, 21, 50), shift=NIGHT_SHIFT, event_store=store
    )
    first.press()
    clock.set(datetime(2026, 2, 22, 22, 5))
    first.press()

    later, _, _, _ = _make_sequencer(
        now=datetime(2026, 2, 23, 6, 10),
        shift=NIGHT_SHIFT,
        event_store=store,
        reset_policy=AutoResetPolicy(),
    )
    assert later.session["today"] == "2026-02-22"
    assert later.next_action() == ActionType.CHECK_OUT


def test_overnight_session_rolls_after_next_shift_start():
    """退勤し忘れても次のシフト開始で新しい日に切り替わる"""
    sequencer, clock, store, _ = _make_sequencer(
        now=datetime(2026, 2, 22, 22, 0),
        shift=NIGHT_SHIFT,
        reset_policy=AutoResetPolicy(hours_after_end=None),
    )
    sequencer.apply("check_in", datetime(2026, 2, 22, 22, 0))

    clock.set(datetime(2026, 2, 23, 22, 0))
    assert sequencer.check_auto_reset() == "date_changed"
    assert sequencer.session["today"] == "2026-02-23"
    assert sequencer.session["status"] == "idle"


def test_date_change_reschedules_reminders():
    """日付切替で新しい日のリマインドを予約する"""
    sequencer, clock, _, reminders = _make_sequencer(
        now=datetime(2026, 2, 22, 18, 0), reset_policy=AutoResetPolicy()
    )
    sequencer.apply("check_out", datetime(2026, 2, 22, 17, 0))

    clock.set(datetime(2026, 2, 23, 0, 5))
    assert sequencer.check_auto_reset() == "date_changed"

    scheduled = [c.args[:2] for c in reminders.schedule_reminder.call_args_list]
    assert scheduled == [
        ("go_work", "2026-02-23"),
        ("check_in", "2026-02-23"),
        ("check_out", "2026-02-23"),
    ]


def test_date_change_skips_reminders_already_done():
    store = InMemoryEventStore([SHIFT])
    store.append_event(
        "2026-02-23", Event(type=ActionType.GO_WORK, timestamp=datetime(2026, 2, 23, 7, 0))
    )
    sequencer, clock, _, reminders = _make_sequencer(
        now=datetime(2026, 2, 22, 18, 0), event_store=store, reset_policy=AutoResetPolicy()
    )
    sequencer.load()

    clock.set(datetime(2026, 2, 23, 7, 5))
    sequencer.check_auto_reset()

    scheduled = [c.args[0] for c in reminders.schedule_reminder.call_args_list]
    assert scheduled == ["check_in", "check_out"]
    assert sequencer.session["status"] == "go_work"


def test_refresh_picks_up_other_writer():
    store = InMemoryEventStore([SHIFT])
    sequencer, _, _, _ = _make_sequencer(event_store=store)
    assert sequencer.session["status"] == "idle"

    store.append_event(
        "2026-02-22", Event(type=ActionType.GO_WORK, timestamp=datetime(2026, 2, 22, 6, 50))
    )
    assert sequencer.refresh()["status"] == "go_work"
