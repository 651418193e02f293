"""勤怠トラッカー - エントリーポイント"""
import argparse
import logging
import os
import signal
import sys
import time
from datetime import date
from typing import NamedTuple, Optional

from engine.errors import AttendanceError
from engine.models import ManualStatus, ShiftConfig
from engine.work_status import display_status
from schedulers.scheduler import AttendanceScheduler, ReminderScheduler
from sequencer.nodes.rollover_node import schedule_day_reminders
from sequencer.policies import auto_reset_from_config, gates_from_config
from sequencer.sequencer import ActionSequencer
from services.backup import create_backup, restore_backup
from services.clock import Clock, SystemClock
from services.config_loader import load_config, rules_from_config, shift_from_config
from services.event_store import EventStore, JsonFileEventStore
from services.notifier import ConsoleNotifier, SlackNotifier
from services.weekly_status import build_month, build_week, day_view, set_manual_status

PREFIX = "[勤怠トラッカー]"


class Services(NamedTuple):
    shift: ShiftConfig
    event_store: EventStore
    notifier: ConsoleNotifier
    reminders: Optional[ReminderScheduler]
    sequencer: ActionSequencer
    clock: Clock


def create_services(config: dict, clock: Optional[Clock] = None) -> Services:
    """設定に基づいてサービスインスタンスを生成"""
    clock = clock or SystemClock()
    shift = shift_from_config(config)
    event_store = JsonFileEventStore(config["storage"]["path"], shifts=[shift])

    # 通知
    slack_config = config["slack"]
    slack_token = os.getenv("SLACK_BOT_TOKEN", "")
    if slack_config["enabled"] and slack_token:
        notifier = SlackNotifier(token=slack_token, channel=slack_config["notify_channel"])
    else:
        notifier = ConsoleNotifier()

    reminders = None
    if config["reminders"]["enabled"]:
        reminders = ReminderScheduler(
            notifier,
            lead_minutes=config["reminders"]["lead_minutes"],
            clock=clock,
            event_store=event_store,
        )

    sequencer = ActionSequencer(
        shift=shift,
        event_store=event_store,
        reminders=reminders,
        clock=clock,
        gate=gates_from_config(config),
        reset_policy=auto_reset_from_config(config),
        rules=rules_from_config(config),
    )
    return Services(shift, event_store, notifier, reminders, sequencer, clock)


def _print_daily(label: str, daily: dict) -> None:
    print(
        f"{PREFIX} {label}: {daily['status']} "
        f"in={daily['check_in_time'] or '-'} out={daily['check_out_time'] or '-'} "
        f"total={daily['total_work_time']:.2f}h OT={daily['overtime']:.2f}h {daily['remarks']}"
    )


def cmd_status(args, config, services):
    current_day = services.sequencer.session["today"]
    day = args.date or current_day
    view = day_view(
        services.event_store,
        services.shift,
        date.fromisoformat(day),
        rules=rules_from_config(config),
    )
    if view.is_override:
        icon, label = display_status(view.status)
        print(f"{PREFIX} {day}: {icon} {label}（手動設定）")
    else:
        _print_daily(day, view.daily.to_dict())
    if day == current_day:
        print(f"{PREFIX} 現在の状態: {services.sequencer.session['status']}")
    return 0


def cmd_next(args, config, services):
    sequencer = services.sequencer
    action = sequencer.next_action()
    decision = sequencer.gate_status()
    if decision.allowed:
        print(f"{PREFIX} 次のアクション: {action.value}")
    else:
        print(
            f"{PREFIX} 次のアクション: {action.value}"
            f"（あと{decision.remaining_minutes}分: {decision.reason}）"
        )
    return 0


def cmd_press(args, config, services):
    state = services.sequencer.press(force=args.force)
    taken = state["action_taken"]
    if taken == "noop":
        print(f"{PREFIX} 本日の勤怠は完了済みです")
    elif taken == "gated":
        print(f"{PREFIX} まだ実行できません: {state['error_message']}")
        return 1
    else:
        print(f"{PREFIX} {taken} を記録しました（{state['timestamp']}）")
        if state["daily_status"]:
            _print_daily(state["today"], state["daily_status"])
    for warning in state["warnings"]:
        print(f"{PREFIX} 警告: {warning}", file=sys.stderr)
    return 0


def cmd_reset(args, config, services):
    state = services.sequencer.reset()
    print(f"{PREFIX} {state['today']} の打刻をリセットしました")
    return 0


def cmd_week(args, config, services):
    today = services.clock.now().date()
    reference = date.fromisoformat(args.date) if args.date else today
    for view in build_week(
        services.event_store,
        services.shift,
        reference,
        today=today,
        rules=rules_from_config(config),
    ):
        icon, label = display_status(view.status)
        detail = ""
        if view.daily is not None and view.daily.check_in_time:
            detail = f" {view.daily.check_in_time}-{view.daily.check_out_time or '--:--:--'}"
        print(f"{view.day.isoformat()} {view.weekday} {icon} {label}{detail}")
    return 0


def cmd_month(args, config, services):
    today = services.clock.now().date()
    if args.month:
        year, month = map(int, args.month.split("-"))
    else:
        year, month = today.year, today.month
    summary = build_month(
        services.event_store,
        services.shift,
        year,
        month,
        today=today,
        rules=rules_from_config(config),
    )
    print(f"{PREFIX} {year:04d}-{month:02d}")
    print(f"  総労働時間: {summary.total_work_time:.2f}h")
    print(f"  残業時間: {summary.total_overtime:.2f}h")
    print(f"  出勤日数: {summary.worked_days}")
    for status, count in sorted(summary.counts.items()):
        print(f"  {status}: {count}")
    return 0


def cmd_override(args, config, services):
    status = None if args.status == "clear" else ManualStatus(args.status)
    set_manual_status(
        services.event_store,
        date.fromisoformat(args.date),
        status,
        today=services.clock.now().date(),
    )
    print(f"{PREFIX} {args.date} の手動ステータスを更新しました: {args.status}")
    return 0


def cmd_backup(args, config, services):
    path = create_backup(services.event_store, args.path, clock=services.clock)
    print(f"{PREFIX} バックアップを作成しました: {path}")
    return 0


def cmd_restore(args, config, services):
    metadata = restore_backup(services.event_store, args.path)
    print(f"{PREFIX} バックアップを復元しました（作成日時: {metadata.get('createdAt')}）")
    return 0


def cmd_run(args, config, services):
    """自動リセット判定とリマインドを常駐実行する"""
    shift, _, notifier, reminders, sequencer, _ = services

    if reminders is not None:
        reminders.start()
        session = sequencer.session
        done = tuple(e["type"] for e in session["events"])
        schedule_day_reminders(session["today"], reminders, shift, done=done)

    def check_job():
        try:
            # press は別プロセスで記録されるため、判定前にログを読み直す
            sequencer.refresh()
            reason = sequencer.check_auto_reset()
            if reason:
                print(f"{PREFIX} セッションを自動リセットしました（{reason}）")
        except Exception as e:
            print(f"{PREFIX} チェック中にエラー: {e}")
            notifier.send_error(str(e))

    interval = config["auto_reset"]["check_interval_minutes"]
    scheduler = AttendanceScheduler(interval_minutes=interval, job_func=check_job)
    scheduler.start()
    print(f"{PREFIX} {interval}分間隔でチェックを開始します")

    # シグナルハンドリング
    def shutdown(signum, frame):
        print(f"\n{PREFIX} 停止中...")
        scheduler.stop()
        if reminders is not None:
            reminders.stop()
        print(f"{PREFIX} 停止しました")
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"{PREFIX} Ctrl+Cで停止します")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        shutdown(None, None)


COMMANDS = {
    "status": cmd_status,
    "next": cmd_next,
    "press": cmd_press,
    "reset": cmd_reset,
    "week": cmd_week,
    "month": cmd_month,
    "override": cmd_override,
    "backup": cmd_backup,
    "restore": cmd_restore,
    "run": cmd_run,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="attendance-tracker", description="個人用勤怠トラッカー")
    parser.add_argument("--config", default="config.yaml", help="設定ファイル (YAML)")
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="日次ステータスを表示")
    status.add_argument("--date", help="YYYY-MM-DD（省略時は現在の勤務日）")
    sub.add_parser("next", help="次のアクションを表示")
    press = sub.add_parser("press", help="次のアクションを記録")
    press.add_argument("--force", action="store_true", help="時刻ゲートを無視する")
    sub.add_parser("reset", help="本日の打刻をリセット")
    week = sub.add_parser("week", help="週間ステータスを表示")
    week.add_argument("--date", help="基準日 YYYY-MM-DD")
    month = sub.add_parser("month", help="月間集計を表示")
    month.add_argument("--month", help="YYYY-MM（省略時は今月）")
    override = sub.add_parser("override", help="手動ステータスを設定")
    override.add_argument("date", help="YYYY-MM-DD")
    override.add_argument("status", choices=[s.value for s in ManualStatus] + ["clear"])
    backup = sub.add_parser("backup", help="バックアップを作成")
    backup.add_argument("path", help="出力ファイルまたはディレクトリ")
    restore = sub.add_parser("restore", help="バックアップから復元")
    restore.add_argument("path", help="バックアップファイル")
    sub.add_parser("run", help="常駐して自動リセットとリマインドを行う")
    return parser


def main(argv=None, clock: Optional[Clock] = None) -> int:
    """メイン起動処理"""
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    logging.basicConfig(
        level=config["logging"]["level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        services = create_services(config, clock=clock)
        return COMMANDS[args.command](args, config, services)
    except (AttendanceError, ValueError) as e:
        print(f"{PREFIX} エラー: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
