# schedulers/scheduler.py
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from engine.models import ShiftConfig
from engine.time_utils import alarm_time, at_time
from services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

# アクション → リマインド基準となるシフト時刻
REMINDER_TARGETS = {
    "go_work": "start_time",
    "check_in": "start_time",
    "punch": "office_end_time",
    "check_out": "office_end_time",
}


class AttendanceScheduler:
    """APSchedulerによる定期実行管理（自動リセット判定など）"""

    def __init__(self, interval_minutes: int, job_func: Callable):
        self._interval = interval_minutes
        self._job_func = job_func
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._job_func,
            trigger=IntervalTrigger(minutes=self._interval),
            id="attendance_check",
            replace_existing=True,
        )

    def start(self):
        """スケジューラ開始"""
        self._scheduler.start()

    def stop(self):
        """スケジューラ停止"""
        self._scheduler.shutdown(wait=False)


def reminder_target(action: str, day: str, shift: ShiftConfig) -> datetime:
    """指定日のリマインド基準時刻（夜勤の終業側は翌日）"""
    base = date.fromisoformat(day)
    target = at_time(base, getattr(shift, REMINDER_TARGETS[action]))
    if target < at_time(base, shift.start_time):
        target += timedelta(days=1)
    return target


class ReminderScheduler:
    """アクションごとのリマインド通知を予約・取消する

    event_store を渡すと、通知直前に永続化済みログを読み直し、
    別プロセスで実行済みのアクションのリマインドは送らない。
    """

    def __init__(
        self,
        notifier,
        lead_minutes: Optional[dict] = None,
        scheduler: Optional[BackgroundScheduler] = None,
        clock: Optional[Clock] = None,
        event_store=None,
    ):
        self._notifier = notifier
        self._lead = lead_minutes or {}
        self._scheduler = scheduler or BackgroundScheduler()
        self._clock = clock or SystemClock()
        self._event_store = event_store

    @staticmethod
    def job_id(action: str, day: str) -> str:
        return f"reminder_{action}_{day}"

    def schedule_reminder(self, action: str, day: str, shift: ShiftConfig) -> Optional[datetime]:
        """リマインドを予約する。過去時刻になる場合は予約しない"""
        if action not in REMINDER_TARGETS:
            return None
        run_at = alarm_time(
            reminder_target(action, day, shift),
            self._clock.now(),
            self._lead.get(action, 0),
        )
        if run_at is None:
            logger.info("リマインド時刻を過ぎているため予約しません: %s %s", action, day)
            return None

        self._scheduler.add_job(
            self.notify,
            trigger=DateTrigger(run_date=run_at),
            args=[action, day],
            id=self.job_id(action, day),
            replace_existing=True,
        )
        return run_at

    def notify(self, action: str, day: str) -> bool:
        """リマインドを送信する。ログに記録済みのアクションなら送らない"""
        if self._event_store is not None:
            self._event_store.refresh()
            if any(e.type.value == action for e in self._event_store.load_events_for_date(day)):
                logger.info("記録済みのためリマインドを送りません: %s %s", action, day)
                return False
        return self._notifier.send_reminder(action, day)

    def cancel_reminder(self, action: str, day: str) -> bool:
        """予約済みリマインドを取り消す。予約がなければFalse"""
        job_id = self.job_id(action, day)
        if self._scheduler.get_job(job_id) is None:
            return False
        self._scheduler.remove_job(job_id)
        return True

    def start(self):
        self._scheduler.start()

    def stop(self):
        self._scheduler.shutdown(wait=False)
