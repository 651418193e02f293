from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from engine.errors import ValidationError


def parse_hhmm(time_str: str) -> time:
    """HH:MM形式の文字列をtimeオブジェクトに変換"""
    try:
        h, m = map(int, time_str.split(":"))
        return time(h, m)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"HH:MM形式ではありません: {time_str!r}") from e


def at_time(day: date, time_str: str) -> datetime:
    """指定日のHH:MM時刻をdatetimeにする"""
    return datetime.combine(day, parse_hhmm(time_str))


def normalize_interval(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """終了が開始以前なら終了を翌日扱いにする（日付跨ぎ対応）"""
    if end <= start:
        return start, end + timedelta(days=1)
    return start, end


def minutes_between(start: datetime, end: datetime) -> int:
    """start→endの差分（分）。端数は0方向に切り捨て"""
    return int((end - start).total_seconds() / 60)


def duration_minutes(start: datetime, end: datetime) -> int:
    """日付跨ぎを正規化した区間の長さ（分、切り捨て）"""
    start, end = normalize_interval(start, end)
    return int((end - start).total_seconds() // 60)


def alarm_time(target: datetime, now: datetime, lead_minutes: int = 15) -> Optional[datetime]:
    """target の lead_minutes 分前を返す。now 以前になる場合は None"""
    alarm = target - timedelta(minutes=lead_minutes)
    if alarm <= now:
        return None
    return alarm


def round_up_to_block(minutes: int, block: int = 30) -> int:
    """分を block 分単位に切り上げる（17→30, 30→30, 31→60）"""
    if minutes <= 0:
        return 0
    return -(-minutes // block) * block


def minutes_to_hours(minutes: int) -> float:
    """分を時間に変換し小数第2位で四捨五入（ROUND_HALF_UP）"""
    hours = Decimal(minutes) / Decimal(60)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_clock(value: datetime) -> str:
    return value.strftime("%H:%M:%S")
