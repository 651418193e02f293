from abc import ABC, abstractmethod
from datetime import datetime, timedelta


class Clock(ABC):
    """現在時刻の取得を抽象化（テストで固定時刻に差し替える）"""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """固定時刻を返す。advance()で進められる"""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now
