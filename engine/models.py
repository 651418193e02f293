from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from engine.errors import ValidationError
from engine.time_utils import parse_hhmm


class ActionType(str, Enum):
    """記録されるアクション種別"""

    GO_WORK = "go_work"
    CHECK_IN = "check_in"
    PUNCH = "punch"
    CHECK_OUT = "check_out"
    COMPLETE = "complete"


class SessionStatus(str, Enum):
    """アクションシーケンサーのライブ状態"""

    IDLE = "idle"
    GO_WORK = "go_work"
    CHECK_IN = "check_in"
    PUNCH = "punch"
    CHECK_OUT = "check_out"
    COMPLETE = "complete"


class WorkStatus(str, Enum):
    """エンジンが導出する日次ステータス"""

    UNKNOWN = "unknown"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    RV = "RV"  # 遅刻・早退あり


class ManualStatus(str, Enum):
    """ユーザーの手動編集でのみ設定されるステータス"""

    LEAVE = "leave"
    SICK = "sick"
    HOLIDAY = "holiday"
    ABSENT = "absent"


DayStatus = Union[WorkStatus, ManualStatus]


@dataclass(frozen=True)
class Event:
    type: ActionType
    timestamp: datetime
    shift_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "shiftId": self.shift_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            type=ActionType(data["type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            shift_id=data.get("shiftId"),
        )


@dataclass(frozen=True)
class ShiftConfig:
    """シフト設定。end_time < start_time の場合は夜勤（翌日終了）"""

    start_time: str
    office_end_time: str
    end_time: str
    only_go_work_mode: bool = False
    show_punch: bool = False
    min_work_hours: Optional[float] = None
    shift_id: Optional[str] = None
    name: str = ""

    @property
    def overnight(self) -> bool:
        """終業時刻が開始時刻より前なら夜勤"""
        return parse_hhmm(self.end_time) < parse_hhmm(self.start_time)

    def validate(self) -> "ShiftConfig":
        """HH:MM形式でない時刻があればValidationErrorを送出する"""
        for field_name in ("start_time", "office_end_time", "end_time"):
            parse_hhmm(getattr(self, field_name))
        if self.min_work_hours is not None and self.min_work_hours < 0:
            raise ValidationError(f"min_work_hours must be >= 0: {self.min_work_hours}")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "ShiftConfig":
        min_hours = data.get("min_work_hours")
        return cls(
            start_time=data["start_time"],
            office_end_time=data.get("office_end_time") or data["end_time"],
            end_time=data["end_time"],
            only_go_work_mode=bool(data.get("only_go_work_mode", False)),
            show_punch=bool(data.get("show_punch", False)),
            min_work_hours=float(min_hours) if min_hours is not None else None,
            shift_id=data.get("id"),
            name=data.get("name", ""),
        )


@dataclass(frozen=True)
class AccountingRules:
    """集計ポリシー"""

    penalty_block_minutes: int = 30
    # True: 出退勤が両方あれば所定時間満額で計上する（旧来の挙動）
    credit_full_shift_on_punches: bool = False


@dataclass(frozen=True)
class DailyStatus:
    status: WorkStatus
    check_in_time: Optional[str] = None
    check_out_time: Optional[str] = None
    total_work_time: float = 0.0
    overtime: float = 0.0
    remarks: str = ""
    late_minutes: int = 0
    early_minutes: int = 0

    @classmethod
    def unknown(cls) -> "DailyStatus":
        return cls(status=WorkStatus.UNKNOWN)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DailyStatus":
        return cls(
            status=WorkStatus(data["status"]),
            check_in_time=data.get("check_in_time"),
            check_out_time=data.get("check_out_time"),
            total_work_time=float(data.get("total_work_time", 0.0)),
            overtime=float(data.get("overtime", 0.0)),
            remarks=data.get("remarks", ""),
            late_minutes=int(data.get("late_minutes", 0)),
            early_minutes=int(data.get("early_minutes", 0)),
        )
