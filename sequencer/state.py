from typing import TypedDict, Optional


class SessionState(TypedDict):
    today: str                          # YYYY-MM-DD
    status: str                         # idle / go_work / check_in / punch / check_out / complete
    go_work_time: Optional[str]         # ISO8601
    check_in_time: Optional[str]
    punch_time: Optional[str]
    check_out_time: Optional[str]
    complete_time: Optional[str]
    events: list[dict]                  # 当日のイベントログ（Event.to_dict形式）
    requested_action: Optional[str]     # 明示指定されたアクション（Noneなら次のアクション）
    timestamp: Optional[str]            # アクション実行時刻 ISO8601
    action_taken: Optional[str]         # アクション名 / "noop" / "gated"
    daily_status: Optional[dict]        # 再計算された DailyStatus.to_dict()
    warnings: list[str]                 # 非致命的な協調者エラー
    error_message: Optional[str]        # ゲート理由など
    extra: dict                         # 任意の追加データ


TIMESTAMP_FIELDS = {
    "go_work": "go_work_time",
    "check_in": "check_in_time",
    "punch": "punch_time",
    "check_out": "check_out_time",
    "complete": "complete_time",
}


def new_session(today: str) -> SessionState:
    """指定日のidle状態セッションを生成する"""
    return {
        "today": today,
        "status": "idle",
        "go_work_time": None,
        "check_in_time": None,
        "punch_time": None,
        "check_out_time": None,
        "complete_time": None,
        "events": [],
        "requested_action": None,
        "timestamp": None,
        "action_taken": None,
        "daily_status": None,
        "warnings": [],
        "error_message": None,
        "extra": {},
    }
