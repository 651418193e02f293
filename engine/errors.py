class AttendanceError(Exception):
    """勤怠処理の基底例外"""


class ValidationError(AttendanceError):
    """シフト設定や入力値が不正な場合（呼び出し側の前提条件違反）"""


class StaleStateError(AttendanceError):
    """セッション状態が永続化済みイベントログと食い違っている場合"""


class CollaboratorFailure(AttendanceError):
    """永続化・通知など外部協調者のI/O失敗"""

    def __init__(self, collaborator: str, message: str):
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
