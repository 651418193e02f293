import logging
import sys

logger = logging.getLogger(__name__)

REMINDER_MESSAGES = {
    "go_work": "🚶 そろそろ出発の時間です（{day}）",
    "check_in": "⏰ 出勤打刻を忘れずに（{day}）",
    "punch": "📍 中間打刻の時間です（{day}）",
    "check_out": "🔚 退勤打刻を忘れずに（{day}）",
}


class ConsoleNotifier:
    """コンソール出力による通知（フォールバック用）"""

    def send(self, message: str) -> bool:
        print(f"[勤怠通知] {message}", file=sys.stdout)
        return True

    def send_error(self, error: str) -> bool:
        print(f"[勤怠エラー] {error}", file=sys.stderr)
        return True

    def send_reminder(self, action: str, day: str) -> bool:
        return self.send(REMINDER_MESSAGES[action].format(day=day))


class SlackNotifier(ConsoleNotifier):
    """Slack APIによる通知サービス"""

    def __init__(self, token: str, channel: str):
        self._channel = channel
        self._client = None
        self._fallback = ConsoleNotifier()

        if token:
            try:
                from slack_sdk import WebClient
                self._client = WebClient(token=token)
            except Exception as e:
                logger.warning("Slackクライアントを初期化できません: %s", e)

    def send(self, message: str) -> bool:
        """メッセージ送信（失敗時はフォールバック）"""
        if self._client is None:
            return self._fallback.send(message)

        try:
            self._client.chat_postMessage(channel=self._channel, text=message)
            return True
        except Exception as e:
            logger.warning("Slack送信に失敗しました: %s", e)
            return False

    def send_error(self, error: str) -> bool:
        """エラー通知"""
        message = f"❌ 勤怠処理でエラーが発生しました。手動確認をお願いします（エラー: {error}）"
        return self.send(message)
