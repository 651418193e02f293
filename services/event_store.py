import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from engine.errors import ValidationError
from engine.models import DailyStatus, Event, ManualStatus, ShiftConfig

SECTIONS = ("work_logs", "daily_status", "manual_status")


class EventStore(ABC):
    """永続化サービスの抽象インターフェース（日付キーは YYYY-MM-DD）"""

    @abstractmethod
    def load_events_for_date(self, day: str) -> list[Event]:
        """指定日のイベントログ"""
        ...

    @abstractmethod
    def append_event(self, day: str, event: Event) -> None:
        """イベント追加（同一の種別・時刻は重複登録しない）"""
        ...

    @abstractmethod
    def clear_events(self, day: str) -> None:
        ...

    @abstractmethod
    def load_shift_config(self, shift_id: str) -> Optional[ShiftConfig]:
        ...

    @abstractmethod
    def save_daily_status(self, day: str, status: DailyStatus) -> None:
        ...

    @abstractmethod
    def load_daily_status(self, day: str) -> Optional[DailyStatus]:
        ...

    @abstractmethod
    def delete_daily_status(self, day: str) -> None:
        ...

    @abstractmethod
    def load_manual_override(self, day: str) -> Optional[ManualStatus]:
        ...

    @abstractmethod
    def set_manual_override(self, day: str, status: Optional[ManualStatus]) -> None:
        """手動ステータスを設定（Noneで解除）"""
        ...

    @abstractmethod
    def export_data(self) -> dict:
        ...

    @abstractmethod
    def import_data(self, data: dict) -> None:
        ...

    def refresh(self) -> None:
        """永続化先を読み直す（他プロセスの書き込みを取り込む）"""


class InMemoryEventStore(EventStore):
    """メモリ上の辞書に保持する実装"""

    def __init__(self, shifts: Optional[list[ShiftConfig]] = None):
        self._data: dict = {section: {} for section in SECTIONS}
        self._shifts = {s.shift_id: s for s in shifts or []}

    def _save(self) -> None:
        pass

    def register_shift(self, shift: ShiftConfig) -> None:
        self._shifts[shift.shift_id] = shift

    def load_events_for_date(self, day):
        return [Event.from_dict(e) for e in self._data["work_logs"].get(day, [])]

    def append_event(self, day, event):
        logs = self._data["work_logs"].setdefault(day, [])
        record = event.to_dict()
        if any(
            e["type"] == record["type"] and e["timestamp"] == record["timestamp"]
            for e in logs
        ):
            return
        logs.append(record)
        self._save()

    def clear_events(self, day):
        if self._data["work_logs"].pop(day, None) is not None:
            self._save()

    def load_shift_config(self, shift_id):
        return self._shifts.get(shift_id)

    def save_daily_status(self, day, status):
        self._data["daily_status"][day] = status.to_dict()
        self._save()

    def load_daily_status(self, day):
        raw = self._data["daily_status"].get(day)
        return DailyStatus.from_dict(raw) if raw else None

    def delete_daily_status(self, day):
        if self._data["daily_status"].pop(day, None) is not None:
            self._save()

    def load_manual_override(self, day):
        raw = self._data["manual_status"].get(day)
        return ManualStatus(raw) if raw else None

    def set_manual_override(self, day, status):
        if status is None:
            self._data["manual_status"].pop(day, None)
        else:
            try:
                self._data["manual_status"][day] = ManualStatus(status).value
            except ValueError as e:
                raise ValidationError(f"手動設定できないステータスです: {status}") from e
        self._save()

    def export_data(self):
        return json.loads(json.dumps(self._data))

    def import_data(self, data):
        missing = [section for section in SECTIONS if not isinstance(data.get(section), dict)]
        if missing:
            raise ValidationError(f"不正なデータ形式です（欠落: {', '.join(missing)}）")
        self._data = {section: json.loads(json.dumps(data[section])) for section in SECTIONS}
        self._save()


class JsonFileEventStore(InMemoryEventStore):
    """1つのJSONファイルに全データを保存する実装"""

    def __init__(self, path: str, shifts: Optional[list[ShiftConfig]] = None):
        super().__init__(shifts)
        self._path = Path(path)
        self.refresh()

    def refresh(self) -> None:
        if self._path.exists():
            with open(self._path, "r", encoding="utf-8") as f:
                loaded = json.load(f) or {}
            for section in SECTIONS:
                self._data[section] = loaded.get(section, {})

    def _save(self) -> None:
        """一時ファイルに書いてから置き換える"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise
