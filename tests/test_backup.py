import json
from datetime import datetime

import pytest

from engine.errors import ValidationError
from engine.models import ActionType, Event, ManualStatus
from services.backup import create_backup, restore_backup
from services.clock import FixedClock
from services.event_store import InMemoryEventStore


def test_backup_and_restore(tmp_path):
    """バックアップしたデータを別ストアに復元できること"""
    store = InMemoryEventStore()
    store.append_event("2026-02-22", Event(ActionType.GO_WORK, datetime(2026, 2, 22, 7, 0)))
    store.set_manual_override("2026-02-20", ManualStatus.LEAVE)

    path = create_backup(store, str(tmp_path / "backup.json"), clock=FixedClock(datetime(2026, 2, 22, 20, 0)))
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["metadata"]["createdAt"] == "2026-02-22T20:00:00"

    restored = InMemoryEventStore()
    metadata = restore_backup(restored, str(path))
    assert metadata["appVersion"]
    assert restored.load_events_for_date("2026-02-22")[0].type == ActionType.GO_WORK
    assert restored.load_manual_override("2026-02-20") == ManualStatus.LEAVE


def test_backup_into_directory(tmp_path):
    path = create_backup(InMemoryEventStore(), str(tmp_path), clock=FixedClock(datetime(2026, 2, 22, 20, 0)))
    assert path.name == "attendance_backup_2026-02-22T20-00-00.json"
    assert path.exists()


def test_restore_rejects_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError):
        restore_backup(InMemoryEventStore(), str(path))


def test_restore_rejects_missing_metadata(tmp_path):
    path = tmp_path / "no_meta.json"
    path.write_text(json.dumps({"work_logs": {}}), encoding="utf-8")
    with pytest.raises(ValidationError):
        restore_backup(InMemoryEventStore(), str(path))
