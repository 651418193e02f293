import json
from pathlib import Path
from typing import Optional

from engine.errors import ValidationError
from services.clock import Clock, SystemClock

APP_VERSION = "1.0.0"


def create_backup(event_store, path: str, clock: Optional[Clock] = None) -> Path:
    """ストアの全データをメタデータ付きJSONファイルに書き出す"""
    now = (clock or SystemClock()).now()
    data = event_store.export_data()
    data["metadata"] = {
        "appVersion": APP_VERSION,
        "createdAt": now.isoformat(),
    }

    backup_path = Path(path)
    if backup_path.is_dir():
        backup_path = backup_path / f"attendance_backup_{now:%Y-%m-%dT%H-%M-%S}.json"
    with open(backup_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    return backup_path


def restore_backup(event_store, path: str) -> dict:
    """バックアップファイルを読み込み、ストアの内容を置き換える。メタデータを返す"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"バックアップファイルを読み込めません: {e}") from e

    if not isinstance(data, dict) or "metadata" not in data:
        raise ValidationError("バックアップファイルの形式が不正です")

    event_store.import_data(data)
    return data["metadata"]
