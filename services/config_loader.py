import copy
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from engine.errors import ValidationError
from engine.models import AccountingRules, ShiftConfig

DEFAULT_CONFIG = {
    "storage": {
        "path": "attendance_data.json",
    },
    "active_shift": "day",
    "shifts": [
        {
            "id": "day",
            "name": "Day shift",
            "start_time": "08:00",
            "office_end_time": "17:00",
            "end_time": "17:00",
            "only_go_work_mode": False,
            "show_punch": False,
            "min_work_hours": None,
        },
    ],
    "accounting": {
        "penalty_block_minutes": 30,
        "credit_full_shift_on_punches": False,
    },
    "time_gates": {
        "enabled": False,
        "check_in_lead_minutes": 30,
        "go_work_to_check_in_minutes": 0,
        "check_in_to_check_out_minutes": 0,
    },
    "auto_reset": {
        "at_midnight": True,
        "hours_after_end": None,
        "check_interval_minutes": 5,
    },
    "reminders": {
        "enabled": True,
        "lead_minutes": {
            "go_work": 60,
            "check_in": 15,
            "punch": 60,
            "check_out": 0,
        },
    },
    "slack": {
        "enabled": False,
        "notify_channel": "",
    },
    "logging": {
        "level": "INFO",
    },
}

# 環境変数 → (セクション, キー)
ENV_OVERRIDES = {
    "ATTENDANCE_DATA_PATH": ("storage", "path"),
    "SLACK_NOTIFY_CHANNEL": ("slack", "notify_channel"),
    "ATTENDANCE_LOG_LEVEL": ("logging", "level"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """ベース設定にオーバーライドをマージする"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env(config: dict) -> dict:
    """.env / 環境変数による上書き"""
    load_dotenv()
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config[section][key] = value
    return config


def load_config(path: str = "config.yaml") -> dict:
    """YAML設定ファイルをロードし、デフォルト設定とマージして返す"""
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        config = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)
    return _apply_env(config)


def shift_from_config(config: dict, shift_id: Optional[str] = None) -> ShiftConfig:
    """設定からシフトを取得して検証する"""
    shift_id = shift_id or config["active_shift"]
    for raw in config["shifts"]:
        if raw.get("id") == shift_id:
            return ShiftConfig.from_dict(raw).validate()
    raise ValidationError(f"シフトが見つかりません: {shift_id}")


def rules_from_config(config: dict) -> AccountingRules:
    rules = config["accounting"]
    return AccountingRules(
        penalty_block_minutes=int(rules["penalty_block_minutes"]),
        credit_full_shift_on_punches=bool(rules["credit_full_shift_on_punches"]),
    )
