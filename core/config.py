"""
core/config.py: YAML configuration

cfg.get("ai.base_url", default) resolves dotted keys against config.yaml.
String values like "${AI_API_KEY:-}" are expanded from the environment,
so secrets can stay out of the file.
"""

import os
import re
import copy
from typing import Any, Dict

import yaml


VERSION = "1.4.0"
API_BASE = "/api/v1"

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

DEFAULT_CONFIG: Dict[str, Any] = {
    "app_name": "Aitem",
    "db": "${AITEM_DB:-sqlite:///data/aitem.db}",
    "secret": "${AITEM_SECRET:-change-me}",
    "token_expire_minutes": 60 * 24 * 7,
    "log": {
        "level": "${LOG_LEVEL:-INFO}",
        "file": "",
    },
    "ai": {
        "base_url": "${AI_BASE_URL:-}",
        "api_key": "${AI_API_KEY:-}",
        "model": "${AI_MODEL:-google/gemini-2.5-flash}",
        "image_model": "gemini-3-pro-image-preview",
        "timeout_seconds": 180,
    },
    "boxapi": {
        "url": "https://boxapi.ir/v1/instagram/profile",
        "api_key": "${BOX_API_KEY:-}",
    },
    "usage": {
        "defaults": {
            "story": 2,
            "caption_idea": 2,
            "image": 35,
            "chat": 150,
        },
        "reset_sweep_enabled": True,
        "reset_sweep_interval_seconds": 3600,
    },
    "admin": {
        "user_ids": [1337],
    },
    "subscription": {
        "trial_days": 7,
    },
}


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        def _sub(match):
            return os.getenv(match.group(1), match.group(2) or "")
        return _ENV_PATTERN.sub(_sub, value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def _deep_merge(base: dict, ext: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in (ext or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class Config:
    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.getenv("AITEM_CONFIG", "config.yaml")
        self.config: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> Dict[str, Any]:
        file_data = {}
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as fh:
                file_data = yaml.safe_load(fh) or {}
        self.config = _deep_merge(DEFAULT_CONFIG, file_data)
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        cursor: Any = self.config
        for part in [x for x in str(key or "").split(".") if x]:
            if not isinstance(cursor, dict) or part not in cursor:
                return default
            cursor = cursor[part]
        value = _expand_env(cursor)
        if value is None or value == "":
            return default if default is not None else value
        return value


cfg = Config()

