"""
Config file lookup and raw JSON reading.

Kept free of package imports so the logger can read its section before
the rest of the package is importable.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional


CONFIG_FILENAME = "tracking_config.json"


def find_config_path() -> Optional[Path]:
    """Search order: env HEADFIT_CONFIG > ./tracking_config.json > config/tracking_config.json"""
    config_env = os.getenv("HEADFIT_CONFIG")
    if config_env:
        return Path(config_env)

    root_dir = Path(__file__).parent.parent.parent
    candidates = [
        Path.cwd() / CONFIG_FILENAME,
        Path.cwd() / "config" / CONFIG_FILENAME,
        root_dir / CONFIG_FILENAME,
        root_dir / "config" / CONFIG_FILENAME,
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def read_config_file(config_path: str | Path) -> Dict[str, Any]:
    """Read raw JSON; FileNotFoundError / ValueError on failure."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Configuration file JSON parsing failed: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("Configuration root must be a JSON object")
    return raw
