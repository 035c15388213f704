"""Application configuration helpers."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

CONFIG_PATH = Path(os.environ.get("NICHE_ANALYZER_CONFIG", "config/settings.json"))


@dataclass
class Settings:
    """Runtime configuration loaded from a JSON file or environment variables."""

    db_path: Path = Path("data/niche_analyzer.db")
    export_dir: Path = Path("exports")
    log_level: str = "INFO"

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from ``path`` or the default config file.

        Missing keys fall back to the defaults above.

        Raises
        ------
        ValueError
            If the file is not valid JSON or ``log_level`` is not a logging
            level name.
        """

        config_path = path or CONFIG_PATH
        if config_path.exists():
            try:
                data = json.loads(config_path.read_text())
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid configuration file {config_path}: {exc}") from exc
        else:
            data = cls._load_from_env()

        log_level = str(data.get("log_level", "INFO")).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Unknown log level: {log_level}")

        return cls(
            db_path=Path(data.get("db_path", cls.db_path)),
            export_dir=Path(data.get("export_dir", cls.export_dir)),
            log_level=log_level,
        )

    @staticmethod
    def _load_from_env() -> Dict[str, Any]:
        env_mapping = {
            "db_path": os.environ.get("NICHE_ANALYZER_DB_PATH"),
            "export_dir": os.environ.get("NICHE_ANALYZER_EXPORT_DIR"),
            "log_level": os.environ.get("NICHE_ANALYZER_LOG_LEVEL"),
        }
        return {k: v for k, v in env_mapping.items() if v}
