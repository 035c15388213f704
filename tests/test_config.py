"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from niche_analyzer.config import Settings


class TestSettings:
    """Settings.load from files and environment."""

    def test_from_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"db_path": "x/y.db", "log_level": "debug"}))

        settings = Settings.load(path)

        assert settings.db_path == Path("x/y.db")
        assert settings.export_dir == Path("exports")
        assert settings.log_level == "DEBUG"

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NICHE_ANALYZER_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("NICHE_ANALYZER_LOG_LEVEL", "WARNING")

        settings = Settings.load(tmp_path / "absent.json")

        assert settings.db_path == tmp_path / "env.db"
        assert settings.log_level == "WARNING"

    def test_defaults(self, tmp_path, monkeypatch):
        for name in ("NICHE_ANALYZER_DB_PATH", "NICHE_ANALYZER_EXPORT_DIR", "NICHE_ANALYZER_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.load(tmp_path / "absent.json")

        assert settings == Settings()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            Settings.load(path)

    def test_invalid_log_level(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"log_level": "loud"}))
        with pytest.raises(ValueError):
            Settings.load(path)
