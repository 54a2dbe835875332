"""Tests for configuration loading."""

import json
from pathlib import Path

from image_insight.analysis.config import Language
from image_insight.config import DEFAULT_MODEL, DEFAULT_TIMEOUT, InsightConfig


class TestInsightConfig:
    """Test the configuration manager."""

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        config = InsightConfig(db_path=str(tmp_path / "db" / "insight.db"))

        assert config.model == DEFAULT_MODEL
        assert config.language == Language.FR
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.google_api_key is None
        assert (tmp_path / "db").is_dir()

    def test_api_key_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
        assert InsightConfig(db_path=str(tmp_path / "a.db")).google_api_key == "env-key"
        assert InsightConfig(db_path=str(tmp_path / "a.db"), google_api_key="explicit").google_api_key == "explicit"

    def test_language_is_normalized(self, tmp_path):
        assert InsightConfig(db_path=str(tmp_path / "a.db"), language="English").language == Language.EN
        assert InsightConfig(db_path=str(tmp_path / "a.db"), language="klingon").language == Language.FR

    def test_load_from_file_with_overrides(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({
            "db_path": str(tmp_path / "file.db"),
            "model": "gemini-2.5-pro",
            "language": "en",
            "timeout": 30,
        }))

        config = InsightConfig.load_from_file(config_path, model="mock", language=None)

        assert config.db_path == str(tmp_path / "file.db")
        assert config.model == "mock"
        assert config.language == Language.EN
        assert config.timeout == 30

    def test_invalid_file_falls_back_to_defaults(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text("{not json")

        config = InsightConfig.load_from_file(config_path, db_path=str(tmp_path / "a.db"))

        assert config.model == DEFAULT_MODEL
        assert config.db_path == str(tmp_path / "a.db")

    def test_save_never_writes_api_key(self, tmp_path):
        config_path = tmp_path / "nested" / "config.json"
        config = InsightConfig(
            db_path=str(tmp_path / "a.db"), language="en", google_api_key="secret",
        )

        config.save_to_file(config_path)

        saved = json.loads(config_path.read_text(encoding="utf-8"))
        assert saved["language"] == "en"
        assert "google_api_key" not in saved
        assert "secret" not in config_path.read_text(encoding="utf-8")

        reloaded = InsightConfig.load_from_file(Path(config_path))
        assert reloaded.db_path == config.db_path

    def test_to_dict_reports_key_presence_only(self, tmp_path):
        data = InsightConfig(db_path=str(tmp_path / "a.db"), google_api_key="secret").to_dict()

        assert data["google_api_key_set"] is True
        assert "secret" not in data.values()
