"""Tests for engine settings."""
import pytest
from vswitch_reconcile.config import EngineSettings


class TestEngineSettings:
    """Tests for defaults and bounds."""

    def test_defaults(self):
        settings = EngineSettings()
        assert settings.api_timeout == 300.0
        assert settings.read_attempts == 3
        assert settings.audit_log_path is None

    @pytest.mark.parametrize("kwargs", [
        {"api_timeout": 0},
        {"read_attempts": 0},
        {"retry_min_wait": -1},
        {"retry_min_wait": 5, "retry_max_wait": 1},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            EngineSettings(**kwargs)

    def test_zero_waits_allowed(self):
        settings = EngineSettings(retry_min_wait=0, retry_max_wait=0)
        assert settings.retry_max_wait == 0


class TestFromEnv:
    """Tests for VSWITCH_* environment variables."""

    def test_reads_and_coerces(self, monkeypatch):
        monkeypatch.setenv("VSWITCH_API_TIMEOUT", "45")
        monkeypatch.setenv("VSWITCH_READ_ATTEMPTS", "5")
        monkeypatch.setenv("VSWITCH_AUDIT_LOG", "/tmp/audit.log")
        settings = EngineSettings.from_env()
        assert settings.api_timeout == 45.0
        assert settings.read_attempts == 5
        assert settings.audit_log_path == "/tmp/audit.log"

    def test_empty_values_ignored(self, monkeypatch):
        monkeypatch.setenv("VSWITCH_API_TIMEOUT", "")
        monkeypatch.delenv("VSWITCH_READ_ATTEMPTS", raising=False)
        assert EngineSettings.from_env().api_timeout == 300.0

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("VSWITCH_READ_ATTEMPTS", "many")
        with pytest.raises(ValueError):
            EngineSettings.from_env()


class TestFromFile:
    """Tests for YAML settings files."""

    def test_load(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("api_timeout: 120\nretry_min_wait: 0.5\nretry_max_wait: 5\n")
        settings = EngineSettings.from_file(str(path))
        assert settings.api_timeout == 120.0
        assert settings.retry_min_wait == 0.5
        assert settings.retry_max_wait == 5.0

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = EngineSettings.from_file(str(tmp_path / "missing.yaml"))
        assert settings == EngineSettings()

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("read_attempts: 2\nverbose: true\n")
        assert EngineSettings.from_file(str(path)).read_attempts == 2

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- api_timeout\n")
        with pytest.raises(ValueError):
            EngineSettings.from_file(str(path))
