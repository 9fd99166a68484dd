"""Tests for settings loading."""

import os
from pathlib import Path

import pytest
import yaml


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("VIDMERGE_"):
            monkeypatch.delenv(key)


def _write_config(tmp_path, content: dict) -> str:
    path = tmp_path / "vidmerge.yaml"
    path.write_text(yaml.dump(content))
    return str(path)


class TestDefaults:
    def test_defaults(self):
        from vidmerge.settings import load_settings

        s = load_settings()
        assert s.work_dir == Path("uploads")
        assert s.max_files == 5
        assert s.port == 3000
        assert s.cors_origins == ["*"]
        assert s.merge_timeout == 600.0
        assert s.ffmpeg_binary is None
        assert s.log_level == "INFO"


class TestYamlConfig:
    def test_values_from_file(self, tmp_path):
        from vidmerge.settings import load_settings

        path = _write_config(tmp_path, {
            "work_dir": "/srv/vidmerge",
            "port": 8080,
            "max_file_bytes": None,
            "cors_origins": ["https://app.example.com"],
            "log_level": "debug",
        })
        s = load_settings(path)
        assert s.work_dir == Path("/srv/vidmerge")
        assert s.port == 8080
        assert s.max_file_bytes is None
        assert s.cors_origins == ["https://app.example.com"]
        assert s.log_level == "DEBUG"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_CONFIG", _write_config(tmp_path, {"max_files": 3}))
        assert load_settings().max_files == 3

    def test_empty_file_gives_defaults(self, tmp_path):
        from vidmerge.settings import load_settings

        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(str(path)).port == 3000

    def test_unknown_key_rejected(self, tmp_path):
        from vidmerge.settings import load_settings

        path = _write_config(tmp_path, {"wrok_dir": "/tmp"})
        with pytest.raises(ValueError, match="wrok_dir"):
            load_settings(path)

    def test_non_mapping_rejected(self, tmp_path):
        from vidmerge.settings import load_settings

        path = tmp_path / "list.yaml"
        path.write_text("- port\n- 8080\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings(str(path))

    def test_zero_max_files_rejected(self, tmp_path):
        from vidmerge.settings import load_settings

        with pytest.raises(ValueError, match="max_files"):
            load_settings(_write_config(tmp_path, {"max_files": 0}))

    def test_missing_file(self, tmp_path):
        from vidmerge.settings import load_settings

        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))


class TestEnvironment:
    def test_environment_beats_file(self, tmp_path, monkeypatch):
        from vidmerge.settings import load_settings

        path = _write_config(tmp_path, {"port": 8080, "max_files": 3})
        monkeypatch.setenv("VIDMERGE_PORT", "9090")
        s = load_settings(path)
        assert s.port == 9090
        assert s.max_files == 3

    def test_cors_origins_comma_separated(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_CORS_ORIGINS", "https://a.test, https://b.test")
        assert load_settings().cors_origins == ["https://a.test", "https://b.test"]

    def test_zero_timeout_disables(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_MERGE_TIMEOUT", "0")
        assert load_settings().merge_timeout is None

    def test_empty_size_limit_disables(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_MAX_TOTAL_BYTES", "")
        assert load_settings().max_total_bytes is None

    def test_invalid_number(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_PORT", "http")
        with pytest.raises(ValueError, match="port"):
            load_settings()

    def test_negative_limit(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_MAX_FILE_BYTES", "-1")
        with pytest.raises(ValueError, match="max_file_bytes"):
            load_settings()

    def test_unknown_log_level_rejected(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="log_level"):
            load_settings()

    def test_log_level_is_normalized(self, monkeypatch):
        from vidmerge.settings import load_settings

        monkeypatch.setenv("VIDMERGE_LOG_LEVEL", " warning ")
        assert load_settings().log_level == "WARNING"
