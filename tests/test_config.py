"""Tests for taskcache.config module."""

import stat
from pathlib import Path

import pytest
import yaml

from taskcache.config import CacheConfig, get_home, get_store_dir
from taskcache.errors import StorageFailure


class TestGetHome:
    """Tests for get_home() and get_store_dir()."""

    def test_env_override(self, tmp_path: Path, monkeypatch):
        """TASKCACHE_HOME overrides the home directory."""
        monkeypatch.setenv("TASKCACHE_HOME", str(tmp_path))
        assert get_home() == tmp_path
        assert get_store_dir() == tmp_path / "store"

    def test_default_under_user_home(self, monkeypatch):
        """The default home is ~/.taskcache."""
        monkeypatch.delenv("TASKCACHE_HOME", raising=False)
        assert get_home() == Path.home() / ".taskcache"


class TestCacheConfigDefaults:
    """Default values."""

    def test_defaults(self):
        """Defaults match the documented values."""
        cfg = CacheConfig()
        assert cfg.folder == "todos"
        assert cfg.draft_debounce_ms == 500
        assert cfg.chat_debounce_ms == 500
        assert cfg.checkpoint_cap == 20
        assert cfg.draft_expiry_hours == 24
        assert cfg.chat_expiry_hours == 24
        assert cfg.max_collision_suffix == 1000
        assert cfg.update_max_retries == 3


class TestCacheConfigLoad:
    """Tests for CacheConfig.load()."""

    def test_missing_file_gives_defaults(self, tmp_path: Path):
        """No config file means defaults."""
        assert CacheConfig.load(tmp_path) == CacheConfig()

    def test_applies_known_fields_ignores_unknown(self, tmp_path: Path):
        """Unknown keys in config.yaml are ignored."""
        (tmp_path / "config.yaml").write_text(yaml.safe_dump({"checkpoint_cap": 5, "theme": "dark"}))

        cfg = CacheConfig.load(tmp_path)

        assert cfg.checkpoint_cap == 5
        assert not hasattr(cfg, "theme")

    def test_malformed_yaml_gives_defaults(self, tmp_path: Path):
        """Unparseable YAML falls back to defaults."""
        (tmp_path / "config.yaml").write_text("checkpoint_cap: [unclosed")
        assert CacheConfig.load(tmp_path) == CacheConfig()

    def test_non_mapping_gives_defaults(self, tmp_path: Path):
        """A YAML list falls back to defaults."""
        (tmp_path / "config.yaml").write_text("- just\n- a list\n")
        assert CacheConfig.load(tmp_path) == CacheConfig()


class TestCacheConfigSave:
    """Tests for CacheConfig.save()."""

    def test_saves_only_non_defaults(self, tmp_path: Path):
        """Only changed values are written."""
        CacheConfig(folder="notes").save(tmp_path)

        data = yaml.safe_load((tmp_path / "config.yaml").read_text())
        assert data == {"folder": "notes"}

    def test_all_defaults_writes_marker(self, tmp_path: Path):
        """An all-default config still writes the version marker."""
        CacheConfig().save(tmp_path)

        data = yaml.safe_load((tmp_path / "config.yaml").read_text())
        assert data == {"_version": 1}
        assert CacheConfig.load(tmp_path) == CacheConfig()

    def test_file_is_private(self, tmp_path: Path):
        """config.yaml is written with mode 0o600."""
        path = CacheConfig(checkpoint_cap=3).save(tmp_path)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_save_then_load(self, tmp_path: Path):
        """A saved config loads back equal."""
        CacheConfig(checkpoint_cap=7, draft_debounce_ms=250).save(tmp_path)
        cfg = CacheConfig.load(tmp_path)
        assert cfg.checkpoint_cap == 7
        assert cfg.draft_debounce_ms == 250

    def test_save_failure_raises(self, tmp_path: Path):
        """A failed write raises StorageFailure."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        with pytest.raises(StorageFailure):
            CacheConfig().save(blocker)


class TestWithValue:
    """Tests for CacheConfig.with_value()."""

    def test_int_field(self):
        """Integer fields are parsed from strings."""
        assert CacheConfig().with_value("checkpoint_cap", "50").checkpoint_cap == 50

    def test_string_field_is_normalized(self):
        """The folder value is stripped of slashes."""
        assert CacheConfig().with_value("folder", " /notes/ ").folder == "notes"

    def test_unknown_key(self):
        """Unknown keys raise KeyError."""
        with pytest.raises(KeyError):
            CacheConfig().with_value("theme", "dark")

    def test_non_integer(self):
        """Non-numeric integers raise ValueError."""
        with pytest.raises(ValueError):
            CacheConfig().with_value("checkpoint_cap", "lots")

    def test_negative_integer(self):
        """Negative integers raise ValueError."""
        with pytest.raises(ValueError):
            CacheConfig().with_value("draft_debounce_ms", "-1")

    def test_empty_folder(self):
        """An empty folder raises ValueError."""
        with pytest.raises(ValueError):
            CacheConfig().with_value("folder", "/")

    def test_original_unchanged(self):
        """with_value() returns a copy."""
        cfg = CacheConfig()
        cfg.with_value("checkpoint_cap", "1")
        assert cfg.checkpoint_cap == 20
