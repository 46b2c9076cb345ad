"""
Unit tests for configuration loader functionality.

Tests configuration loading, environment overrides, caching and saving.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from config.loader import ConfigurationLoader
from config.defaults import (
    CONFIG_DIR_NAME, CONFIG_FILE_NAME, DEFAULT_SETTINGS, ENV_VAR_MAPPING,
    get_default_sync_config
)
from core.models.config import GlobalSettings, SyncConfig


def clean_environ():
    """Environment without any sync override variables"""
    return {key: value for key, value in os.environ.items() if key not in ENV_VAR_MAPPING}


class TestConfigurationLoader:
    """Test ConfigurationLoader functionality"""

    def setup_method(self):
        """Setup test environment"""
        self.temp_dir = tempfile.mkdtemp()
        self.temp_path = Path(self.temp_dir).resolve()
        self.loader = ConfigurationLoader()

    def teardown_method(self):
        """Cleanup test environment"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_config(self, data) -> Path:
        config_file = self.temp_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(json.dumps(data) if not isinstance(data, str) else data)
        return config_file

    def test_loader_initialization(self):
        """Test loader initialization"""
        assert isinstance(self.loader.global_settings, GlobalSettings)
        assert self.loader.config_cache == {}

    def test_load_defaults_for_new_project(self):
        """Test loading configuration without a config file"""
        with patch.dict(os.environ, clean_environ(), clear=True):
            config = self.loader.load_project_config(self.temp_path)

        assert isinstance(config, SyncConfig)
        assert config.sync_dir == self.temp_path / "sync"
        assert config.sourcemap_path == self.temp_path / "sourcemap.json"
        assert config.script_extension == ".luau"

    def test_load_existing_config(self):
        """Test values from the config file override defaults"""
        self.write_config({"sync_dir": "src", "suffix_module_scripts": False})

        with patch.dict(os.environ, clean_environ(), clear=True):
            config = self.loader.load_project_config(self.temp_path)

        assert config.sync_dir == self.temp_path / "src"
        assert config.suffix_module_scripts is False
        assert config.server_suffix == "server"

    def test_load_existing_config_invalid_json(self):
        """Test an unreadable config file falls back to defaults"""
        self.write_config("{ not json")

        with patch.dict(os.environ, clean_environ(), clear=True):
            config = self.loader.load_project_config(self.temp_path)

        assert config.sync_dir == self.temp_path / "sync"

    def test_load_existing_config_non_object(self):
        """Test a JSON root that is not an object is ignored"""
        self.write_config([1, 2, 3])

        with patch.dict(os.environ, clean_environ(), clear=True):
            config = self.loader.load_project_config(self.temp_path)

        assert config == SyncConfig().resolve_paths(self.temp_path)

    def test_invalid_values_raise(self):
        """Test invalid configuration values surface as validation errors"""
        self.write_config({"script_extension": "luau"})

        with patch.dict(os.environ, clean_environ(), clear=True):
            with pytest.raises(ValidationError):
                self.loader.load_project_config(self.temp_path)

    def test_env_overrides(self):
        """Test environment variables win over the config file"""
        self.write_config({"delete_orphans_on_connect": True})
        environ = clean_environ()
        environ.update({
            "STUDIO_SYNC_DELETE_ORPHANS": "false",
            "STUDIO_SYNC_MAX_CONCURRENT_READS": "4",
            "STUDIO_SYNC_DIR": "mirror",
        })

        with patch.dict(os.environ, environ, clear=True):
            config = self.loader.load_project_config(self.temp_path)

        assert config.delete_orphans_on_connect is False
        assert config.max_concurrent_reads == 4
        assert config.sync_dir == self.temp_path / "mirror"

    def test_load_project_config_caching(self):
        """Test repeated loads return the cached configuration"""
        with patch.dict(os.environ, clean_environ(), clear=True):
            first = self.loader.load_project_config(self.temp_path)
            second = self.loader.load_project_config(self.temp_path)

        assert first is second

        self.loader.clear_cache()
        assert self.loader.config_cache == {}

    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        ("Yes", True),
        ("on", True),
        ("false", False),
        ("NO", False),
        ("off", False),
        ("12", 12),
        (".lua", ".lua"),
    ])
    def test_convert_env_value(self, value, expected):
        """Test environment value conversion"""
        assert self.loader._convert_env_value(value) == expected

    def test_save_project_config(self):
        """Test saving stores project-relative paths"""
        config = SyncConfig(sync_dir=self.temp_path / "out", suffix_module_scripts=False)

        assert self.loader.save_project_config(self.temp_path, config)

        config_file = self.loader.get_config_file(self.temp_path)
        saved = json.loads(config_file.read_text())
        assert saved["sync_dir"] == "out"
        assert saved["suffix_module_scripts"] is False

        with patch.dict(os.environ, clean_environ(), clear=True):
            fresh = ConfigurationLoader().load_project_config(self.temp_path)
        assert fresh.sync_dir == self.temp_path / "out"
        assert fresh.suffix_module_scripts is False

    def test_save_project_config_failure(self):
        """Test save errors are reported as False"""
        blocker = self.temp_path / "blocker"
        blocker.write_text("file")

        assert not self.loader.save_project_config(blocker, SyncConfig())

    def test_default_sync_config_is_valid(self):
        """Test the flat defaults build a valid configuration"""
        assert SyncConfig.from_dict(get_default_sync_config()) == SyncConfig()

    def test_every_default_setting_is_used(self):
        """Test each grouped default feeds a configuration field"""
        flat = get_default_sync_config()
        grouped_keys = {
            key for section in DEFAULT_SETTINGS.values() for key in section
        }

        assert grouped_keys == set(flat)
        assert grouped_keys <= set(SyncConfig.model_fields)
