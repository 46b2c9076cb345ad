"""
Configuration loading and management.

Reads the project's sync configuration file, applies environment overrides
and anchors relative paths at the project root.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Union
import logging

from pydantic import ValidationError

from core.models.config import SyncConfig, GlobalSettings
from .defaults import CONFIG_DIR_NAME, CONFIG_FILE_NAME, ENV_VAR_MAPPING, get_default_sync_config

logger = logging.getLogger(__name__)


class ConfigurationLoader:
    """Load and manage per-project sync configurations"""

    def __init__(self):
        self.global_settings = GlobalSettings()
        self.config_cache: Dict[str, SyncConfig] = {}

    @staticmethod
    def get_config_file(project_path: Union[str, Path]) -> Path:
        return Path(project_path).resolve() / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def load_project_config(self, project_path: Union[str, Path]) -> SyncConfig:
        """
        Load the configuration for a project, falling back to defaults.

        Relative ``sync_dir`` and ``sourcemap_path`` values are resolved
        against the project root.
        """
        project_path = Path(project_path).resolve()

        cache_key = str(project_path)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        config_file = self.get_config_file(project_path)
        if config_file.exists():
            data = self._load_existing_config(config_file)
        else:
            data = get_default_sync_config()

        data = self._apply_env_overrides(data)

        try:
            config = SyncConfig.from_dict(data)
        except ValidationError as e:
            logger.error(f"Invalid configuration in {config_file}: {e}")
            raise

        config = config.resolve_paths(project_path)
        self.config_cache[cache_key] = config
        return config

    def _load_existing_config(self, config_file: Path) -> Dict[str, Any]:
        """Load existing configuration file on top of the defaults"""
        data = get_default_sync_config()
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError("Configuration root must be an object")
            data.update(loaded)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
        return data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, key in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                config_data[key] = self._convert_env_value(env_value)
        return config_data

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        # Boolean conversion
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        # Numeric conversion
        try:
            return int(value)
        except ValueError:
            pass

        # Return as string
        return value

    def save_project_config(self, project_path: Union[str, Path], config: SyncConfig) -> bool:
        """Save project configuration to disk"""
        project_path = Path(project_path).resolve()
        config_file = self.get_config_file(project_path)

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)

            config_data = config.to_dict()
            # Store paths relative to the project when possible
            for key in ('sync_dir', 'sourcemap_path'):
                value = config_data.get(key)
                if value and Path(value).is_absolute():
                    try:
                        config_data[key] = str(Path(value).relative_to(project_path))
                    except ValueError:
                        pass

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")
            self.config_cache[str(project_path)] = config.resolve_paths(project_path)
            return True

        except OSError as e:
            logger.error(f"Failed to save config for {project_path}: {e}")
            return False

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self.config_cache.clear()
