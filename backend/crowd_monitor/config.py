"""
Configuration Management

Centralized configuration loaded from the YAML and JSON files in the
backend config directory. Supports dot-notation access, runtime overrides
and reloading.
"""

import os
import yaml
import json
from pathlib import Path
from typing import Dict, Any


# Environment variables that override file configuration
ENV_OVERRIDES = {
    'CROWD_STORAGE_BACKEND': 'crowd.storage.backend',
    'CROWD_SAMPLER_INTERVAL': 'crowd.sampler.interval',
}


class ConfigManager:
    """
    Manage application configuration from YAML and JSON files

    Provides:
    - Load all config files on startup
    - Dot notation access: config.get('crowd.sampler.interval')
    - Hot reload capability
    - Default values for missing keys
    """

    def __init__(self, config_dir: str = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to config directory (default: backend/config)
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parent.parent / "config"

        self.configs: Dict[str, Any] = {}
        self._load_all_configs()

    def _load_all_configs(self):
        """Load all configuration files from config directory"""
        if not self.config_dir.exists():
            print(f"   [WARN] Config directory not found: {self.config_dir}")
            return

        for yaml_file in sorted(self.config_dir.glob("*.yaml")):
            try:
                with open(yaml_file, 'r') as f:
                    self.configs[yaml_file.stem] = yaml.safe_load(f) or {}
                    print(f"   [CONFIG] Loaded: {yaml_file.name}")
            except (OSError, yaml.YAMLError) as e:
                print(f"   [WARN] Failed to load {yaml_file.name}: {e}")

        for json_file in sorted(self.config_dir.glob("*.json")):
            try:
                with open(json_file, 'r') as f:
                    self.configs[json_file.stem] = json.load(f)
                    print(f"   [CONFIG] Loaded: {json_file.name}")
            except (OSError, json.JSONDecodeError) as e:
                print(f"   [WARN] Failed to load {json_file.name}: {e}")

        self._apply_env_overrides()

    def _apply_env_overrides(self):
        """Apply environment variable overrides on top of file values"""
        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value is None:
                continue
            self.set(key, yaml.safe_load(value))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot notation key

        Examples:
            config.get('crowd.sampler.interval')
            config.get('crowd.density.thresholds.critical')

        Args:
            key: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.configs

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_crowd_config(self) -> Dict[str, Any]:
        """Get crowd analytics configuration section"""
        return self.configs.get('crowd', {})

    def get_system_config(self) -> Dict[str, Any]:
        """Get system configuration section"""
        return self.configs.get('system', {})

    def reload(self):
        """Reload all configuration files"""
        print("[CONFIG] Reloading configuration...")
        self.configs.clear()
        self._load_all_configs()
        print("[OK] Configuration reloaded")

    def set(self, key: str, value: Any):
        """
        Set a configuration value (runtime only, not persisted)

        Args:
            key: Dot-separated key path
            value: Value to set
        """
        keys = key.split('.')
        config = self.configs

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value


_config: ConfigManager = None


def get_config() -> ConfigManager:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = ConfigManager()
    return _config
