"""
Configuration Module for the Invoice Extraction Pipeline.

This module provides centralized configuration management using YAML files.
Every tunable of the pipeline (OCR sweep thresholds, rendering DPI, remote
service identifiers, currency fallback, logging) is read through here.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigurationManager:
    """
    Centralized configuration management for the extraction pipeline.

    Loads settings.yaml once per process and exposes its values through
    dot-notation lookups.

    Attributes:
        config_path (Path): Path to the configuration file.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("ocr.sweep.early_stop_confidence")
        85
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    # Settings holding filesystem paths relative to the project root
    PATH_KEYS = ('acquisition.temp_dir', 'logging.file.path')

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """
        Singleton pattern to ensure only one configuration instance exists.

        Args:
            config_path: Optional path to configuration file.

        Returns:
            ConfigurationManager instance.
        """
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional path to configuration file.
                        Defaults to config/settings.yaml, or the file named
                        by the INVOICE_PIPELINE_CONFIG environment variable.
        """
        if self._initialized:
            return

        if config_path is None:
            config_path = os.getenv("INVOICE_PIPELINE_CONFIG")

        if config_path is None:
            self.config_path = Path(__file__).parent / "settings.yaml"
        else:
            self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            yaml.YAMLError: If configuration file is invalid.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """
        Resolve relative filesystem settings against the project root.
        """
        project_root = Path(__file__).parent.parent

        for key in self.PATH_KEYS:
            *parents, leaf = key.split('.')
            section = self._config
            for part in parents:
                section = section.get(part) if isinstance(section, dict) else None
            if not isinstance(section, dict):
                continue
            value = section.get(leaf)
            if value and not Path(value).is_absolute():
                section[leaf] = str(project_root / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "ocr.tesseract.lang").
            default: Default value if key doesn't exist or is null.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("extraction.default_currency")
            "USD"
            >>> config.get("nonexistent.key", "default_value")
            "default_value"
        """
        keys = key.split('.')
        value = self._config

        try:
            for k in keys:
                value = value[k]
        except (KeyError, TypeError):
            return default

        return default if value is None else value

    def get_all(self) -> Dict[str, Any]:
        """
        Get the complete configuration dictionary.

        Returns:
            Complete configuration dictionary.
        """
        return self._config.copy()

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton instance.
        Useful for testing or configuration changes.
        """
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config']
