"""
Configuration Management for 837 EDI Validator
===============================================

This module provides centralized configuration management with support for:
- Environment variables
- Configuration files (JSON)
- Programmatic defaults

Configuration Priority (highest to lowest):
1. Environment variables
2. Config file values
3. Programmatic defaults
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class Config:
    """Central configuration manager for the 837 validator"""

    # Default configuration values
    DEFAULTS = {
        # Delimiters (used when they cannot be read from the ISA header)
        "segment_terminator": "~",
        "element_separator": "*",
        "auto_detect_delimiters": True,
        # Report output
        "output_report_name": "edi_claim_output.txt",
        "include_validation_results": True,
        "redact_report": False,
        # Logging configuration
        "log_level": "INFO",
        "log_file": None,  # None = console only
        "simple_log_format": False,
    }

    BOOLEAN_KEYS = (
        "auto_detect_delimiters",
        "include_validation_results",
        "redact_report",
        "simple_log_format",
    )

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to a JSON configuration file.
                        If None, looks for '837_config.json' in the current
                        directory, then the user's home directory.
        """
        self._config: Dict[str, Any] = self.DEFAULTS.copy()

        if config_file:
            self.load_config_file(config_file)
        else:
            self._auto_discover_config()

        # Override with environment variables
        self._load_from_environment()

    def _auto_discover_config(self):
        """Auto-discover config file in standard locations"""
        search_paths = [
            Path.cwd() / "837_config.json",
            Path.home() / "837_config.json",
            Path.cwd() / ".837config",
            Path.home() / ".837config",
        ]

        for path in search_paths:
            if path.exists():
                logger.info("Found config file: %s", path)
                self.load_config_file(str(path))
                break

    def load_config_file(self, config_file: str):
        """
        Load configuration from JSON file.

        Args:
            config_file: Path to JSON config file
        """
        config_path = Path(config_file)

        if not config_path.exists():
            logger.warning("Config file not found: %s", config_file)
            return

        try:
            with open(config_path, encoding="utf-8") as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in config file %s: %s", config_file, e)
            return
        except OSError as e:
            logger.error("Error loading config file %s: %s", config_file, e)
            return

        if not isinstance(file_config, dict):
            logger.error("Config file %s must contain a JSON object", config_file)
            return

        self._config.update(file_config)
        logger.info("Loaded configuration from: %s", config_path)

    def _load_from_environment(self):
        """Load configuration from environment variables"""
        env_mapping = {
            "EDI_SEGMENT_TERMINATOR": "segment_terminator",
            "EDI_ELEMENT_SEPARATOR": "element_separator",
            "EDI_AUTO_DETECT_DELIMITERS": "auto_detect_delimiters",
            "EDI_OUTPUT_REPORT_NAME": "output_report_name",
            "EDI_INCLUDE_VALIDATION_RESULTS": "include_validation_results",
            "EDI_REDACT_REPORT": "redact_report",
            "EDI_LOG_LEVEL": "log_level",
            "EDI_LOG_FILE": "log_file",
            "EDI_SIMPLE_LOG_FORMAT": "simple_log_format",
        }

        for env_var, config_key in env_mapping.items():
            value = os.getenv(env_var)
            if value is not None:
                if config_key in self.BOOLEAN_KEYS:
                    value = value.lower() in ("true", "1", "yes", "on")

                self._config[config_key] = value
                logger.debug("Config from env %s: %s = %s", env_var, config_key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return self._config.get(key, default)

    @property
    def segment_terminator(self) -> str:
        """Character that ends each segment"""
        return self._config["segment_terminator"]

    @property
    def element_separator(self) -> str:
        """Character that separates elements within a segment"""
        return self._config["element_separator"]

    @property
    def auto_detect_delimiters(self) -> bool:
        """Read delimiters from the ISA header when loading files"""
        return bool(self._config["auto_detect_delimiters"])

    @property
    def output_report_name(self) -> str:
        """Default report file name"""
        return self._config["output_report_name"]

    @property
    def include_validation_results(self) -> bool:
        return bool(self._config["include_validation_results"])

    @property
    def redact_report(self) -> bool:
        return bool(self._config["redact_report"])


# Global configuration instance
_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None, reload: bool = False) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        config_file: Path to config file (only used on first call or if reload=True)
        reload: If True, reload configuration from file

    Returns:
        Config instance
    """
    global _config

    if _config is None or reload:
        _config = Config(config_file)

    return _config


def reset_config():
    """Reset global configuration to None (useful for testing)"""
    global _config
    _config = None
