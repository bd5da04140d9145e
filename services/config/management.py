import configparser
import os
import logging
import threading
from typing import Dict, Any, Optional

from .defaults import ConfigDefaults
from .validation import ConfigValidation

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
DOWNLOAD_CLIENT_PREFIX = 'download_client:'


class ConfigService:
    """Singleton service for INI-backed configuration management"""

    _instance: Optional['ConfigService'] = None
    _lock = threading.Lock()
    _initialized = False

    def __new__(cls, config_file: str = "config/config.txt"):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_file: str = "config/config.txt"):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    if os.path.isabs(config_file):
                        self.config_file = config_file
                    else:
                        self.config_file = os.path.join(PROJECT_ROOT, config_file)
                    self.logger = logging.getLogger("ConfigService.Management")

                    self.defaults = ConfigDefaults(self.config_file)
                    self.validation = ConfigValidation()
                    self._write_lock = threading.Lock()

                    # Ensure config exists
                    self.defaults.ensure_config_exists()

                    ConfigService._initialized = True

    def load_config(self) -> configparser.ConfigParser:
        """Load configuration from disk with duplicate section recovery."""
        parser = configparser.ConfigParser()
        try:
            with open(self.config_file, "r", encoding="utf-8") as config_handle:
                parser.read_file(config_handle)
            return parser
        except configparser.DuplicateSectionError as duplicate_error:
            self.logger.warning(
                "Duplicate section detected in config.txt: %s. Attempting automatic recovery...",
                duplicate_error,
            )
            return self._recover_from_duplicate_sections()
        except FileNotFoundError:
            self.logger.error("Configuration file %s not found", self.config_file)
            return parser

    def get_config_value(self, section: str, key: str, fallback: str = None) -> Optional[str]:
        """Get a specific configuration value."""
        config = self.load_config()
        return config.get(section.lower(), key.lower(), fallback=fallback)

    def get_section(self, section: str) -> Dict[str, str]:
        """Return every key of a section, or an empty dict when it is missing."""
        config = self.load_config()
        section_name = section.lower()
        if config.has_section(section_name):
            return dict(config.items(section_name))
        return {}

    def update_section(self, section: str, values: Dict[str, Any]) -> bool:
        """Add or replace values within a configuration section."""
        try:
            with self._write_lock:
                config = self.load_config()
                section_name = section.lower()

                if not config.has_section(section_name):
                    config.add_section(section_name)

                for key, value in values.items():
                    if value is None:
                        continue
                    config.set(section_name, key.lower(), self._coerce_value(value))

                self._write_config(config)
            self.logger.info("Updated section '%s' with %d value(s)", section_name, len(values))
            return True
        except (OSError, configparser.Error) as exc:
            self.logger.error(f"Failed to update section '{section}': {exc}")
            return False

    # ------------------------------------------------------------------
    # Download client helpers
    # ------------------------------------------------------------------
    def get_download_clients(self) -> Dict[str, Dict[str, str]]:
        """Return every [download_client:<name>] section keyed by client name."""
        config = self.load_config()
        clients: Dict[str, Dict[str, str]] = {}
        for section in config.sections():
            if not section.startswith(DOWNLOAD_CLIENT_PREFIX):
                continue
            name = section.split(':', 1)[1]
            clients[name] = dict(config.items(section))
        return clients

    def validate_config(self) -> Dict[str, bool]:
        """Validate configuration sections and return status."""
        config = self.load_config()
        config_dict = {section: dict(config.items(section)) for section in config.sections()}
        return self.validation.validate_config(config_dict)

    def _write_config(self, config: configparser.ConfigParser) -> None:
        """Persist the current configuration parser to disk."""
        with open(self.config_file, "w", encoding="utf-8") as configfile:
            config.write(configfile)

    @staticmethod
    def _coerce_value(value: Any) -> str:
        """Normalize configuration values to strings."""
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return '' if value is None else str(value)

    def _recover_from_duplicate_sections(self) -> configparser.ConfigParser:
        """Attempt to repair duplicate sections by rewriting a clean copy."""
        recovery_parser = configparser.ConfigParser(strict=False)
        try:
            with open(self.config_file, "r", encoding="utf-8") as config_handle:
                recovery_parser.read_file(config_handle)

            cleaned_parser = configparser.ConfigParser()
            for section in recovery_parser.sections():
                cleaned_parser[section] = {key: value for key, value in recovery_parser.items(section)}

            self._write_config(cleaned_parser)
            self.logger.info("Duplicate sections removed; configuration rewritten")
            return cleaned_parser
        except (OSError, configparser.Error) as exc:
            self.logger.error(f"Failed to recover configuration: {exc}")
            return configparser.ConfigParser()
