import configparser
import os
import logging
from typing import Dict

from config.config import Config

MEDIA_MANAGEMENT_DEFAULTS: Dict[str, str] = {
    "rename_files": "true",
    "replace_illegal_characters": "true",
    "create_event_folder": "true",
    "event_folder_format": "{Event Title}",
    "standard_file_format": "{Event Title} - {Air Date} - {Quality Full}",
    "transfer_mode": "move",
    "set_permissions": "false",
    "file_chmod": "644",
    "chown_user": "",
    "chown_group": "",
    "minimum_free_space_mb": "100",
    "skip_free_space_check": "false",
    "remove_completed_downloads": "true",
}

DOWNLOAD_MANAGEMENT_DEFAULTS: Dict[str, str] = {
    "enabled": str(Config.DOWNLOAD_QUEUE_SETTINGS['enabled']).lower(),
    "poll_interval": str(Config.DOWNLOAD_QUEUE_SETTINGS['poll_interval']),
    "max_poll_workers": str(Config.DOWNLOAD_QUEUE_SETTINGS['max_poll_workers']),
    "max_import_workers": str(Config.DOWNLOAD_QUEUE_SETTINGS['max_import_workers']),
    "request_timeout": str(Config.DOWNLOAD_QUEUE_SETTINGS['request_timeout']),
}


class ConfigDefaults:
    """Handles default configuration generation for BoutArchive"""
    
    def __init__(self, config_file: str):
        self.config_file = config_file
        self.logger = logging.getLogger("ConfigService.Defaults")
    
    def ensure_config_exists(self):
        """Ensure configuration file exists, create default if not."""
        if not os.path.exists(self.config_file):
            self.logger.warning("Configuration file not found. Creating default...")
            self.generate_default_config()
    
    def generate_default_config(self):
        """Generate a complete default configuration file with all sections."""
        config = configparser.ConfigParser()
        
        sections = [
            self._add_application_config,
            self._add_database_config,
            self._add_download_management_config,
            self._add_media_management_config,
            self._add_download_client_configs,
        ]

        for add_section in sections:
            add_section(config)
        
        directory = os.path.dirname(self.config_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            with open(self.config_file, "w", encoding="utf-8") as configfile:
                config.write(configfile)
            self.logger.info(f"Default configuration created at {self.config_file}")
        except OSError as e:
            self.logger.error(f"Failed to create default configuration: {e}")
    
    def _add_application_config(self, config: configparser.ConfigParser):
        config["application"] = {
            "log_level": Config.LOG_LEVEL,
            "monitor_enabled": str(Config.MONITOR_ENABLED).lower(),
        }
    
    def _add_database_config(self, config: configparser.ConfigParser):
        config["database"] = {
            "path": Config.DATABASE_PATH,
        }
    
    def _add_download_management_config(self, config: configparser.ConfigParser):
        """Add polling and worker settings for the download queue."""
        config["download_management"] = dict(DOWNLOAD_MANAGEMENT_DEFAULTS)
    
    def _add_media_management_config(self, config: configparser.ConfigParser):
        """Add media management configuration section."""
        config["media_management"] = dict(MEDIA_MANAGEMENT_DEFAULTS)
    
    def _add_download_client_configs(self, config: configparser.ConfigParser):
        """Add one disabled section per known download client."""
        for name, values in Config.DOWNLOAD_CLIENTS.items():
            config[f"download_client:{name}"] = {
                key: ('' if value is None else str(value).lower() if isinstance(value, bool) else str(value))
                for key, value in values.items()
            }
