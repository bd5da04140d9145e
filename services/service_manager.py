"""
Module Name: service_manager.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Centralized service initialization and access point for backend services.

Location:
    /services/service_manager.py

"""

import threading
from typing import Any, Dict, Optional

from utils.logger import get_module_logger


_LOGGER = get_module_logger("Service.Manager")


class ServiceManager:
    """
    Singleton service manager to handle all service instances
    Ensures each service is initialized only once and provides thread-safe access
    """
    _instance: Optional['ServiceManager'] = None
    _lock = threading.RLock()
    _initialized = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *, logger=None):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._services: Dict[str, Any] = {}
                    self.logger = logger or _LOGGER
                    ServiceManager._initialized = True

    def _log_initialized(self, service_name: str):
        self.logger.info("Service initialized", extra={"service": service_name})

    def _get_or_create(self, service_name: str, factory):
        if service_name not in self._services:
            with self._lock:
                if service_name not in self._services:
                    try:
                        self._services[service_name] = factory()
                    except Exception:
                        self.logger.exception("Service initialization failed", extra={"service": service_name})
                        raise
                    self._log_initialized(service_name)
        return self._services[service_name]

    def get_database_service(self):
        """Get or create DatabaseService instance"""
        def factory():
            # Import here to avoid circular imports
            from config.config import Config
            from services.database import DatabaseService
            return DatabaseService(Config.DATABASE_PATH)
        return self._get_or_create('database', factory)

    def get_config_service(self):
        """Get or create ConfigService instance"""
        def factory():
            from config.config import Config
            from services.config import ConfigService
            return ConfigService(Config.CONFIG_FILE)
        return self._get_or_create('config', factory)

    def get_media_settings_provider(self):
        """Get or create the media management settings provider"""
        def factory():
            from services.media_management import MediaManagementSettingsProvider
            return MediaManagementSettingsProvider(self.get_config_service())
        return self._get_or_create('media_settings', factory)

    def get_root_folder_service(self):
        """Get or create RootFolderService instance"""
        def factory():
            from services.media_management import RootFolderService
            return RootFolderService(self.get_database_service().root_folders)
        return self._get_or_create('root_folders', factory)

    def get_file_naming_service(self):
        """Get or create FileNamingService instance"""
        def factory():
            from services.file_naming import FileNamingService
            return FileNamingService()
        return self._get_or_create('file_naming', factory)

    def get_import_service(self):
        """Get or create ImportService instance"""
        def factory():
            from services.import_service import ImportService
            return ImportService(
                database_service=self.get_database_service(),
                settings_provider=self.get_media_settings_provider(),
                root_folder_service=self.get_root_folder_service(),
                file_naming_service=self.get_file_naming_service(),
            )
        return self._get_or_create('import', factory)

    def get_download_management_service(self):
        """Get or create DownloadManagementService instance"""
        def factory():
            from services.download_management import DownloadManagementService
            return DownloadManagementService(
                database_service=self.get_database_service(),
                config_service=self.get_config_service(),
                import_service=self.get_import_service(),
            )
        return self._get_or_create('download_management', factory)

    def get_service_status(self) -> Dict[str, bool]:
        """Get status of all services"""
        return {
            service_name: service_name in self._services
            for service_name in [
                'database', 'config', 'media_settings', 'root_folders',
                'file_naming', 'import', 'download_management',
            ]
        }


# Global service manager instance
service_manager = ServiceManager()

# Convenience functions for easy access
def get_database_service():
    """Get DatabaseService instance"""
    return service_manager.get_database_service()

def get_config_service():
    """Get ConfigService instance"""
    return service_manager.get_config_service()

def get_media_settings_provider():
    """Get MediaManagementSettingsProvider instance"""
    return service_manager.get_media_settings_provider()

def get_root_folder_service():
    """Get RootFolderService instance"""
    return service_manager.get_root_folder_service()

def get_file_naming_service():
    """Get FileNamingService instance"""
    return service_manager.get_file_naming_service()

def get_import_service():
    """Get ImportService instance"""
    return service_manager.get_import_service()

def get_download_management_service():
    """Get DownloadManagementService instance"""
    return service_manager.get_download_management_service()
