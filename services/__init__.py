# Services package for BoutArchive Flask app
# Each concern lives in its own subdirectory

from .database import DatabaseService
from .config import ConfigService

# Import service manager
from .service_manager import ServiceManager, service_manager

__all__ = [
    # Core services
    'DatabaseService',
    'ConfigService',

    # Service manager
    'ServiceManager',
    'service_manager'
]
