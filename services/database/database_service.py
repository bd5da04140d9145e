import os
import logging
import threading
from typing import List, Dict, Optional

from .connection import DatabaseConnection
from .migrations import DatabaseMigrations
from .events import EventOperations
from .import_history import ImportHistoryOperations
from .root_folders import RootFolderOperations

DEFAULT_DB_PATH = os.path.join("database", "boutarchive.db")

class DatabaseService:
    """Singleton service for database operations with modular components"""
    
    _instance: Optional['DatabaseService'] = None
    _lock = threading.Lock()
    _initialized = False
    
    def __new__(cls, db_file: str = DEFAULT_DB_PATH):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance
    
    def __init__(self, db_file: str = DEFAULT_DB_PATH):
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self.logger = logging.getLogger("DatabaseService.Main")
                    self.db_file = os.path.normpath(db_file or DEFAULT_DB_PATH)
                    directory = os.path.dirname(self.db_file)
                    if directory:
                        os.makedirs(directory, exist_ok=True)
                    
                    self.connection_manager = DatabaseConnection(self.db_file)
                    self.migrations = DatabaseMigrations(self.connection_manager)
                    self.events = EventOperations(self.connection_manager)
                    self.import_history = ImportHistoryOperations(self.connection_manager)
                    self.root_folders = RootFolderOperations(self.connection_manager)
                    
                    self._initialize_service()
                    
                    DatabaseService._initialized = True
    
    def _initialize_service(self):
        """Initialize database and perform necessary migrations."""
        try:
            self.migrations.initialize_database()
            self.migrations.migrate_database()
            self.logger.info(f"DatabaseService initialized successfully: {self.db_file}")
        except Exception as e:
            self.logger.error(f"Failed to initialize DatabaseService: {e}")
            raise
    
    # Connection methods
    def connect_db(self):
        """Connect to the database (delegates to connection manager)."""
        return self.connection_manager.connect_db()
    
    def test_connection(self) -> bool:
        return self.connection_manager.test_connection()
    
    def get_database_info(self) -> dict:
        return self.connection_manager.get_database_info()
    
    # Event operation methods (delegate to events module)
    def add_event(self, title: str, event_date: Optional[str] = None,
                  organization: Optional[str] = None, status: str = "Wanted") -> int:
        """Add an event to the library."""
        return self.events.add_event(title, event_date, organization, status)
    
    def get_event(self, event_id: int) -> Optional[Dict]:
        return self.events.get_event(event_id)
    
    def get_all_events(self, status: Optional[str] = None) -> List[Dict]:
        return self.events.get_all_events(status)
    
    def update_event_status(self, event_id: int, new_status: str) -> bool:
        return self.events.update_event_status(event_id, new_status)
    
    # Import history (read-only outside of the import ledger commit)
    def get_import_history(self, event_id: Optional[int] = None, limit: int = 100) -> List[Dict]:
        return self.import_history.get_history(event_id, limit)
    
    # Root folders
    def add_root_folder(self, path: str) -> Optional[int]:
        return self.root_folders.add_root_folder(path)
    
    def remove_root_folder(self, folder_id: int) -> bool:
        return self.root_folders.remove_root_folder(folder_id)
    
    def get_root_folders(self) -> List[Dict]:
        return self.root_folders.get_root_folders()
