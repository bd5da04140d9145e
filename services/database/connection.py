import os
import sqlite3
import logging
from contextlib import contextmanager
from typing import Iterator, Tuple


class DatabaseConnection:
    """Handles database connection management and optimization"""
    
    def __init__(self, db_file: str):
        self.db_file = db_file
        self.logger = logging.getLogger("DatabaseService.Connection")
    
    def connect_db(self) -> Tuple[sqlite3.Connection, sqlite3.Cursor]:
        """Connect to the SQLite database with optimized settings for concurrent access."""
        try:
            conn = sqlite3.connect(self.db_file, timeout=30.0)
            conn.row_factory = sqlite3.Row  # allow dict-style access to columns
            cursor = conn.cursor()
            
            self._apply_optimizations(cursor)
            
            return conn, cursor
        
        except sqlite3.Error as e:
            self.logger.error(f"Failed to connect to database {self.db_file}: {e}")
            raise
    
    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside one write transaction; commit on success, roll back on error."""
        conn, cursor = self.connect_db()
        try:
            cursor.execute("BEGIN IMMEDIATE")
            yield cursor
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()
    
    def _apply_optimizations(self, cursor: sqlite3.Cursor):
        """Apply SQLite optimization settings for better performance"""
        optimizations = [
            ("PRAGMA journal_mode=WAL", "Write-Ahead Logging"),
            ("PRAGMA synchronous=NORMAL", "Faster than FULL, safer than OFF"),
            ("PRAGMA cache_size=10000", "Larger cache"),
            ("PRAGMA temp_store=memory", "Store temp tables in memory"),
            ("PRAGMA busy_timeout=30000", "30 second timeout for locks")
        ]
        
        for pragma, description in optimizations:
            try:
                cursor.execute(pragma)
            except sqlite3.Error as e:
                self.logger.warning(f"Failed to apply optimization {pragma} ({description}): {e}")
    
    def test_connection(self) -> bool:
        """Test database connection and return success status"""
        try:
            conn, cursor = self.connect_db()
            cursor.execute("SELECT 1")
            result = cursor.fetchone()
            conn.close()
            return result is not None
        
        except sqlite3.Error as e:
            self.logger.error(f"Database connection test failed: {e}")
            return False
    
    def get_database_info(self) -> dict:
        """Get database file information"""
        if os.path.exists(self.db_file):
            size_bytes = os.path.getsize(self.db_file)
            return {
                'file_path': self.db_file,
                'size_bytes': size_bytes,
                'size_mb': round(size_bytes / (1024 * 1024), 2),
                'exists': True
            }
        return {
            'file_path': self.db_file,
            'exists': False
        }
