"""
Module Name: migrations.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Creates the SQLite schema for BoutArchive idempotently: library events,
    the download queue, the append-only import history ledger and the
    configured root folders.

Location:
    /services/database/migrations.py

"""

from typing import TYPE_CHECKING

from utils.logger import get_module_logger

if TYPE_CHECKING:
    from .connection import DatabaseConnection


class DatabaseMigrations:
    """Handles database initialization and schema migrations."""

    def __init__(self, connection_manager: "DatabaseConnection", *, logger=None):
        self.connection_manager = connection_manager
        self.logger = logger or get_module_logger("Service.Database.Migrations")

    def initialize_database(self):
        """Create every table, index and trigger that does not exist yet."""
        conn, cursor = self.connection_manager.connect_db()
        try:
            self._create_events_table(cursor)
            self._create_download_queue_table(cursor)
            self._create_import_history_table(cursor)
            self._create_root_folders_table(cursor)
            conn.commit()
            self.logger.info("Database schema initialized")
        except Exception as exc:
            conn.rollback()
            self.logger.error(
                "Error initializing database",
                extra={"error": str(exc)},
                exc_info=True,
            )
            raise
        finally:
            conn.close()

    def migrate_database(self):
        """Add columns introduced after the initial schema."""
        conn, cursor = self.connection_manager.connect_db()
        try:
            cursor.execute("PRAGMA table_info(download_queue)")
            existing = {row[1] for row in cursor.fetchall()}
            for column, ddl in (
                ('pending_source', 'TEXT'),
                ('pending_destination', 'TEXT'),
                ('pending_mode', 'TEXT'),
            ):
                if column not in existing:
                    cursor.execute(f"ALTER TABLE download_queue ADD COLUMN {column} {ddl}")
                    self.logger.info("Added download_queue.%s", column)
            conn.commit()
        finally:
            conn.close()

    def _create_events_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                organization TEXT,
                event_date TEXT,
                status TEXT NOT NULL DEFAULT 'Wanted',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_events_status ON events(status)')

    def _create_download_queue_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS download_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL REFERENCES events(id),
                title TEXT,
                download_client TEXT NOT NULL,
                download_id TEXT,
                source_uri TEXT,
                category TEXT,
                status TEXT NOT NULL DEFAULT 'Queued',
                progress REAL DEFAULT 0,
                error_message TEXT,
                output_path TEXT,
                pending_source TEXT,
                pending_destination TEXT,
                pending_mode TEXT,
                added_at TIMESTAMP,
                updated_at TIMESTAMP,
                imported_at TIMESTAMP
            )
        """)
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_download_queue_status ON download_queue(status)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_download_queue_client ON download_queue(download_client)')

    def _create_import_history_table(self, cursor):
        """Append-only ledger; triggers reject UPDATE and DELETE."""
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS import_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL,
                queue_item_id INTEGER NOT NULL,
                source_path TEXT NOT NULL,
                destination_path TEXT NOT NULL,
                quality TEXT,
                size INTEGER,
                decision TEXT NOT NULL,
                imported_at TIMESTAMP NOT NULL
            )
        """)
        cursor.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_import_history_approved "
            "ON import_history(queue_item_id) WHERE decision = 'Approved'"
        )
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_import_history_event ON import_history(event_id)')
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS import_history_no_update
            BEFORE UPDATE ON import_history
            BEGIN
                SELECT RAISE(ABORT, 'import_history is append-only');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS import_history_no_delete
            BEFORE DELETE ON import_history
            BEGIN
                SELECT RAISE(ABORT, 'import_history is append-only');
            END
        """)

    def _create_root_folders_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS root_folders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path TEXT NOT NULL UNIQUE,
                accessible INTEGER NOT NULL DEFAULT 1,
                free_space INTEGER,
                total_space INTEGER,
                last_checked TIMESTAMP
            )
        """)
