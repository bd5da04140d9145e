"""
Queue Manager
=============

Handles download queue database operations:
- Add/remove queue items
- Compare-and-set status updates
- Non-status field updates (progress, output path)
- Queue statistics
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from services.database.error_handling import error_handler
from utils.logger import get_module_logger

from .state_machine import ACTIVE_STATUSES, TERMINAL_STATUSES, QueueStatus

logger = get_module_logger("QueueManager")

# Columns that may be written alongside or outside a status change
UPDATABLE_FIELDS = {
    'title', 'download_id', 'progress', 'error_message', 'output_path',
    'pending_source', 'pending_destination', 'pending_mode', 'imported_at',
}


class QueueManager:
    """
    Manages the download_queue table.

    Features:
    - Status changes only through compare-and-set
    - Filtering by client and status
    - Queue statistics
    """

    def __init__(self, connection_manager=None):
        """Initialize queue manager."""
        self.logger = logger
        self._connection_manager = connection_manager

    def _get_connection_manager(self):
        """Lazy load the DatabaseService connection manager."""
        if self._connection_manager is None:
            from services.service_manager import get_database_service
            self._connection_manager = get_database_service().connection_manager
        return self._connection_manager

    @error_handler.with_retry()
    def add_to_queue(self, event_id: int, download_client: str, source_uri: str,
                     download_id: Optional[str] = None, title: Optional[str] = None,
                     category: Optional[str] = None) -> int:
        """
        Add an item to the download queue in the Queued status.

        Returns:
            ID of the created queue item
        """
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            now = datetime.now().isoformat()
            cursor.execute(
                """
                    INSERT INTO download_queue (
                        event_id, title, download_client, download_id, source_uri,
                        category, status, progress, added_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (event_id, title, download_client, download_id, source_uri,
                 category, QueueStatus.QUEUED.value, now, now),
            )
            conn.commit()
            queue_id = cursor.lastrowid
            self.logger.debug(f"Added to queue: event {event_id} (ID: {queue_id}, client: {download_client})")
            return queue_id
        finally:
            conn.close()

    def get_download(self, queue_id: int) -> Optional[Dict[str, Any]]:
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            cursor.execute("SELECT * FROM download_queue WHERE id=?", (queue_id,))
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            conn.close()

    def get_queue(self, status_filter: Optional[Iterable[str]] = None,
                  client_name: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get queue items, optionally filtered by status and client.

        Args:
            status_filter: Statuses to include; every status when omitted
            client_name: Only items owned by this download client
        """
        clauses: List[str] = []
        params: List[Any] = []

        if status_filter:
            statuses = [QueueStatus(status).value for status in status_filter]
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if client_name:
            clauses.append("download_client=?")
            params.append(client_name)

        query = "SELECT * FROM download_queue"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY added_at ASC, id ASC"

        conn, cursor = self._get_connection_manager().connect_db()
        try:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_pollable_items(self, client_name: str) -> List[Dict[str, Any]]:
        """Items whose client state still matters: active plus Completed awaiting import."""
        statuses = set(ACTIVE_STATUSES) | {QueueStatus.COMPLETED}
        return self.get_queue(statuses, client_name)

    @error_handler.with_retry()
    def compare_and_set(self, queue_id: int, expected: QueueStatus, new: QueueStatus,
                        updates: Optional[Dict[str, Any]] = None) -> bool:
        """Write ``new`` only if the row is still ``expected``. Returns True on success."""
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            changed = self.compare_and_set_in(cursor, queue_id, expected, new, updates)
            conn.commit()
            return changed
        finally:
            conn.close()

    @staticmethod
    def compare_and_set_in(cursor, queue_id: int, expected: QueueStatus, new: QueueStatus,
                           updates: Optional[Dict[str, Any]] = None) -> bool:
        """Compare-and-set inside a caller-owned transaction."""
        fields = dict(updates or {})
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update download_queue columns: {', '.join(sorted(unknown))}")

        fields['status'] = QueueStatus(new).value
        fields['updated_at'] = datetime.now().isoformat()
        set_clause = ', '.join(f"{key}=?" for key in fields)
        cursor.execute(
            f"UPDATE download_queue SET {set_clause} WHERE id=? AND status=?",
            list(fields.values()) + [queue_id, QueueStatus(expected).value],
        )
        return cursor.rowcount == 1

    @error_handler.with_retry()
    def update_fields(self, queue_id: int, updates: Dict[str, Any]) -> bool:
        """Update non-status columns."""
        fields = dict(updates)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update download_queue columns: {', '.join(sorted(unknown))}")
        if not fields:
            return False

        fields['updated_at'] = datetime.now().isoformat()
        set_clause = ', '.join(f"{key}=?" for key in fields)
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            cursor.execute(
                f"UPDATE download_queue SET {set_clause} WHERE id=?",
                list(fields.values()) + [queue_id],
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    @error_handler.with_retry()
    def delete_download(self, queue_id: int) -> bool:
        """Delete a queue item unless an import run currently owns it."""
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            cursor.execute(
                "DELETE FROM download_queue WHERE id=? AND status<>?",
                (queue_id, QueueStatus.IMPORTING.value),
            )
            conn.commit()
            deleted = cursor.rowcount == 1
            if deleted:
                self.logger.debug(f"Deleted queue item {queue_id}")
            return deleted
        finally:
            conn.close()

    def get_queue_statistics(self) -> Dict[str, int]:
        conn, cursor = self._get_connection_manager().connect_db()
        try:
            cursor.execute("SELECT status, COUNT(*) AS count FROM download_queue GROUP BY status")
            stats = {row['status']: row['count'] for row in cursor.fetchall()}
        finally:
            conn.close()

        terminal = {status.value for status in TERMINAL_STATUSES}
        stats['total_active'] = sum(count for status, count in stats.items() if status not in terminal)
        return stats
