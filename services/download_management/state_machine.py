"""
State Machine
=============

Manages queue item status transitions and validation.

Valid state flow:
Queued → Downloading ⇄ Paused → Completed → Importing → Imported
   ↓                    ↓                       ↓
   └──── Completed ─────┘                    Failed

Failed is reachable from every non-terminal status. Imported and Failed are
terminal. Importing is entered only from Completed; the single way back out
other than a terminal status is crash reconciliation (Importing → Completed).

Every transition is a compare-and-set on the database row, so two workers
racing on the same item cannot both win.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Set

from services.download_clients.base_download_client import DownloadState

logger = logging.getLogger("DownloadManagement.StateMachine")


class QueueStatus(str, Enum):
    QUEUED = "Queued"
    DOWNLOADING = "Downloading"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    IMPORTING = "Importing"
    IMPORTED = "Imported"
    FAILED = "Failed"

    @classmethod
    def from_download_state(cls, state: DownloadState) -> "QueueStatus":
        return cls(state.value)


TERMINAL_STATUSES = frozenset({QueueStatus.IMPORTED, QueueStatus.FAILED})
ACTIVE_STATUSES = frozenset({QueueStatus.QUEUED, QueueStatus.DOWNLOADING, QueueStatus.PAUSED})


class StateMachine:
    """
    Enforces valid status transitions for the queue lifecycle.

    Prevents invalid status changes and maintains data consistency.
    """

    ALLOWED_TRANSITIONS: Dict[QueueStatus, Set[QueueStatus]] = {
        QueueStatus.QUEUED: {QueueStatus.DOWNLOADING, QueueStatus.PAUSED, QueueStatus.COMPLETED, QueueStatus.FAILED},
        QueueStatus.DOWNLOADING: {QueueStatus.PAUSED, QueueStatus.COMPLETED, QueueStatus.FAILED},
        QueueStatus.PAUSED: {QueueStatus.DOWNLOADING, QueueStatus.COMPLETED, QueueStatus.FAILED},
        QueueStatus.COMPLETED: {QueueStatus.IMPORTING, QueueStatus.FAILED},
        # Completed only via crash reconciliation
        QueueStatus.IMPORTING: {QueueStatus.IMPORTED, QueueStatus.FAILED, QueueStatus.COMPLETED},
        QueueStatus.IMPORTED: set(),
        QueueStatus.FAILED: set(),
    }

    def __init__(self, queue_manager=None):
        """Initialize state machine."""
        self.logger = logging.getLogger("DownloadManagement.StateMachine")
        self._queue_manager = queue_manager

    def _get_queue_manager(self):
        """Lazy load QueueManager."""
        if self._queue_manager is None:
            from .queue_manager import QueueManager
            self._queue_manager = QueueManager()
        return self._queue_manager

    def transition(self, queue_id: int, new_status: QueueStatus,
                   expected_status: Optional[QueueStatus] = None,
                   updates: Optional[Dict[str, Any]] = None) -> bool:
        """
        Move an item to ``new_status`` if the transition is allowed.

        Args:
            queue_id: Queue item ID
            new_status: Target status
            expected_status: Status the caller observed; read from the row when omitted
            updates: Extra columns written in the same statement

        Returns:
            True if this call performed the transition
        """
        queue_manager = self._get_queue_manager()
        new_status = QueueStatus(new_status)

        if expected_status is None:
            item = queue_manager.get_download(queue_id)
            if not item:
                self.logger.error(f"Queue item {queue_id} not found")
                return False
            expected_status = item['status']
        expected_status = QueueStatus(expected_status)

        if not self.is_valid_transition(expected_status, new_status):
            self.logger.error(
                f"Invalid state transition for queue item {queue_id}: "
                f"{expected_status.value} → {new_status.value}"
            )
            return False

        changed = queue_manager.compare_and_set(queue_id, expected_status, new_status, updates)
        if changed:
            self.logger.debug(f"Queue item {queue_id}: {expected_status.value} → {new_status.value}")
        else:
            self.logger.debug(
                f"Queue item {queue_id} left {expected_status.value} before {new_status.value} could be applied"
            )
        return changed

    def is_valid_transition(self, current_status, new_status) -> bool:
        try:
            current_status = QueueStatus(current_status)
            new_status = QueueStatus(new_status)
        except ValueError:
            self.logger.warning(f"Unknown status in transition: {current_status} → {new_status}")
            return False
        return new_status in self.ALLOWED_TRANSITIONS[current_status]

    @staticmethod
    def is_terminal(status) -> bool:
        return QueueStatus(status) in TERMINAL_STATUSES

    def can_pause(self, current_status) -> bool:
        return QueueStatus(current_status) in {QueueStatus.QUEUED, QueueStatus.DOWNLOADING}

    def can_resume(self, current_status) -> bool:
        return QueueStatus(current_status) == QueueStatus.PAUSED

    def can_remove(self, current_status) -> bool:
        """Items being imported stay until the import run finishes."""
        return QueueStatus(current_status) != QueueStatus.IMPORTING

    def get_allowed_transitions(self, current_status) -> Set[QueueStatus]:
        return set(self.ALLOWED_TRANSITIONS.get(QueueStatus(current_status), set()))
