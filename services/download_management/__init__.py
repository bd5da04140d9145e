"""
Download Management Module
==========================

Orchestrates the download workflow from queue to library import.

Architecture:
- Main service coordinates all download operations
- Helper modules handle specific concerns (queue, state, polling, cleanup)
- Database-driven state tracking with compare-and-set transitions
"""

from .cleanup_manager import CleanupManager
from .client_selector import ClientSelector
from .download_management_service import DownloadManagementService
from .path_mapper import RemotePathMapper
from .queue_manager import QueueManager
from .queue_synchronizer import QueueSynchronizer
from .state_machine import ACTIVE_STATUSES, TERMINAL_STATUSES, QueueStatus, StateMachine

__all__ = [
    'ACTIVE_STATUSES',
    'CleanupManager',
    'ClientSelector',
    'DownloadManagementService',
    'QueueManager',
    'QueueStatus',
    'QueueSynchronizer',
    'RemotePathMapper',
    'StateMachine',
    'TERMINAL_STATUSES',
]
