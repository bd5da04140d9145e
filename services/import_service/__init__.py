"""
Import Service Package
Moves completed downloads into the event library with ledger tracking

Components:
- ImportService: Main service coordinator (singleton)
- CandidateSelector: Picks the feature file out of a download
- FileOperations: Move/copy/hardlink transfer engine
- PermissionManager: chmod/chown after import where supported
- release_parser: Scene release name parsing
"""

from .candidate_selector import CandidateSelector, VIDEO_EXTENSIONS
from .exceptions import (
    HardlinkUnsupportedError,
    ImportPipelineError,
    InsufficientSpaceError,
    LedgerCommitError,
    NoMediaFoundError,
    NotFoundError,
    PermissionApplicationError,
    StorageUnavailableError,
    TransferError,
)
from .file_operations import FileOperations, PlatformCapabilities, TransferMode
from .import_service import ImportService
from .permissions import (
    PermissionManager,
    PosixPermissionManager,
    UnsupportedPermissionManager,
    create_permission_manager,
)
from .release_parser import ParsedReleaseInfo, parse, quality_label

__all__ = [
    'CandidateSelector',
    'FileOperations',
    'HardlinkUnsupportedError',
    'ImportPipelineError',
    'ImportService',
    'InsufficientSpaceError',
    'LedgerCommitError',
    'NoMediaFoundError',
    'NotFoundError',
    'ParsedReleaseInfo',
    'PermissionApplicationError',
    'PermissionManager',
    'PlatformCapabilities',
    'PosixPermissionManager',
    'StorageUnavailableError',
    'TransferError',
    'TransferMode',
    'UnsupportedPermissionManager',
    'VIDEO_EXTENSIONS',
    'create_permission_manager',
    'parse',
    'quality_label',
]
