"""Errors raised by the import pipeline. Anything derived from ImportPipelineError
that escapes an import run marks the queue item Failed."""


class ImportPipelineError(Exception):
    """Base class for import run failures."""


class NotFoundError(ImportPipelineError):
    """Library event, queue item, payload path or root folder does not exist."""


class NoMediaFoundError(ImportPipelineError):
    """The payload contains no file with an allowed media extension."""


class InsufficientSpaceError(ImportPipelineError):
    """Free space at the destination is below the configured minimum."""


class TransferError(ImportPipelineError):
    """I/O failure while moving, copying or linking the payload."""


class HardlinkUnsupportedError(TransferError):
    """Hardlink mode was requested on a platform or volume pair that cannot link."""


class PermissionApplicationError(ImportPipelineError):
    """chmod/chown failed. Logged only; never fails an import."""


class StorageUnavailableError(ImportPipelineError):
    """No configured root folder is reachable."""


class LedgerCommitError(ImportPipelineError):
    """The import record, queue item and event could not be committed together."""
