"""
Module Name: file_operations.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Transfer engine for the import service. Moves, copies or hardlinks the
    selected payload into the library after checking free space, and can
    undo a transfer when the ledger commit fails afterwards.

Location:
    /services/import_service/file_operations.py

"""

import errno
import os
import shutil
from dataclasses import dataclass
from enum import Enum

import psutil

from utils.logger import get_module_logger

from .exceptions import (
    HardlinkUnsupportedError,
    InsufficientSpaceError,
    NotFoundError,
    TransferError,
)

_LOGGER = get_module_logger("Service.Import.FileOperations")

COPY_BUFFER_SIZE = 81920


class TransferMode(Enum):
    MOVE = "move"
    COPY = "copy"
    HARDLINK = "hardlink"

    @classmethod
    def from_value(cls, value) -> "TransferMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "move").strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown transfer mode: {value}") from exc


@dataclass(frozen=True)
class PlatformCapabilities:
    """What the host filesystem layer can do."""

    supports_hardlinks: bool
    supports_permissions: bool

    @classmethod
    def detect(cls) -> "PlatformCapabilities":
        posix = os.name == "posix"
        return cls(
            supports_hardlinks=posix and hasattr(os, "link"),
            supports_permissions=posix and hasattr(os, "chmod"),
        )


class FileOperations:
    """
    Handles file system operations for importing.

    Features:
    - Same-volume moves by link then unlink, so an existing file is never replaced
    - Copy-then-delete fallback across volumes
    - Streaming copy with a fixed buffer, partial output removed on failure
    - Hardlinks where the platform supports them, never a silent fallback
    - Cross-volume hardlinks rejected before any folder is created
    - Disk space checks before any bytes move
    """

    def __init__(self, capabilities: PlatformCapabilities = None, *, logger=None):
        self.capabilities = capabilities or PlatformCapabilities.detect()
        self.logger = logger or _LOGGER

    def transfer(self, source: str, destination: str, mode: TransferMode,
                 minimum_free_bytes: int = 0, skip_free_space_check: bool = False) -> int:
        """
        Place ``source`` at ``destination`` using ``mode``.

        Returns:
            Size of the transferred file in bytes.

        Raises:
            HardlinkUnsupportedError: hardlink requested where linking is impossible;
                raised before the filesystem is touched.
            NotFoundError: source file is missing.
            InsufficientSpaceError: preflight space check failed.
            TransferError: destination exists or the I/O operation failed.
        """
        mode = TransferMode.from_value(mode)
        if mode is TransferMode.HARDLINK and not self.capabilities.supports_hardlinks:
            raise HardlinkUnsupportedError("Hardlinks are not supported on this platform")

        if not os.path.isfile(source):
            raise NotFoundError(f"Source file does not exist: {source}")
        if os.path.lexists(destination):
            raise TransferError(f"Destination already exists: {destination}")

        size = os.path.getsize(source)
        dest_dir = os.path.dirname(destination)

        if mode is TransferMode.HARDLINK and not self.same_volume(source, dest_dir):
            raise HardlinkUnsupportedError(f"Cannot hardlink across volumes: {source} -> {destination}")

        # A hardlink consumes no extra space
        if not skip_free_space_check and mode is not TransferMode.HARDLINK:
            self.check_free_space(dest_dir, size, minimum_free_bytes)

        self.ensure_directory(dest_dir)

        if mode is TransferMode.MOVE:
            self.move_file(source, destination)
        elif mode is TransferMode.COPY:
            self.copy_file(source, destination)
        else:
            self.hardlink_file(source, destination)

        self.logger.info("Transferred file", extra={
            "source": source,
            "destination": destination,
            "mode": mode.value,
            "bytes": size,
        })
        return size

    def ensure_directory(self, directory: str) -> None:
        if not directory:
            return
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise TransferError(f"Unable to create directory {directory}: {exc}") from exc

    @staticmethod
    def nearest_existing(path: str) -> str:
        current = os.path.abspath(path or os.sep)
        while not os.path.exists(current):
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent
        return current

    def get_free_space(self, path: str) -> int:
        """Free bytes on the volume holding ``path`` or its nearest existing ancestor."""
        return psutil.disk_usage(self.nearest_existing(path)).free

    def _volume_id(self, path: str) -> int:
        return os.stat(path).st_dev

    def same_volume(self, source: str, directory: str) -> bool:
        """Whether ``source`` and ``directory`` (or its nearest existing ancestor) share a device."""
        return self._volume_id(source) == self._volume_id(self.nearest_existing(directory))

    def check_free_space(self, directory: str, required_bytes: int, minimum_free_bytes: int = 0) -> None:
        free = self.get_free_space(directory)
        if free - required_bytes < minimum_free_bytes:
            raise InsufficientSpaceError(
                f"Not enough free space at {directory}: {free} bytes free, "
                f"{required_bytes} needed plus {minimum_free_bytes} reserved"
            )

    def move_file(self, source: str, destination: str) -> None:
        """
        Move without ever replacing an existing destination.

        Same-volume moves link then unlink, since ``os.link`` fails on an
        existing name where ``os.rename`` would overwrite it.
        """
        if not self.capabilities.supports_hardlinks:
            self._rename(source, destination)
            return

        try:
            os.link(source, destination)
        except FileExistsError as exc:
            raise TransferError(f"Destination already exists: {destination}") from exc
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                # Filesystem without link support
                self._rename(source, destination)
                return
            self.logger.debug("Cross-volume move, copying %s to %s", source, destination)
            self._buffered_copy(source, destination)

        self._remove_moved_source(source)

    def _rename(self, source: str, destination: str) -> None:
        if os.path.lexists(destination):
            raise TransferError(f"Destination already exists: {destination}")
        try:
            os.rename(source, destination)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise TransferError(f"File move failed: {exc}") from exc
            self._buffered_copy(source, destination)
            self._remove_moved_source(source)

    def _remove_moved_source(self, source: str) -> None:
        try:
            os.remove(source)
        except OSError as exc:
            # The copy is complete and intact; leaving the source behind is not fatal
            self.logger.warning("Copied %s but could not remove source: %s", source, exc)

    def copy_file(self, source: str, destination: str) -> None:
        self._buffered_copy(source, destination)

    def hardlink_file(self, source: str, destination: str) -> None:
        try:
            os.link(source, destination)
        except OSError as exc:
            if exc.errno == errno.EXDEV:
                raise HardlinkUnsupportedError(
                    f"Cannot hardlink across volumes: {source} -> {destination}"
                ) from exc
            raise TransferError(f"Hardlink failed: {exc}") from exc

    def rollback(self, source: str, destination: str, mode: TransferMode) -> bool:
        """Undo a completed transfer. Returns True when the filesystem was restored."""
        mode = TransferMode.from_value(mode)
        try:
            if not os.path.exists(destination):
                return True
            if mode is TransferMode.MOVE and not os.path.exists(source):
                self.ensure_directory(os.path.dirname(source))
                self.move_file(destination, source)
            else:
                os.remove(destination)
            self.logger.info("Rolled back transfer of %s", destination)
            return True
        except (OSError, TransferError) as exc:
            self.logger.error("Failed to roll back transfer %s -> %s: %s", source, destination, exc)
            return False

    def _buffered_copy(self, source: str, destination: str) -> None:
        created = False
        try:
            with open(source, "rb") as src, open(destination, "xb") as dst:
                created = True
                shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)
                dst.flush()
                os.fsync(dst.fileno())
            shutil.copymode(source, destination)
        except OSError as exc:
            if created:
                self._discard_partial(destination)
            raise TransferError(f"File copy failed: {exc}") from exc

    def _discard_partial(self, destination: str) -> None:
        try:
            os.remove(destination)
        except OSError as exc:
            self.logger.error("Could not remove partial file %s: %s", destination, exc)
