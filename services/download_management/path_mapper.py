"""
Path Mapper
===========

Translates paths reported by a download client (as seen from the client's
host or container) into paths on this machine, using the client's
remote_path/local_path mapping.
"""

import os
from typing import Optional

from services.download_clients.base_download_client import DownloadClientConfig


class RemotePathMapper:
    """Maps one client's remote download root onto the local filesystem."""

    def __init__(self, remote_path: str = "", local_path: str = ""):
        self.remote_path = remote_path or ""
        self.local_path = local_path or ""

    @classmethod
    def for_client(cls, config: DownloadClientConfig) -> "RemotePathMapper":
        return cls(config.remote_path, config.local_path)

    def map_remote_to_local(self, remote_path: Optional[str]) -> Optional[str]:
        """Translate a remote client path to a local one; unmapped paths pass through."""
        if not remote_path:
            return None
        if not self.remote_path or not self.local_path:
            return remote_path

        normalized_remote = self._normalize_remote_for_compare(remote_path)
        remote_base_norm = self._normalize_remote_for_compare(self.remote_path)

        if remote_base_norm == '/':
            suffix = normalized_remote.lstrip('/')
        elif normalized_remote == remote_base_norm or normalized_remote.startswith(remote_base_norm + '/'):
            suffix = normalized_remote[len(remote_base_norm):].lstrip('/')
        else:
            return remote_path

        local_base_abs = os.path.abspath(self.local_path)
        if not suffix:
            return local_base_abs
        return os.path.join(local_base_abs, suffix.replace('/', os.sep))

    @staticmethod
    def _normalize_remote_for_compare(path: str) -> str:
        if not path:
            return ''
        normalized = path.replace('\\', '/').strip()
        while len(normalized) > 1 and normalized.endswith('/'):
            normalized = normalized[:-1]
        return normalized or '/'
