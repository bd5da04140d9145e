"""
Module Name: transmission_client.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Transmission RPC adapter. The session token is the
    X-Transmission-Session-Id header handed out with a 409 response; a 409
    on any later call means the token rotated.

Location:
    /services/download_clients/transmission_client.py

"""

import os
from typing import Any, Dict, Optional

from .base_download_client import (
    AgentUnreachableError,
    BaseDownloadClient,
    DownloadClientAuthError,
    DownloadClientError,
    DownloadState,
    DownloadStatus,
)
from utils.logger import get_module_logger

logger = get_module_logger("DownloadClients.Transmission")

SESSION_HEADER = "X-Transmission-Session-Id"

STATUS_NAMES = {
    0: "stopped",
    1: "check-wait",
    2: "check",
    3: "download-wait",
    4: "download",
    5: "seed-wait",
    6: "seed",
}

STATUS_FIELDS = [
    "hashString", "name", "status", "percentDone", "totalSize",
    "downloadDir", "error", "errorString",
]


class TransmissionClient(BaseDownloadClient):
    """Adapter for the Transmission JSON-RPC interface."""

    protocol = "transmission"
    DEFAULT_URL_BASE = "/transmission"

    STATE_MAP: Dict[str, DownloadState] = {
        "stopped": DownloadState.PAUSED,
        "check-wait": DownloadState.DOWNLOADING,
        "check": DownloadState.DOWNLOADING,
        "download-wait": DownloadState.QUEUED,
        "download": DownloadState.DOWNLOADING,
        "seed-wait": DownloadState.COMPLETED,
        "seed": DownloadState.COMPLETED,
    }

    def __init__(self, config, *, session=None):
        super().__init__(config, session=session, logger=logger)
        base = self.base_url if config.url_base else f"{self.base_url}{self.DEFAULT_URL_BASE}"
        self.rpc_url = f"{base}/rpc"

    def _auth(self):
        if self.config.username:
            return (self.config.username, self.config.password)
        return None

    def _login(self) -> str:
        response = self._http(
            "POST", self.rpc_url, json={"method": "session-get"}, auth=self._auth()
        )
        if response.status_code == 401:
            raise DownloadClientAuthError("Transmission rejected the configured credentials")
        token = response.headers.get(SESSION_HEADER)
        if response.status_code in (200, 409) and token:
            return token
        raise AgentUnreachableError(
            f"Transmission did not issue a session id (HTTP {response.status_code})"
        )

    def _rpc(self, method: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"method": method}
        if arguments:
            payload["arguments"] = arguments
        response = self._http(
            "POST",
            self.rpc_url,
            json=payload,
            headers={SESSION_HEADER: self._session_token or ""},
            auth=self._auth(),
        )
        if response.status_code in (401, 409):
            raise DownloadClientAuthError(f"{method} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise DownloadClientError(f"{method} failed: HTTP {response.status_code}")

        body = self._json(response, method)
        if body.get("result") != "success":
            raise DownloadClientError(f"{method} failed: {body.get('result')}")
        return body.get("arguments") or {}

    def _fetch_version(self) -> str:
        return str(self._rpc("session-get").get("version", ""))

    def _enqueue(self, source_uri: str, category: Optional[str]) -> Optional[str]:
        arguments = self._rpc("torrent-add", {"filename": source_uri.strip()})
        added = arguments.get("torrent-added") or arguments.get("torrent-duplicate")
        if not added or not added.get("hashString"):
            return None
        handle = str(added["hashString"]).lower()
        if category:
            # Labels act as the category; older daemons without label support just ignore it
            try:
                self._rpc("torrent-set", {"ids": [handle], "labels": [category]})
            except DownloadClientAuthError:
                raise
            except DownloadClientError as exc:
                logger.warning("Unable to label torrent %s with %s: %s", handle, category, exc)
        return handle

    def _fetch_status(self, handle: str) -> Optional[DownloadStatus]:
        arguments = self._rpc("torrent-get", {"ids": [handle], "fields": STATUS_FIELDS})
        torrents = arguments.get("torrents") or []
        if not torrents:
            return None
        return self._build_status(torrents[0])

    def _pause(self, handle: str) -> bool:
        self._rpc("torrent-stop", {"ids": [handle]})
        return True

    def _resume(self, handle: str) -> bool:
        self._rpc("torrent-start", {"ids": [handle]})
        return True

    def _remove(self, handle: str, delete_files: bool) -> bool:
        self._rpc("torrent-remove", {"ids": [handle], "delete-local-data": delete_files})
        return True

    def _build_status(self, data: Dict[str, Any]) -> DownloadStatus:
        code = data.get("status")
        raw_state = STATUS_NAMES.get(code, str(code))
        percent_done = float(data.get("percentDone") or 0.0)
        error_code = int(data.get("error") or 0)

        if error_code != 0:
            state = DownloadState.FAILED
        elif raw_state == "stopped" and percent_done >= 1.0:
            state = DownloadState.COMPLETED
        else:
            state = self.map_state(raw_state)

        content_path = None
        if data.get("downloadDir") and data.get("name"):
            content_path = os.path.join(data["downloadDir"], data["name"])

        return DownloadStatus(
            handle=str(data.get("hashString") or "").lower(),
            name=data.get("name") or "",
            state=state,
            raw_state=raw_state,
            progress=percent_done * 100.0,
            size=int(data.get("totalSize") or 0),
            content_path=content_path,
            message=(data.get("errorString") or None) if error_code else None,
        )
