"""
Module Name: sabnzbd_client.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    SABnzbd API adapter. Authentication is a static API key; the session
    token is the key once the daemon has accepted it. Active jobs live in
    the queue, finished and post-processing jobs in the history.

Location:
    /services/download_clients/sabnzbd_client.py

"""

from typing import Any, Dict, Optional

from .base_download_client import (
    BaseDownloadClient,
    DownloadClientAuthError,
    DownloadClientError,
    DownloadState,
    DownloadStatus,
)
from utils.logger import get_module_logger

logger = get_module_logger("DownloadClients.SABnzbd")


class SABnzbdClient(BaseDownloadClient):
    """Adapter for the SABnzbd ``/api`` endpoint."""

    protocol = "sabnzbd"

    # Queue and history share one vocabulary; post-processing is still in progress.
    STATE_MAP: Dict[str, DownloadState] = {
        "Queued": DownloadState.QUEUED,
        "Paused": DownloadState.PAUSED,
        "Downloading": DownloadState.DOWNLOADING,
        "Fetching": DownloadState.DOWNLOADING,
        "Grabbing": DownloadState.DOWNLOADING,
        "Propagating": DownloadState.DOWNLOADING,
        "Checking": DownloadState.DOWNLOADING,
        "QuickCheck": DownloadState.DOWNLOADING,
        "Verifying": DownloadState.DOWNLOADING,
        "Repairing": DownloadState.DOWNLOADING,
        "Extracting": DownloadState.DOWNLOADING,
        "Moving": DownloadState.DOWNLOADING,
        "Running": DownloadState.DOWNLOADING,
        "Completed": DownloadState.COMPLETED,
        "Failed": DownloadState.FAILED,
    }

    def __init__(self, config, *, session=None):
        super().__init__(config, session=session, logger=logger)
        self.api_url = f"{self.base_url}/api"

    def _api(self, mode: str, **params: Any) -> Dict[str, Any]:
        query = {"mode": mode, "output": "json", "apikey": self.config.api_key}
        query.update(params)
        response = self._http("GET", self.api_url, params=query)
        if response.status_code in (401, 403):
            raise DownloadClientAuthError(f"mode={mode} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise DownloadClientError(f"mode={mode} failed: HTTP {response.status_code}")

        body = self._json(response, f"mode={mode}")
        if isinstance(body, dict) and body.get("status") is False:
            error = str(body.get("error") or "unknown error")
            if "api key" in error.lower():
                raise DownloadClientAuthError(error)
            raise DownloadClientError(error)
        return body if isinstance(body, dict) else {}

    def _login(self) -> str:
        if not self.config.api_key:
            raise DownloadClientAuthError("SABnzbd requires an API key")
        self._api("queue", limit=0)
        return self.config.api_key

    def _fetch_version(self) -> str:
        return str(self._api("version").get("version", ""))

    def _enqueue(self, source_uri: str, category: Optional[str]) -> Optional[str]:
        params: Dict[str, Any] = {"name": source_uri.strip()}
        if category:
            params["cat"] = category
        body = self._api("addurl", **params)
        ids = body.get("nzo_ids") or []
        return ids[0] if ids else None

    def _fetch_status(self, handle: str) -> Optional[DownloadStatus]:
        queue = self._api("queue", nzo_ids=handle).get("queue") or {}
        for slot in queue.get("slots") or []:
            if slot.get("nzo_id") == handle:
                return self._build_queue_status(slot)

        history = self._api("history", nzo_ids=handle).get("history") or {}
        for slot in history.get("slots") or []:
            if slot.get("nzo_id") == handle:
                return self._build_history_status(slot)
        return None

    def _pause(self, handle: str) -> bool:
        body = self._api("queue", name="pause", value=handle)
        return bool(body.get("status", True))

    def _resume(self, handle: str) -> bool:
        body = self._api("queue", name="resume", value=handle)
        return bool(body.get("status", True))

    def _remove(self, handle: str, delete_files: bool) -> bool:
        del_files = 1 if delete_files else 0
        body = self._api("queue", name="delete", value=handle, del_files=del_files)
        if body.get("nzo_ids"):
            return True
        body = self._api("history", name="delete", value=handle, del_files=del_files)
        return bool(body.get("status", True))

    def _build_queue_status(self, slot: Dict[str, Any]) -> DownloadStatus:
        raw_state = str(slot.get("status") or "Queued")
        try:
            progress = float(slot.get("percentage") or 0.0)
        except (TypeError, ValueError):
            progress = 0.0
        try:
            size = int(float(slot.get("mb") or 0) * 1024 * 1024)
        except (TypeError, ValueError):
            size = 0
        return DownloadStatus(
            handle=slot.get("nzo_id") or "",
            name=slot.get("filename") or "",
            state=self.map_state(raw_state),
            raw_state=raw_state,
            progress=progress,
            size=size,
        )

    def _build_history_status(self, slot: Dict[str, Any]) -> DownloadStatus:
        raw_state = str(slot.get("status") or "")
        state = self.map_state(raw_state)
        return DownloadStatus(
            handle=slot.get("nzo_id") or "",
            name=slot.get("name") or "",
            state=state,
            raw_state=raw_state,
            progress=100.0 if state == DownloadState.COMPLETED else 0.0,
            size=int(slot.get("bytes") or 0),
            content_path=slot.get("storage") or None,
            message=slot.get("fail_message") or None,
        )
