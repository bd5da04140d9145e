"""qBittorrent Web API v2 adapter for the download subsystem."""

from __future__ import annotations

import base64
import binascii
import os
import string
import time
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from requests import Response

from .base_download_client import (
	BaseDownloadClient,
	DownloadClientAuthError,
	DownloadClientError,
	DownloadState,
	DownloadStatus,
)
from utils.logger import get_module_logger

logger = get_module_logger("DownloadClients.QBittorrent")


class QBittorrentClient(BaseDownloadClient):
	"""Thin wrapper around the qBittorrent Web API v2."""

	protocol = "qbittorrent"
	NEW_TORRENT_POLL_ATTEMPTS = 8
	NEW_TORRENT_POLL_INTERVAL = 1.0

	# Seeding states count as Completed: the payload is fully on disk.
	STATE_MAP: Dict[str, DownloadState] = {
		"queuedDL": DownloadState.QUEUED,
		"pausedDL": DownloadState.PAUSED,
		"stoppedDL": DownloadState.PAUSED,
		"downloading": DownloadState.DOWNLOADING,
		"forcedDL": DownloadState.DOWNLOADING,
		"stalledDL": DownloadState.DOWNLOADING,
		"checkingDL": DownloadState.DOWNLOADING,
		"metaDL": DownloadState.DOWNLOADING,
		"forcedMetaDL": DownloadState.DOWNLOADING,
		"allocating": DownloadState.DOWNLOADING,
		"moving": DownloadState.DOWNLOADING,
		"checkingResumeData": DownloadState.DOWNLOADING,
		"uploading": DownloadState.COMPLETED,
		"stalledUP": DownloadState.COMPLETED,
		"forcedUP": DownloadState.COMPLETED,
		"queuedUP": DownloadState.COMPLETED,
		"checkingUP": DownloadState.COMPLETED,
		"pausedUP": DownloadState.COMPLETED,
		"stoppedUP": DownloadState.COMPLETED,
		"error": DownloadState.FAILED,
		"missingFiles": DownloadState.FAILED,
	}

	def __init__(self, config, *, session=None):
		super().__init__(config, session=session, logger=logger)
		self.api_url = f"{self.base_url}/api/v2/"

	# ------------------------------------------------------------------
	# Protocol hooks
	# ------------------------------------------------------------------
	def _login(self) -> str:
		self.session.cookies.clear()
		response = self._http(
			"POST",
			f"{self.api_url}auth/login",
			data={"username": self.config.username, "password": self.config.password},
			allow_redirects=False,
		)
		if response.status_code != 200 or response.text.strip().lower() not in {"ok", "ok."}:
			raise DownloadClientAuthError(
				f"Login failed: {response.status_code} {response.text.strip()}"
			)
		return self.session.cookies.get("SID") or "ok"

	def _fetch_version(self) -> str:
		return self._request("GET", "app/version").text.strip()

	def _enqueue(self, source_uri: str, category: Optional[str]) -> Optional[str]:
		expected_hash = self._derive_info_hash(source_uri)
		tag = f"boutarchive-{uuid.uuid4().hex[:12]}"
		payload: Dict[str, Any] = {"urls": source_uri.strip(), "tags": tag}
		if category:
			payload["category"] = category

		response = self._request("POST", "torrents/add", data=payload)
		text = (response.text or "").strip().lower()
		if text not in {"ok", "ok."}:
			raise DownloadClientError(f"qBittorrent rejected torrent: {response.text.strip()}")

		if expected_hash:
			return expected_hash
		return self._wait_for_tagged_torrent(tag)

	def _fetch_status(self, handle: str) -> Optional[DownloadStatus]:
		torrents = self._request_json("torrents/info", params={"hashes": handle.lower()})
		if not torrents:
			logger.debug("Torrent %s not present in qBittorrent", handle)
			return None
		return self._build_status(torrents[0])

	def _pause(self, handle: str) -> bool:
		return self._torrent_action(("torrents/pause", "torrents/stop"), handle)

	def _resume(self, handle: str) -> bool:
		return self._torrent_action(("torrents/resume", "torrents/start"), handle)

	def _remove(self, handle: str, delete_files: bool) -> bool:
		data = {"hashes": handle, "deleteFiles": "true" if delete_files else "false"}
		self._request("POST", "torrents/delete", data=data)
		return True

	# ------------------------------------------------------------------
	# Internal helpers
	# ------------------------------------------------------------------
	def _request(self, method: str, endpoint: str, **kwargs: Any) -> Response:
		response = self._http(method, f"{self.api_url}{endpoint}", **kwargs)
		if response.status_code in (401, 403):
			raise DownloadClientAuthError(f"HTTP {method} {endpoint} returned {response.status_code}")
		if response.status_code == 404:
			raise DownloadClientError(f"HTTP {method} {endpoint} not found")
		if response.status_code >= 400:
			raise DownloadClientError(
				f"HTTP {method} {endpoint} failed: {response.status_code} {response.text.strip()}"
			)
		return response

	def _request_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
		return self._json(self._request("GET", endpoint, params=params), endpoint)

	def _torrent_action(self, endpoints, handle: str) -> bool:
		# qBittorrent 5 renamed pause/resume to stop/start
		last_error: Optional[DownloadClientError] = None
		for endpoint in endpoints:
			try:
				self._request("POST", endpoint, data={"hashes": handle})
				return True
			except DownloadClientAuthError:
				raise
			except DownloadClientError as exc:
				last_error = exc
		if last_error:
			raise last_error
		return False

	def _wait_for_tagged_torrent(self, tag: str) -> Optional[str]:
		for _ in range(self.NEW_TORRENT_POLL_ATTEMPTS):
			torrents: List[Dict[str, Any]] = self._request_json("torrents/info", params={"tag": tag})
			for torrent in torrents:
				if torrent.get("hash"):
					return str(torrent["hash"]).lower()
			time.sleep(self.NEW_TORRENT_POLL_INTERVAL)
		logger.warning("Torrent submission succeeded but hash for tag %s never appeared", tag)
		return None

	def _build_status(self, data: Dict[str, Any]) -> DownloadStatus:
		raw_state = str(data.get("state", "unknown"))
		try:
			progress = float(data.get("progress", 0.0)) * 100.0
		except (TypeError, ValueError):
			progress = 0.0

		content_path = data.get("content_path")
		if not content_path and data.get("save_path") and data.get("name"):
			content_path = os.path.join(data["save_path"], data["name"])

		state = self.map_state(raw_state)
		return DownloadStatus(
			handle=str(data.get("hash") or "").lower(),
			name=data.get("name") or "",
			state=state,
			raw_state=raw_state,
			progress=progress,
			size=int(data.get("size") or data.get("total_size") or 0),
			content_path=content_path,
			message=(data.get("msg") or data.get("error") or None) if state == DownloadState.FAILED else None,
		)

	def _derive_info_hash(self, source_uri: str) -> Optional[str]:
		trimmed = source_uri.strip()
		if trimmed.lower().startswith("magnet:"):
			return self._extract_info_hash_from_magnet(trimmed)
		return None

	def _extract_info_hash_from_magnet(self, value: str) -> Optional[str]:
		parsed = urlparse(value)
		if parsed.scheme != "magnet":
			return None
		params = parse_qs(parsed.query)
		for qualifier in params.get("xt", []):
			if qualifier and qualifier.lower().startswith("urn:btih:"):
				return self._normalize_info_hash(qualifier.split(":")[-1])
		return None

	@staticmethod
	def _normalize_info_hash(value: Optional[str]) -> Optional[str]:
		if not value:
			return None
		trimmed = str(value).strip()
		if not trimmed:
			return None
		candidate = trimmed.lower()
		if len(candidate) == 40 and all(ch in string.hexdigits for ch in candidate):
			return candidate
		try:
			decoded = base64.b32decode(trimmed.upper())
			return decoded.hex()
		except (binascii.Error, ValueError):
			return None
