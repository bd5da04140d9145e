"""
Module Name: base_download_client.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Abstract base for download client (fetch agent) implementations and the
    canonical state vocabulary shared by every backend. Owns the cached
    session token, its invalidation and the single re-login retry, so
    adapters only describe their wire protocol.

Location:
    /services/download_clients/base_download_client.py

"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlparse

import requests
from requests import Response, Session
from requests.exceptions import RequestException

from utils.logger import get_module_logger


class DownloadState(Enum):
    """Canonical download states across all clients."""
    QUEUED = "Queued"
    DOWNLOADING = "Downloading"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    FAILED = "Failed"


class DownloadClientError(RuntimeError):
    """Base download client error."""


class DownloadClientAuthError(DownloadClientError):
    """Raised when the client rejects our credentials or session token."""


class AgentUnreachableError(DownloadClientError):
    """Raised when the client cannot be reached or answers with garbage."""


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class DownloadClientConfig:
    """Connection settings for one configured client. Edits produce a new instance."""

    name: str
    protocol: str
    host: str = "localhost"
    port: Optional[int] = None
    use_ssl: bool = False
    url_base: str = ""
    username: str = ""
    password: str = ""
    api_key: str = ""
    category: str = ""
    timeout: float = 15.0
    verify_cert: bool = True
    enabled: bool = True
    poll_interval: Optional[int] = None
    remote_path: str = ""
    local_path: str = ""

    @classmethod
    def from_section(cls, name: str, values: Mapping[str, Any]) -> "DownloadClientConfig":
        """Build a config from a [download_client:<name>] section."""
        timeout = values.get('timeout')
        return cls(
            name=name,
            protocol=str(values.get('protocol') or name).strip().lower(),
            host=str(values.get('host') or 'localhost').strip(),
            port=_as_int(values.get('port')),
            use_ssl=_as_bool(values.get('use_ssl')),
            url_base=str(values.get('url_base') or '').strip(),
            username=str(values.get('username') or ''),
            password=str(values.get('password') or ''),
            api_key=str(values.get('api_key') or ''),
            category=str(values.get('category') or '').strip(),
            timeout=float(timeout) if timeout not in (None, '') else 15.0,
            verify_cert=_as_bool(values.get('verify_cert'), True),
            enabled=_as_bool(values.get('enabled'), True),
            poll_interval=_as_int(values.get('poll_interval')),
            remote_path=str(values.get('remote_path') or '').strip(),
            local_path=str(values.get('local_path') or '').strip(),
        )

    @property
    def base_url(self) -> str:
        host = self.host
        scheme = "https" if self.use_ssl else "http"

        if host.startswith(("http://", "https://")):
            parsed = urlparse(host)
            base = f"{parsed.scheme}://{parsed.netloc or parsed.path}"
            if parsed.path and parsed.path not in {"", "/"}:
                base = f"{base}{parsed.path.rstrip('/')}"
        elif self.port and ":" not in host:
            base = f"{scheme}://{host}:{self.port}"
        else:
            base = f"{scheme}://{host}"

        if self.url_base:
            base = f"{base}/{self.url_base.strip('/')}"
        return base.rstrip("/")

    def redacted(self) -> Dict[str, Any]:
        """Settings safe to log or return over the API."""
        return {
            "name": self.name,
            "protocol": self.protocol,
            "host": self.host,
            "port": self.port,
            "use_ssl": self.use_ssl,
            "url_base": self.url_base,
            "category": self.category,
            "enabled": self.enabled,
            "poll_interval": self.poll_interval,
        }


@dataclass
class DownloadStatus:
    """One client's view of a download, translated to the canonical vocabulary."""

    handle: str
    name: str
    state: DownloadState
    raw_state: str
    progress: float = 0.0
    size: int = 0
    content_path: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "handle": self.handle,
            "name": self.name,
            "state": self.state.value,
            "raw_state": self.raw_state,
            "progress": self.progress,
            "size": self.size,
            "content_path": self.content_path,
            "message": self.message,
        }


class BaseDownloadClient(ABC):
    """
    Abstract base class for download clients.

    Subclasses implement the underscore-prefixed protocol hooks. The public
    methods never raise for network or authentication problems: they log,
    record ``last_error`` and return ``None``/``False`` so the caller can try
    again on the next poll.
    """

    protocol = ""
    DEFAULT_TIMEOUT = 15
    STATE_MAP: Dict[str, DownloadState] = {}

    def __init__(self, config: DownloadClientConfig, *, session: Optional[Session] = None, logger=None):
        self.config = config
        self.client_type = self.__class__.__name__
        self.timeout = float(config.timeout or self.DEFAULT_TIMEOUT)
        self.base_url = config.base_url
        self.last_error: Optional[str] = None
        self.logger = logger or get_module_logger("Service.DownloadClients.BaseDownloadClient")

        self._session: Optional[Session] = session
        self._session_token: Optional[str] = None
        self._token_lock = threading.RLock()

        self.logger.debug("Initializing download client", extra={
            "client_type": self.client_type,
            "client_name": config.name,
            "base_url": self.base_url,
        })

    # ------------------------------------------------------------------
    # Protocol hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _login(self) -> str:
        """Exchange credentials for a session token. Raises DownloadClientAuthError."""

    @abstractmethod
    def _fetch_version(self) -> str:
        """Return the client version string."""

    @abstractmethod
    def _enqueue(self, source_uri: str, category: Optional[str]) -> Optional[str]:
        """Submit a source locator and return the client-native handle."""

    @abstractmethod
    def _fetch_status(self, handle: str) -> Optional[DownloadStatus]:
        """Query one download; ``None`` when the client does not know the handle."""

    @abstractmethod
    def _pause(self, handle: str) -> bool:
        ...

    @abstractmethod
    def _resume(self, handle: str) -> bool:
        ...

    @abstractmethod
    def _remove(self, handle: str, delete_files: bool) -> bool:
        ...

    # ------------------------------------------------------------------
    # Public capability set
    # ------------------------------------------------------------------
    def test_connection(self) -> Dict[str, Any]:
        """
        Verify that the client is reachable and the credentials are accepted.

        Returns:
            Dictionary with ``success``, ``version`` and ``error`` keys.
        """
        result: Dict[str, Any] = {"success": False, "version": None, "error": None}
        try:
            version = self._with_session(self._fetch_version)
            result.update({"success": True, "version": version})
            self._clear_error()
        except DownloadClientError as exc:
            result["error"] = str(exc)
            self._set_error(f"Connection test failed: {exc}")
        return result

    def enqueue(self, source_uri: str, category: Optional[str] = None) -> Optional[str]:
        if not source_uri:
            raise ValueError("source_uri is required")
        return self._call("enqueue", self._enqueue, source_uri, category or self.config.category or None)

    def status(self, handle: str) -> Optional[DownloadStatus]:
        if not handle:
            raise ValueError("handle is required")
        return self._call("status", self._fetch_status, handle)

    def pause(self, handle: str) -> bool:
        return bool(self._call("pause", self._pause, handle, default=False))

    def resume(self, handle: str) -> bool:
        return bool(self._call("resume", self._resume, handle, default=False))

    def remove(self, handle: str, delete_files: bool = False) -> bool:
        return bool(self._call("remove", self._remove, handle, delete_files, default=False))

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------
    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def invalidate_session(self) -> None:
        """Forget the cached session token; the next call logs in again."""
        with self._token_lock:
            self._session_token = None

    def close(self) -> None:
        self.invalidate_session()
        if self._session is not None:
            self._session.close()
            self._session = None

    def _create_session(self) -> Session:
        session = requests.Session()
        session.verify = self.config.verify_cert
        session.headers.update(
            {
                "User-Agent": "BoutArchive/1.0",
                "Accept": "application/json, text/plain, */*",
            }
        )
        return session

    def _ensure_session(self) -> None:
        with self._token_lock:
            if self._session_token is None:
                self._session_token = self._login()
                self.logger.debug("Authenticated with %s at %s", self.client_type, self.base_url)

    def _with_session(self, func: Callable[..., Any], *args: Any) -> Any:
        self._ensure_session()
        try:
            return func(*args)
        except DownloadClientAuthError:
            self.logger.debug("%s rejected session token, re-authenticating once", self.client_type)
            self.invalidate_session()
            self._ensure_session()
            return func(*args)

    def _call(self, operation: str, func: Callable[..., Any], *args: Any, default: Any = None) -> Any:
        try:
            result = self._with_session(func, *args)
            self._clear_error()
            return result
        except DownloadClientError as exc:
            self._set_error(f"{operation} failed: {exc}")
            return default

    # ------------------------------------------------------------------
    # Helpers for adapters
    # ------------------------------------------------------------------
    def _http(self, method: str, url: str, **kwargs: Any) -> Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except RequestException as exc:
            raise AgentUnreachableError(f"HTTP {method} {url} failed: {exc}") from exc

    @staticmethod
    def _json(response: Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise AgentUnreachableError(f"Invalid JSON response from {context}: {exc}") from exc

    def map_state(self, raw_state: str) -> DownloadState:
        """Translate a vendor state; unknown states are treated as still downloading."""
        mapped = self.STATE_MAP.get(raw_state)
        if mapped is None:
            self.logger.warning(
                "Unmapped %s state '%s'; treating as Downloading", self.client_type, raw_state
            )
            return DownloadState.DOWNLOADING
        return mapped

    def get_last_error(self) -> Optional[str]:
        return self.last_error

    def _set_error(self, error: str) -> None:
        self.last_error = error
        self.logger.error("Download client error", extra={
            "client_type": self.client_type,
            "client_name": self.config.name,
            "error": error
        })

    def _clear_error(self) -> None:
        self.last_error = None

    def __repr__(self) -> str:
        return f"{self.client_type}(name={self.config.name}, url={self.base_url})"
