"""
Client Selector
===============

Builds download clients from the [download_client:<name>] config sections
and picks one for a new download:
- magnet links and .torrent URLs go to a torrent client
- .nzb URLs go to a usenet client
- otherwise the first enabled client

Clients are cached per name. When a section changes, the next lookup builds
a fresh client from the new settings; polls already holding the old client
finish with it.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from services.download_clients import (
    BaseDownloadClient,
    DownloadClientConfig,
    create_download_client,
)

logger = logging.getLogger("DownloadManagement.ClientSelector")

TORRENT_PROTOCOLS = {"qbittorrent", "transmission"}
USENET_PROTOCOLS = {"sabnzbd"}


class ClientSelector:
    """Registry of configured download clients."""

    def __init__(self, config_service=None,
                 client_factory: Callable[[DownloadClientConfig], BaseDownloadClient] = create_download_client):
        """Initialize client selector."""
        self.logger = logging.getLogger("DownloadManagement.ClientSelector")
        self._config_service = config_service
        self._client_factory = client_factory
        self._client_cache: Dict[str, BaseDownloadClient] = {}
        self._lock = threading.Lock()

    def _get_config_service(self):
        """Lazy load ConfigService."""
        if self._config_service is None:
            from services.service_manager import get_config_service

            self._config_service = get_config_service()
        return self._config_service

    def get_client_configs(self, enabled_only: bool = True) -> Dict[str, DownloadClientConfig]:
        config_service = self._get_config_service()
        default_timeout = config_service.get_config_value('download_management', 'request_timeout')

        configs: Dict[str, DownloadClientConfig] = {}
        for name, values in config_service.get_download_clients().items():
            values = dict(values)
            if not values.get('timeout') and default_timeout:
                values['timeout'] = default_timeout
            config = DownloadClientConfig.from_section(name, values)
            if enabled_only and not config.enabled:
                continue
            configs[name] = config
        return configs

    def get_client_config(self, client_name: str) -> Optional[DownloadClientConfig]:
        return self.get_client_configs(enabled_only=False).get(client_name)

    def get_client(self, client_name: str) -> Optional[BaseDownloadClient]:
        """Return the client for ``client_name``, rebuilding it when its settings changed."""
        config = self.get_client_config(client_name)
        if config is None:
            self.logger.error(f"Unknown client: {client_name}")
            return None

        with self._lock:
            cached = self._client_cache.get(client_name)
            if cached is not None and cached.config == config:
                return cached

            try:
                client = self._client_factory(config)
            except ValueError as exc:
                self.logger.error(f"Error loading client {client_name}: {exc}")
                return None

            if cached is not None:
                self.logger.info(f"Settings for {client_name} changed; using a new client")
            self._client_cache[client_name] = client
            return client

    def register_client(self, client_name: str, client: BaseDownloadClient) -> None:
        """Pin a ready-made client instance under ``client_name``."""
        with self._lock:
            self._client_cache[client_name] = client

    def select_client(self, source_uri: str) -> Optional[str]:
        """
        Choose a client name for ``source_uri``.

        Returns:
            The name of the client to use, or None when none fits
        """
        configs = self.get_client_configs()
        uri = (source_uri or "").strip().lower()

        if uri.startswith("magnet:") or uri.split("?", 1)[0].endswith(".torrent"):
            wanted = TORRENT_PROTOCOLS
        elif uri.split("?", 1)[0].endswith(".nzb"):
            wanted = USENET_PROTOCOLS
        else:
            wanted = None

        for name, config in configs.items():
            if wanted is None or config.protocol in wanted:
                return name

        self.logger.warning(f"No enabled download client can handle {source_uri}")
        return None

    def list_clients(self) -> List[Dict[str, object]]:
        return [config.redacted() for config in self.get_client_configs(enabled_only=False).values()]

    def clear_cache(self) -> None:
        with self._lock:
            for client in self._client_cache.values():
                client.close()
            self._client_cache.clear()
