"""
Module Name: client_factory.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Protocol registry for download client adapters. Shared code builds
    clients through ``create_download_client`` and never inspects vendor
    names itself.

Location:
    /services/download_clients/client_factory.py

"""

from typing import Dict, Type

from .base_download_client import BaseDownloadClient, DownloadClientConfig
from .qbittorrent_client import QBittorrentClient
from .sabnzbd_client import SABnzbdClient
from .transmission_client import TransmissionClient

CLIENT_REGISTRY: Dict[str, Type[BaseDownloadClient]] = {
    QBittorrentClient.protocol: QBittorrentClient,
    TransmissionClient.protocol: TransmissionClient,
    SABnzbdClient.protocol: SABnzbdClient,
}


def register_client(protocol: str, client_cls: Type[BaseDownloadClient]) -> None:
    CLIENT_REGISTRY[protocol.lower()] = client_cls


def supported_protocols():
    return sorted(CLIENT_REGISTRY)


def create_download_client(config: DownloadClientConfig, **kwargs) -> BaseDownloadClient:
    """Instantiate the adapter registered for ``config.protocol``."""
    client_cls = CLIENT_REGISTRY.get((config.protocol or "").lower())
    if client_cls is None:
        raise ValueError(f"Unsupported download client protocol: {config.protocol}")
    return client_cls(config, **kwargs)
