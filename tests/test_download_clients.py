from unittest.mock import MagicMock

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from services.download_clients import (
    DownloadClientConfig,
    DownloadState,
    QBittorrentClient,
    SABnzbdClient,
    TransmissionClient,
    create_download_client,
)


def _response(status=200, text="", json_data=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.headers = headers or {}
    if json_data is None:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = json_data
    return response


def _session(responses):
    session = MagicMock()
    session.request.side_effect = responses
    return session


def _urls(session):
    return [call.args[1] for call in session.request.call_args_list]


class TestClientFactory:
    def test_builds_adapter_for_protocol(self):
        config = DownloadClientConfig(name="seedbox", protocol="transmission", host="nas", port=9091)
        client = create_download_client(config, session=MagicMock())

        assert isinstance(client, TransmissionClient)
        assert client.rpc_url == "http://nas:9091/transmission/rpc"

    def test_unknown_protocol_is_rejected(self):
        config = DownloadClientConfig(name="x", protocol="deluge")

        with pytest.raises(ValueError):
            create_download_client(config)

    def test_config_from_section_coerces_values(self):
        config = DownloadClientConfig.from_section("qbittorrent", {
            "host": "localhost", "port": "8080", "use_ssl": "true",
            "enabled": "false", "poll_interval": "15",
        })

        assert config.protocol == "qbittorrent"
        assert config.port == 8080
        assert config.use_ssl is True
        assert config.enabled is False
        assert config.poll_interval == 15
        assert config.base_url == "https://localhost:8080"


class TestQBittorrentClient:
    def _client(self, responses):
        session = _session(responses)
        config = DownloadClientConfig(
            name="qbittorrent", protocol="qbittorrent", host="localhost", port=8080,
            username="admin", password="secret",
        )
        return QBittorrentClient(config, session=session), session

    def test_expired_session_triggers_exactly_one_relogin(self):
        client, session = self._client([
            _response(200, "Ok."),
            _response(403, "Forbidden"),
            _response(200, "Ok."),
            _response(200, "v4.6.4"),
        ])

        result = client.test_connection()

        assert result == {"success": True, "version": "v4.6.4", "error": None}
        logins = [url for url in _urls(session) if url.endswith("auth/login")]
        assert len(logins) == 2

    def test_persistent_rejection_gives_up_after_one_relogin(self):
        client, session = self._client([
            _response(200, "Ok."),
            _response(403, "Forbidden"),
            _response(200, "Ok."),
            _response(403, "Forbidden"),
        ])

        result = client.test_connection()

        assert result["success"] is False
        assert session.request.call_count == 4
        assert client.get_last_error()

    def test_bad_credentials_reported_without_raising(self):
        client, _ = self._client([_response(200, "Fails.")])

        result = client.test_connection()

        assert result["success"] is False
        assert "Login failed" in result["error"]

    def test_uploading_maps_to_completed(self):
        torrent = {
            "hash": "ABCDEF", "name": "UFC.300.1080p.WEB-DL", "state": "uploading",
            "progress": 1.0, "size": 4096, "content_path": "/downloads/UFC.300.1080p.WEB-DL",
        }
        client, _ = self._client([_response(200, "Ok."), _response(200, json_data=[torrent])])

        status = client.status("abcdef")

        assert status.state is DownloadState.COMPLETED
        assert status.progress == 100.0
        assert status.content_path == "/downloads/UFC.300.1080p.WEB-DL"
        assert status.handle == "abcdef"

    def test_status_recovers_from_expired_session(self):
        torrent = {"hash": "abc", "name": "UFC.300", "state": "downloading", "progress": 0.5}
        client, session = self._client([
            _response(200, "Ok."),
            _response(403, "Forbidden"),
            _response(200, "Ok."),
            _response(200, json_data=[torrent]),
        ])

        status = client.status("abc")

        assert status.state is DownloadState.DOWNLOADING
        assert status.progress == 50.0
        assert session.request.call_count == 4

    def test_close_forgets_session(self):
        client, session = self._client([_response(200, "Ok."), _response(200, "v4.6.4")])
        client.test_connection()

        client.close()

        assert client._session_token is None
        session.close.assert_called_once_with()

    @pytest.mark.parametrize("raw_state, expected", [
        ("queuedDL", DownloadState.QUEUED),
        ("stalledDL", DownloadState.DOWNLOADING),
        ("pausedDL", DownloadState.PAUSED),
        ("pausedUP", DownloadState.COMPLETED),
        ("stalledUP", DownloadState.COMPLETED),
        ("missingFiles", DownloadState.FAILED),
        ("somethingNew", DownloadState.DOWNLOADING),
    ])
    def test_state_mapping(self, raw_state, expected):
        client, _ = self._client([])
        assert client.map_state(raw_state) is expected

    def test_unknown_handle_returns_none(self):
        client, _ = self._client([_response(200, "Ok."), _response(200, json_data=[])])
        assert client.status("deadbeef") is None

    def test_enqueue_magnet_returns_info_hash(self):
        info_hash = "0123456789abcdef0123456789abcdef01234567"
        client, session = self._client([_response(200, "Ok."), _response(200, "Ok.")])

        handle = client.enqueue(f"magnet:?xt=urn:btih:{info_hash.upper()}&dn=UFC", "fights")

        assert handle == info_hash
        add_call = session.request.call_args_list[1]
        assert add_call.kwargs["data"]["category"] == "fights"

    def test_unreachable_client_returns_none(self):
        client, _ = self._client([RequestsConnectionError("refused")])

        assert client.status("abc") is None
        assert "refused" in client.get_last_error()

    def test_pause_falls_back_to_stop_endpoint(self):
        client, session = self._client([
            _response(200, "Ok."),
            _response(404, "Not Found"),
            _response(200, ""),
        ])

        assert client.pause("abc") is True
        assert _urls(session)[-1].endswith("torrents/stop")


class TestTransmissionClient:
    def _client(self, responses):
        session = _session(responses)
        config = DownloadClientConfig(name="transmission", protocol="transmission", host="localhost", port=9091)
        return TransmissionClient(config, session=session), session

    def test_rotated_session_id_is_refreshed_once(self):
        torrent = {
            "hashString": "ABC", "name": "ONE.Fight.Night.20", "status": 6,
            "percentDone": 1.0, "totalSize": 10, "downloadDir": "/data", "error": 0,
        }
        client, session = self._client([
            _response(409, headers={"X-Transmission-Session-Id": "first"}),
            _response(409),
            _response(409, headers={"X-Transmission-Session-Id": "second"}),
            _response(200, json_data={"result": "success", "arguments": {"torrents": [torrent]}}),
        ])

        status = client.status("abc")

        assert status.state is DownloadState.COMPLETED
        assert status.content_path == "/data/ONE.Fight.Night.20"
        last_headers = session.request.call_args_list[-1].kwargs["headers"]
        assert last_headers["X-Transmission-Session-Id"] == "second"

    def test_stopped_and_finished_counts_as_completed(self):
        client, _ = self._client([])
        status = client._build_status({"hashString": "a", "name": "n", "status": 0, "percentDone": 1.0})
        assert status.state is DownloadState.COMPLETED

    def test_error_code_maps_to_failed(self):
        client, _ = self._client([])
        status = client._build_status({
            "hashString": "a", "name": "n", "status": 4, "percentDone": 0.2,
            "error": 3, "errorString": "No data found",
        })
        assert status.state is DownloadState.FAILED
        assert status.message == "No data found"


class TestSABnzbdClient:
    def test_state_table(self):
        config = DownloadClientConfig(name="sabnzbd", protocol="sabnzbd", api_key="key")
        client = SABnzbdClient(config, session=MagicMock())

        assert client.map_state("Extracting") is DownloadState.DOWNLOADING
        assert client.map_state("Completed") is DownloadState.COMPLETED
        assert client.map_state("Failed") is DownloadState.FAILED
