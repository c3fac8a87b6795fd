"""
Tests for the SFTP connection wrapper.

paramiko.Transport and SFTPClient are patched; no network is used.
"""

from unittest.mock import MagicMock, patch

import paramiko
import pytest

from dropship.connections import SFTPConfig, SFTPConnection


class TestSFTPConfig:
    """Tests for SFTPConfig."""

    def test_from_dict_defaults(self):
        config = SFTPConfig.from_dict({"host": "h"})
        assert config.port == 22
        assert config.remote_directory == "/"
        assert config.connect_timeout_s == 15.0

    def test_from_dict_values(self):
        config = SFTPConfig.from_dict(
            {"host": "h", "port": "2222", "username": "u", "password": "p", "remote_directory": "/in"}
        )
        assert config.port == 2222
        assert config.username == "u"
        assert config.remote_directory == "/in"

    def test_repr_hides_credentials(self):
        config = SFTPConfig(host="h", username="u", password="hunter2", private_key_passphrase="pass")
        assert "hunter2" not in repr(config)
        assert "pass'" not in repr(config)


class TestSFTPConnection:
    """Tests for SFTPConnection."""

    @pytest.fixture(autouse=True)
    def sock(self):
        with patch("dropship.connections.sftp.socket.create_connection") as create_connection:
            yield create_connection

    @pytest.fixture
    def transport(self):
        with patch("dropship.connections.sftp.paramiko.Transport") as transport_cls:
            yield transport_cls

    @pytest.fixture
    def sftp_client(self):
        with patch("dropship.connections.sftp.paramiko.SFTPClient.from_transport") as from_transport:
            client = MagicMock()
            from_transport.return_value = client
            yield from_transport

    def test_connect_with_password(self, sock, transport, sftp_client):
        connection = SFTPConnection(SFTPConfig(host="h", port=2222, username="u", password="p"))
        client = connection.connect()

        sock.assert_called_once_with(("h", 2222), timeout=15.0)
        transport.assert_called_once_with(sock.return_value)
        transport.return_value.connect.assert_called_once_with(username="u", password="p", pkey=None)
        assert client is sftp_client.return_value
        # Lazy: second call reuses the client
        assert connection.connect() is client
        transport.assert_called_once()

    def test_connect_applies_timeouts(self, sock, transport, sftp_client):
        SFTPConnection(SFTPConfig(host="h", username="u", password="p", connect_timeout_s=3.0)).connect()
        assert sock.call_args.kwargs["timeout"] == 3.0
        assert transport.return_value.banner_timeout == 3.0
        assert transport.return_value.auth_timeout == 3.0

    def test_unreachable_host_times_out(self, sock, transport):
        sock.side_effect = TimeoutError("timed out")
        connection = SFTPConnection(SFTPConfig(host="h", username="u", password="p", connect_timeout_s=2.0))
        with pytest.raises(TimeoutError):
            connection.connect()
        transport.assert_not_called()
        assert not connection.is_connected

    def test_transport_failure_closes_socket(self, sock, transport):
        transport.side_effect = paramiko.SSHException("bad banner")
        with pytest.raises(paramiko.SSHException):
            SFTPConnection(SFTPConfig(host="h", username="u", password="p")).connect()
        sock.return_value.close.assert_called_once()

    def test_missing_host(self):
        with pytest.raises(ValueError, match="missing host"):
            SFTPConnection(SFTPConfig(host="")).connect()

    def test_auth_failure_closes_transport(self, transport, sftp_client):
        transport.return_value.connect.side_effect = paramiko.AuthenticationException("denied")
        connection = SFTPConnection(SFTPConfig(host="h", username="u", password="bad"))
        with pytest.raises(paramiko.AuthenticationException):
            connection.connect()
        transport.return_value.close.assert_called_once()
        assert not connection.is_connected

    def test_no_channel(self, transport, sftp_client):
        sftp_client.return_value = None
        with pytest.raises(paramiko.SSHException):
            SFTPConnection(SFTPConfig(host="h", username="u", password="p")).connect()
        transport.return_value.close.assert_called_once()

    def test_private_key_falls_back_to_ed25519(self, transport, sftp_client):
        with (
            patch("dropship.connections.sftp.paramiko.RSAKey.from_private_key_file") as rsa,
            patch("dropship.connections.sftp.paramiko.Ed25519Key.from_private_key_file") as ed25519,
        ):
            rsa.side_effect = paramiko.SSHException("not an RSA key")
            config = SFTPConfig(host="h", username="u", private_key_path="/keys/id", private_key_passphrase="pp")
            SFTPConnection(config).connect()

        ed25519.assert_called_once_with("/keys/id", password="pp")
        assert transport.return_value.connect.call_args.kwargs["pkey"] is ed25519.return_value

    def test_close(self, transport, sftp_client):
        connection = SFTPConnection(SFTPConfig(host="h", username="u", password="p"))
        client = connection.connect()
        connection.close()
        client.close.assert_called_once()
        transport.return_value.close.assert_called_once()
        assert not connection.is_connected
        # Closing twice is harmless
        connection.close()

    def test_context_manager(self, transport, sftp_client):
        with SFTPConnection(SFTPConfig(host="h", username="u", password="p")) as connection:
            transport.return_value.is_active.return_value = True
            assert connection.is_connected
        assert not connection.is_connected
