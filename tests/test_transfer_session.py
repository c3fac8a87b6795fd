"""
Tests for the SFTP transfer session.

The paramiko client is a MagicMock; directory entries are real
`paramiko.SFTPAttributes` so mode checks behave as on a server.
"""

import stat
from datetime import datetime
from unittest.mock import ANY, MagicMock

import paramiko
import pytest

from dropship.exceptions import (
    RemotePathNotFoundError,
    RemotePermissionError,
    SessionConnectError,
    TransferError,
)
from dropship.transfer import DirectoryStatus, SessionState, TransferSession, join_remote


def attrs(name="", mode=stat.S_IFREG | 0o644, size=0):
    attr = paramiko.SFTPAttributes()
    attr.filename = name
    attr.st_mode = mode
    attr.st_size = size
    attr.st_mtime = 1_700_000_000
    return attr


def dir_attrs(name=""):
    return attrs(name, mode=stat.S_IFDIR | 0o755)


def make_session(remote_directory="/upload"):
    client = MagicMock()
    connection = MagicMock()
    connection.connect.return_value = client
    session = TransferSession(
        connection,
        remote_directory=remote_directory,
        logger=MagicMock(),
        clock=lambda: datetime(2024, 1, 2, 3, 4, 5),
    )
    return session, connection, client


class TestJoinRemote:
    """Tests for remote path joining."""

    @pytest.mark.parametrize(
        "directory,name,expected",
        [
            ("/upload", "a.txt", "/upload/a.txt"),
            ("/upload/", "a.txt", "/upload/a.txt"),
            ("/", "a.txt", "/a.txt"),
            ("", "a.txt", "a.txt"),
            ("in\\box", "a.txt", "in/box/a.txt"),
            ("/upload", "/a.txt", "/upload/a.txt"),
            ("/upload", "", "/upload"),
        ],
    )
    def test_join(self, directory, name, expected):
        assert join_remote(directory, name) == expected


class TestLifecycle:
    """Tests for connect/disconnect state handling."""

    def test_connect(self):
        session, connection, _ = make_session()
        assert session.connect()
        assert session.state == SessionState.CONNECTED
        assert session.connect()
        connection.connect.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [
            paramiko.AuthenticationException("bad password"),
            paramiko.SSHException("handshake failed"),
            OSError("connection refused"),
            EOFError(),
        ],
    )
    def test_connect_failure_reported(self, error):
        session, connection, _ = make_session()
        connection.connect.side_effect = error
        assert not session.connect()
        assert session.state == SessionState.DISCONNECTED
        connection.close.assert_called_once()
        session.logger.error.assert_called_once()

    def test_disconnect_is_idempotent(self):
        session, connection, _ = make_session()
        session.connect()
        session.disconnect()
        session.disconnect()
        assert not session.is_connected
        assert connection.close.call_count == 2

    def test_context_manager_disconnects(self):
        session, connection, _ = make_session()
        with session:
            session.connect()
        assert not session.is_connected

    def test_operation_connects_on_demand(self):
        session, connection, client = make_session()
        client.stat.return_value = dir_attrs()
        assert session.exists("/upload")
        assert session.is_connected

    def test_operation_without_connection_raises(self):
        session, connection, _ = make_session()
        connection.connect.side_effect = OSError("down")
        with pytest.raises(SessionConnectError):
            session.exists("/upload")

    def test_connection_lost_disconnects(self):
        session, _, client = make_session()
        client.stat.side_effect = EOFError()
        with pytest.raises(TransferError):
            session.exists("/upload")
        assert session.state == SessionState.DISCONNECTED


class TestPrimitives:
    """Tests for exists/list/upload/delete."""

    def test_exists_false_when_missing(self):
        session, _, client = make_session()
        client.stat.side_effect = FileNotFoundError()
        assert not session.exists("/nope")

    def test_exists_permission_denied(self):
        session, _, client = make_session()
        client.stat.side_effect = PermissionError()
        with pytest.raises(RemotePermissionError) as exc_info:
            session.exists("/secret")
        assert exc_info.value.path == "/secret"

    def test_list_directory_skips_dot_entries(self):
        session, _, client = make_session()
        client.listdir_attr.return_value = [dir_attrs("."), dir_attrs(".."), attrs("a.txt", size=3), dir_attrs("sub")]
        entries = session.list_directory("/upload")
        assert [e.name for e in entries] == ["a.txt", "sub"]
        assert entries[0].is_regular_file and entries[0].size == 3
        assert entries[1].is_directory

    def test_list_directory_with_limit(self):
        session, _, client = make_session()
        client.listdir_attr.return_value = [attrs(f"f{i}") for i in range(20)]
        assert [e.name for e in session.list_directory("/upload", limit=3)] == ["f0", "f1", "f2"]
        client.listdir_attr.assert_called_once_with("/upload")
        client.listdir_iter.assert_not_called()

    def test_list_missing_directory(self):
        session, _, client = make_session()
        client.listdir_attr.side_effect = FileNotFoundError()
        with pytest.raises(RemotePathNotFoundError):
            session.list_directory("/nope")

    def test_upload_bytes(self):
        session, _, client = make_session()
        session.upload(b"data", "/upload/a.txt")
        client.putfo.assert_called_once_with(ANY, "/upload/a.txt", confirm=False)
        assert client.putfo.call_args.args[0].read() == b"data"

    def test_upload_generic_os_error(self):
        session, _, client = make_session()
        client.putfo.side_effect = OSError("Failure")
        with pytest.raises(TransferError):
            session.upload(b"data", "/upload/a.txt")
        # Not a connection-level error
        assert session.is_connected

    def test_delete(self):
        session, _, client = make_session()
        session.delete("/upload/a.txt")
        client.remove.assert_called_once_with("/upload/a.txt")

    def test_get_attributes(self):
        session, _, client = make_session()
        client.stat.return_value = attrs(size=42)
        attributes = session.get_attributes("/upload/a.txt")
        assert attributes.size == 42
        assert not attributes.is_directory
        assert attributes.modified_at is not None


class TestValidateDirectory:
    """Tests for remote directory validation."""

    def test_ok(self):
        session, _, client = make_session()
        client.stat.return_value = dir_attrs()
        result = session.validate_directory()
        assert result.status == DirectoryStatus.OK
        assert result.path == "/upload"
        assert result.ok

    def test_not_found(self):
        session, _, client = make_session()
        client.stat.side_effect = FileNotFoundError()
        result = session.validate_directory()
        assert result.status == DirectoryStatus.NOT_FOUND
        assert not result.ok

    def test_not_a_directory(self):
        session, _, client = make_session()
        client.stat.return_value = attrs("upload")
        assert session.validate_directory().status == DirectoryStatus.NOT_A_DIRECTORY

    def test_stat_denied_but_listable(self):
        session, _, client = make_session()
        client.stat.side_effect = PermissionError()
        client.listdir_attr.return_value = [attrs("a.txt")]
        result = session.validate_directory()
        assert result.status == DirectoryStatus.OK_VIA_LISTING
        assert result.ok

    def test_listing_fallback_releases_directory_handle(self):
        session, _, client = make_session()
        client.stat.side_effect = PermissionError()
        opened, closed = [], []

        def read_directory(path):
            opened.append(path)
            entries = [attrs(f"f{i}") for i in range(100)]
            closed.append(path)
            return entries

        client.listdir_attr.side_effect = read_directory
        for _ in range(3):
            assert session.validate_directory().ok
        assert opened == closed == ["/upload"] * 3
        client.listdir_iter.assert_not_called()

    def test_stat_and_list_denied(self):
        session, _, client = make_session()
        client.stat.side_effect = PermissionError()
        client.listdir_attr.side_effect = PermissionError()
        assert session.validate_directory().status == DirectoryStatus.PERMISSION_DENIED

    def test_stat_denied_and_list_missing(self):
        session, _, client = make_session()
        client.stat.side_effect = PermissionError()
        client.listdir_attr.side_effect = FileNotFoundError()
        assert session.validate_directory().status == DirectoryStatus.NOT_FOUND

    def test_attributes_unavailable_still_ok(self):
        session, _, client = make_session()
        client.stat.side_effect = [dir_attrs(), OSError("Failure")]
        result = session.validate_directory()
        assert result.status == DirectoryStatus.OK
        session.logger.warning.assert_called()

    def test_connection_error(self):
        session, _, client = make_session()
        client.stat.side_effect = paramiko.SSHException("reset")
        assert session.validate_directory().status == DirectoryStatus.ERROR


class TestProbeWrite:
    """Tests for the write probe."""

    def test_success(self):
        session, _, client = make_session()
        assert session.probe_write()
        path = client.putfo.call_args.args[1]
        assert path.startswith("/upload/.write_test_20240102030405_")
        client.remove.assert_called_once_with(path)

    def test_upload_denied(self):
        session, _, client = make_session()
        client.putfo.side_effect = PermissionError()
        assert not session.probe_write()

    def test_file_not_visible(self):
        session, _, client = make_session()
        client.stat.side_effect = FileNotFoundError()
        assert not session.probe_write()
        client.remove.assert_not_called()

    def test_delete_denied(self):
        session, _, client = make_session()
        client.remove.side_effect = PermissionError()
        assert not session.probe_write()


class TestUploadFile:
    """Tests for verified file upload."""

    @pytest.fixture
    def local_file(self, tmp_path):
        path = tmp_path / "msg.txt"
        path.write_text("HELLO")
        return path

    def _server(self, client, remote_size=5, present=True):
        def fake_stat(path):
            if path == "/upload":
                return dir_attrs()
            if path == "/upload/msg.txt" and present:
                return attrs("msg.txt", size=remote_size)
            raise FileNotFoundError(path)

        client.stat.side_effect = fake_stat

    def test_success(self, local_file):
        session, _, client = make_session()
        self._server(client)
        assert session.upload_file(local_file)
        client.putfo.assert_called_once_with(ANY, "/upload/msg.txt", confirm=False)
        session.logger.warning.assert_not_called()

    def test_remote_name(self, local_file):
        session, _, client = make_session()
        client.stat.return_value = dir_attrs()
        assert session.upload_file(local_file, remote_name="other.txt")
        assert client.putfo.call_args.args[1] == "/upload/other.txt"

    def test_missing_local_file(self, tmp_path):
        session, connection, _ = make_session()
        assert not session.upload_file(tmp_path / "missing.txt")
        connection.connect.assert_not_called()

    def test_connect_failure(self, local_file):
        session, connection, client = make_session()
        connection.connect.side_effect = OSError("refused")
        assert not session.upload_file(local_file)
        client.putfo.assert_not_called()

    def test_directory_missing(self, local_file):
        session, _, client = make_session()
        client.stat.side_effect = FileNotFoundError()
        assert not session.upload_file(local_file)
        client.putfo.assert_not_called()

    def test_not_present_after_upload(self, local_file):
        session, _, client = make_session()
        self._server(client, present=False)
        assert not session.upload_file(local_file)

    def test_size_mismatch_only_warns(self, local_file):
        session, _, client = make_session()
        self._server(client, remote_size=99)
        assert session.upload_file(local_file)
        assert "size mismatch" in session.logger.warning.call_args.args[0]

    def test_upload_denied(self, local_file):
        session, _, client = make_session()
        self._server(client)
        client.putfo.side_effect = PermissionError()
        assert not session.upload_file(local_file)

    def test_stat_denied_directory_uses_listing(self, local_file):
        session, _, client = make_session()
        # Directory stat denied, remote file stat allowed
        client.stat.side_effect = [PermissionError(), attrs("msg.txt", size=5), attrs("msg.txt", size=5)]
        client.listdir_attr.return_value = []
        assert session.upload_file(local_file)


class TestConnectionTest:
    """Tests for the end-to-end connection test."""

    def test_success_disconnects(self):
        session, connection, client = make_session()
        client.stat.return_value = dir_attrs()
        client.listdir_attr.return_value = [attrs("a.txt"), dir_attrs("sub")]
        assert session.test_connection()
        assert not session.is_connected

    def test_write_probe_failure_is_warning(self):
        session, _, client = make_session()
        client.stat.return_value = dir_attrs()
        client.listdir_attr.return_value = []
        client.putfo.side_effect = PermissionError()
        assert session.test_connection()

    def test_directory_unusable(self):
        session, _, client = make_session()
        client.stat.side_effect = FileNotFoundError()
        assert not session.test_connection()
        assert not session.is_connected

    def test_connect_failure(self):
        session, connection, _ = make_session()
        connection.connect.side_effect = paramiko.AuthenticationException()
        assert not session.test_connection()
