"""
SFTP connection: one paramiko transport plus its SFTP channel.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Any

import paramiko


@dataclass(frozen=True)
class SFTPConfig:
    host: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    private_key_path: str | None = None
    private_key_passphrase: str | None = None
    remote_directory: str = "/"
    # Safety/perf knobs
    connect_timeout_s: float = 15.0

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> SFTPConfig:
        return cls(
            host=str(cfg.get("host") or ""),
            port=int(cfg.get("port", 22)),
            username=cfg.get("username"),
            password=cfg.get("password"),
            private_key_path=cfg.get("private_key_path"),
            private_key_passphrase=cfg.get("private_key_passphrase"),
            remote_directory=str(cfg.get("remote_directory") or "/"),
            connect_timeout_s=float(cfg.get("connect_timeout_s", 15.0)),
        )

    def __repr__(self) -> str:
        # Never print credentials
        return f"SFTPConfig(host={self.host!r}, port={self.port}, username={self.username!r})"


class SFTPConnection:
    """
    Minimal SFTP connection wrapper.

    Owns exactly one transport. Session state and error classification live
    in `dropship.transfer.session.TransferSession`.
    """

    def __init__(self, config: SFTPConfig):
        self.config = config
        self._transport: paramiko.Transport | None = None
        self._client: paramiko.SFTPClient | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._transport is not None and self._transport.is_active()

    def connect(self) -> paramiko.SFTPClient:
        """Connect (lazy) and return a live `paramiko.SFTPClient`."""
        if self._client is not None:
            return self._client

        cfg = self.config
        if not cfg.host:
            raise ValueError("SFTP connection missing host")

        # The TCP connect is bounded by the same timeout as banner and auth
        sock = socket.create_connection((cfg.host, cfg.port), timeout=cfg.connect_timeout_s)
        try:
            transport = paramiko.Transport(sock)
        except BaseException:
            sock.close()
            raise
        transport.banner_timeout = cfg.connect_timeout_s
        transport.auth_timeout = cfg.connect_timeout_s

        pkey = None
        if cfg.private_key_path:
            # Try common key types; paramiko raises if incompatible.
            try:
                pkey = paramiko.RSAKey.from_private_key_file(cfg.private_key_path, password=cfg.private_key_passphrase)
            except paramiko.SSHException:
                pkey = paramiko.Ed25519Key.from_private_key_file(
                    cfg.private_key_path, password=cfg.private_key_passphrase
                )

        try:
            transport.connect(
                username=cfg.username,
                password=cfg.password,
                pkey=pkey,
            )
            client = paramiko.SFTPClient.from_transport(transport)
        except BaseException:
            transport.close()
            raise
        if client is None:
            transport.close()
            raise paramiko.SSHException("Could not open SFTP channel")

        self._transport = transport
        self._client = client
        return client

    def close(self) -> None:
        """Close SFTP client + underlying transport."""
        try:
            if self._client is not None:
                self._client.close()
        finally:
            self._client = None
        try:
            if self._transport is not None:
                self._transport.close()
        finally:
            self._transport = None

    def __enter__(self) -> SFTPConnection:
        self.connect()
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: Any) -> None:
        self.close()
