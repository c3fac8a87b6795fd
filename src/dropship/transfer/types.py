"""
Type definitions for remote transfer.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class DirectoryStatus(str, Enum):
    OK = "ok"
    # exists() was denied but listing worked
    OK_VIA_LISTING = "ok_via_listing"
    NOT_FOUND = "not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    PERMISSION_DENIED = "permission_denied"
    ERROR = "error"


class RemoteTransport(Protocol):
    """What a session needs from a connection (SFTPConnection or a fake)."""

    def connect(self) -> Any: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class RemoteEntry:
    name: str
    is_directory: bool
    is_regular_file: bool
    size: int
    modified_at: datetime | None = None

    @classmethod
    def from_attributes(cls, attr: Any) -> RemoteEntry:
        """Build from a paramiko `SFTPAttributes`."""
        mode = getattr(attr, "st_mode", 0) or 0
        mtime = getattr(attr, "st_mtime", None)
        return cls(
            name=str(getattr(attr, "filename", "")),
            is_directory=stat.S_ISDIR(mode),
            is_regular_file=stat.S_ISREG(mode),
            size=int(getattr(attr, "st_size", 0) or 0),
            modified_at=datetime.fromtimestamp(mtime) if mtime else None,
        )


@dataclass(frozen=True)
class RemoteAttributes:
    size: int
    modified_at: datetime | None
    is_directory: bool

    @classmethod
    def from_attributes(cls, attr: Any) -> RemoteAttributes:
        mode = getattr(attr, "st_mode", 0) or 0
        mtime = getattr(attr, "st_mtime", None)
        return cls(
            size=int(getattr(attr, "st_size", 0) or 0),
            modified_at=datetime.fromtimestamp(mtime) if mtime else None,
            is_directory=stat.S_ISDIR(mode),
        )


@dataclass(frozen=True)
class DirectoryValidation:
    status: DirectoryStatus
    path: str
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (DirectoryStatus.OK, DirectoryStatus.OK_VIA_LISTING)


@dataclass(frozen=True)
class PathTestResult:
    """One troubleshooting probe against a remote path."""

    path: str
    status: str
    item_count: int = 0


@dataclass
class DiagnosticsReport:
    success: bool = True
    details: list[str] = field(default_factory=list)

    def add(self, line: str) -> None:
        self.details.append(line)

    def fail(self, line: str) -> None:
        self.success = False
        self.details.append(line)

    def __str__(self) -> str:
        return "\n".join(self.details)
