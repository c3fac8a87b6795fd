"""
Remote endpoint connections.
"""

from dropship.connections.sftp import SFTPConfig, SFTPConnection

__all__ = [
    "SFTPConfig",
    "SFTPConnection",
]
