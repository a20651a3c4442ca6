"""
Transport layer for local and remote execution.
"""

from webcook.transport.base import Transport, NullTransport
from webcook.transport.local import LocalTransport
from webcook.transport.ssh import SSHTransport

__all__ = ["Transport", "NullTransport", "LocalTransport", "SSHTransport"]
