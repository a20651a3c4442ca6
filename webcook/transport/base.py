"""
Transport interface.

A transport is how resources reach the host they converge: LocalTransport
runs on this machine, SSHTransport on a remote one.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple


class Transport(ABC):
    """
    Command execution and file access on a target host.

    Every method returns combined stdout/stderr and the exit code rather than
    raising on a non-zero exit; deciding whether a failure matters is up to
    the caller.
    """

    @abstractmethod
    def run_shell(self, command: str) -> Tuple[str, int]:
        """
        Run a command through /bin/sh.

        Example:
            output, code = transport.run_shell("lsof -Pi :80 -sTCP:LISTEN -t")
        """

    @abstractmethod
    def run_command(self, args: List[str]) -> Tuple[str, int]:
        """
        Run a command from an argument list, without a shell.

        Example:
            output, code = transport.run_command(["systemctl", "is-active", "apache2"])
        """

    @abstractmethod
    def write_file(self, path: str, content: bytes) -> None:
        """Write bytes to path, creating parent directories as needed."""

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """
        Read a file.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """Check whether path exists (file, directory or link)."""

    @abstractmethod
    def copy_file(self, local_path: str, remote_path: str) -> None:
        """Copy a file from this machine to the host."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection, if any."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class NullTransport(Transport):
    """
    Placeholder transport for resources not yet attached to an executor.

    Any call raises a RuntimeError that says how to fix it.
    """

    def _raise_error(self, method_name: str):
        raise RuntimeError(
            f"Cannot call {method_name}: transport not initialized. "
            f"Resources must be added to an executor before they are checked "
            f"or applied, e.g. get_executor().add(resource)"
        )

    def run_shell(self, command: str) -> Tuple[str, int]:
        self._raise_error("run_shell()")

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        self._raise_error("run_command()")

    def write_file(self, path: str, content: bytes) -> None:
        self._raise_error("write_file()")

    def read_file(self, path: str) -> bytes:
        self._raise_error("read_file()")

    def file_exists(self, path: str) -> bool:
        self._raise_error("file_exists()")

    def copy_file(self, local_path: str, remote_path: str) -> None:
        self._raise_error("copy_file()")

    def close(self) -> None:
        pass
