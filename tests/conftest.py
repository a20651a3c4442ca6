"""
Shared fixtures for webcook tests.

MockTransport records every command and answers from scripted replies, so
resources and checks can be exercised without touching the machine.
"""

from pathlib import Path

import pytest

from webcook.core import Platform
from webcook.core.executor import Executor, reset_executor, use_executor
from webcook.transport import Transport


class MockTransport(Transport):
    """
    Transport double.

    Commands from run_command are recorded joined by spaces. A reply is
    picked by the most recently registered matching prefix; unmatched
    commands succeed with no output.

    Example:
        transport.respond("systemctl is-active", ("", 3))
        transport.respond("pgrep -x apache2", ("", 1), ("123", 0))  # fails, then succeeds
    """

    def __init__(self, files=None):
        self.files = {path: self._bytes(content) for path, content in (files or {}).items()}
        self.commands = []
        self._replies = []

    @staticmethod
    def _bytes(content):
        return content.encode("utf-8") if isinstance(content, str) else content

    def respond(self, prefix, *replies):
        self._replies.insert(0, (prefix, list(replies) or [("", 0)]))

    def _reply(self, command):
        self.commands.append(command)
        for prefix, replies in self._replies:
            if command.startswith(prefix):
                return replies.pop(0) if len(replies) > 1 else replies[0]
        return ("", 0)

    def ran(self, prefix):
        return any(command.startswith(prefix) for command in self.commands)

    def index(self, prefix):
        return next(i for i, command in enumerate(self.commands) if command.startswith(prefix))

    def run_shell(self, command):
        return self._reply(command)

    def run_command(self, args):
        return self._reply(" ".join(str(arg) for arg in args))

    def write_file(self, path, content):
        self.files[path] = self._bytes(content)

    def read_file(self, path):
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    def file_exists(self, path):
        return path in self.files

    def copy_file(self, local_path, remote_path):
        self.files[remote_path] = Path(local_path).read_bytes()

    def close(self):
        pass


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def ubuntu():
    return Platform(system="Linux", distro="ubuntu", version="24.04", arch="x86_64")


@pytest.fixture
def sleeps():
    """Delays requested through an executor or checks object."""
    return []


@pytest.fixture
def executor(transport, ubuntu, sleeps):
    """Executor wired to the mock transport; new resources register with it."""
    reset_executor()
    yield use_executor(Executor(platform=ubuntu, transport=transport, sleep=sleeps.append))
    reset_executor()
