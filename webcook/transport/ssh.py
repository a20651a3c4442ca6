"""
SSH transport - converge a remote host over SSH.
"""

import getpass
import posixpath
import shlex
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import paramiko

from webcook.logging import get_logger
from webcook.transport.base import Transport

logger = get_logger(__name__)


class SSHTransport(Transport):
    """
    Runs commands on a remote host through Paramiko.

    With sudo=True every command is wrapped in ``sudo -n sh -c`` so that
    pipelines and redirects run privileged as a whole, and file writes go
    through a temporary file in /tmp that is then moved into place.

    Example:
        with SSHTransport("web01.example.com", user="admin", sudo=True) as t:
            output, code = t.run_command(["systemctl", "is-active", "apache2"])
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        user: Optional[str] = None,
        password: Optional[str] = None,
        key_file: Optional[str] = None,
        timeout: int = 30,
        sudo: bool = False,
    ):
        self.host = host
        self.port = port
        self.user = user or getpass.getuser()
        self.password = password
        self.key_file = key_file
        self.timeout = timeout
        self.sudo = sudo
        self.client: Optional[paramiko.SSHClient] = None

        self._connect()

    def _connect(self) -> None:
        self.client = paramiko.SSHClient()
        self.client.load_system_host_keys()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs = {
            "hostname": self.host,
            "port": self.port,
            "username": self.user,
            "timeout": self.timeout,
        }
        if self.password:
            connect_kwargs["password"] = self.password
        if self.key_file:
            connect_kwargs["key_filename"] = str(Path(self.key_file).expanduser())

        logger.debug("Connecting to %s@%s:%s", self.user, self.host, self.port)
        self.client.connect(**connect_kwargs)

    def _exec(self, command: str) -> Tuple[str, int]:
        if self.sudo:
            command = f"sudo -n sh -c {shlex.quote(command)}"

        _, stdout, stderr = self.client.exec_command(command)
        exit_code = stdout.channel.recv_exit_status()
        output = stdout.read().decode(errors="replace") + stderr.read().decode(errors="replace")
        return output, exit_code

    def run_shell(self, command: str) -> Tuple[str, int]:
        return self._exec(command)

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        return self._exec(" ".join(shlex.quote(str(arg)) for arg in args))

    def _staging_path(self) -> str:
        return f"/tmp/webcook-{uuid.uuid4().hex[:12]}.tmp"

    def _install(self, staged: str, path: str) -> None:
        """
        Move a staged upload into place (privileged when sudo is on).

        An existing target is overwritten in place so it keeps its owner and
        mode; the staged copy is owned by the login user.
        """
        if self.file_exists(path):
            output, code = self.run_shell(
                f"cat {shlex.quote(staged)} > {shlex.quote(path)} && rm -f {shlex.quote(staged)}"
            )
        else:
            self.run_command(["mkdir", "-p", posixpath.dirname(path)])
            output, code = self.run_command(["mv", staged, path])
        if code != 0:
            raise IOError(f"Failed to move {staged} to {path}: {output.strip()}")

    def write_file(self, path: str, content: bytes) -> None:
        sftp = self.client.open_sftp()
        try:
            if self.sudo:
                staged = self._staging_path()
                with sftp.open(staged, "wb") as f:
                    f.write(content)
            else:
                self.run_command(["mkdir", "-p", posixpath.dirname(path)])
                with sftp.open(path, "wb") as f:
                    f.write(content)
                return
        finally:
            sftp.close()

        self._install(staged, path)

    def read_file(self, path: str) -> bytes:
        if self.sudo:
            output, code = self.run_command(["cat", path])
            if code != 0:
                raise FileNotFoundError(path)
            return output.encode()

        sftp = self.client.open_sftp()
        try:
            with sftp.open(path, "rb") as f:
                return f.read()
        except IOError:
            raise FileNotFoundError(path)
        finally:
            sftp.close()

    def file_exists(self, path: str) -> bool:
        _, code = self.run_command(["test", "-e", path])
        return code == 0

    def copy_file(self, local_path: str, remote_path: str) -> None:
        sftp = self.client.open_sftp()
        try:
            if self.sudo:
                staged = self._staging_path()
                sftp.put(local_path, staged)
            else:
                self.run_command(["mkdir", "-p", posixpath.dirname(remote_path)])
                sftp.put(local_path, remote_path)
                return
        finally:
            sftp.close()

        self._install(staged, remote_path)

    def close(self) -> None:
        if self.client:
            self.client.close()
            self.client = None
