"""
Local transport - converge the machine webcook runs on.
"""

import shutil
import subprocess
from pathlib import Path
from typing import List, Tuple

from webcook.transport.base import Transport


class LocalTransport(Transport):
    """Runs commands with subprocess and touches files directly."""

    def run_shell(self, command: str) -> Tuple[str, int]:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
        )
        return result.stdout + result.stderr, result.returncode

    def run_command(self, args: List[str]) -> Tuple[str, int]:
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            # Same convention as a shell: 127 for "command not found"
            return f"{args[0]}: {e.strerror}", 127
        return result.stdout + result.stderr, result.returncode

    def write_file(self, path: str, content: bytes) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def read_file(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def file_exists(self, path: str) -> bool:
        return Path(path).exists()

    def copy_file(self, local_path: str, remote_path: str) -> None:
        Path(remote_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, remote_path)

    def close(self) -> None:
        pass
