"""
Apache install verification and repair.

These are the best-effort checks the apache recipe runs between installing
the package and serving the site. Each one logs what it finds and works
around what it can; a command failing is a warning, not an error. The only
hard failure is the service user still missing when the config is repaired.
"""

import posixpath
import re
import shlex
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from webcook.core.node import Node
from webcook.errors import ApacheCheckError
from webcook.logging import get_webcook_logger
from webcook.netinfo import private_ipv4

logger = get_webcook_logger(__name__)

SETTLE_SECONDS = 2
FALLBACK_MODULES = ("mpm_prefork", "authz_core")


@dataclass
class ApacheSettings:
    """The attributes the checks need, resolved once per run."""
    service: str
    package: str
    user: str
    group: str
    uid: int
    gid: int
    home: str
    shell: str
    document_root: str
    server_name: str
    port: int
    binary: str
    ctl: str
    conf_dir: str
    run_dir: str

    @classmethod
    def from_node(cls, node: Node) -> "ApacheSettings":
        apache = node["apache"]
        return cls(
            service=apache["service_name"],
            package=apache["package_name"],
            user=apache["user"],
            group=apache["group"],
            uid=int(apache["uid"]),
            gid=int(apache["gid"]),
            home=apache["home"],
            shell=apache["shell"],
            document_root=apache["document_root"],
            server_name=apache["server_name"],
            port=int(apache["port"]),
            binary=apache["binary"],
            ctl=apache["ctl"],
            conf_dir=apache["conf_dir"],
            run_dir=apache["run_dir"],
        )


class ApacheChecks:
    """
    Verification and repair steps, bound to one host.

    Example:
        checks = ApacheChecks(node)
        if checks.binary_installed():
            checks.free_port()
            checks.repair_config()
        checks.ensure_running()
    """

    def __init__(self, node: Node, sleep: Callable[[float], None] = time.sleep):
        self.transport = node.transport
        self.settings = ApacheSettings.from_node(node)
        self.sleep = sleep

    def _run(self, args: List[str]):
        return self.transport.run_command(args)

    def _show(self, args: List[str], missing: str) -> bool:
        """Log a command's output, or the missing message when it fails."""
        output, code = self._run(args)
        if code == 0:
            logger.info(output.rstrip())
            return True
        logger.warning(missing)
        return False

    def binary_installed(self) -> bool:
        return self.transport.file_exists(self.settings.binary)

    def user_exists(self) -> bool:
        _, code = self._run(["id", "-u", self.settings.user])
        return code == 0

    def is_running(self) -> bool:
        _, code = self._run(["pgrep", "-x", self.settings.service])
        return code == 0

    def listeners(self) -> str:
        """PIDs listening on the configured port, one per line ("" when free)."""
        output, code = self.transport.run_shell(
            f"lsof -Pi :{self.settings.port} -sTCP:LISTEN -t 2>/dev/null"
        )
        return output.strip() if code == 0 else ""

    def verify_install(self) -> bool:
        """
        Check what the package install left behind.

        Recreates the service account if the package did not, then reports
        the binary, the config directory and dpkg's view of the install.
        Returns whether the service user exists afterwards.
        """
        s = self.settings
        logger.step("Verifying Apache installation")

        output, code = self._run(["id", s.user])
        if code == 0:
            logger.success(f"{s.user} user exists")
            logger.info(output.strip())
        else:
            logger.failure(f"{s.user} user NOT found - package installation incomplete")
            self._show(["ls", "-la", "/etc/passwd"], "/etc/passwd is not readable")
            logger.info(f"Attempting to create {s.user} manually...")

            _, code = self._run(["groupadd", "-g", str(s.gid), s.group])
            if code != 0:
                logger.warning("Group creation failed")
            _, code = self._run(
                ["useradd", "-u", str(s.uid), "-g", s.group, "-d", s.home, "-s", s.shell, s.user]
            )
            if code != 0:
                logger.warning("User creation failed")

        self._show(["ls", "-la", s.binary], "Apache binary not found")
        self._show(["ls", "-la", s.conf_dir], "Apache config directory not found")

        output, _ = self.transport.run_shell(f"dpkg -l | grep {shlex.quote(s.package)}")
        if output.strip():
            logger.info(output.rstrip())
        else:
            logger.warning(f"dpkg lists no {s.package} package")

        output, _ = self._run(["dpkg", "--audit"])
        if output.strip():
            logger.warning(f"dpkg reports incomplete package installation:\n{output.rstrip()}")

        return self.user_exists()

    def free_port(self) -> bool:
        """
        Stop whatever is already listening on the configured port.

        Returns True when the port was busy.
        """
        s = self.settings
        if not self.listeners():
            logger.debug(f"Port {s.port} is free")
            return False

        output, _ = self.transport.run_shell(f"lsof -Pi :{s.port} -sTCP:LISTEN")
        logger.warning(f"Port {s.port} is already in use by:\n{output.rstrip()}")

        for args in (
            ["systemctl", "stop", s.service],
            ["service", s.service, "stop"],
            ["pkill", "-x", s.service],
        ):
            self._run(args)

        self.sleep(SETTLE_SECONDS)
        return True

    def repair_config(self) -> bool:
        """
        Fix the usual reasons a fresh install does not start.

        Returns whether the final configtest passed.

        Raises:
            ApacheCheckError: if the service user does not exist
        """
        s = self.settings

        if not self.user_exists():
            raise ApacheCheckError(f"{s.user} user still missing after creation attempt")

        if not self.transport.file_exists(s.home):
            logger.info(f"Creating {s.document_root}")
            self._run(["mkdir", "-p", s.document_root])
            self._run(["chown", "-R", f"{s.user}:{s.group}", s.home])

        self.ensure_server_name()

        self._run(["mkdir", "-p", s.run_dir])
        self._run(["chown", f"{s.user}:{s.group}", s.run_dir])

        if self.configtest():
            return True

        logger.warning("Apache configuration has errors, checking details...")
        self._show(["ls", "-la", posixpath.join(s.conf_dir, "mods-enabled")], "No mods-enabled directory")
        self._show(["cat", posixpath.join(s.conf_dir, "ports.conf")], "No ports.conf")

        for module in FALLBACK_MODULES:
            self._run(["a2enmod", module])

        return self.configtest()

    def ensure_server_name(self) -> bool:
        """Append a global ServerName to apache2.conf. Returns True if it was added."""
        s = self.settings
        conf = posixpath.join(s.conf_dir, "apache2.conf")
        if not self.transport.file_exists(conf):
            logger.warning(f"{conf} not found")
            return False

        content = self.transport.read_file(conf).decode("utf-8", errors="replace")
        if re.search(r"^ServerName\b", content, re.MULTILINE):
            return False

        # Appended in place so the file keeps its owner and mode
        line = f"ServerName {s.server_name}"
        lead = "\\n" if content and not content.endswith("\n") else ""
        command = f"printf '{lead}%s\\n' {shlex.quote(line)} >> {shlex.quote(conf)}"
        output, code = self.transport.run_shell(command)
        if code != 0:
            logger.warning(f"Could not add ServerName to {conf}: {output.strip()}")
            return False
        logger.info(f"Added '{line}' to {conf}")
        return True

    def configtest(self) -> bool:
        output, code = self._run([self.settings.ctl, "configtest"])
        if code == 0:
            logger.success("Apache configuration syntax OK")
        else:
            logger.failure(f"configtest failed: {output.strip()}")
        return code == 0

    def ensure_running(self) -> bool:
        """
        Start Apache if nothing is running, trying systemd, then the init
        script, then apache2ctl.

        Returns whether Apache is running at the end.
        """
        s = self.settings
        if self.is_running():
            logger.success("Apache is already running")
            return True

        logger.warning("Apache not running, attempting manual start...")

        output, _ = self._run(["systemctl", "status", s.service, "--no-pager"])
        logger.info(f"Apache status:\n{output.rstrip()}")
        output, _ = self._run([s.ctl, "configtest"])
        logger.info(f"Apache config:\n{output.rstrip()}")
        busy = self.listeners()
        logger.info(f"Port {s.port} is in use by PID(s) {', '.join(busy.split())}" if busy else f"Port {s.port} is free")

        for args in (
            ["systemctl", "start", s.service],
            ["service", s.service, "start"],
            [s.ctl, "start"],
        ):
            _, code = self._run(args)
            if code == 0:
                logger.info(f"Started with: {' '.join(args)}")
                break
        else:
            logger.warning("Could not start Apache automatically")

        self.sleep(SETTLE_SECONDS)

        if self.is_running():
            logger.success("Apache is now running")
            return True

        logger.failure("Apache failed to start - manual intervention may be required")
        logger.warning(f"Try running: sudo systemctl status {s.service}")
        logger.warning(f"And: sudo journalctl -xeu {s.service}")
        return False

    def access_urls(self) -> List[str]:
        suffix = "" if self.settings.port == 80 else f":{self.settings.port}"
        urls = [f"http://localhost{suffix}/"]
        address: Optional[str] = private_ipv4(self.transport)
        if address:
            urls.append(f"http://{address}{suffix}/")
        return urls

    def display_access_info(self) -> None:
        lines = ["Apache Installation Complete!", "=" * 37, "You can access the web server at:"]
        lines += [f"  - {url}" for url in self.access_urls()]
        logger.banner(*lines)
