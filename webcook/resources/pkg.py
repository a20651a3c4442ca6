"""
Package resource - manage system packages.

Supports:
- apt (Debian/Ubuntu)
- dnf (Fedora/RHEL)
- pacman (Arch)
- brew (macOS)
"""

from typing import Any, Dict, List, Optional, Union

from webcook.core.resource import Resource, Plan, Action, Platform
from webcook.core.executor import get_executor
from webcook.errors import ResourceError
from webcook.logging import get_webcook_logger

logger = get_webcook_logger(__name__)

APT_DISTROS = ("ubuntu", "debian", "linuxmint", "pop", "raspbian")
DNF_DISTROS = ("fedora", "rhel", "centos", "rocky", "almalinux")

# Install / remove commands per package manager; packages are appended.
INSTALL_COMMANDS = {
    "apt": "DEBIAN_FRONTEND=noninteractive apt-get install -y -q",
    "dnf": "dnf install -y",
    "pacman": "pacman -S --noconfirm --needed",
    "brew": "brew install",
}
REMOVE_COMMANDS = {
    "apt": "DEBIAN_FRONTEND=noninteractive apt-get remove -y -q",
    "dnf": "dnf remove -y",
    "pacman": "pacman -R --noconfirm",
    "brew": "brew uninstall",
}


def package_manager(platform: Platform) -> str:
    """Pick the package manager for a platform."""
    if platform.distro in APT_DISTROS:
        return "apt"
    if platform.distro in DNF_DISTROS:
        return "dnf"
    if platform.distro == "arch":
        return "pacman"
    if platform.system == "Darwin":
        return "brew"
    raise ValueError(f"Unsupported platform: {platform.distro}")


class Package(Resource):
    """
    Package resource for installing system packages.

    Examples:
        Package("apache2")

        Package("apache2", version="2.4.58-1ubuntu8")

        Package("nginx", ensure="absent")

        # Several packages as one resource
        Package(["apache2", "lsof"])
    """

    def __init__(
        self,
        name: Union[str, List[str]],
        version: Optional[str] = None,
        ensure: str = "present",  # "present", "absent", "latest"
        **options
    ):
        """
        Initialize package resource.

        Args:
            name: Package name, or list of package names
            version: Specific version to install (single package only)
            ensure: "present", "absent", or "latest"
        """
        packages = list(name) if isinstance(name, (list, tuple)) else [name]
        if not packages:
            raise ValueError("Package resource needs at least one package")
        if version and len(packages) > 1:
            raise ValueError("version can only be pinned for a single package")
        if ensure not in ("present", "absent", "latest"):
            raise ValueError(f"Invalid ensure {ensure!r}")

        super().__init__(",".join(packages), **options)

        self.packages = packages
        self.version = version
        self.ensure = ensure

        get_executor().add(self)

    def resource_type(self) -> str:
        return "pkg"

    def check(self, platform: Platform) -> Dict[str, Any]:
        """Check which packages are installed."""
        pm = package_manager(platform)
        installed = {pkg: self._installed_version(pkg, pm) for pkg in self.packages}

        state = {
            "exists": all(v is not None for v in installed.values()),
            "installed": installed,
        }
        if self.version:
            state["version"] = installed[self.packages[0]]
        if self.ensure == "latest":
            state["outdated"] = self._outdated(pm)
        return state

    def desired_state(self) -> Dict[str, Any]:
        state = {"exists": self.ensure in ("present", "latest")}
        if self.version:
            state["version"] = self.version
        if self.ensure == "latest":
            state["outdated"] = []
        return state

    def _detect_changes(self):
        # "installed" is informational; versions are compared explicitly
        return [c for c in super()._detect_changes() if c.field != "installed"]

    def apply(self, plan: Plan, platform: Platform) -> None:
        pm = package_manager(platform)

        if plan.action == Action.DELETE:
            self._run(REMOVE_COMMANDS[pm], self.packages, "removal")
            return

        if plan.action == Action.CREATE:
            missing = [p for p, v in self._actual_state.get("installed", {}).items() if v is None]
            targets = missing or self.packages
        else:
            targets = self.packages

        if pm == "apt" and self.version:
            targets = [f"{targets[0]}={self.version}"]
        elif pm == "dnf" and self.version:
            targets = [f"{targets[0]}-{self.version}"]

        logger.info(f"Installing {', '.join(targets)} ({pm})")
        self._run(INSTALL_COMMANDS[pm], targets, "installation")

    def _run(self, base: str, targets: List[str], what: str) -> None:
        command = f"{base} {' '.join(targets)}"
        output, code = self._transport.run_shell(command)
        if code != 0:
            raise ResourceError(f"Package {what} failed", command, output)

    def _installed_version(self, pkg: str, pm: str) -> Optional[str]:
        """Return the installed version of pkg, or None."""
        if pm == "apt":
            output, code = self._transport.run_command(
                ["dpkg-query", "-W", "-f=${Status}|${Version}", pkg]
            )
            if code != 0 or "|" not in output:
                return None
            status, version = output.strip().split("|", 1)
            # "deinstall ok config-files" leaves a dpkg entry behind
            return version if status.split()[-1:] == ["installed"] else None

        if pm == "dnf":
            output, code = self._transport.run_command(
                ["rpm", "-q", "--queryformat", "%{VERSION}-%{RELEASE}", pkg]
            )
            return output.strip() if code == 0 else None

        if pm == "pacman":
            output, code = self._transport.run_command(["pacman", "-Q", pkg])
            parts = output.split()
            return parts[1] if code == 0 and len(parts) > 1 else None

        if pm == "brew":
            output, code = self._transport.run_command(["brew", "list", "--versions", pkg])
            parts = output.split()
            return parts[1] if code == 0 and len(parts) > 1 else None

        return None

    def _outdated(self, pm: str) -> List[str]:
        """Return which of this resource's packages have upgrades pending."""
        if pm == "apt":
            output, _ = self._transport.run_shell("apt list --upgradable 2>/dev/null")
            names = {line.split("/", 1)[0] for line in output.splitlines() if "/" in line}
        elif pm == "dnf":
            output, _ = self._transport.run_shell("dnf check-update --quiet 2>/dev/null")
            names = {line.split(".", 1)[0] for line in output.splitlines() if line.strip()}
        elif pm == "pacman":
            output, _ = self._transport.run_shell("pacman -Qu 2>/dev/null")
            names = {line.split()[0] for line in output.splitlines() if line.strip()}
        else:
            output, _ = self._transport.run_shell("brew outdated --quiet")
            names = set(output.split())
        return [pkg for pkg in self.packages if pkg in names]
