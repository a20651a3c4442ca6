"""
Service resource - manage system services.

Supports:
- systemd (hosts booted with systemd)
- the SysV "service" wrapper (containers and hosts without systemd)
- launchctl (macOS)
"""

from typing import Any, Dict, List, Optional

from webcook.core.executor import get_executor
from webcook.core import Plan, Platform, Resource
from webcook.errors import ResourceError

SYSTEMD_MARKER = "/run/systemd/system"


class Service(Resource):
    """
    Service resource for managing system services.

    Examples:
        # Running and enabled at boot, retried on failure
        Service("apache2", running=True, enabled=True, retries=3, retry_delay=5)

        # Restart when the site config changes
        site = File("/etc/apache2/sites-available/000-default.conf", ...)
        Service("apache2", running=True, restart_on=[site])

        # Without reload support, reload falls back to restart
        Service("apache2", supports={"reload": False})
    """

    def __init__(
        self,
        name: str,
        running: Optional[bool] = None,
        enabled: Optional[bool] = None,
        reload_on: Optional[List] = None,
        restart_on: Optional[List] = None,
        supports: Optional[Dict[str, bool]] = None,
        **options,
    ):
        """
        Initialize service resource.

        Args:
            name: Service name
            running: Whether service should be running
            enabled: Whether service should be enabled at boot
            reload_on: Resources (or ids) whose change triggers a reload
            restart_on: Resources (or ids) whose change triggers a restart
            supports: Capabilities of the init script (status/restart/reload)
        """
        super().__init__(name, **options)

        self.service_name = name
        self.running = running
        self.enabled = enabled
        self.reload_on = self._extract_resource_ids(reload_on or [])
        self.restart_on = self._extract_resource_ids(restart_on or [])
        self.supports = {"status": True, "restart": True, "reload": True}
        self.supports.update(supports or {})

        get_executor().add(self)

    def _extract_resource_ids(self, resources: List) -> List[str]:
        """Extract resource IDs from resource objects or strings."""
        return [r if isinstance(r, str) else r.id for r in resources]

    def resource_type(self) -> str:
        return "svc"

    def check(self, platform: Platform) -> Dict[str, Any]:
        return {
            "exists": True,
            "running": self.is_running(platform),
            "enabled": self.is_enabled(platform),
        }

    def desired_state(self) -> Dict[str, Any]:
        state = {"exists": True}
        if self.running is not None:
            state["running"] = self.running
        if self.enabled is not None:
            state["enabled"] = self.enabled
        return state

    def apply(self, plan: Plan, platform: Platform) -> None:
        """Apply service changes; enable before start, like systemctl enable --now."""
        changes = {change.field: change.to_value for change in plan.changes}

        if "enabled" in changes:
            self._control("enable" if changes["enabled"] else "disable", platform)
        if "running" in changes:
            self._control("start" if changes["running"] else "stop", platform)

    def trigger(self, action: str, platform: Platform) -> None:
        if action == "restart":
            self.restart(platform)
        elif action == "reload":
            self.reload(platform)
        elif action in ("start", "stop", "enable", "disable"):
            self._control(action, platform)
        else:
            super().trigger(action, platform)

    def uses_systemd(self, platform: Platform) -> bool:
        return platform.is_linux and self._transport.file_exists(SYSTEMD_MARKER)

    def is_running(self, platform: Platform) -> bool:
        if platform.system == "Darwin":
            _, code = self._transport.run_command(["launchctl", "list", self.service_name])
            return code == 0

        if self.uses_systemd(platform):
            _, code = self._transport.run_command(["systemctl", "is-active", "--quiet", self.service_name])
            return code == 0

        if self.supports["status"]:
            _, code = self._transport.run_command(["service", self.service_name, "status"])
            return code == 0

        _, code = self._transport.run_command(["pgrep", "-x", self.service_name])
        return code == 0

    def is_enabled(self, platform: Platform) -> bool:
        if platform.system == "Darwin":
            # launchd jobs are enabled by being installed
            return True

        if self.uses_systemd(platform):
            _, code = self._transport.run_command(["systemctl", "is-enabled", "--quiet", self.service_name])
            return code == 0

        # SysV: enabled when an S-link exists in a runlevel directory
        _, code = self._transport.run_shell(f"ls /etc/rc[2-5].d/S*{self.service_name} >/dev/null 2>&1")
        return code == 0

    def _command(self, action: str, platform: Platform) -> Optional[List[str]]:
        if platform.system == "Darwin":
            if action in ("enable", "disable"):
                return None
            return ["launchctl", action, self.service_name]

        if self.uses_systemd(platform):
            return ["systemctl", action, self.service_name]

        if action in ("enable", "disable"):
            return ["update-rc.d", self.service_name, "defaults" if action == "enable" else "disable"]
        return ["service", self.service_name, action]

    def _control(self, action: str, platform: Platform) -> None:
        command = self._command(action, platform)
        if command is None:
            return

        output, code = self._transport.run_command(command)
        if code != 0:
            raise ResourceError(f"Failed to {action} service {self.service_name}", " ".join(command), output)

    def reload(self, platform: Platform) -> None:
        if not self.supports["reload"]:
            self.restart(platform)
            return
        self._control("reload", platform)

    def restart(self, platform: Platform) -> None:
        if not self.supports["restart"] or platform.system == "Darwin":
            self._transport.run_command(self._command("stop", platform))
            self._control("start", platform)
            return
        self._control("restart", platform)

    def should_reload(self, changed_resource_ids: List[str]) -> bool:
        return any(rid in changed_resource_ids for rid in self.reload_on)

    def should_restart(self, changed_resource_ids: List[str]) -> bool:
        return any(rid in changed_resource_ids for rid in self.restart_on)
