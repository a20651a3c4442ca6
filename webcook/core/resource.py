"""
Core resource abstraction for webcook.

All resources (File, Package, Service, User, ...) inherit from Resource
and implement the Check/Plan/Apply pattern.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union, TYPE_CHECKING
import platform as platform_module

import distro

from webcook.errors import GuardError
from webcook.transport.base import NullTransport

if TYPE_CHECKING:
    from webcook.transport import Transport


# A guard is a shell command (true when it exits 0) or a callable taking
# the transport and returning a truthy value.
Guard = Union[str, Callable[["Transport"], Any]]


class Action(Enum):
    """Resource actions during apply."""
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Timing(Enum):
    """When a notification fires."""
    IMMEDIATELY = "immediately"
    DELAYED = "delayed"


@dataclass
class Change:
    """Represents a single property change."""
    field: str
    from_value: Any
    to_value: Any

    def __str__(self):
        return f"{self.field}: {self.from_value} → {self.to_value}"


@dataclass
class Plan:
    """
    Execution plan for a resource.

    skipped is set when a guard prevented the resource from being checked.
    """
    action: Action
    changes: List[Change] = field(default_factory=list)
    reason: str = ""
    skipped: bool = False

    def has_changes(self) -> bool:
        """Check if plan has any changes."""
        return self.action != Action.NONE and len(self.changes) > 0

    def __str__(self):
        if self.action == Action.NONE:
            return f"No changes ({self.reason})" if self.reason else "No changes"

        lines = [f"Action: {self.action.value}"]
        if self.reason:
            lines.append(f"Reason: {self.reason}")
        for change in self.changes:
            lines.append(f"  {change}")
        return "\n".join(lines)


@dataclass
class Notify:
    """
    Ask another resource to run an action when this one changes.

    Example:
        Template(..., notifies=[Notify("restart", apache_service)])
        Package(..., notifies=[Notify("run", verify, "immediately")])
    """
    action: str
    target: Union["Resource", str]
    timing: Union[Timing, str] = Timing.DELAYED

    def __post_init__(self):
        if isinstance(self.timing, str):
            self.timing = Timing(self.timing)

    @property
    def target_id(self) -> str:
        if isinstance(self.target, str):
            return self.target
        return self.target.id

    def __str__(self):
        return f"{self.target_id} [{self.action}, {self.timing.value}]"


@dataclass
class Platform:
    """Platform information (OS, distro, version)."""
    system: str  # Linux, Darwin
    distro: str  # ubuntu, debian, fedora, ...
    version: str
    arch: str

    @property
    def is_linux(self) -> bool:
        return self.system == "Linux"

    @classmethod
    def detect(cls, transport: Optional["Transport"] = None) -> "Platform":
        """
        Detect platform information.

        Args:
            transport: Transport to use for detection (None = this machine)
        """
        if transport is None:
            system = platform_module.system()
            if system == "Darwin":
                return cls(system, "macos", platform_module.mac_ver()[0], platform_module.machine())
            return cls(
                system=system,
                distro=distro.id() or "unknown",
                version=distro.version(),
                arch=platform_module.machine(),
            )

        output, _ = transport.run_shell("uname -s")
        system = output.strip()
        output, _ = transport.run_shell("uname -m")
        arch = output.strip()

        if system == "Darwin":
            output, _ = transport.run_shell("sw_vers -productVersion")
            return cls(system, "macos", output.strip(), arch)

        release = {}
        if system == "Linux":
            try:
                release = parse_os_release(transport.read_file("/etc/os-release").decode())
            except FileNotFoundError:
                pass

        return cls(
            system=system,
            distro=release.get("ID", "unknown"),
            version=release.get("VERSION_ID", ""),
            arch=arch,
        )


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse the KEY=value lines of /etc/os-release."""
    values = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key] = value.strip().strip('"').strip("'")
    return values


class Resource(ABC):
    """
    Base class for all resources.

    Resources follow the Check → Plan → Apply pattern:
    1. Check: Inspect current state
    2. Plan: Determine what needs to change
    3. Apply: Make the changes

    Common options:
        only_if / not_if: guards (shell command or callable)
        retries / retry_delay: retry apply on failure
        notifies: list of Notify fired when the resource changes
        ignore_failure: log failures as warnings instead of errors
    """

    def __init__(
        self,
        name: str,
        only_if: Optional[Guard] = None,
        not_if: Optional[Guard] = None,
        retries: int = 0,
        retry_delay: float = 2,
        notifies: Optional[List[Notify]] = None,
        ignore_failure: bool = False,
        **options,
    ):
        """
        Initialize resource.

        Args:
            name: Resource identifier (e.g., "/var/www/html/index.html", "apache2")
            **options: Resource-specific options
        """
        self.name = name
        self.only_if = only_if
        self.not_if = not_if
        self.retries = retries
        self.retry_delay = retry_delay
        self.notifies = list(notifies or [])
        self.ignore_failure = ignore_failure
        self.options = options
        self._desired_state: Dict[str, Any] = {}
        self._actual_state: Dict[str, Any] = {}
        self._transport: "Transport" = NullTransport()  # Set by executor

    @property
    def id(self) -> str:
        """
        Unique resource identifier.

        Format: resource_type:name
        Example: file:/var/www/html/index.html, pkg:apache2
        """
        return f"{self.resource_type()}:{self.name}"

    @abstractmethod
    def resource_type(self) -> str:
        """Return resource type string (file, pkg, svc, user, ...)."""

    @abstractmethod
    def check(self, platform: Platform) -> Dict[str, Any]:
        """
        Check current state of the resource.

        Example:
            {"exists": True, "content": "...", "mode": 0o644}
        """

    @abstractmethod
    def desired_state(self) -> Dict[str, Any]:
        """
        Return desired state properties.

        Example:
            {"exists": True, "content": "...", "mode": 0o644}
        """

    def guard_reason(self) -> Optional[str]:
        """Return why the guards skip this resource, or None to proceed."""
        if self.only_if is not None and not self._evaluate_guard(self.only_if, "only_if"):
            return "only_if guard not satisfied"
        if self.not_if is not None and self._evaluate_guard(self.not_if, "not_if"):
            return "not_if guard satisfied"
        return None

    def _evaluate_guard(self, guard: Guard, kind: str) -> bool:
        if isinstance(guard, str):
            _, code = self._transport.run_shell(guard)
            return code == 0

        try:
            return bool(guard(self._transport))
        except Exception as e:
            raise GuardError(f"{self.id}: {kind} guard raised {e!r}") from e

    def plan(self, platform: Platform) -> Plan:
        """
        Generate execution plan by comparing desired vs actual state.
        """
        skip_reason = self.guard_reason()
        if skip_reason:
            self._actual_state = {}
            self._desired_state = {}
            return Plan(action=Action.NONE, reason=skip_reason, skipped=True)

        self._actual_state = self.check(platform)
        self._desired_state = self.desired_state()

        exists = self._actual_state.get("exists", False)
        should_exist = self._desired_state.get("exists", True)

        if not exists and should_exist:
            action = Action.CREATE
            reason = "Resource does not exist"
        elif exists and not should_exist:
            action = Action.DELETE
            reason = "Resource should not exist"
        elif not exists and not should_exist:
            action = Action.NONE
            reason = "Resource correctly absent"
        else:
            changes = self._detect_changes()
            if changes:
                return Plan(
                    action=Action.UPDATE,
                    changes=changes,
                    reason="Properties differ from desired state",
                )
            action = Action.NONE
            reason = "No changes needed"

        changes = []
        if action == Action.CREATE:
            changes = [
                Change(key, None, value)
                for key, value in self._desired_state.items()
                if key != "exists"
            ]
            if not changes:
                changes = [Change("exists", False, True)]
        elif action == Action.DELETE:
            changes = [
                Change(key, value, None)
                for key, value in self._actual_state.items()
                if key != "exists"
            ]
            if not changes:
                changes = [Change("exists", True, False)]

        return Plan(action=action, changes=changes, reason=reason)

    def _detect_changes(self) -> List[Change]:
        """Detect changes between actual and desired state."""
        changes = []

        for key, desired_value in self._desired_state.items():
            if key == "exists":
                continue

            actual_value = self._actual_state.get(key)
            if desired_value is None and actual_value is None:
                continue

            if actual_value != desired_value:
                changes.append(Change(key, actual_value, desired_value))

        return changes

    @abstractmethod
    def apply(self, plan: Plan, platform: Platform) -> None:
        """
        Apply the execution plan.

        Raises:
            ResourceError if apply fails
        """

    def trigger(self, action: str, platform: Platform) -> None:
        """
        Run a notified action (e.g. "restart", "run").

        Raises:
            ValueError if the resource has no such action
        """
        raise ValueError(f"{self.id} does not support notified action '{action}'")

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"

    def __str__(self):
        return self.id
