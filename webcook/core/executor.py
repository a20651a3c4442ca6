"""
Executor - runs a recipe's resources in declaration order.

The executor:
1. Collects resources as the recipe declares them
2. Generates a preview plan
3. Converges each resource in order, re-checking it right before applying
4. Fires notifications (immediately, or queued until the end of the run)
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple
import time

from webcook.core.resource import Resource, Plan, Platform, Timing
from webcook.logging import get_webcook_logger
from webcook.transport import Transport, LocalTransport

logger = get_webcook_logger(__name__)


@dataclass
class PlanResult:
    """
    Result of planning phase.

    Contains plans for all resources and summary statistics.
    """
    plans: Dict[str, Plan] = field(default_factory=dict)
    errors: List[Exception] = field(default_factory=list)

    @property
    def change_count(self) -> int:
        """Count of resources with changes."""
        return sum(1 for plan in self.plans.values() if plan.has_changes())

    @property
    def has_changes(self) -> bool:
        return self.change_count > 0

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


@dataclass
class ApplyResult:
    """
    Result of apply phase.

    plans holds the plan each resource was converged with (the fresh one
    computed just before applying it).
    """
    plans: Dict[str, Plan] = field(default_factory=dict)
    changed_resources: List[str] = field(default_factory=list)
    failed_resources: List[str] = field(default_factory=list)
    notifications: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class Executor:
    """
    Resource executor implementing plan/apply.

    Example:
        executor = Executor()
        executor.add(Package(["apache2", "lsof"]))
        executor.add(Service("apache2", running=True, enabled=True))

        plan_result = executor.plan()
        print(f"Will change {plan_result.change_count} resources")

        apply_result = executor.apply()
        print(f"Changed {len(apply_result.changed_resources)} resources")
    """

    def __init__(
        self,
        platform: Optional[Platform] = None,
        transport: Optional[Transport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize executor.

        Args:
            platform: Platform info (auto-detected if None)
            transport: Transport for command execution (default: LocalTransport)
            sleep: Used for retry delays
        """
        self.transport = transport or LocalTransport()
        self.platform = platform or Platform.detect(
            None if isinstance(self.transport, LocalTransport) else self.transport
        )
        self.sleep = sleep
        self.resources: List[Resource] = []
        self._registry: Dict[str, Resource] = {}

    def add(self, resource: Resource) -> Resource:
        """
        Add resource to executor.

        Declaring an id twice keeps the first position and the last
        definition.
        """
        resource._transport = self.transport

        existing = self._registry.get(resource.id)
        if existing is not None and existing is not resource:
            logger.warning(f"Resource {resource.id} declared twice; later definition wins")
            self.resources[self.resources.index(existing)] = resource
        elif existing is None:
            self.resources.append(resource)

        self._registry[resource.id] = resource
        return resource

    def get(self, resource_id: str) -> Optional[Resource]:
        return self._registry.get(resource_id)

    def plan(self) -> PlanResult:
        """
        Preview plans for all resources against the current host state.

        Guards and checks see the host as it is now, so steps that depend on
        earlier ones (e.g. checks on a binary a package installs) may plan
        differently once apply actually runs them.
        """
        result = PlanResult()

        for resource in self.resources:
            try:
                result.plans[resource.id] = resource.plan(self.platform)
            except Exception as e:
                logger.error(f"Planning {resource.id} failed: {e}")
                result.errors.append(e)

        return result

    def apply(self, plan_result: Optional[PlanResult] = None) -> ApplyResult:
        """
        Converge all resources in order.

        Each resource is re-planned right before it is applied, so a preview
        plan_result from plan() is accepted but never reused.
        """
        result = ApplyResult()
        start_time = time.time()
        delayed: List[Tuple[str, str]] = []

        for resource in list(self.resources):
            try:
                plan = resource.plan(self.platform)
            except Exception as e:
                self._record_failure(result, resource, e)
                continue

            result.plans[resource.id] = plan
            if plan.skipped:
                logger.debug(f"{resource.id} skipped: {plan.reason}")
            if not plan.has_changes():
                continue

            try:
                self._apply_with_retries(resource, plan)
            except Exception as e:
                self._record_failure(result, resource, e)
                continue

            logger.action(plan.action.value, resource.id)
            result.changed_resources.append(resource.id)
            resource._actual_state = resource.check(self.platform)

            for notification in resource.notifies:
                if notification.timing == Timing.IMMEDIATELY:
                    self._fire(notification.target_id, notification.action, result)
                else:
                    key = (notification.target_id, notification.action)
                    if key not in delayed:
                        delayed.append(key)

        for target_id, action in delayed:
            self._fire(target_id, action, result)

        if result.changed_resources:
            self._trigger_service_reloads(result)

        result.duration = time.time() - start_time
        return result

    def _apply_with_retries(self, resource: Resource, plan: Plan) -> None:
        attempts = resource.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                resource.apply(plan, self.platform)
                return
            except Exception as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    f"{resource.id} failed (attempt {attempt}/{attempts}), "
                    f"retrying in {resource.retry_delay}s: {e}"
                )
                self.sleep(resource.retry_delay)

    def _fire(self, target_id: str, action: str, result: ApplyResult) -> None:
        target = self.get(target_id)
        label = f"{target_id} [{action}]"
        if target is None:
            error = LookupError(f"Notification target not found: {target_id}")
            logger.error(str(error))
            result.errors.append(error)
            return

        logger.action("notify", target_id, action)
        try:
            target.trigger(action, self.platform)
        except Exception as e:
            self._record_failure(result, target, e)
            return
        result.notifications.append(label)

    def _record_failure(self, result: ApplyResult, resource: Resource, error: Exception) -> None:
        if resource.ignore_failure:
            logger.warning(f"{resource.id} failed (ignored): {error}")
            return
        logger.error(f"{resource.id} failed: {error}")
        result.failed_resources.append(resource.id)
        result.errors.append(error)

    def _trigger_service_reloads(self, result: ApplyResult) -> None:
        """Restart or reload services whose restart_on/reload_on resources changed."""
        from webcook.resources.service import Service

        for resource in self.resources:
            if not isinstance(resource, Service):
                continue

            # Restart takes precedence over reload
            if resource.should_restart(result.changed_resources):
                action = "restart"
            elif resource.should_reload(result.changed_resources):
                action = "reload"
            else:
                continue

            if f"{resource.id} [{action}]" not in result.notifications:
                self._fire(resource.id, action, result)

    def clear(self) -> None:
        self.resources.clear()
        self._registry.clear()


class Registry:
    """
    Global resource registry used while a recipe declares resources.

    Resources add themselves to the current executor on construction.
    """

    _instance: Optional["Registry"] = None
    _executor: Optional[Executor] = None

    @classmethod
    def get_instance(cls) -> "Registry":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
        cls._executor = None

    @property
    def executor(self) -> Executor:
        # Created lazily so that importing webcook never detects the platform
        if Registry._executor is None:
            Registry._executor = Executor()
        return Registry._executor

    def add(self, resource: Resource) -> Resource:
        return self.executor.add(resource)


def get_executor() -> Executor:
    """Get the executor resources currently register with."""
    return Registry.get_instance().executor


def use_executor(executor: Executor) -> Executor:
    """Make executor the one new resources register with."""
    Registry.reset()
    Registry._executor = executor
    return executor


def reset_executor() -> None:
    """Drop the global executor (useful for testing)."""
    Registry.reset()
