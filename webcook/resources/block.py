"""
Block and Log resources - run Python during the converge.

Block runs a callable in order with the other resources, the way a recipe
mixes ad-hoc checks with declarative steps. Log writes a message when the
run reaches it.
"""

import logging
from typing import Any, Callable, Dict, Optional

from webcook.core.resource import Resource, Plan, Platform, Change, Action
from webcook.core.executor import get_executor
from webcook.logging import get_webcook_logger

logger = get_webcook_logger(__name__)

ACTIONS = ("run", "nothing")


class Block(Resource):
    """
    Run a Python callable as a step.

    The callable receives the transport and the platform. With
    action="nothing" the block only runs when another resource notifies it
    with "run".

    Examples:
        Block("display_access_info", block=lambda transport, platform: ...)

        verify = Block("verify_install", block=verify_install, action="nothing")
        Package(["apache2"], notifies=[Notify("run", verify, "immediately")])
    """

    def __init__(
        self,
        name: str,
        block: Callable[[Any, Platform], Any],
        action: str = "run",
        **options,
    ):
        if action not in ACTIONS:
            raise ValueError(f"Invalid action {action!r} for block {name}; expected one of {ACTIONS}")

        super().__init__(name, **options)
        self.block = block
        self.action = action

        get_executor().add(self)

    def resource_type(self) -> str:
        return "block"

    def check(self, platform: Platform) -> Dict[str, Any]:
        return {"exists": True}

    def desired_state(self) -> Dict[str, Any]:
        return {"exists": True}

    def plan(self, platform: Platform) -> Plan:
        if self.action == "nothing":
            return Plan(action=Action.NONE, reason="runs only when notified")

        plan = super().plan(platform)
        if plan.skipped:
            return plan
        # Blocks always run; the change is the run itself
        return Plan(action=Action.UPDATE, changes=[Change("run", None, self.name)], reason="block")

    def apply(self, plan: Plan, platform: Platform) -> None:
        self.block(self._transport, platform)

    def trigger(self, action: str, platform: Platform) -> None:
        if action != "run":
            super().trigger(action, platform)
            return
        self.block(self._transport, platform)


class Log(Resource):
    """
    Write a message to the run log.

    Example:
        Log("apache_success", message="Apache has been installed", level="info")
    """

    def __init__(self, name: str, message: Optional[str] = None, level: str = "info", **options):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Invalid log level {level!r}")

        super().__init__(name, **options)
        self.message = message if message is not None else name
        self.level = numeric

        get_executor().add(self)

    def resource_type(self) -> str:
        return "log"

    def check(self, platform: Platform) -> Dict[str, Any]:
        return {"exists": True, "written": False}

    def desired_state(self) -> Dict[str, Any]:
        return {"exists": True, "written": True}

    def apply(self, plan: Plan, platform: Platform) -> None:
        logger.log(self.level, self.message)
