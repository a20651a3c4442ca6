"""
AptUpdate resource - refresh the apt package index periodically.
"""

import time
from typing import Any, Dict, Optional

from webcook.core.resource import Resource, Plan, Platform
from webcook.core.executor import get_executor
from webcook.errors import ResourceError
from webcook.logging import get_webcook_logger
from webcook.resources.pkg import package_manager

logger = get_webcook_logger(__name__)

UPDATE_STAMP = "/var/lib/apt/periodic/update-success-stamp"


class AptUpdate(Resource):
    """
    Run ``apt-get update`` when the index is older than frequency seconds.

    The age is taken from the stamp file apt's periodic job maintains; the
    stamp is touched after a successful update so the next run skips it.
    Platforms without apt are left alone.

    Example:
        AptUpdate("update", frequency=86400)
    """

    def __init__(self, name: str = "update", frequency: int = 86400, **options):
        super().__init__(name, **options)
        self.frequency = frequency

        get_executor().add(self)

    def resource_type(self) -> str:
        return "apt_update"

    def check(self, platform: Platform) -> Dict[str, Any]:
        if not self._uses_apt(platform):
            return {"exists": True, "stale": False}

        age = self.index_age()
        return {
            "exists": True,
            "stale": age is None or age > self.frequency,
            "age": age,
        }

    def desired_state(self) -> Dict[str, Any]:
        return {"exists": True, "stale": False}

    def index_age(self) -> Optional[int]:
        """Seconds since the last successful update, None if never."""
        if not self._transport.file_exists(UPDATE_STAMP):
            return None

        output, code = self._transport.run_command(["stat", "-c", "%Y", UPDATE_STAMP])
        if code != 0 or not output.strip().isdigit():
            return None

        now, code = self._transport.run_command(["date", "+%s"])
        reference = int(now.strip()) if code == 0 and now.strip().isdigit() else int(time.time())
        return max(0, reference - int(output.strip()))

    def apply(self, plan: Plan, platform: Platform) -> None:
        age = self._actual_state.get("age")
        logger.info(
            "Updating apt package index "
            + ("(never updated)" if age is None else f"(last update {age}s ago)")
        )

        command = "DEBIAN_FRONTEND=noninteractive apt-get update -q"
        output, code = self._transport.run_shell(command)
        if code != 0:
            raise ResourceError("apt-get update failed", command, output)

        self._transport.run_command(["mkdir", "-p", "/var/lib/apt/periodic"])
        self._transport.run_command(["touch", UPDATE_STAMP])

    def _uses_apt(self, platform: Platform) -> bool:
        try:
            return package_manager(platform) == "apt"
        except ValueError:
            return False
