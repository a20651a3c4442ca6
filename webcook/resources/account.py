"""
Group and User resources - manage local accounts.

State is read with getent, so accounts from any NSS source are seen;
changes are made with the shadow-utils commands (groupadd, useradd, ...).
"""

from typing import Any, Dict, List, Optional, Union

from webcook.core.resource import Resource, Plan, Action, Platform
from webcook.core.executor import get_executor
from webcook.errors import ResourceError


def _getent(transport, database: str, key: str) -> Optional[List[str]]:
    """Return the colon-separated fields of a getent entry, or None."""
    output, code = transport.run_command(["getent", database, key])
    if code != 0 or not output.strip():
        return None
    return output.strip().splitlines()[0].split(":")


class _Account(Resource):
    def _run(self, args: List[str], what: str) -> None:
        output, code = self._transport.run_command(args)
        if code != 0:
            raise ResourceError(f"Failed to {what} {self.name}", " ".join(args), output)


class Group(_Account):
    """
    Group resource.

    Example:
        Group("www-data", gid=33, system=True)
    """

    def __init__(
        self,
        name: str,
        gid: Optional[int] = None,
        system: bool = False,
        ensure: str = "present",
        **options,
    ):
        super().__init__(name, **options)
        self.gid = gid
        self.system = system
        self.ensure = ensure

        get_executor().add(self)

    def resource_type(self) -> str:
        return "group"

    def check(self, platform: Platform) -> Dict[str, Any]:
        entry = _getent(self._transport, "group", self.name)
        if entry is None:
            return {"exists": False, "gid": None}
        return {"exists": True, "gid": int(entry[2]) if entry[2].isdigit() else None}

    def desired_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {"exists": self.ensure == "present"}
        if self.gid is not None and self.ensure == "present":
            state["gid"] = self.gid
        return state

    def apply(self, plan: Plan, platform: Platform) -> None:
        if plan.action == Action.DELETE:
            self._run(["groupdel", self.name], "delete group")
        elif plan.action == Action.CREATE:
            args = ["groupadd"]
            if self.system:
                args.append("--system")
            if self.gid is not None:
                args += ["--gid", str(self.gid)]
            self._run(args + [self.name], "create group")
        elif plan.action == Action.UPDATE:
            self._run(["groupmod", "--gid", str(self.gid), self.name], "modify group")


class User(_Account):
    """
    User resource.

    Example:
        User("www-data",
             uid=33,
             gid="www-data",
             home="/var/www",
             shell="/usr/sbin/nologin",
             system=True)
    """

    def __init__(
        self,
        name: str,
        uid: Optional[int] = None,
        gid: Optional[Union[int, str]] = None,
        home: Optional[str] = None,
        shell: Optional[str] = None,
        comment: Optional[str] = None,
        system: bool = False,
        manage_home: bool = False,
        ensure: str = "present",
        **options,
    ):
        super().__init__(name, **options)
        self.uid = uid
        self.gid = gid
        self.home = home
        self.shell = shell
        self.comment = comment
        self.system = system
        self.manage_home = manage_home
        self.ensure = ensure

        get_executor().add(self)

    def resource_type(self) -> str:
        return "user"

    def check(self, platform: Platform) -> Dict[str, Any]:
        entry = _getent(self._transport, "passwd", self.name)
        if entry is None or len(entry) < 7:
            return {"exists": False}

        _, _, uid, gid, comment, home, shell = entry[:7]
        return {
            "exists": True,
            "uid": int(uid),
            "gid": int(gid),
            "comment": comment,
            "home": home,
            "shell": shell,
        }

    def desired_state(self) -> Dict[str, Any]:
        state: Dict[str, Any] = {"exists": self.ensure == "present"}
        if self.ensure != "present":
            return state

        if self.uid is not None:
            state["uid"] = self.uid
        if self.gid is not None:
            state["gid"] = self._resolve_gid()
        for key in ("comment", "home", "shell"):
            value = getattr(self, key)
            if value is not None:
                state[key] = value
        return state

    def _resolve_gid(self) -> Union[int, str]:
        """Group names are compared by number; unknown groups stay names."""
        if isinstance(self.gid, int):
            return self.gid
        entry = _getent(self._transport, "group", self.gid)
        return int(entry[2]) if entry else self.gid

    def _account_options(self, fields, home_flag: str) -> List[str]:
        flags = {
            "uid": "--uid",
            "gid": "--gid",
            "comment": "--comment",
            "home": home_flag,
            "shell": "--shell",
        }
        args = []
        for key, flag in flags.items():
            if key not in fields:
                continue
            value = self.gid if key == "gid" else getattr(self, key)
            args += [flag, str(value)]
        return args

    def apply(self, plan: Plan, platform: Platform) -> None:
        if plan.action == Action.DELETE:
            self._run(["userdel", self.name], "delete user")
            return

        if plan.action == Action.CREATE:
            args = ["useradd"]
            if self.system:
                args.append("--system")
            args.append("--create-home" if self.manage_home else "--no-create-home")
            args += self._account_options(self._desired_state, "--home-dir")
            self._run(args + [self.name], "create user")
            return

        changed = {change.field for change in plan.changes}
        args = ["usermod"] + self._account_options(changed, "--home")
        if self.manage_home and "home" in changed:
            args.append("--move-home")
        self._run(args + [self.name], "modify user")
