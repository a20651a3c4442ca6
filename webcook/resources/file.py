"""
File resource - manage files, directories and rendered templates.

Handles:
- File content (inline, from a source file, or a Jinja2 template)
- File permissions (mode, owner, group)
- Directories (ensure="directory")
"""

import shlex
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined, select_autoescape

from webcook.core.resource import Resource, Plan, Action, Platform
from webcook.core.executor import get_executor
from webcook.errors import ResourceError


class File(Resource):
    """
    File resource for managing files and directories.

    Examples:
        File("/etc/motd", content="Welcome to the server!")

        File("/var/www/html", ensure="directory", mode=0o755)

        File("/var/www/html/index.html",
             template="index.html.j2",
             template_package="webcook.recipes",
             vars={"title": "It works!"},
             owner="www-data",
             group="www-data",
             mode=0o644)
    """

    def __init__(
        self,
        path: str,
        content: Optional[str] = None,
        source: Optional[str] = None,
        template: Optional[str] = None,
        template_package: Optional[str] = None,
        vars: Optional[Dict[str, Any]] = None,
        ensure: str = "file",  # "file", "directory", "absent"
        mode: Optional[int] = None,
        owner: Optional[str] = None,
        group: Optional[str] = None,
        **options
    ):
        """
        Initialize file resource.

        Args:
            path: File path on the host
            content: Inline content
            source: Path to a local source file
            template: Jinja2 template path, or a template name inside
                template_package's "templates" directory
            template_package: Python package shipping the template
            vars: Template variables
            ensure: "file", "directory", or "absent"
            mode: File mode (e.g., 0o644)
            owner: Owner username
            group: Group name
        """
        super().__init__(path, **options)

        if ensure not in ("file", "directory", "absent"):
            raise ValueError(f"Invalid ensure {ensure!r} for {path}")
        if sum(x is not None for x in (content, source, template)) > 1:
            raise ValueError(f"{path}: content, source and template are mutually exclusive")

        self.path = path
        self.content = content
        self.source = source
        self.template = template
        self.template_package = template_package
        self.vars = vars or {}
        self.ensure = ensure
        self.mode = mode
        self.owner = owner
        self.group = group

        get_executor().add(self)

    def resource_type(self) -> str:
        return "file"

    def check(self, platform: Platform) -> Dict[str, Any]:
        """Check current file state."""
        state = {
            "exists": False,
            "type": None,
            "content": None,
            "mode": None,
            "owner": None,
            "group": None,
        }

        if not self._transport.file_exists(self.path):
            return state

        state["exists"] = True

        quoted = shlex.quote(self.path)
        output, code = self._transport.run_shell(
            f"stat -c '%F|%a|%U|%G' {quoted} 2>/dev/null || stat -f '%HT|%Lp|%Su|%Sg' {quoted}"
        )

        if code == 0:
            parts = output.strip().split("|")
            if len(parts) >= 4:
                file_type, mode_octal, owner, group = parts[:4]
                file_type = file_type.lower()

                if "regular" in file_type:
                    state["type"] = "file"
                elif "directory" in file_type:
                    state["type"] = "directory"
                elif "symbolic link" in file_type:
                    state["type"] = "symlink"

                try:
                    state["mode"] = int(mode_octal, 8)
                except ValueError:
                    pass

                state["owner"] = owner
                state["group"] = group

        if state["type"] == "file":
            try:
                state["content"] = self._transport.read_file(self.path).decode("utf-8")
            except (UnicodeDecodeError, OSError):
                # Binary or unreadable - content can't be compared
                state["content"] = None

        return state

    def desired_state(self) -> Dict[str, Any]:
        """Return desired file state."""
        state = {
            "exists": self.ensure != "absent",
            "type": self.ensure if self.ensure in ("file", "directory") else None,
        }

        if self.ensure == "absent":
            return state

        if self.ensure == "file":
            content = self.render()
            if content is not None:
                state["content"] = content

        if self.mode is not None:
            state["mode"] = self.mode
        if self.owner is not None:
            state["owner"] = self.owner
        if self.group is not None:
            state["group"] = self.group

        return state

    def render(self) -> Optional[str]:
        """Return the content this file should have (None = don't manage content)."""
        if self.content is not None:
            return self.content
        if self.source is not None:
            return self._read_source()
        if self.template is not None:
            return self._render_template()
        return None

    def apply(self, plan: Plan, platform: Platform) -> None:
        """Apply file changes."""
        if plan.action == Action.DELETE:
            self._run(["rm", "-rf", self.path])
        elif plan.action == Action.CREATE:
            self._create()
        elif plan.action == Action.UPDATE:
            self._update(plan)

    def _create(self) -> None:
        if self.ensure == "directory":
            self._run(["mkdir", "-p", self.path])
        else:
            self._run(["mkdir", "-p", str(Path(self.path).parent)])
            content = self._desired_state.get("content")
            if content is not None:
                self._transport.write_file(self.path, content.encode("utf-8"))
            else:
                self._run(["touch", self.path])

        self._set_metadata()

    def _update(self, plan: Plan) -> None:
        fields = {change.field: change for change in plan.changes}

        if "type" in fields:
            # Wrong kind of node (e.g. a file where a directory belongs)
            self._run(["rm", "-rf", self.path])
            self._create()
            return

        if "content" in fields and fields["content"].to_value is not None:
            self._transport.write_file(self.path, fields["content"].to_value.encode("utf-8"))

        if fields.keys() & {"content", "mode", "owner", "group"}:
            self._set_metadata()

    def _set_metadata(self) -> None:
        """Set file owner, group, and mode."""
        if self.owner is not None and self.group is not None:
            self._run(["chown", f"{self.owner}:{self.group}", self.path])
        elif self.owner is not None:
            self._run(["chown", self.owner, self.path])
        elif self.group is not None:
            self._run(["chgrp", self.group, self.path])

        if self.mode is not None:
            self._run(["chmod", format(self.mode, "o"), self.path])

    def _run(self, args) -> None:
        output, code = self._transport.run_command(args)
        if code != 0:
            raise ResourceError(f"Failed to manage {self.path}", " ".join(args), output)

    def _read_source(self) -> str:
        source_path = Path(self.source)
        if not source_path.exists():
            raise FileNotFoundError(f"Source file not found: {self.source}")
        return source_path.read_text()

    def _render_template(self) -> str:
        if self.template_package:
            loader = PackageLoader(self.template_package, "templates")
            name = self.template
        else:
            template_path = Path(self.template)
            if not template_path.exists():
                raise FileNotFoundError(f"Template not found: {self.template}")
            loader = FileSystemLoader(template_path.parent)
            name = template_path.name

        env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "htm", "xml", "html.j2"]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        return env.get_template(name).render(**self.vars)


class Template(File):
    """
    A file rendered from a Jinja2 template.

    Example:
        Template("/var/www/html/index.html",
                 source="index.html.j2",
                 package="webcook.recipes",
                 vars={"title": "It works!"},
                 owner="www-data", group="www-data", mode=0o644)
    """

    def __init__(
        self,
        path: str,
        source: str,
        package: Optional[str] = None,
        vars: Optional[Dict[str, Any]] = None,
        **options
    ):
        super().__init__(path, template=source, template_package=package, vars=vars, **options)

    def resource_type(self) -> str:
        return "template"
