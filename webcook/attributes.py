"""
Attributes - configuration values with defaults, overridable per run.

Attributes are namespaced with dots ("apache.port"). Defaults live in
DEFAULTS; a run layers a JSON file and then ``--set key=value`` overrides
on top, in that order.

Example:
    attrs = Attributes()
    attrs.merge({"apache": {"port": 8080}})
    attrs.set("apache.server_name", "web01.example.com")
    attrs.get("apache.port")        # 8080
    attrs["apache"]["site_title"]   # "It works!"
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from webcook.errors import AttributeFileError

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "apache": {
        "server_name": "localhost",
        "server_admin": "webmaster@localhost",
        "document_root": "/var/www/html",
        "port": 80,
        "service_name": "apache2",
        "package_name": "apache2",
        "extra_packages": ["lsof"],
        "site_title": "It works!",
        "site_message": "Apache has been successfully installed via webcook",
        "user": "www-data",
        "group": "www-data",
        "uid": 33,
        "gid": 33,
        "home": "/var/www",
        "shell": "/usr/sbin/nologin",
        "binary": "/usr/sbin/apache2",
        "ctl": "/usr/sbin/apache2ctl",
        "conf_dir": "/etc/apache2",
        "run_dir": "/var/run/apache2",
    },
    "apt": {
        "update_frequency": 86400,
    },
    "site": {
        "var1": "",
        "var2": "",
    },
}

_MISSING = object()


def deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge overrides into base in place; nested mappings merge, the rest replaces."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def parse_override(expression: str) -> Tuple[str, Any]:
    """
    Parse a ``key=value`` override.

    The value is decoded as JSON when it is valid JSON (numbers, booleans,
    lists), otherwise kept as a plain string.

    Raises:
        AttributeFileError: on a missing "=" or empty key
    """
    if "=" not in expression:
        raise AttributeFileError(f"Invalid override {expression!r}: expected key=value")

    key, raw = expression.split("=", 1)
    key = key.strip()
    if not key or any(not part for part in key.split(".")):
        raise AttributeFileError(f"Invalid override {expression!r}: empty attribute name")

    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key, value


class Attributes:
    """Nested attribute set seeded from DEFAULTS."""

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(dict(DEFAULTS if defaults is None else defaults))

    @classmethod
    def resolve(
        cls,
        json_file: Optional[str] = None,
        overrides: Iterable[str] = (),
    ) -> "Attributes":
        """Build attributes from defaults, an optional JSON file and key=value overrides."""
        attrs = cls()
        if json_file:
            attrs.load_json(json_file)
        for expression in overrides:
            attrs.set(*parse_override(expression))
        return attrs

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def merge(self, overrides: Mapping[str, Any]) -> "Attributes":
        deep_merge(self._data, overrides)
        return self

    def load_json(self, path: str) -> "Attributes":
        """
        Merge a JSON attribute file.

        Raises:
            AttributeFileError: if the file is missing, not JSON, or not an object
        """
        try:
            data = json.loads(Path(path).read_text())
        except FileNotFoundError:
            raise AttributeFileError(f"Attribute file not found: {path}")
        except ValueError as e:
            raise AttributeFileError(f"Attribute file {path} is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise AttributeFileError(f"Attribute file {path} must contain a JSON object")
        return self.merge(data)

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def __getitem__(self, key: str) -> Any:
        if "." in key:
            value = self.get(key, _MISSING)
            if value is _MISSING:
                raise KeyError(key)
            return value
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __repr__(self):
        return f"Attributes({self._data!r})"
