"""
Unit tests for attributes and overrides.
"""

import json

import pytest

from webcook.attributes import DEFAULTS, Attributes, deep_merge, parse_override
from webcook.errors import AttributeFileError


class TestAttributeDefaults:
    """Unit tests for the default attribute set."""

    def test_apache_defaults(self):
        attrs = Attributes()

        assert attrs.get("apache.server_name") == "localhost"
        assert attrs.get("apache.document_root") == "/var/www/html"
        assert attrs.get("apache.port") == 80
        assert attrs.get("apache.service_name") == "apache2"
        assert attrs.get("apache.site_title") == "It works!"
        assert attrs.get("apache.site_message") == "Apache has been successfully installed via webcook"

    def test_site_vars_default_empty(self):
        attrs = Attributes()

        assert attrs["site"] == {"var1": "", "var2": ""}

    def test_instances_do_not_share_defaults(self):
        attrs = Attributes()
        attrs.set("apache.port", 8080)
        attrs["apache"]["extra_packages"].append("curl")

        assert DEFAULTS["apache"]["port"] == 80
        assert DEFAULTS["apache"]["extra_packages"] == ["lsof"]
        assert Attributes().get("apache.port") == 80


class TestAttributeAccess:
    """Unit tests for dotted access."""

    def test_get_missing_returns_default(self):
        attrs = Attributes()

        assert attrs.get("apache.missing") is None
        assert attrs.get("apache.port.deeper", "fallback") == "fallback"
        assert attrs.get("nginx.port", 8080) == 8080

    def test_set_creates_namespaces(self):
        attrs = Attributes()
        attrs.set("php.fpm.pool", "www")

        assert attrs.get("php.fpm.pool") == "www"
        assert attrs["php"] == {"fpm": {"pool": "www"}}

    def test_getitem_missing_raises(self):
        attrs = Attributes()

        with pytest.raises(KeyError):
            attrs["apache.missing"]
        with pytest.raises(KeyError):
            attrs["nginx"]

    def test_contains(self):
        attrs = Attributes()

        assert "apache.port" in attrs
        assert "site" in attrs
        assert "apache.missing" not in attrs

    def test_merge_is_deep(self):
        attrs = Attributes().merge({"apache": {"port": 8080}, "site": {"var1": "blue"}})

        assert attrs.get("apache.port") == 8080
        assert attrs.get("apache.server_name") == "localhost"
        assert attrs.get("site.var1") == "blue"
        assert attrs.get("site.var2") == ""

    def test_deep_merge_replaces_non_mappings(self):
        base = {"apache": {"extra_packages": ["lsof"]}, "port": 80}
        deep_merge(base, {"apache": {"extra_packages": ["curl"]}, "port": {"http": 80}})

        assert base == {"apache": {"extra_packages": ["curl"]}, "port": {"http": 80}}


class TestOverrides:
    """Unit tests for key=value overrides."""

    @pytest.mark.parametrize("expression,expected", [
        ("apache.port=8080", ("apache.port", 8080)),
        ("apache.server_name=web01.example.com", ("apache.server_name", "web01.example.com")),
        ("flag=true", ("flag", True)),
        ('apache.extra_packages=["lsof","curl"]', ("apache.extra_packages", ["lsof", "curl"])),
        ("site.var1=a=b", ("site.var1", "a=b")),
        ("site.var2=", ("site.var2", "")),
    ])
    def test_parse_override(self, expression, expected):
        assert parse_override(expression) == expected

    @pytest.mark.parametrize("expression", ["apache.port", "=8080", "apache..port=1", "apache.=1"])
    def test_invalid_override(self, expression):
        with pytest.raises(AttributeFileError):
            parse_override(expression)

    def test_invalid_override_is_value_error(self):
        with pytest.raises(ValueError):
            parse_override("no-equals-sign")


class TestAttributeFiles:
    """Unit tests for JSON attribute files."""

    def test_resolve_file_then_overrides(self, tmp_path):
        node_file = tmp_path / "node.json"
        node_file.write_text(json.dumps({
            "apache": {"port": 8080, "site_title": "Staging"},
            "site": {"var1": "from-file"},
        }))

        attrs = Attributes.resolve(str(node_file), ["apache.port=9090"])

        assert attrs.get("apache.port") == 9090
        assert attrs.get("apache.site_title") == "Staging"
        assert attrs.get("site.var1") == "from-file"
        assert attrs.get("apache.user") == "www-data"

    def test_resolve_without_inputs(self):
        assert Attributes.resolve().as_dict() == DEFAULTS

    def test_missing_file(self, tmp_path):
        with pytest.raises(AttributeFileError, match="not found"):
            Attributes().load_json(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        node_file = tmp_path / "node.json"
        node_file.write_text("{apache: }")

        with pytest.raises(AttributeFileError, match="not valid JSON"):
            Attributes().load_json(str(node_file))

    def test_json_must_be_object(self, tmp_path):
        node_file = tmp_path / "node.json"
        node_file.write_text('["apache"]')

        with pytest.raises(AttributeFileError, match="JSON object"):
            Attributes().load_json(str(node_file))
