"""
Unit tests for webcook resources.

Tests individual resource behavior in isolation against a mock transport.
"""

import logging

import pytest
from jinja2.exceptions import UndefinedError

from webcook.core import Platform, Action
from webcook.errors import GuardError, ResourceError
from webcook.resources import AptUpdate, Block, File, Group, Log, Package, Service, Template, User
from webcook.resources.apt import UPDATE_STAMP
from webcook.resources.pkg import package_manager


DPKG_QUERY = "dpkg-query -W -f=${Status}|${Version}"


class TestPackageResource:
    """Unit tests for Package resource."""

    def test_package_list_shares_one_id(self, executor):
        pkg = Package(["apache2", "lsof"])

        assert pkg.id == "pkg:apache2,lsof"
        assert pkg.packages == ["apache2", "lsof"]
        assert executor.get("pkg:apache2,lsof") is pkg

    def test_package_installs_only_missing(self, executor, transport, ubuntu):
        """Test that apply installs the packages that are not installed yet."""
        transport.respond(f"{DPKG_QUERY} apache2", ("install ok installed|2.4.58-1ubuntu8", 0))
        transport.respond(f"{DPKG_QUERY} lsof", ("", 1))

        pkg = Package(["apache2", "lsof"])
        plan = pkg.plan(ubuntu)

        assert plan.action == Action.CREATE
        assert plan.has_changes()

        pkg.apply(plan, ubuntu)
        assert "DEBIAN_FRONTEND=noninteractive apt-get install -y -q lsof" in transport.commands

    def test_package_installed_no_changes(self, executor, transport, ubuntu):
        transport.respond(DPKG_QUERY, ("install ok installed|4.95.0-1", 0))

        plan = Package(["apache2", "lsof"]).plan(ubuntu)

        assert plan.action == Action.NONE
        assert not plan.has_changes()

    def test_removed_package_with_config_left_is_missing(self, executor, transport, ubuntu):
        """A "deinstall ok config-files" entry does not count as installed."""
        transport.respond(DPKG_QUERY, ("deinstall ok config-files|2.4.58-1ubuntu8", 0))

        state = Package("apache2").check(ubuntu)

        assert state["exists"] is False
        assert state["installed"] == {"apache2": None}

    def test_pinned_version_mismatch_updates(self, executor, transport, ubuntu):
        transport.respond(DPKG_QUERY, ("install ok installed|2.4.52-1", 0))

        pkg = Package("apache2", version="2.4.58-1ubuntu8")
        plan = pkg.plan(ubuntu)

        assert plan.action == Action.UPDATE
        assert [c.field for c in plan.changes] == ["version"]

        pkg.apply(plan, ubuntu)
        assert transport.ran("DEBIAN_FRONTEND=noninteractive apt-get install -y -q apache2=2.4.58-1ubuntu8")

    def test_install_failure_raises(self, executor, transport, ubuntu):
        transport.respond(DPKG_QUERY, ("", 1))
        transport.respond("DEBIAN_FRONTEND=noninteractive apt-get install", ("E: Unable to locate package", 100))

        pkg = Package("apache2")
        plan = pkg.plan(ubuntu)

        with pytest.raises(ResourceError) as excinfo:
            pkg.apply(plan, ubuntu)
        assert "Unable to locate package" in excinfo.value.output
        assert "apt-get install" in excinfo.value.command

    def test_invalid_arguments(self, executor):
        with pytest.raises(ValueError, match="single package"):
            Package(["apache2", "lsof"], version="1.0")
        with pytest.raises(ValueError, match="Invalid ensure"):
            Package("apache2", ensure="installed")

    def test_package_manager_selection(self):
        assert package_manager(Platform("Linux", "debian", "12", "x86_64")) == "apt"
        assert package_manager(Platform("Linux", "fedora", "40", "x86_64")) == "dnf"
        assert package_manager(Platform("Darwin", "macos", "14.5", "arm64")) == "brew"

        with pytest.raises(ValueError, match="Unsupported platform"):
            package_manager(Platform("Linux", "alpine", "3.20", "x86_64"))


class TestServiceResource:
    """Unit tests for Service resource."""

    def test_service_init(self, executor):
        service = Service("apache2", running=True, enabled=True, retries=3, retry_delay=5)

        assert service.id == "svc:apache2"
        assert service.retries == 3
        assert service.retry_delay == 5
        assert service.supports == {"status": True, "restart": True, "reload": True}

    def test_systemd_enable_before_start(self, executor, transport, ubuntu):
        """Test that a stopped, disabled unit is enabled then started."""
        transport.files["/run/systemd/system"] = b""
        transport.respond("systemctl is-active --quiet apache2", ("", 3))
        transport.respond("systemctl is-enabled --quiet apache2", ("", 1))

        service = Service("apache2", running=True, enabled=True)
        plan = service.plan(ubuntu)

        assert plan.action == Action.UPDATE
        assert {c.field for c in plan.changes} == {"running", "enabled"}

        service.apply(plan, ubuntu)
        assert transport.index("systemctl enable apache2") < transport.index("systemctl start apache2")

    def test_sysv_without_systemd(self, executor, transport, ubuntu):
        """Containers without systemd fall back to the service wrapper."""
        transport.respond("service apache2 status", ("apache2 is not running", 3))
        transport.respond("ls /etc/rc[2-5].d/S*apache2", ("", 2))

        service = Service("apache2", running=True, enabled=True)
        plan = service.plan(ubuntu)
        service.apply(plan, ubuntu)

        assert "update-rc.d apache2 defaults" in transport.commands
        assert "service apache2 start" in transport.commands
        assert not transport.ran("systemctl")

    def test_running_service_no_changes(self, executor, transport, ubuntu):
        transport.files["/run/systemd/system"] = b""

        plan = Service("apache2", running=True, enabled=True).plan(ubuntu)

        assert not plan.has_changes()

    def test_reload_falls_back_to_restart(self, executor, transport, ubuntu):
        transport.files["/run/systemd/system"] = b""
        service = Service("apache2", supports={"reload": False})

        service.trigger("reload", ubuntu)

        assert transport.commands == ["systemctl restart apache2"]

    def test_control_failure_raises(self, executor, transport, ubuntu):
        transport.files["/run/systemd/system"] = b""
        transport.respond("systemctl restart apache2", ("Job for apache2.service failed", 1))

        with pytest.raises(ResourceError, match="Failed to restart service apache2"):
            Service("apache2").trigger("restart", ubuntu)

    def test_unknown_trigger_rejected(self, executor, ubuntu):
        with pytest.raises(ValueError, match="does not support notified action"):
            Service("apache2").trigger("explode", ubuntu)

    def test_restart_on_accepts_resources_and_ids(self, executor):
        site = File("/etc/apache2/sites-available/000-default.conf", content="")
        service = Service("apache2", restart_on=[site], reload_on=["file:/etc/apache2/ports.conf"])

        assert service.should_restart([site.id])
        assert service.should_reload(["file:/etc/apache2/ports.conf"])
        assert not service.should_restart(["pkg:apache2"])


class TestAccountResources:
    """Unit tests for Group and User resources."""

    def test_group_create(self, executor, transport, ubuntu):
        transport.respond("getent group www-data", ("", 2))

        group = Group("www-data", gid=33, system=True)
        plan = group.plan(ubuntu)
        assert plan.action == Action.CREATE

        group.apply(plan, ubuntu)
        assert "groupadd --system --gid 33 www-data" in transport.commands

    def test_group_present(self, executor, transport, ubuntu):
        transport.respond("getent group www-data", ("www-data:x:33:\n", 0))

        assert not Group("www-data", gid=33).plan(ubuntu).has_changes()

    def test_group_gid_mismatch(self, executor, transport, ubuntu):
        transport.respond("getent group www-data", ("www-data:x:1001:\n", 0))

        group = Group("www-data", gid=33)
        plan = group.plan(ubuntu)
        group.apply(plan, ubuntu)

        assert "groupmod --gid 33 www-data" in transport.commands

    def test_user_create(self, executor, transport, ubuntu):
        transport.respond("getent passwd www-data", ("", 2))
        transport.respond("getent group www-data", ("www-data:x:33:\n", 0))

        user = User("www-data", uid=33, gid="www-data", home="/var/www",
                    shell="/usr/sbin/nologin", system=True)
        plan = user.plan(ubuntu)
        assert plan.action == Action.CREATE

        user.apply(plan, ubuntu)
        assert (
            "useradd --system --no-create-home --uid 33 --gid www-data "
            "--home-dir /var/www --shell /usr/sbin/nologin www-data"
        ) in transport.commands

    def test_user_present_group_by_name(self, executor, transport, ubuntu):
        """A gid given as a group name matches the numeric gid in passwd."""
        transport.respond("getent passwd www-data", ("www-data:x:33:33:www-data:/var/www:/usr/sbin/nologin\n", 0))
        transport.respond("getent group www-data", ("www-data:x:33:\n", 0))

        user = User("www-data", uid=33, gid="www-data", home="/var/www", shell="/usr/sbin/nologin")

        assert not user.plan(ubuntu).has_changes()

    def test_user_modify_changed_fields_only(self, executor, transport, ubuntu):
        transport.respond("getent passwd www-data", ("www-data:x:33:33:www-data:/var/www:/bin/sh\n", 0))
        transport.respond("getent group www-data", ("www-data:x:33:\n", 0))

        user = User("www-data", uid=33, gid="www-data", home="/var/www", shell="/usr/sbin/nologin")
        plan = user.plan(ubuntu)
        assert [c.field for c in plan.changes] == ["shell"]

        user.apply(plan, ubuntu)
        assert transport.commands[-1] == "usermod --shell /usr/sbin/nologin www-data"

    def test_user_create_failure(self, executor, transport, ubuntu):
        transport.respond("getent passwd", ("", 2))
        transport.respond("useradd", ("useradd: UID 33 is not unique", 4))

        user = User("www-data", uid=33)
        with pytest.raises(ResourceError, match="Failed to create user www-data"):
            user.apply(user.plan(ubuntu), ubuntu)


class TestAptUpdateResource:
    """Unit tests for AptUpdate resource."""

    def test_never_updated_is_stale(self, executor, transport, ubuntu):
        apt = AptUpdate("update", frequency=86400)
        plan = apt.plan(ubuntu)

        assert apt.id == "apt_update:update"
        assert plan.action == Action.UPDATE
        assert [c.field for c in plan.changes] == ["stale"]

        apt.apply(plan, ubuntu)
        assert "DEBIAN_FRONTEND=noninteractive apt-get update -q" in transport.commands
        assert f"touch {UPDATE_STAMP}" in transport.commands

    def test_fresh_index_skipped(self, executor, transport, ubuntu):
        transport.files[UPDATE_STAMP] = b""
        transport.respond("stat -c %Y", ("1700000000", 0))
        transport.respond("date +%s", ("1700003600", 0))

        apt = AptUpdate("update", frequency=86400)

        assert apt.index_age() == 3600
        assert not apt.plan(ubuntu).has_changes()

    def test_old_index_is_stale(self, executor, transport, ubuntu):
        transport.files[UPDATE_STAMP] = b""
        transport.respond("stat -c %Y", ("1700000000", 0))
        transport.respond("date +%s", ("1700090000", 0))

        assert AptUpdate("update", frequency=86400).plan(ubuntu).has_changes()

    def test_non_apt_platform_untouched(self, executor, transport):
        fedora = Platform("Linux", "fedora", "40", "x86_64")

        assert not AptUpdate("update").plan(fedora).has_changes()
        assert transport.commands == []

    def test_update_failure_raises(self, executor, transport, ubuntu):
        transport.respond("DEBIAN_FRONTEND=noninteractive apt-get update", ("Temporary failure resolving", 100))

        apt = AptUpdate("update")
        with pytest.raises(ResourceError, match="apt-get update failed"):
            apt.apply(apt.plan(ubuntu), ubuntu)


class TestBlockAndLog:
    """Unit tests for Block and Log resources."""

    def test_block_runs_with_transport_and_platform(self, executor, transport, ubuntu):
        calls = []
        block = Block("check_port", block=lambda t, p: calls.append((t, p)))

        plan = block.plan(ubuntu)
        assert plan.action == Action.UPDATE
        assert plan.has_changes()

        block.apply(plan, ubuntu)
        assert calls == [(transport, ubuntu)]

    def test_block_nothing_waits_for_notification(self, executor, ubuntu):
        calls = []
        block = Block("verify", block=lambda t, p: calls.append("ran"), action="nothing")

        plan = block.plan(ubuntu)
        assert not plan.has_changes()
        assert plan.reason == "runs only when notified"

        block.trigger("run", ubuntu)
        assert calls == ["ran"]

    def test_block_invalid_action(self, executor):
        with pytest.raises(ValueError, match="Invalid action"):
            Block("broken", block=lambda t, p: None, action="later")

    def test_log_writes_message(self, executor, ubuntu, caplog):
        log = Log("apache_success", message="Apache has been successfully installed and configured!")

        plan = log.plan(ubuntu)
        assert plan.has_changes()

        with caplog.at_level(logging.INFO):
            log.apply(plan, ubuntu)
        assert "Apache has been successfully installed and configured!" in caplog.text

    def test_log_defaults_to_name(self, executor):
        assert Log("hello").message == "hello"
        assert Log("hello", message=None).message == "hello"

    def test_log_invalid_level(self, executor):
        with pytest.raises(ValueError, match="Invalid log level"):
            Log("apache_success", level="loud")


class TestGuards:
    """Unit tests for only_if / not_if guards."""

    def test_only_if_shell_guard_skips(self, executor, transport, ubuntu):
        transport.respond("test -x /usr/sbin/apache2", ("", 1))

        block = Block("fix_config", block=lambda t, p: None, only_if="test -x /usr/sbin/apache2")
        plan = block.plan(ubuntu)

        assert plan.skipped
        assert not plan.has_changes()
        assert plan.reason == "only_if guard not satisfied"

    def test_not_if_callable_guard_skips(self, executor, ubuntu):
        block = Block("fix_config", block=lambda t, p: None, not_if=lambda t: True)
        plan = block.plan(ubuntu)

        assert plan.skipped
        assert plan.reason == "not_if guard satisfied"

    def test_guard_receives_transport(self, executor, transport, ubuntu):
        seen = []
        block = Block("fix_config", block=lambda t, p: None, only_if=lambda t: seen.append(t) or True)

        assert block.plan(ubuntu).has_changes()
        assert seen == [transport]

    def test_raising_guard_is_guard_error(self, executor, ubuntu):
        def broken(transport):
            raise OSError("boom")

        block = Block("fix_config", block=lambda t, p: None, only_if=broken)
        with pytest.raises(GuardError, match="only_if guard raised"):
            block.plan(ubuntu)


class TestFileResource:
    """Unit tests for File and Template resources on a mock host."""

    INDEX = "/var/www/html/index.html"

    def test_file_create(self, executor, transport, ubuntu):
        file_res = File(self.INDEX, content="<h1>hi</h1>\n", owner="www-data", group="www-data", mode=0o644)
        plan = file_res.plan(ubuntu)

        assert plan.action == Action.CREATE
        assert any(c.field == "content" for c in plan.changes)

        file_res.apply(plan, ubuntu)
        assert transport.files[self.INDEX] == b"<h1>hi</h1>\n"
        assert "mkdir -p /var/www/html" in transport.commands
        assert f"chown www-data:www-data {self.INDEX}" in transport.commands
        assert f"chmod 644 {self.INDEX}" in transport.commands

    def test_file_matching_no_changes(self, executor, transport, ubuntu):
        transport.files[self.INDEX] = b"<h1>hi</h1>\n"
        transport.respond("stat -c", ("regular file|644|www-data|www-data", 0))

        file_res = File(self.INDEX, content="<h1>hi</h1>\n", owner="www-data", group="www-data", mode=0o644)

        assert not file_res.plan(ubuntu).has_changes()

    def test_file_mode_only_change(self, executor, transport, ubuntu):
        transport.files[self.INDEX] = b"<h1>hi</h1>\n"
        transport.respond("stat -c", ("regular file|600|root|root", 0))

        file_res = File(self.INDEX, content="<h1>hi</h1>\n", mode=0o644)
        plan = file_res.plan(ubuntu)
        assert [c.field for c in plan.changes] == ["mode"]

        file_res.apply(plan, ubuntu)
        assert transport.commands[-1] == f"chmod 644 {self.INDEX}"

    def test_content_sources_are_exclusive(self, executor):
        with pytest.raises(ValueError, match="mutually exclusive"):
            File(self.INDEX, content="a", template="index.html.j2")

    def test_template_renders_packaged_template(self, executor):
        template = Template(
            self.INDEX,
            source="index.html.j2",
            package="webcook.recipes",
            vars={
                "title": "It works!",
                "message": "Hello <world>",
                "server_name": "localhost",
                "server_admin": "webmaster@localhost",
                "platform": "ubuntu",
                "platform_version": "24.04",
                "var1": "blue",
                "var2": "",
            },
        )
        html = template.render()

        assert template.id == f"template:{self.INDEX}"
        assert "<title>It works!</title>" in html
        assert "Hello &lt;world&gt;" in html
        assert "var1: blue" in html
        assert "var2:" not in html
        assert "Administrator: webmaster@localhost" in html

    def test_template_missing_variable(self, executor):
        template = Template(self.INDEX, source="index.html.j2", package="webcook.recipes", vars={})

        with pytest.raises(UndefinedError):
            template.render()
