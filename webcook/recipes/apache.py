"""
Apache recipe - install Apache, serve a rendered index page, verify it runs.

Steps, in order:
    apt index refresh (daily)
    www-data group and user
    apache2 + lsof packages (verification runs right after an install)
    free the HTTP port, repair the config        (only once the binary exists)
    enable + start the service (3 retries, 5s apart)
    render index.html (restart at the end of the run, except in containers)
    make sure Apache is running, whatever it takes
    log completion and show where to reach the site
"""

import posixpath
from typing import Any, Callable, List, Optional

from webcook.core.node import Node
from webcook.core.resource import Notify, Timing
from webcook.recipes.apache_checks import ApacheChecks
from webcook.resources import AptUpdate, Block, Group, Log, Package, Service, Template, User


def package_list(value: Any) -> List[str]:
    """Package names from a list, or from a comma-separated string as --set gives it."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(name).strip() for name in value if str(name).strip()]


def recipe(node: Node, checks: Optional[ApacheChecks] = None) -> None:
    """Declare the apache resources for node."""
    apache = node["apache"]
    checks = checks or ApacheChecks(node)
    binary_installed: Callable = lambda transport: checks.binary_installed()

    AptUpdate("update", frequency=node.attr("apt.update_frequency", 86400))

    Group(apache["group"], gid=apache["gid"], system=True)
    User(
        apache["user"],
        uid=apache["uid"],
        gid=apache["group"],
        home=apache["home"],
        shell=apache["shell"],
        system=True,
    )

    verify = Block(
        "verify_apache_install",
        block=lambda transport, platform: checks.verify_install(),
        action="nothing",
    )
    Package(
        [apache["package_name"]] + package_list(apache.get("extra_packages")),
        notifies=[Notify("run", verify, Timing.IMMEDIATELY)],
    )

    Block(
        "check_port",
        block=lambda transport, platform: checks.free_port(),
        only_if=binary_installed,
    )
    Block(
        "fix_apache_config",
        block=lambda transport, platform: checks.repair_config(),
        only_if=binary_installed,
    )

    service = Service(
        apache["service_name"],
        running=True,
        enabled=True,
        supports={"status": True, "restart": True, "reload": True},
        retries=3,
        retry_delay=5,
    )

    # A restart inside a container would kill the foreground process
    restart = [] if node.in_container() else [Notify("restart", service, Timing.DELAYED)]
    Template(
        posixpath.join(apache["document_root"], "index.html"),
        source="index.html.j2",
        package="webcook.recipes",
        owner=apache["user"],
        group=apache["group"],
        mode=0o644,
        vars={
            "title": apache["site_title"],
            "message": apache["site_message"],
            "server_name": apache["server_name"],
            "server_admin": apache["server_admin"],
            "platform": node.platform.distro,
            "platform_version": node.platform.version,
            "var1": node.attr("site.var1", ""),
            "var2": node.attr("site.var2", ""),
        },
        notifies=restart,
    )

    Block("ensure_apache_running", block=lambda transport, platform: checks.ensure_running())

    Log("apache_success", message="Apache has been successfully installed and configured!", level="info")

    Block("display_access_info", block=lambda transport, platform: checks.display_access_info())
