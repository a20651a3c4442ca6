"""
webcook CLI - plan and apply provisioning recipes.

Commands:
    webcook plan [RECIPE]        - Show what would change
    webcook apply [RECIPE]       - Converge the host
    webcook attributes           - Show resolved attributes
    webcook recipes              - List available recipes
    webcook platform-info        - Show detected platform
    webcook version              - Show version
"""

import json
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import click

from webcook.attributes import Attributes
from webcook.core.executor import Executor, use_executor, reset_executor
from webcook.core.node import Node
from webcook.core.resource import Action, Platform
from webcook.errors import WebcookError
from webcook.logging import setup_logging
from webcook.recipes import DEFAULT_RECIPE, get_recipe, list_recipes
from webcook.transport import LocalTransport, Transport


@click.group(invoke_without_command=True)
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log verbosity")
@click.pass_context
def cli(ctx, log_level: str):
    """webcook - provision an Apache web server with Python recipes."""
    setup_logging(log_level)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


ATTRIBUTE_OPTIONS = [
    click.option("--attributes", "-j", "attributes_file", type=click.Path(exists=True, dir_okay=False),
                 help="JSON file with attribute overrides"),
    click.option("--set", "overrides", multiple=True, metavar="KEY=VALUE",
                 help="Override one attribute, e.g. --set apache.port=8080 (repeatable)"),
]

TARGET_OPTIONS = [
    click.argument("recipe", default=DEFAULT_RECIPE),
    click.option("--host", help="Remote host for SSH"),
    click.option("--user", help="SSH username"),
    click.option("--key", help="SSH private key file"),
    click.option("--port", default=22, show_default=True, help="SSH port"),
    click.option("--sudo", is_flag=True, help="Use sudo for remote commands"),
] + ATTRIBUTE_OPTIONS


def attribute_options(func):
    """Options that override attributes."""
    for option in reversed(ATTRIBUTE_OPTIONS):
        func = option(func)
    return func


def target_options(func):
    """Options shared by commands that converge or inspect a host."""
    for option in reversed(TARGET_OPTIONS):
        func = option(func)
    return func


def _fail(message: str) -> None:
    click.secho(message, fg="red")
    sys.exit(1)


@contextmanager
def _connect(host: Optional[str], user: Optional[str], key: Optional[str],
             port: int, sudo: bool) -> Iterator[Transport]:
    """Open the transport for the target host."""
    if not host:
        with LocalTransport() as transport:
            yield transport
        return

    from webcook.transport.ssh import SSHTransport

    click.echo(f"Connecting to {user or 'current user'}@{host}:{port}...")
    try:
        transport = SSHTransport(host=host, port=port, user=user, key_file=key, sudo=sudo)
    except Exception as e:
        _fail(f"SSH connection failed: {e}")

    with transport:
        yield transport


def _load_recipe(recipe_name: str, transport: Transport, attributes_file: Optional[str],
                 overrides: Tuple[str, ...]) -> Executor:
    """Resolve attributes and declare the recipe's resources on a fresh executor."""
    try:
        attributes = Attributes.resolve(attributes_file, overrides)
        recipe = get_recipe(recipe_name)
        executor = use_executor(Executor(transport=transport))
        recipe(Node(transport=transport, platform=executor.platform, attributes=attributes))
    except WebcookError as e:
        _fail(f"Error loading recipe: {e}")
    except Exception as e:
        _fail(f"Error loading recipe {recipe_name}: {e}")
    return executor


@cli.command()
@target_options
def plan(recipe: str, host: Optional[str], user: Optional[str], key: Optional[str],
         port: int, sudo: bool, attributes_file: Optional[str], overrides: Tuple[str, ...]):
    """
    Show what would change without applying.

    Example:
        webcook plan
        webcook plan apache --set apache.port=8080
        webcook plan apache --host web01.example.com --user admin --sudo
    """
    reset_executor()
    click.echo(f"Planning {recipe}{' on ' + host if host else ''}...\n")

    with _connect(host, user, key, port, sudo) as transport:
        executor = _load_recipe(recipe, transport, attributes_file, overrides)
        plan_result = executor.plan()

    if plan_result.has_errors:
        click.secho("Errors during planning:", fg="red")
        for error in plan_result.errors:
            click.secho(f"  ! {error}", fg="red")
        click.echo()

    if not plan_result.has_changes:
        click.secho("No changes needed.", fg="green")
        return

    click.echo("webcook will perform the following actions:\n")
    for resource_id, resource_plan in plan_result.plans.items():
        if resource_plan.has_changes():
            _display_plan(resource_id, resource_plan)

    click.echo(f"\nPlan: {plan_result.change_count} to change")
    click.echo(f"\nRun 'webcook apply {recipe}' to apply these changes.")


@cli.command()
@target_options
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def apply(recipe: str, host: Optional[str], user: Optional[str], key: Optional[str],
          port: int, sudo: bool, attributes_file: Optional[str], overrides: Tuple[str, ...],
          yes: bool):
    """
    Converge the host to the recipe.

    Example:
        webcook apply --yes
        webcook apply apache -j node.json
        webcook apply apache --host web01.example.com --user admin --sudo
    """
    reset_executor()
    click.echo(f"Planning {recipe}{' on ' + host if host else ''}...\n")

    with _connect(host, user, key, port, sudo) as transport:
        executor = _load_recipe(recipe, transport, attributes_file, overrides)
        plan_result = executor.plan()

        if not plan_result.has_changes and not plan_result.has_errors:
            click.secho("No changes needed.", fg="green")
            return

        click.echo(f"Applying up to {plan_result.change_count} changes...\n")
        if not yes and not click.confirm("Proceed with apply?"):
            click.echo("Aborted.")
            return

        apply_result = executor.apply(plan_result)

    click.echo()
    for resource_id in apply_result.changed_resources:
        resource_plan = apply_result.plans.get(resource_id)
        if resource_plan:
            click.echo(f"  {_action_symbol(resource_plan.action)} {resource_id} ... ", nl=False)
            click.secho("✓ Done", fg="green")
    for notification in apply_result.notifications:
        click.echo(f"  ↻ {notification}")

    if apply_result.errors:
        click.secho("\nErrors during apply:", fg="red")
        for error in apply_result.errors:
            click.secho(f"  ! {error}", fg="red")
        sys.exit(1)

    click.secho(f"\nApply complete! ({apply_result.duration:.2f}s)", fg="green")


@cli.command()
@attribute_options
def attributes(attributes_file: Optional[str], overrides: Tuple[str, ...]):
    """Show attributes after defaults, file and --set overrides are applied."""
    try:
        resolved = Attributes.resolve(attributes_file, overrides)
    except WebcookError as e:
        _fail(str(e))
    click.echo(json.dumps(resolved.as_dict(), indent=2, sort_keys=True))


@cli.command()
def recipes():
    """List available recipes."""
    for name in list_recipes():
        marker = " (default)" if name == DEFAULT_RECIPE else ""
        click.echo(f"{name}{marker}")


@cli.command()
def version():
    """Show webcook version."""
    from webcook import __version__
    click.echo(f"webcook version {__version__}")


@cli.command()
def platform_info():
    """Show detected platform information."""
    plat = Platform.detect()
    click.echo("Platform Information:")
    click.echo(f"  System:  {plat.system}")
    click.echo(f"  Distro:  {plat.distro}")
    click.echo(f"  Version: {plat.version}")
    click.echo(f"  Arch:    {plat.arch}")


def _display_plan(resource_id: str, plan) -> None:
    click.echo(f"  {_action_symbol(plan.action)} {resource_id}")

    if plan.reason:
        click.echo(f"      reason: {plan.reason}")
    for change in plan.changes:
        click.echo(f"      {change.field}: {_short(change.from_value)} → {_short(change.to_value)}")

    click.echo()


def _short(value, limit: int = 60) -> str:
    text = repr(value) if isinstance(value, str) else str(value)
    return text if len(text) <= limit else text[:limit - 3] + "..."


def _action_symbol(action: Action) -> str:
    if action == Action.CREATE:
        return click.style("+", fg="green")
    elif action == Action.UPDATE:
        return click.style("~", fg="yellow")
    elif action == Action.DELETE:
        return click.style("-", fg="red")
    return " "


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
