"""
Logging for webcook.

Example:
    from webcook.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Converging apache")
    logger.warning("Port 80 is already in use")
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

WEBCOOK_THEME = Theme({
    "log.time": "dim cyan",
    "log.level.debug": "dim blue",
    "log.level.info": "green",
    "log.level.warning": "yellow",
    "log.level.error": "bold red",
    "log.level.critical": "bold white on red",
    "webcook.success": "bold green",
    "webcook.failure": "bold red",
    "webcook.action.create": "green",
    "webcook.action.update": "yellow",
    "webcook.action.delete": "red",
    "webcook.action.notify": "magenta",
    "webcook.banner": "bold cyan",
    "webcook.step": "cyan",
})

# Global console instance
console = Console(theme=WEBCOOK_THEME, stderr=True)

_initialized = False


def setup_logging(
    level: str = "INFO",
    show_time: bool = True,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> None:
    """
    Initialise webcook's logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        show_time: Show timestamps in log output
        show_path: Show file path in log output
        rich_tracebacks: Use rich formatting for tracebacks

    Note:
        Only the first call installs the handler; later calls just adjust
        the root level.
    """
    global _initialized

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if _initialized:
        logging.getLogger().setLevel(numeric_level)
        return

    handler = RichHandler(
        console=console,
        show_time=show_time,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logging.basicConfig(
        level=numeric_level,
        handlers=[handler],
        force=True,
    )

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a standard logger, initialising logging on first use."""
    if not _initialized:
        setup_logging()

    return logging.getLogger(name)


class WebcookLogger:
    """
    Logger wrapper with helpers for provisioning output.

    Plain messages go through the standard logging tree so that pytest's
    caplog and any configured handler see them; decorated output (banners,
    action markers) is printed straight to the themed console.
    """

    def __init__(self, name: str):
        self.logger = get_logger(name)
        self.console = console

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(message, *args, **kwargs)

    def critical(self, message: str, *args, **kwargs) -> None:
        self.logger.critical(message, *args, **kwargs)

    def log(self, level: int, message: str, *args, **kwargs) -> None:
        self.logger.log(level, message, *args, **kwargs)

    def success(self, message: str) -> None:
        """Log a check that passed."""
        self.logger.info("✓ %s", message)

    def failure(self, message: str) -> None:
        """Log a check that failed but does not stop the run."""
        self.logger.warning("✗ %s", message)

    def step(self, title: str) -> None:
        """Print a section header for a group of diagnostics."""
        self.console.print(f"[webcook.step]=== {escape(title)} ===[/webcook.step]")

    def banner(self, *lines: str) -> None:
        """Log lines framed by separator rules."""
        separator = "=" * 37
        self.logger.info(separator)
        for line in lines:
            self.logger.info(line)
        self.logger.info(separator)

    def action(self, action: str, resource_id: str, details: Optional[str] = None) -> None:
        """
        Print a resource action marker (create/update/delete/notify).

        Args:
            action: Action type
            resource_id: Resource identifier
            details: Optional details about the action
        """
        symbols = {
            "create": "+",
            "update": "~",
            "delete": "-",
            "notify": "↻",
        }
        symbol = symbols.get(action.lower(), "•")
        style = f"webcook.action.{action.lower()}" if action.lower() in symbols else "dim"

        msg = f"[{style}]{symbol}[/{style}] {escape(resource_id)}"
        if details:
            msg += f" [dim]({escape(details)})[/dim]"

        self.console.print(msg)


def get_webcook_logger(name: str) -> WebcookLogger:
    """
    Get a WebcookLogger for the given module.

    Example:
        logger = get_webcook_logger(__name__)
        logger.success("www-data user exists")
        logger.action("create", "file:/var/www/html/index.html")
    """
    return WebcookLogger(name)
