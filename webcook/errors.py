"""
Exceptions raised by webcook.

Resources raise ResourceError from apply(); the executor records it and
moves on to the next resource.
"""

from typing import Optional


class WebcookError(Exception):
    """Base class for all webcook errors."""


class ResourceError(WebcookError, RuntimeError):
    """A resource failed to converge."""

    def __init__(self, message: str, command: Optional[str] = None, output: str = ""):
        self.command = command
        self.output = output.strip() if output else ""

        details = message
        if command:
            details += f"\nCommand: {command}"
        if self.output:
            details += f"\nOutput: {self.output}"
        super().__init__(details)


class GuardError(WebcookError):
    """An only_if/not_if guard raised instead of answering."""


class AttributeFileError(WebcookError, ValueError):
    """Attribute overrides could not be loaded or parsed."""


class UnknownRecipeError(WebcookError, KeyError):
    """No recipe registered under the requested name."""

    def __str__(self):
        return self.args[0] if self.args else "unknown recipe"


class ApacheCheckError(WebcookError, RuntimeError):
    """The Apache repair checks hit a problem they cannot work around."""
