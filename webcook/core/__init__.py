"""
Core webcook functionality.

Exports core abstractions and base classes.
"""

from webcook.core.resource import Resource, Plan, Action, Change, Platform, Notify, Timing
from webcook.core.node import Node

__all__ = ["Resource", "Plan", "Action", "Change", "Platform", "Notify", "Timing", "Node"]
