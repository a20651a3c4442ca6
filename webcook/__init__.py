__version__ = "0.1.0"

from webcook.core import Resource, Plan, Action, Notify, Node
from webcook.resources.file import File, Template
from webcook.resources.pkg import Package
from webcook.resources.service import Service
from webcook.resources.account import Group, User
from webcook.resources.apt import AptUpdate
from webcook.resources.block import Block, Log
from webcook.attributes import Attributes
from webcook.logging import get_logger, get_webcook_logger, setup_logging

"""
Foundations of webcook recipes:
    Resource is a unit of configuration that represents a desired state of a system.
    Plan is what a resource would change to reach its desired state.
    Action is the kind of change a plan performs.
    Notify asks another resource to act once this one changes.
    Node carries the attributes, platform and transport a recipe runs against.
    File and Template describe the desired state of a file.
    Package describes the desired state of one or more system packages.
    Service describes the desired state of a system service.
    Group and User describe system accounts.
    AptUpdate keeps the apt package index fresh.
    Block runs Python code as a step; Log writes a message as a step.
"""

__all__ = [
    "Resource",
    "Plan",
    "Action",
    "Notify",
    "Node",
    "File",
    "Template",
    "Package",
    "Service",
    "Group",
    "User",
    "AptUpdate",
    "Block",
    "Log",
    "Attributes",
    "get_logger",
    "get_webcook_logger",
    "setup_logging",
]
