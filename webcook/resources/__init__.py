"""
Resources a recipe is written with.
"""

from webcook.resources.account import Group, User
from webcook.resources.apt import AptUpdate
from webcook.resources.block import Block, Log
from webcook.resources.file import File, Template
from webcook.resources.pkg import Package
from webcook.resources.service import Service

__all__ = ["AptUpdate", "Block", "File", "Group", "Log", "Package", "Service", "Template", "User"]
