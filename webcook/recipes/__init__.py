"""
Recipe registry.

A recipe is a function taking a Node and declaring resources; the resources
register themselves with the current executor.
"""

from typing import Callable, Dict, List

from webcook.core.node import Node
from webcook.errors import UnknownRecipeError
from webcook.recipes import apache

Recipe = Callable[[Node], None]

RECIPES: Dict[str, Recipe] = {
    "apache": apache.recipe,
}

DEFAULT_RECIPE = "apache"


def get_recipe(name: str) -> Recipe:
    try:
        return RECIPES[name]
    except KeyError:
        raise UnknownRecipeError(
            f"Unknown recipe {name!r}; available: {', '.join(list_recipes())}"
        ) from None


def list_recipes() -> List[str]:
    return sorted(RECIPES)


__all__ = ["Recipe", "RECIPES", "DEFAULT_RECIPE", "get_recipe", "list_recipes"]
