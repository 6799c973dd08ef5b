from src.recipes.loader import Recipe, load_recipe, parse_recipe, parse_step, step_kinds

__all__ = [
    "Recipe",
    "load_recipe",
    "parse_recipe",
    "parse_step",
    "step_kinds",
]
