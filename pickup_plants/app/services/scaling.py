from typing import Iterable, List

from pickup_plants.app.schemas.recipe import Ingredient, ScaledIngredient


def adjust_amount(amount: float, base_servings: int, target_servings: int) -> float:
    """Scale an ingredient amount linearly from base_servings to target_servings."""
    if base_servings < 1:
        raise ValueError("base_servings must be at least 1")
    if target_servings < 1:
        raise ValueError("target_servings must be at least 1")
    return round(amount * target_servings / base_servings, 2)


def scale_ingredients(
    ingredients: Iterable[Ingredient], base_servings: int, target_servings: int
) -> List[ScaledIngredient]:
    return [
        ScaledIngredient(
            name=ingredient.name,
            amount=adjust_amount(ingredient.amount, base_servings, target_servings),
            base_amount=ingredient.amount,
            unit=ingredient.unit,
            notes=ingredient.notes,
            is_optional=ingredient.is_optional,
        )
        for ingredient in ingredients
    ]


def step_servings(current: int, delta: int) -> int:
    """Servings stepper used by the detail page; never drops below one."""
    return max(1, current + delta)
