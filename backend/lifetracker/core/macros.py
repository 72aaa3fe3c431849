"""Macro Calculations - Pure functions for nutrition math.

All functions are pure: same input always produces same output, no side effects.
"""

from .models import MealEntry


MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")


def calculate_daily_totals(meals: list[MealEntry]) -> tuple[int, float, float, float]:
    """Calculate total macros from a list of meal entries.

    Args:
        meals: Meal entries for a day

    Returns:
        Tuple of (calories, protein, carbs, fat)
    """
    total_calories = sum(m.calories for m in meals)
    total_protein = sum(m.protein for m in meals)
    total_carbs = sum(m.carbs for m in meals)
    total_fat = sum(m.fat for m in meals)

    return total_calories, total_protein, total_carbs, total_fat


def calories_by_meal_type(meals: list[MealEntry]) -> dict[str, int]:
    """Sum calories per meal type. Every meal type is present, zero if unused."""
    totals = {meal_type: 0 for meal_type in MEAL_TYPES}
    for meal in meals:
        totals[meal.meal_type] += meal.calories
    return totals


def calculate_calories_from_macros(protein: float, carbs: float, fat: float) -> int:
    """Calculate calories from macronutrients.

    Uses standard conversion: 4 cal/g protein, 4 cal/g carbs, 9 cal/g fat.

    Args:
        protein: Grams of protein
        carbs: Grams of carbohydrates
        fat: Grams of fat

    Returns:
        Estimated calories (rounded to nearest integer)
    """
    return round(protein * 4 + carbs * 4 + fat * 9)
