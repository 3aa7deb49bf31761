"""
Expected response shapes for the FatSecret endpoints.

Repeating fields are declared with repeated(), which accepts a missing or
null field, a single bare object or an array, and always yields a list.
Wrapper objects that FatSecret omits (or sends as null) when a user has no
records are declared with optional_container().

Fields FatSecret adds that are not listed here are kept as-is, except in
the OAuth token replies, which must contain nothing else.
"""
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from validator import normalize_to_list


def repeated(item_type):
    """Annotation for a field that may hold one item, several or none."""
    return Annotated[
        List[item_type],
        BeforeValidator(normalize_to_list),
        Field(default_factory=list),
    ]


def _none_as_empty(value):
    return {} if value is None else value


def optional_container(model):
    """Annotation for a wrapper object that may be missing or null."""
    return Annotated[
        model,
        BeforeValidator(_none_as_empty),
        Field(default_factory=model),
    ]


class ResponseModel(BaseModel):
    model_config = ConfigDict(extra='allow')


class ValueResult(ResponseModel):
    value: str


# OAuth

class OAuthTokenResponse(BaseModel):
    model_config = ConfigDict(extra='forbid')

    oauth_token: str
    oauth_token_secret: str
    oauth_callback_confirmed: Optional[str] = None


class AccessTokenResponse(BaseModel):
    model_config = ConfigDict(extra='forbid')

    oauth_token: str
    oauth_token_secret: str
    user_id: Optional[str] = None


# Foods

class FoodItem(ResponseModel):
    food_id: str
    food_name: str
    food_type: str
    food_description: str
    brand_name: Optional[str] = None
    food_url: Optional[str] = None


class Serving(ResponseModel):
    serving_id: str
    serving_description: str
    metric_serving_amount: Optional[str] = None
    metric_serving_unit: Optional[str] = None
    number_of_units: Optional[str] = None
    measurement_description: Optional[str] = None
    calories: str
    fat: str
    carbohydrate: str
    protein: str
    saturated_fat: Optional[str] = None
    polyunsaturated_fat: Optional[str] = None
    monounsaturated_fat: Optional[str] = None
    trans_fat: Optional[str] = None
    cholesterol: Optional[str] = None
    sodium: Optional[str] = None
    potassium: Optional[str] = None
    fiber: Optional[str] = None
    sugar: Optional[str] = None
    vitamin_a: Optional[str] = None
    vitamin_c: Optional[str] = None
    calcium: Optional[str] = None
    iron: Optional[str] = None


class FoodSearchResults(ResponseModel):
    food: repeated(FoodItem)
    max_results: str
    page_number: str
    total_results: str


class FoodSearchResponse(ResponseModel):
    foods: FoodSearchResults


class Servings(ResponseModel):
    serving: repeated(Serving)


class FoodDetail(ResponseModel):
    food_id: str
    food_name: str
    food_type: str
    food_url: Optional[str] = None
    brand_name: Optional[str] = None
    servings: Servings


class FoodDetailResponse(ResponseModel):
    food: FoodDetail


# Recipes

class RecipeNutrition(ResponseModel):
    calories: Optional[str] = None
    fat: Optional[str] = None
    carbohydrate: Optional[str] = None
    protein: Optional[str] = None
    saturated_fat: Optional[str] = None
    polyunsaturated_fat: Optional[str] = None
    monounsaturated_fat: Optional[str] = None
    cholesterol: Optional[str] = None
    sodium: Optional[str] = None
    potassium: Optional[str] = None
    fiber: Optional[str] = None
    sugar: Optional[str] = None


class RecipeIngredientNames(ResponseModel):
    ingredient: repeated(str)


class RecipeTypes(ResponseModel):
    recipe_type: repeated(str)


class RecipeItem(ResponseModel):
    recipe_id: str
    recipe_name: str
    recipe_description: str
    recipe_image: Optional[str] = None
    recipe_url: Optional[str] = None
    recipe_nutrition: Optional[RecipeNutrition] = None
    recipe_ingredients: Optional[RecipeIngredientNames] = None
    recipe_types: Optional[RecipeTypes] = None


class RecipeSearchResults(ResponseModel):
    recipe: repeated(RecipeItem)
    max_results: str
    page_number: str
    total_results: str


class RecipeSearchResponse(ResponseModel):
    recipes: RecipeSearchResults


class Ingredient(ResponseModel):
    food_id: str
    food_name: str
    number_of_units: str
    ingredient_description: Optional[str] = None
    ingredient_url: Optional[str] = None
    measurement_description: Optional[str] = None
    serving_id: Optional[str] = None


class Ingredients(ResponseModel):
    ingredient: repeated(Ingredient)


class Direction(ResponseModel):
    direction_number: str
    direction_description: str


class Directions(ResponseModel):
    direction: repeated(Direction)


class ServingSizes(ResponseModel):
    serving: RecipeNutrition


class RecipeDetail(ResponseModel):
    recipe_id: str
    recipe_name: str
    recipe_description: str
    recipe_url: Optional[str] = None
    recipe_image: Optional[str] = None
    number_of_servings: Optional[str] = None
    preparation_time_min: Optional[str] = None
    cooking_time_min: Optional[str] = None
    rating: Optional[str] = None
    recipe_types: Optional[RecipeTypes] = None
    ingredients: Optional[Ingredients] = None
    directions: Optional[Directions] = None
    serving_sizes: Optional[ServingSizes] = None


class RecipeDetailResponse(ResponseModel):
    recipe: RecipeDetail


# Profile

class Profile(ResponseModel):
    user_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    height_measure: Optional[str] = None
    weight_measure: Optional[str] = None
    last_weight_kg: Optional[str] = None
    last_weight_date_int: Optional[str] = None
    goal_weight_kg: Optional[str] = None


class ProfileResponse(ResponseModel):
    profile: Profile


# Food diary

class FoodEntry(ResponseModel):
    food_entry_id: str
    food_id: str
    food_entry_name: str
    serving_id: str
    number_of_units: str
    meal: str
    date_int: str
    calories: Optional[str] = None
    carbohydrate: Optional[str] = None
    protein: Optional[str] = None
    fat: Optional[str] = None
    saturated_fat: Optional[str] = None
    polyunsaturated_fat: Optional[str] = None
    monounsaturated_fat: Optional[str] = None
    cholesterol: Optional[str] = None
    sodium: Optional[str] = None
    potassium: Optional[str] = None
    fiber: Optional[str] = None
    sugar: Optional[str] = None


class FoodEntries(ResponseModel):
    food_entry: repeated(FoodEntry)


class FoodEntriesResponse(ResponseModel):
    food_entries: optional_container(FoodEntries)


class FoodEntryCreateResponse(ResponseModel):
    food_entry_id: ValueResult


class DaySummary(ResponseModel):
    date_int: str
    calories: Optional[str] = None
    carbohydrate: Optional[str] = None
    protein: Optional[str] = None
    fat: Optional[str] = None


class MonthSummary(ResponseModel):
    day: repeated(DaySummary)
    from_date_int: Optional[str] = None
    to_date_int: Optional[str] = None


class FoodEntriesMonthResponse(ResponseModel):
    month: MonthSummary


# Weight

class WeightEntry(ResponseModel):
    date_int: str
    weight_kg: Optional[str] = None
    weight_lbs: Optional[str] = None
    weight_comment: Optional[str] = None


class WeightMonth(ResponseModel):
    day: repeated(WeightEntry)
    from_date_int: Optional[str] = None
    to_date_int: Optional[str] = None


class WeightMonthResponse(ResponseModel):
    month: WeightMonth


# Saved meals

class SavedMeal(ResponseModel):
    saved_meal_id: str
    saved_meal_name: str
    saved_meal_description: Optional[str] = None
    meals: Optional[str] = None


class SavedMeals(ResponseModel):
    saved_meal: repeated(SavedMeal)


class SavedMealsResponse(ResponseModel):
    saved_meals: optional_container(SavedMeals)


class SavedMealCreateResponse(ResponseModel):
    saved_meal_id: ValueResult


class SavedMealItem(ResponseModel):
    saved_meal_item_id: str
    food_id: str
    saved_meal_item_name: str
    serving_id: str
    number_of_units: str


class SavedMealItems(ResponseModel):
    saved_meal_item: repeated(SavedMealItem)


class SavedMealItemsResponse(ResponseModel):
    saved_meal_items: optional_container(SavedMealItems)


class SavedMealItemAddResponse(ResponseModel):
    saved_meal_item_id: ValueResult


# Favorites

class FavoriteFood(ResponseModel):
    food_id: str
    food_name: str
    food_type: str
    food_url: str
    food_description: Optional[str] = None
    serving_id: str
    number_of_units: str


class FavoriteFoods(ResponseModel):
    food: repeated(FavoriteFood)


class FavoriteFoodsResponse(ResponseModel):
    foods: optional_container(FavoriteFoods)


class FavoriteRecipe(ResponseModel):
    recipe_id: str
    recipe_name: str
    recipe_url: str
    recipe_description: str
    recipe_image: Optional[str] = None


class FavoriteRecipes(ResponseModel):
    recipe: repeated(FavoriteRecipe)


class FavoriteRecipesResponse(ResponseModel):
    recipes: optional_container(FavoriteRecipes)


# Generic {"success": {"value": "1"}} reply used by edit/delete/update calls
class SuccessResponse(ResponseModel):
    success: ValueResult
