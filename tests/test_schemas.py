#!/usr/bin/env python3
"""
Tests for the FatSecret response shapes, using reply samples shaped like
the ones the API returns.
"""
import pytest

import schemas
from fatsecret_errors import ValidationError
from validator import validate_response


FOOD_ITEM = {
    'food_id': '33691',
    'food_name': 'Greek Yogurt',
    'food_type': 'Generic',
    'food_description': 'Per 100g - Calories: 97kcal',
    'food_url': 'https://www.fatsecret.com/calories-nutrition/generic/yogurt-greek',
}

SERVING = {
    'serving_id': '50321',
    'serving_description': '100 g',
    'calories': '97',
    'fat': '5.00',
    'carbohydrate': '3.60',
    'protein': '9.00',
}


class TestFoodShapes:
    """foods.search and food.get."""

    def _search(self, food):
        foods = {'max_results': '20', 'page_number': '0', 'total_results': '1'}
        if food is not None:
            foods['food'] = food
        return {'foods': foods}

    def test_search_single_result(self):
        result = validate_response(schemas.FoodSearchResponse, self._search(FOOD_ITEM))
        assert result['foods']['food'] == [FOOD_ITEM]
        assert result['foods']['total_results'] == '1'

    def test_search_many_results(self):
        second = dict(FOOD_ITEM, food_id='2', brand_name='Fage')
        result = validate_response(schemas.FoodSearchResponse, self._search([FOOD_ITEM, second]))
        assert len(result['foods']['food']) == 2
        assert result['foods']['food'][1]['brand_name'] == 'Fage'

    def test_search_no_results(self):
        result = validate_response(schemas.FoodSearchResponse, self._search(None))
        assert result['foods']['food'] == []

    def test_search_requires_paging_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_response(schemas.FoodSearchResponse, {'foods': {'food': FOOD_ITEM}})
        assert 'foods.max_results' in exc_info.value.paths

    def test_food_detail_single_serving(self):
        data = {'food': {
            'food_id': '33691', 'food_name': 'Greek Yogurt', 'food_type': 'Generic',
            'servings': {'serving': SERVING},
        }}
        result = validate_response(schemas.FoodDetailResponse, data)
        assert result['food']['servings']['serving'] == [SERVING]

    def test_food_detail_serving_requires_macros(self):
        serving = dict(SERVING)
        del serving['protein']
        data = {'food': {
            'food_id': '1', 'food_name': 'x', 'food_type': 'Generic',
            'servings': {'serving': [SERVING, serving]},
        }}
        with pytest.raises(ValidationError) as exc_info:
            validate_response(schemas.FoodDetailResponse, data)
        assert exc_info.value.paths == ['food.servings.serving.1.protein']


class TestRecipeShapes:
    """recipes.search and recipe.get."""

    def test_search_nested_string_lists(self):
        data = {'recipes': {
            'recipe': {
                'recipe_id': '91',
                'recipe_name': 'Omelette',
                'recipe_description': 'Eggs',
                'recipe_ingredients': {'ingredient': '2 eggs'},
                'recipe_types': {'recipe_type': ['Breakfast', 'Main Dish']},
            },
            'max_results': '20', 'page_number': '0', 'total_results': '1',
        }}
        result = validate_response(schemas.RecipeSearchResponse, data)
        recipe = result['recipes']['recipe'][0]
        assert recipe['recipe_ingredients'] == {'ingredient': ['2 eggs']}
        assert recipe['recipe_types'] == {'recipe_type': ['Breakfast', 'Main Dish']}

    def test_detail(self):
        data = {'recipe': {
            'recipe_id': '91',
            'recipe_name': 'Omelette',
            'recipe_description': 'Eggs',
            'ingredients': {'ingredient': {
                'food_id': '1', 'food_name': 'Egg', 'number_of_units': '2',
            }},
            'directions': {'direction': [
                {'direction_number': '1', 'direction_description': 'Whisk'},
                {'direction_number': '2', 'direction_description': 'Fry'},
            ]},
            'serving_sizes': {'serving': {'calories': '180'}},
        }}
        result = validate_response(schemas.RecipeDetailResponse, data)
        assert len(result['recipe']['ingredients']['ingredient']) == 1
        assert len(result['recipe']['directions']['direction']) == 2
        assert 'recipe_types' not in result['recipe']


class TestDiaryShapes:
    """food_entries.* replies."""

    ENTRY = {
        'food_entry_id': '1', 'food_id': '33691', 'food_entry_name': 'Yogurt',
        'serving_id': '50321', 'number_of_units': '1.5', 'meal': 'Breakfast',
        'date_int': '19723', 'calories': '146',
    }

    @pytest.mark.parametrize('data', [
        {},
        {'food_entries': None},
        {'food_entries': {}},
    ])
    def test_empty_day(self, data):
        result = validate_response(schemas.FoodEntriesResponse, data)
        assert result == {'food_entries': {'food_entry': []}}

    def test_single_entry(self):
        data = {'food_entries': {'food_entry': self.ENTRY}}
        result = validate_response(schemas.FoodEntriesResponse, data)
        assert result['food_entries']['food_entry'] == [self.ENTRY]

    def test_create_reply(self):
        data = {'food_entry_id': {'value': '12345'}}
        assert validate_response(schemas.FoodEntryCreateResponse, data) == data

    def test_month_summary(self):
        data = {'month': {
            'day': {'date_int': '19723', 'calories': '2000'},
            'from_date_int': '19723', 'to_date_int': '19753',
        }}
        result = validate_response(schemas.FoodEntriesMonthResponse, data)
        assert result['month']['day'] == [{'date_int': '19723', 'calories': '2000'}]


class TestWeightShapes:
    """weights.get_month replies."""

    def test_month_without_days(self):
        result = validate_response(schemas.WeightMonthResponse, {'month': {}})
        assert result == {'month': {'day': []}}

    def test_month_with_one_day(self):
        data = {'month': {'day': {'date_int': '19723', 'weight_kg': '70.5'}}}
        result = validate_response(schemas.WeightMonthResponse, data)
        assert result['month']['day'] == [{'date_int': '19723', 'weight_kg': '70.5'}]


class TestSavedMealAndFavoriteShapes:
    """saved_meal(s).*, saved_meal_item(s).*, favorites."""

    def test_no_saved_meals(self):
        assert validate_response(schemas.SavedMealsResponse, {'saved_meals': None}) == {
            'saved_meals': {'saved_meal': []}
        }

    def test_saved_meal_items(self):
        item = {
            'saved_meal_item_id': '5', 'food_id': '1', 'saved_meal_item_name': 'Egg',
            'serving_id': '2', 'number_of_units': '1',
        }
        result = validate_response(schemas.SavedMealItemsResponse,
                                   {'saved_meal_items': {'saved_meal_item': item}})
        assert result['saved_meal_items']['saved_meal_item'] == [item]

    def test_no_favorite_recipes(self):
        assert validate_response(schemas.FavoriteRecipesResponse, {}) == {'recipes': {'recipe': []}}

    def test_success_reply(self):
        data = {'success': {'value': '1'}}
        assert validate_response(schemas.SuccessResponse, data) == data


class TestTokenShapes:
    """OAuth token replies (form encoded)."""

    def test_request_token(self):
        data = {'oauth_token': 'rt', 'oauth_token_secret': 'rts', 'oauth_callback_confirmed': 'true'}
        assert validate_response(schemas.OAuthTokenResponse, data) == data

    def test_access_token(self):
        data = {'oauth_token': 'at', 'oauth_token_secret': 'ats', 'user_id': '42'}
        assert validate_response(schemas.AccessTokenResponse, data) == data

    def test_unexpected_keys_rejected(self):
        data = {'oauth_token': 'at', 'oauth_token_secret': 'ats', 'surprise': 'x'}
        with pytest.raises(ValidationError) as exc_info:
            validate_response(schemas.AccessTokenResponse, data)
        assert exc_info.value.paths == ['surprise']

    def test_missing_secret_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_response(schemas.OAuthTokenResponse, {'oauth_token': 'rt'})
        assert exc_info.value.paths == ['oauth_token_secret']
