"""
FatSecret API client.

Signs requests with OAuth 1.0 (HMAC-SHA1), sends them as GET query strings
or POST form bodies, decodes the reply and validates it against the
expected response shape.
"""
import asyncio
import dataclasses
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

import requests
from pydantic import BaseModel

import schemas
from creds import Credentials, find_fatsecret_credentials, DEFAULT_CONFIG_PATH
from encoding import encode_params, parse_form_reply, date_to_days, percent_encode
from fatsecret_errors import TransportError
from oauth_signature import build_oauth_params, generate_signature
from validator import RequestOutcome, classify_response


API_URL = "https://platform.fatsecret.com/rest/server.api"
REQUEST_TOKEN_URL = "https://authentication.fatsecret.com/oauth/request_token"
ACCESS_TOKEN_URL = "https://authentication.fatsecret.com/oauth/access_token"
AUTHORIZE_URL = "https://authentication.fatsecret.com/oauth/authorize"

DEFAULT_TIMEOUT = 30

HTTP_METHODS = ('GET', 'POST')
MEAL_TYPES = ('breakfast', 'lunch', 'dinner', 'other')
WEIGHT_TYPES = ('kg', 'lb')
HEIGHT_TYPES = ('cm', 'inch')

# async transport(method, url, headers, body) -> (status_code, body_text)
Transport = Callable[[str, str, Dict[str, str], Optional[str]], Awaitable[Tuple[int, str]]]


async def requests_transport(method: str, url: str, headers: Dict[str, str],
                             body: Optional[str] = None,
                             timeout: int = DEFAULT_TIMEOUT) -> Tuple[int, str]:
    """
    Send an HTTP request with requests, off the event loop.

    Returns:
        (status_code, body_text)
    """
    response = await asyncio.to_thread(
        requests.request, method, url, headers=headers, data=body, timeout=timeout
    )
    return response.status_code, response.text


def decode_body(text: str) -> Any:
    """Decode a reply body as JSON, falling back to form-encoded pairs."""
    try:
        return json.loads(text)
    except ValueError:
        return parse_form_reply(text)


async def signed_request_outcome(method: str, url: str, params: Dict[str, str],
                                 credentials: Credentials, shape: Type[BaseModel],
                                 token: Optional[str] = None,
                                 token_secret: Optional[str] = None,
                                 transport: Optional[Transport] = None,
                                 verbose: bool = False) -> RequestOutcome:
    """
    Sign and send a request, returning a tagged RequestOutcome.

    Args:
        method: 'GET' or 'POST'
        url: Endpoint URL (no query string)
        params: Request parameters (not modified)
        credentials: Consumer key/secret to sign with
        shape: Pydantic model the reply must match
        token: Delegated token, if any
        token_secret: Delegated token secret, if any
        transport: Async transport, requests_transport when None
        verbose: Print debug lines (never credentials)

    Returns:
        RequestOutcome with the normalized data or a typed error
    """
    method = method.upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method}")

    transport = transport or requests_transport

    all_params = {**params, **build_oauth_params(credentials.client_id, token)}
    all_params['oauth_signature'] = generate_signature(
        method, url, all_params, credentials.client_secret, token_secret
    )

    headers = {}
    body = None
    request_url = url
    if method == 'GET':
        request_url = f"{url}?{encode_params(all_params)}"
    else:
        headers['Content-Type'] = 'application/x-www-form-urlencoded'
        body = encode_params(all_params)

    if verbose:
        print(f"[DEBUG] signed_request_outcome: {method} {url} method={params.get('method', '-')}")

    status_code, text = await transport(method, request_url, headers, body)

    if verbose:
        print(f"[DEBUG] signed_request_outcome: Response status={status_code}")

    if not 200 <= status_code < 300:
        return RequestOutcome.failure(TransportError(status_code, text, details={'url': url}))

    return classify_response(shape, decode_body(text))


async def execute_signed_request(method: str, url: str, params: Dict[str, str],
                                 credentials: Credentials, shape: Type[BaseModel],
                                 token: Optional[str] = None,
                                 token_secret: Optional[str] = None,
                                 transport: Optional[Transport] = None,
                                 verbose: bool = False) -> Any:
    """
    Sign and send a request and return the validated, normalized reply.

    Raises:
        TransportError: If the HTTP status is not 2xx
        ApiError: If FatSecret replies with an error envelope
        ValidationError: If the reply does not match shape
    """
    outcome = await signed_request_outcome(
        method, url, params, credentials, shape,
        token=token, token_secret=token_secret,
        transport=transport, verbose=verbose,
    )
    return outcome.unwrap()


async def make_oauth_request(method: str, url: str, params: Dict[str, str],
                             credentials: Credentials, token: Optional[str],
                             token_secret: Optional[str], shape: Type[BaseModel],
                             transport: Optional[Transport] = None,
                             verbose: bool = False) -> Any:
    """Signed request to one of the OAuth token endpoints."""
    return await execute_signed_request(
        method, url, params, credentials, shape,
        token=token, token_secret=token_secret,
        transport=transport, verbose=verbose,
    )


async def make_api_request(method: str, params: Dict[str, str],
                           credentials: Credentials, use_access_token: bool,
                           shape: Type[BaseModel],
                           transport: Optional[Transport] = None,
                           verbose: bool = False) -> Any:
    """
    Signed request to the REST endpoint.

    format=json is always added. The delegated access token is used only
    when use_access_token is True.
    """
    token = credentials.access_token if use_access_token else None
    token_secret = credentials.access_token_secret if use_access_token else None
    return await execute_signed_request(
        method, API_URL, {**params, 'format': 'json'}, credentials, shape,
        token=token, token_secret=token_secret,
        transport=transport, verbose=verbose,
    )


def _format_number(value) -> str:
    """Render 2.0 as '2' and 1.5 as '1.5'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _flag(params: Dict[str, str], name: str, enabled: bool) -> None:
    if enabled:
        params[name] = 'true'


def _require(value, label: str) -> None:
    if not value or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{label} is required")


def _require_positive(value, label: str = "Quantity") -> None:
    if value is None or value <= 0:
        raise ValueError(f"{label} must be greater than 0")


def _check_choice(value: Optional[str], choices: Tuple[str, ...], label: str) -> None:
    if value is not None and value not in choices:
        raise ValueError(f"{label} must be one of {', '.join(choices)}, got '{value}'")


class FatSecretAPI:
    """Client for the FatSecret Platform API."""

    def __init__(self, client_id: str = '', client_secret: str = '',
                 access_token: Optional[str] = None, access_token_secret: Optional[str] = None,
                 user_id: Optional[str] = None, transport: Optional[Transport] = None,
                 verbose: bool = False):
        """
        Initialize FatSecret API client.

        Args:
            client_id: Consumer key
            client_secret: Consumer secret
            access_token: Delegated user token (needed for diary, profile, etc.)
            access_token_secret: Delegated user token secret
            user_id: FatSecret user id returned with the access token
            transport: Async transport, requests_transport when None
            verbose: Print debug lines for each call
        """
        # Do not auto-discover credentials in the constructor; use from_env
        self.credentials = Credentials(
            client_id=client_id,
            client_secret=client_secret,
            access_token=access_token,
            access_token_secret=access_token_secret,
            user_id=user_id,
        )
        self.transport = transport
        self.verbose = verbose

    @classmethod
    def from_env(cls, env_file: str = '.env', config_path: str = DEFAULT_CONFIG_PATH,
                 transport: Optional[Transport] = None, verbose: bool = False):
        """Construct a client from env/.env/config file credentials."""
        creds = find_fatsecret_credentials(env_file=env_file, config_path=config_path)
        return cls(transport=transport, verbose=verbose, **dataclasses.asdict(creds))

    def update_credentials(self, **changes) -> None:
        """Replace some credential fields (e.g. after the OAuth flow)."""
        self.credentials = dataclasses.replace(self.credentials, **changes)

    def has_credentials(self) -> bool:
        return self.credentials.has_consumer_credentials()

    def has_access_token(self) -> bool:
        return self.credentials.has_access_token()

    @staticmethod
    def authorize_url(request_token: str) -> str:
        """URL the user visits to approve a request token."""
        return f"{AUTHORIZE_URL}?oauth_token={percent_encode(request_token)}"

    def _require_user_auth(self) -> None:
        if not self.has_access_token():
            raise ValueError("User authentication required")

    async def _api(self, method: str, params: Dict[str, str], use_access_token: bool,
                   shape: Type[BaseModel]) -> Any:
        if self.verbose:
            print(f"[DEBUG] FatSecretAPI: {params['method']} ({method})")
        return await make_api_request(
            method, params, self.credentials, use_access_token, shape,
            transport=self.transport, verbose=self.verbose,
        )

    # OAuth

    async def get_request_token(self, callback_url: str = 'oob') -> Dict[str, str]:
        """
        Get an OAuth request token to start the authentication flow.

        Args:
            callback_url: Where FatSecret redirects after approval; 'oob'
                          shows the verifier to the user instead

        Returns:
            {'oauth_token': ..., 'oauth_token_secret': ..., ...}
        """
        return await make_oauth_request(
            'POST', REQUEST_TOKEN_URL, {'oauth_callback': callback_url},
            self.credentials, None, None, schemas.OAuthTokenResponse,
            transport=self.transport, verbose=self.verbose,
        )

    async def get_access_token(self, request_token: str, request_token_secret: str,
                               verifier: str) -> Dict[str, str]:
        """Exchange an approved request token and its verifier for an access token."""
        return await make_oauth_request(
            'GET', ACCESS_TOKEN_URL, {'oauth_verifier': verifier},
            self.credentials, request_token, request_token_secret,
            schemas.AccessTokenResponse,
            transport=self.transport, verbose=self.verbose,
        )

    # Foods

    async def search_foods(self, search_expression: str, page_number: int = 0,
                           max_results: int = 20, include_sub_categories: bool = False,
                           include_food_images: bool = False,
                           include_food_attributes: bool = False,
                           flag_default_serving: bool = False,
                           region: Optional[str] = None, language: Optional[str] = None):
        """
        Search the food database.

        Returns:
            {'foods': {'food': [...], 'max_results': ..., 'page_number': ...,
                       'total_results': ...}}
        """
        params = {
            'method': 'foods.search',
            'search_expression': search_expression,
            'page_number': str(page_number),
            'max_results': str(max_results),
        }
        _flag(params, 'include_sub_categories', include_sub_categories)
        _flag(params, 'include_food_images', include_food_images)
        _flag(params, 'include_food_attributes', include_food_attributes)
        _flag(params, 'flag_default_serving', flag_default_serving)
        if region:
            params['region'] = region
        if language:
            params['language'] = language

        return await self._api('GET', params, False, schemas.FoodSearchResponse)

    async def get_food(self, food_id: str, include_sub_categories: bool = False,
                       include_food_images: bool = False,
                       include_food_attributes: bool = False,
                       flag_default_serving: bool = False,
                       region: Optional[str] = None, language: Optional[str] = None):
        """Get a food with all of its servings."""
        _require(food_id, "Food ID")

        params = {'method': 'food.get', 'food_id': food_id}
        _flag(params, 'include_sub_categories', include_sub_categories)
        _flag(params, 'include_food_images', include_food_images)
        _flag(params, 'include_food_attributes', include_food_attributes)
        _flag(params, 'flag_default_serving', flag_default_serving)
        if region:
            params['region'] = region
        if language:
            params['language'] = language

        return await self._api('GET', params, False, schemas.FoodDetailResponse)

    # Recipes

    async def search_recipes(self, search_expression: str, page_number: int = 0,
                             max_results: int = 20, recipe_type: Optional[str] = None):
        params = {
            'method': 'recipes.search',
            'search_expression': search_expression,
            'page_number': str(page_number),
            'max_results': str(max_results),
        }
        if recipe_type:
            params['recipe_type'] = recipe_type

        return await self._api('GET', params, False, schemas.RecipeSearchResponse)

    async def get_recipe(self, recipe_id: str):
        _require(recipe_id, "Recipe ID")
        return await self._api('GET', {'method': 'recipe.get', 'recipe_id': recipe_id},
                               False, schemas.RecipeDetailResponse)

    # Profile

    async def get_profile(self):
        """Get the authenticated user's profile."""
        self._require_user_auth()
        return await self._api('GET', {'method': 'profile.get'}, True, schemas.ProfileResponse)

    # Food diary

    async def get_food_entries(self, date: Optional[str] = None):
        """
        Get the diary entries for one day.

        Args:
            date: YYYY-MM-DD, today when omitted

        Returns:
            {'food_entries': {'food_entry': [...]}} (empty list on days
            without entries)
        """
        self._require_user_auth()
        params = {'method': 'food_entries.get', 'date': date_to_days(date)}
        return await self._api('GET', params, True, schemas.FoodEntriesResponse)

    async def create_food_entry(self, food_id: str, food_name: str, serving_id: str,
                                quantity: float, meal: str, date: Optional[str] = None):
        """
        Add a food to the user's diary.

        Args:
            food_id: Food to log
            food_name: Name shown for the entry
            serving_id: Serving the quantity refers to
            quantity: Number of servings (> 0)
            meal: breakfast, lunch, dinner or other
            date: YYYY-MM-DD, today when omitted

        Returns:
            {'food_entry_id': {'value': ...}}
        """
        self._require_user_auth()
        _require_positive(quantity)
        _check_choice(meal, MEAL_TYPES, "Meal")

        params = {
            'method': 'food_entry.create',
            'food_id': food_id,
            'food_entry_name': food_name,
            'serving_id': serving_id,
            'number_of_units': _format_number(quantity),
            'meal': meal,
            'date': date_to_days(date),
        }
        return await self._api('POST', params, True, schemas.FoodEntryCreateResponse)

    async def edit_food_entry(self, food_entry_id: str, food_name: Optional[str] = None,
                              serving_id: Optional[str] = None,
                              quantity: Optional[float] = None, meal: Optional[str] = None):
        """Change an existing diary entry; only the given fields are sent."""
        self._require_user_auth()
        _require(food_entry_id, "Food entry ID")
        if quantity is not None:
            _require_positive(quantity)
        _check_choice(meal, MEAL_TYPES, "Meal")

        params = {'method': 'food_entry.edit', 'food_entry_id': food_entry_id}
        if food_name is not None:
            params['food_entry_name'] = food_name
        if serving_id is not None:
            params['serving_id'] = serving_id
        if quantity is not None:
            params['number_of_units'] = _format_number(quantity)
        if meal is not None:
            params['meal'] = meal

        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def delete_food_entry(self, food_entry_id: str):
        self._require_user_auth()
        _require(food_entry_id, "Food entry ID")
        params = {'method': 'food_entry.delete', 'food_entry_id': food_entry_id}
        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def get_food_entries_month(self, date: Optional[str] = None):
        """Get daily nutrition totals for the month containing date."""
        self._require_user_auth()
        params = {'method': 'food_entries.get_month', 'date': date_to_days(date)}
        return await self._api('GET', params, True, schemas.FoodEntriesMonthResponse)

    # Weight

    async def get_weight_month(self, date: Optional[str] = None):
        """Get the weigh-ins for the month containing date."""
        self._require_user_auth()
        params = {'method': 'weights.get_month', 'date': date_to_days(date)}
        return await self._api('GET', params, True, schemas.WeightMonthResponse)

    async def update_weight(self, current_weight_kg: float, date: Optional[str] = None,
                            weight_type: Optional[str] = None, height_type: Optional[str] = None,
                            goal_weight_kg: Optional[float] = None,
                            current_height_cm: Optional[float] = None,
                            comment: Optional[str] = None):
        """
        Record the user's weight for a day.

        goal_weight_kg and current_height_cm are only used by FatSecret on
        the first weigh-in.
        """
        self._require_user_auth()
        _require_positive(current_weight_kg, "Weight")
        _check_choice(weight_type, WEIGHT_TYPES, "Weight type")
        _check_choice(height_type, HEIGHT_TYPES, "Height type")

        params = {
            'method': 'weight.update',
            'current_weight_kg': _format_number(current_weight_kg),
            'date': date_to_days(date),
        }
        if weight_type:
            params['weight_type'] = weight_type
        if height_type:
            params['height_type'] = height_type
        if goal_weight_kg is not None:
            params['goal_weight_kg'] = _format_number(goal_weight_kg)
        if current_height_cm is not None:
            params['current_height_cm'] = _format_number(current_height_cm)
        if comment:
            params['comment'] = comment

        return await self._api('POST', params, True, schemas.SuccessResponse)

    # Saved meals

    async def get_saved_meals(self, meal: Optional[str] = None):
        self._require_user_auth()
        _check_choice(meal, MEAL_TYPES, "Meal")
        params = {'method': 'saved_meals.get'}
        if meal:
            params['meal'] = meal
        return await self._api('GET', params, True, schemas.SavedMealsResponse)

    async def create_saved_meal(self, name: str, description: Optional[str] = None,
                                meals: Optional[str] = None):
        """
        Create a saved meal.

        Args:
            name: Saved meal name
            description: Optional description
            meals: Comma-separated meals it applies to (e.g. 'breakfast,lunch')

        Returns:
            {'saved_meal_id': {'value': ...}}
        """
        self._require_user_auth()
        _require(name, "Saved meal name")

        params = {'method': 'saved_meal.create', 'saved_meal_name': name}
        if description is not None:
            params['saved_meal_description'] = description
        if meals is not None:
            params['meals'] = meals

        return await self._api('POST', params, True, schemas.SavedMealCreateResponse)

    async def edit_saved_meal(self, saved_meal_id: str, name: Optional[str] = None,
                              description: Optional[str] = None, meals: Optional[str] = None):
        self._require_user_auth()
        _require(saved_meal_id, "Saved meal ID")

        params = {'method': 'saved_meal.edit', 'saved_meal_id': saved_meal_id}
        if name is not None:
            params['saved_meal_name'] = name
        if description is not None:
            params['saved_meal_description'] = description
        if meals is not None:
            params['meals'] = meals

        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def delete_saved_meal(self, saved_meal_id: str):
        self._require_user_auth()
        _require(saved_meal_id, "Saved meal ID")
        params = {'method': 'saved_meal.delete', 'saved_meal_id': saved_meal_id}
        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def get_saved_meal_items(self, saved_meal_id: str):
        self._require_user_auth()
        _require(saved_meal_id, "Saved meal ID")
        params = {'method': 'saved_meal_items.get', 'saved_meal_id': saved_meal_id}
        return await self._api('GET', params, True, schemas.SavedMealItemsResponse)

    async def add_saved_meal_item(self, saved_meal_id: str, food_id: str, item_name: str,
                                  serving_id: str, quantity: float):
        self._require_user_auth()
        _require(saved_meal_id, "Saved meal ID")
        _require(food_id, "Food ID")
        _require(item_name, "Item name")
        _require(serving_id, "Serving ID")
        _require_positive(quantity)

        params = {
            'method': 'saved_meal_item.add',
            'saved_meal_id': saved_meal_id,
            'food_id': food_id,
            'saved_meal_item_name': item_name,
            'serving_id': serving_id,
            'number_of_units': _format_number(quantity),
        }
        return await self._api('POST', params, True, schemas.SavedMealItemAddResponse)

    async def edit_saved_meal_item(self, saved_meal_item_id: str, item_name: Optional[str] = None,
                                   quantity: Optional[float] = None):
        self._require_user_auth()
        _require(saved_meal_item_id, "Saved meal item ID")
        if quantity is not None:
            _require_positive(quantity)

        params = {'method': 'saved_meal_item.edit', 'saved_meal_item_id': saved_meal_item_id}
        if item_name is not None:
            params['saved_meal_item_name'] = item_name
        if quantity is not None:
            params['number_of_units'] = _format_number(quantity)

        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def delete_saved_meal_item(self, saved_meal_item_id: str):
        self._require_user_auth()
        _require(saved_meal_item_id, "Saved meal item ID")
        params = {'method': 'saved_meal_item.delete', 'saved_meal_item_id': saved_meal_item_id}
        return await self._api('POST', params, True, schemas.SuccessResponse)

    # Favorites

    async def _change_food_favorite(self, api_method: str, food_id: str,
                                    serving_id: Optional[str], quantity: Optional[float]):
        self._require_user_auth()
        _require(food_id, "Food ID")
        if quantity is not None:
            _require_positive(quantity)

        params = {'method': api_method, 'food_id': food_id}
        if serving_id is not None:
            params['serving_id'] = serving_id
        if quantity is not None:
            params['number_of_units'] = _format_number(quantity)

        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def add_food_favorite(self, food_id: str, serving_id: Optional[str] = None,
                                quantity: Optional[float] = None):
        return await self._change_food_favorite('food.add_favorite', food_id, serving_id, quantity)

    async def delete_food_favorite(self, food_id: str, serving_id: Optional[str] = None,
                                   quantity: Optional[float] = None):
        return await self._change_food_favorite('food.delete_favorite', food_id, serving_id, quantity)

    async def get_favorite_foods(self):
        self._require_user_auth()
        return await self._api('GET', {'method': 'foods.get_favorites'}, True,
                               schemas.FavoriteFoodsResponse)

    async def get_most_eaten_foods(self, meal: Optional[str] = None):
        self._require_user_auth()
        _check_choice(meal, MEAL_TYPES, "Meal")
        params = {'method': 'foods.get_most_eaten'}
        if meal:
            params['meal'] = meal
        return await self._api('GET', params, True, schemas.FavoriteFoodsResponse)

    async def get_recently_eaten_foods(self, meal: Optional[str] = None):
        self._require_user_auth()
        _check_choice(meal, MEAL_TYPES, "Meal")
        params = {'method': 'foods.get_recently_eaten'}
        if meal:
            params['meal'] = meal
        return await self._api('GET', params, True, schemas.FavoriteFoodsResponse)

    async def add_recipe_favorite(self, recipe_id: str):
        self._require_user_auth()
        _require(recipe_id, "Recipe ID")
        params = {'method': 'recipe.add_favorite', 'recipe_id': recipe_id}
        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def delete_recipe_favorite(self, recipe_id: str):
        self._require_user_auth()
        _require(recipe_id, "Recipe ID")
        params = {'method': 'recipe.delete_favorite', 'recipe_id': recipe_id}
        return await self._api('POST', params, True, schemas.SuccessResponse)

    async def get_favorite_recipes(self):
        self._require_user_auth()
        return await self._api('GET', {'method': 'recipes.get_favorites'}, True,
                               schemas.FavoriteRecipesResponse)
