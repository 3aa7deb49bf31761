#!/usr/bin/env python3
"""
FatSecret MCP server.

Exposes the FatSecret client as Model Context Protocol tools over stdio
(newline-delimited JSON-RPC 2.0). Supports initialize, tools/list,
tools/call and ping. Credentials and tokens set through the tools are
saved to the same config file the console uses.
"""
import argparse
import asyncio
import contextlib
import json
import sys
from typing import Any, Dict, List, Optional

from creds import DEFAULT_CONFIG_PATH, save_config
from fatsecret_api import FatSecretAPI, MEAL_TYPES, WEIGHT_TYPES, HEIGHT_TYPES
from fatsecret_errors import FatSecretError


PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "fatsecret-mcp-server", "version": "0.1.0"}

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

NEEDS_CREDENTIALS = "Please set your FatSecret API credentials first using set_credentials"
NEEDS_USER_AUTH = "User authentication required. Please complete the OAuth flow first."

_DATE = {"type": "string", "description": "Date in YYYY-MM-DD format (default: today)"}
_MONTH_DATE = {"type": "string",
               "description": "Date in YYYY-MM-DD format to specify the month (default: current month)"}
_MEAL = {"type": "string", "enum": list(MEAL_TYPES),
         "description": "Meal type (breakfast, lunch, dinner, other)"}
_NO_ARGS = {"type": "object", "properties": {}}

TOOLS: List[Dict[str, Any]] = [
    {
        "name": "set_credentials",
        "description": "Set FatSecret API credentials (Client ID and Client Secret)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "clientId": {"type": "string", "description": "Your FatSecret Client ID"},
                "clientSecret": {"type": "string", "description": "Your FatSecret Client Secret"},
            },
            "required": ["clientId", "clientSecret"],
        },
    },
    {
        "name": "start_oauth_flow",
        "description": "Start the 3-legged OAuth flow to get user authorization",
        "inputSchema": {
            "type": "object",
            "properties": {
                "callbackUrl": {"type": "string", "default": "oob",
                                "description": 'OAuth callback URL (use "oob" for out-of-band)'},
            },
        },
    },
    {
        "name": "complete_oauth_flow",
        "description": "Complete the OAuth flow with the authorization verifier",
        "inputSchema": {
            "type": "object",
            "properties": {
                "requestToken": {"type": "string", "description": "The request token from start_oauth_flow"},
                "requestTokenSecret": {"type": "string",
                                       "description": "The request token secret from start_oauth_flow"},
                "verifier": {"type": "string", "description": "The verifier shown after authorization"},
            },
            "required": ["requestToken", "requestTokenSecret", "verifier"],
        },
    },
    {
        "name": "check_auth_status",
        "description": "Check if the user is authenticated with FatSecret",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "search_foods",
        "description": "Search for foods in the FatSecret database. Returns up to 50 results per page.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "searchExpression": {"type": "string",
                                     "description": 'Search term (e.g., "chicken breast", "apple")'},
                "pageNumber": {"type": "number", "default": 0, "description": "Page number (default: 0)"},
                "maxResults": {"type": "number", "default": 20,
                               "description": "Maximum results per page (default: 20, max: 50)"},
                "region": {"type": "string", "description": "Region filter code (e.g. 'US')"},
                "language": {"type": "string", "description": "Result language when region is set"},
            },
            "required": ["searchExpression"],
        },
    },
    {
        "name": "get_food",
        "description": ("Get detailed nutrition information for a food item. "
                        "Servings with serving_id=0 cannot be used for diary entries."),
        "inputSchema": {
            "type": "object",
            "properties": {
                "foodId": {"type": "string", "description": "The FatSecret food ID"},
                "region": {"type": "string", "description": "Region filter code (e.g. 'US')"},
                "language": {"type": "string", "description": "Result language when region is set"},
            },
            "required": ["foodId"],
        },
    },
    {
        "name": "search_recipes",
        "description": "Search for recipes in the FatSecret database.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "searchExpression": {"type": "string", "description": "Search term for recipes"},
                "recipeType": {"type": "string",
                               "description": "Filter by recipe type (e.g. Breakfast, Main Dish, Soup)"},
                "pageNumber": {"type": "number", "default": 0, "description": "Page number (default: 0)"},
                "maxResults": {"type": "number", "default": 20,
                               "description": "Maximum results per page (default: 20, max: 50)"},
            },
            "required": ["searchExpression"],
        },
    },
    {
        "name": "get_recipe",
        "description": "Get a recipe including ingredients and directions.",
        "inputSchema": {
            "type": "object",
            "properties": {"recipeId": {"type": "string", "description": "The FatSecret recipe ID"}},
            "required": ["recipeId"],
        },
    },
    {
        "name": "get_user_profile",
        "description": "Get the authenticated user's profile. Requires OAuth authentication.",
        "inputSchema": _NO_ARGS,
    },
    {
        "name": "get_user_food_entries",
        "description": "Get the user's food diary entries for a date. Requires OAuth authentication.",
        "inputSchema": {"type": "object", "properties": {"date": _DATE}},
    },
    {
        "name": "add_food_entry",
        "description": ("Add a food entry to the user's food diary. Requires OAuth authentication. "
                        "Quantity must be greater than 0."),
        "inputSchema": {
            "type": "object",
            "properties": {
                "foodId": {"type": "string", "description": "The FatSecret food ID"},
                "foodName": {"type": "string", "description": "Name/description of the food item"},
                "servingId": {"type": "string", "description": "The serving ID for the food"},
                "quantity": {"type": "number", "description": "Quantity of the serving (must be > 0)"},
                "mealType": _MEAL,
                "date": _DATE,
            },
            "required": ["foodId", "foodName", "servingId", "quantity", "mealType"],
        },
    },
    {
        "name": "edit_food_entry",
        "description": ("Edit an existing food diary entry. Requires OAuth authentication. "
                        "The entry date cannot be changed."),
        "inputSchema": {
            "type": "object",
            "properties": {
                "foodEntryId": {"type": "string", "description": "The food entry ID to edit"},
                "foodName": {"type": "string", "description": "New name for the food entry"},
                "servingId": {"type": "string", "description": "New serving ID"},
                "quantity": {"type": "number", "description": "New quantity (must be > 0)"},
                "mealType": _MEAL,
            },
            "required": ["foodEntryId"],
        },
    },
    {
        "name": "delete_food_entry",
        "description": "Delete a food diary entry. Requires OAuth authentication.",
        "inputSchema": {
            "type": "object",
            "properties": {"foodEntryId": {"type": "string", "description": "The food entry ID to delete"}},
            "required": ["foodEntryId"],
        },
    },
    {
        "name": "get_food_entries_month",
        "description": ("Get daily calorie and macro totals of the user's diary for a month. "
                        "Requires OAuth authentication."),
        "inputSchema": {"type": "object", "properties": {"date": _MONTH_DATE}},
    },
    {
        "name": "get_weight_month",
        "description": "Get the user's weight entries for a month. Requires OAuth authentication.",
        "inputSchema": {"type": "object", "properties": {"date": _MONTH_DATE}},
    },
    {
        "name": "update_weight",
        "description": ("Add or update a weight entry. Requires OAuth authentication. "
                        "Weight must be > 0. For the first weigh-in, height may be required."),
        "inputSchema": {
            "type": "object",
            "properties": {
                "currentWeightKg": {"type": "number", "description": "Current weight in kilograms (must be > 0)"},
                "date": _DATE,
                "weightType": {"type": "string", "enum": list(WEIGHT_TYPES),
                               "description": "Weight measurement unit"},
                "heightType": {"type": "string", "enum": list(HEIGHT_TYPES),
                               "description": "Height measurement unit"},
                "goalWeightKg": {"type": "number", "description": "Goal weight in kilograms"},
                "currentHeightCm": {"type": "number",
                                    "description": "Current height in cm (required for first weigh-in)"},
                "comment": {"type": "string", "description": "Optional comment for the weight entry"},
            },
            "required": ["currentWeightKg"],
        },
    },
]

_TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOLS}


def get_tool_definitions() -> List[Dict[str, Any]]:
    return TOOLS


def _text_result(text: str, is_error: bool = False) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


def _json_text(data: Any, prefix: str = "") -> str:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    return f"{prefix}\n\n{text}" if prefix else text


def _jsonrpc_error(req_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}


def _jsonrpc_result(req_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


class ToolError(Exception):
    """Raised for unknown tools and missing arguments (JSON-RPC error replies)."""
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code


class FatSecretMCPServer:
    """Dispatches MCP tool calls to a FatSecretAPI client."""

    def __init__(self, api: FatSecretAPI, config_path: str = DEFAULT_CONFIG_PATH):
        self.api = api
        self.config_path = config_path
        self.tool_map = {
            "set_credentials": self._set_credentials,
            "start_oauth_flow": self._start_oauth_flow,
            "complete_oauth_flow": self._complete_oauth_flow,
            "check_auth_status": self._check_auth_status,
            "search_foods": self._search_foods,
            "get_food": self._get_food,
            "search_recipes": self._search_recipes,
            "get_recipe": self._get_recipe,
            "get_user_profile": self._get_user_profile,
            "get_user_food_entries": self._get_user_food_entries,
            "add_food_entry": self._add_food_entry,
            "edit_food_entry": self._edit_food_entry,
            "delete_food_entry": self._delete_food_entry,
            "get_food_entries_month": self._get_food_entries_month,
            "get_weight_month": self._get_weight_month,
            "update_weight": self._update_weight,
        }

    # Preconditions

    def _require_credentials(self) -> None:
        if not self.api.has_credentials():
            raise ValueError(NEEDS_CREDENTIALS)

    def _require_user_auth(self) -> None:
        if not self.api.has_access_token():
            raise ValueError(NEEDS_USER_AUTH)

    # Authentication tools

    async def _set_credentials(self, args):
        self.api.update_credentials(client_id=args["clientId"], client_secret=args["clientSecret"])
        save_config(self.api.credentials, self.config_path)
        return ("FatSecret API credentials have been set successfully. "
                "You can now start the OAuth flow to authenticate users.")

    async def _start_oauth_flow(self, args):
        self._require_credentials()
        response = await self.api.get_request_token(args.get("callbackUrl") or "oob")
        token = response["oauth_token"]
        url = self.api.authorize_url(token)
        return (f"OAuth flow started successfully!\n\n"
                f"Request Token: {token}\n"
                f"Request Token Secret: {response['oauth_token_secret']}\n\n"
                f"Please visit this URL to authorize the application:\n{url}\n\n"
                f"After authorization, call complete_oauth_flow with the request token, "
                f"request token secret and verifier.")

    async def _complete_oauth_flow(self, args):
        self._require_credentials()
        response = await self.api.get_access_token(
            args["requestToken"], args["requestTokenSecret"], args["verifier"]
        )
        self.api.update_credentials(
            access_token=response["oauth_token"],
            access_token_secret=response["oauth_token_secret"],
            user_id=response.get("user_id"),
        )
        save_config(self.api.credentials, self.config_path)
        return (f"OAuth flow completed successfully! You are now authenticated with FatSecret.\n\n"
                f"User ID: {response.get('user_id', 'N/A')}")

    async def _check_auth_status(self, args):
        has_credentials = self.api.has_credentials()
        has_access_token = self.api.has_access_token()
        if has_credentials and has_access_token:
            status = "Fully authenticated"
        elif has_credentials:
            status = "Credentials set, authentication needed"
        else:
            status = "Not configured"
        return (f"Authentication Status: {status}\n\n"
                f"Credentials configured: {has_credentials}\n"
                f"User authenticated: {has_access_token}\n"
                f"User ID: {self.api.credentials.user_id or 'N/A'}")

    # Food and recipe tools

    async def _search_foods(self, args):
        self._require_credentials()
        result = await self.api.search_foods(
            args["searchExpression"],
            page_number=int(args.get("pageNumber", 0)),
            max_results=int(args.get("maxResults", 20)),
            region=args.get("region"),
            language=args.get("language"),
        )
        return _json_text(result)

    async def _get_food(self, args):
        self._require_credentials()
        result = await self.api.get_food(args["foodId"], region=args.get("region"),
                                         language=args.get("language"))
        return _json_text(result)

    async def _search_recipes(self, args):
        self._require_credentials()
        result = await self.api.search_recipes(
            args["searchExpression"],
            page_number=int(args.get("pageNumber", 0)),
            max_results=int(args.get("maxResults", 20)),
            recipe_type=args.get("recipeType"),
        )
        return _json_text(result)

    async def _get_recipe(self, args):
        self._require_credentials()
        return _json_text(await self.api.get_recipe(args["recipeId"]))

    # User tools

    async def _get_user_profile(self, args):
        self._require_user_auth()
        return _json_text(await self.api.get_profile())

    async def _get_user_food_entries(self, args):
        self._require_user_auth()
        return _json_text(await self.api.get_food_entries(args.get("date")))

    async def _add_food_entry(self, args):
        self._require_user_auth()
        result = await self.api.create_food_entry(
            args["foodId"], args["foodName"], args["servingId"], args["quantity"],
            args["mealType"], date=args.get("date"),
        )
        return _json_text(result, "Food entry added successfully!")

    async def _edit_food_entry(self, args):
        self._require_user_auth()
        result = await self.api.edit_food_entry(
            args["foodEntryId"],
            food_name=args.get("foodName"),
            serving_id=args.get("servingId"),
            quantity=args.get("quantity"),
            meal=args.get("mealType"),
        )
        return _json_text(result, "Food entry updated successfully!")

    async def _delete_food_entry(self, args):
        self._require_user_auth()
        result = await self.api.delete_food_entry(args["foodEntryId"])
        return _json_text(result, "Food entry deleted successfully!")

    async def _get_food_entries_month(self, args):
        self._require_user_auth()
        return _json_text(await self.api.get_food_entries_month(args.get("date")))

    async def _get_weight_month(self, args):
        self._require_user_auth()
        return _json_text(await self.api.get_weight_month(args.get("date")))

    async def _update_weight(self, args):
        self._require_user_auth()
        result = await self.api.update_weight(
            args["currentWeightKg"],
            date=args.get("date"),
            weight_type=args.get("weightType"),
            height_type=args.get("heightType"),
            goal_weight_kg=args.get("goalWeightKg"),
            current_height_cm=args.get("currentHeightCm"),
            comment=args.get("comment"),
        )
        return _json_text(result, "Weight entry updated successfully!")

    # Dispatch

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run one tool and return its MCP result.

        FatSecret errors and precondition failures are returned as a result
        with isError set.

        Raises:
            ToolError: If the tool is unknown or a required argument is missing
        """
        handler = self.tool_map.get(name)
        if handler is None:
            raise ToolError(METHOD_NOT_FOUND, f"Unknown tool: {name}")

        args = dict(arguments or {})
        missing = [key for key in _TOOLS_BY_NAME[name]["inputSchema"].get("required", [])
                   if args.get(key) is None]
        if missing:
            raise ToolError(INVALID_PARAMS, f"Missing required argument(s) for {name}: {', '.join(missing)}")

        try:
            text = await handler(args)
        except (FatSecretError, ValueError) as e:
            return _text_result(f"Error: {e}", is_error=True)
        return _text_result(text)

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle one JSON-RPC message. Returns None for notifications."""
        if not isinstance(message, dict):
            return _jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

        req_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}

        # Notifications have no id and get no reply
        if req_id is None:
            return None

        if method == "initialize":
            return _jsonrpc_result(req_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": SERVER_INFO,
            })
        if method == "ping":
            return _jsonrpc_result(req_id, {})
        if method == "tools/list":
            return _jsonrpc_result(req_id, {"tools": get_tool_definitions()})
        if method == "tools/call":
            if not isinstance(params, dict) or not isinstance(params.get("name"), str):
                return _jsonrpc_error(req_id, INVALID_PARAMS, "Missing tool name")
            arguments = params.get("arguments") or {}
            if not isinstance(arguments, dict):
                return _jsonrpc_error(req_id, INVALID_PARAMS, "Tool arguments must be an object")
            try:
                result = await self.call_tool(params["name"], arguments)
            except ToolError as e:
                return _jsonrpc_error(req_id, e.code, str(e))
            return _jsonrpc_result(req_id, result)

        return _jsonrpc_error(req_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    async def handle_line(self, line: str) -> Any:
        """Decode one input line and return the reply (None when there is none)."""
        try:
            payload = json.loads(line)
        except ValueError:
            return _jsonrpc_error(None, PARSE_ERROR, "Parse error")

        if isinstance(payload, list):
            replies = [await self.handle_message(item) for item in payload]
            return [reply for reply in replies if reply is not None] or None
        return await self.handle_message(payload)

    async def serve(self, reader, writer) -> None:
        """Read JSON-RPC lines from reader until EOF, writing replies to writer."""
        while True:
            line = await asyncio.to_thread(reader.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            reply = await self.handle_line(line)
            if reply is not None:
                writer.write(json.dumps(reply, ensure_ascii=False) + "\n")
                writer.flush()


def main(argv=None):
    """Run the MCP server on stdio. Returns the process exit code."""
    parser = argparse.ArgumentParser(description='FatSecret MCP server (stdio)')
    parser.add_argument('--env-file', default='.env',
                        help='Environment file to load (default: .env)')
    parser.add_argument('--config-file', default=DEFAULT_CONFIG_PATH,
                        help=f'Saved credentials file (default: {DEFAULT_CONFIG_PATH})')
    parser.add_argument('--verbose', action='store_true',
                        help='Print debug output for each request (to stderr)')
    args = parser.parse_args(argv)

    try:
        api = FatSecretAPI.from_env(env_file=args.env_file, config_path=args.config_file,
                                    verbose=args.verbose)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    server = FatSecretMCPServer(api, config_path=args.config_file)
    protocol_out = sys.stdout
    print("FatSecret MCP server running on stdio", file=sys.stderr)
    # stdout carries the protocol; any other output goes to stderr
    with contextlib.redirect_stdout(sys.stderr):
        asyncio.run(server.serve(sys.stdin, protocol_out))
    return 0


if __name__ == '__main__':
    sys.exit(main())
