#!/usr/bin/env python3
"""
FatSecret console.

Saves the consumer credentials, runs the three-legged OAuth flow and saves
the resulting access token to the config file, and issues a few read-only
queries against the API.
"""
import argparse
import asyncio
import json
import sys
import webbrowser

from creds import DEFAULT_CONFIG_PATH, save_config
from fatsecret_api import FatSecretAPI
from fatsecret_errors import FatSecretError


class FatSecretConsole:
    """Interactive helpers around a FatSecretAPI client."""

    def __init__(self, api, config_path=DEFAULT_CONFIG_PATH, input_func=input,
                 open_browser=webbrowser.open):
        """
        Initialize the console.

        Args:
            api: FatSecretAPI instance
            config_path: Where the credentials are saved after authorization
            input_func: Used to prompt for the verifier
            open_browser: Used to open the authorization page
        """
        self.api = api
        self.config_path = config_path
        self.input_func = input_func
        self.open_browser = open_browser

    def setup_credentials(self):
        """Prompt for the consumer key and secret and save them."""
        creds = self.api.credentials
        if creds.has_consumer_credentials():
            print(f"Existing credentials found for client id {creds.client_id}")
            answer = self.input_func("Replace them? (y/n): ").strip().lower()
            if answer not in ('y', 'yes'):
                return

        print("Enter your FatSecret API credentials (from https://platform.fatsecret.com/)")
        client_id = self.input_func("Client ID: ").strip()
        client_secret = self.input_func("Client Secret: ").strip()
        if not client_id or not client_secret:
            raise ValueError("Client ID and Client Secret are required")

        # Tokens issued to a previous consumer key are dropped
        self.api.update_credentials(client_id=client_id, client_secret=client_secret,
                                    access_token=None, access_token_secret=None, user_id=None)
        save_config(self.api.credentials, self.config_path)
        print(f"Credentials saved to {self.config_path}")

    async def authorize(self, callback_url='oob'):
        """
        Run the OAuth flow: request token, user approval, access token.

        Returns:
            The access token reply
        """
        if not self.api.has_credentials():
            raise ValueError("CLIENT_ID and CLIENT_SECRET must be set before authorizing")

        request_token = await self.api.get_request_token(callback_url)
        url = self.api.authorize_url(request_token['oauth_token'])

        print("Open this URL and approve access:")
        print(f"  {url}")
        try:
            self.open_browser(url)
        except webbrowser.Error:
            print("Could not open a browser, please open the URL manually.", file=sys.stderr)

        verifier = self.input_func("Enter the verifier code: ").strip()
        if not verifier:
            raise ValueError("Verifier code is required")

        access = await self.api.get_access_token(
            request_token['oauth_token'], request_token['oauth_token_secret'], verifier
        )
        self.api.update_credentials(
            access_token=access['oauth_token'],
            access_token_secret=access['oauth_token_secret'],
            user_id=access.get('user_id'),
        )
        save_config(self.api.credentials, self.config_path)
        print(f"Authorized. Credentials saved to {self.config_path}")
        return access

    def status(self):
        """Print which credentials are configured."""
        print(f"Consumer credentials: {'configured' if self.api.has_credentials() else 'missing'}")
        print(f"Access token:         {'configured' if self.api.has_access_token() else 'missing'}")
        if self.api.credentials.user_id:
            print(f"User id:              {self.api.credentials.user_id}")
        print(f"Config file:          {self.config_path}")


def build_parser():
    parser = argparse.ArgumentParser(
        description='FatSecret console - authorize and query the FatSecret API',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Save the consumer key and secret
  %(prog)s setup

  # Authorize this machine (saves tokens to the config file)
  %(prog)s auth

  # Search for foods
  %(prog)s search-foods "greek yogurt" --max-results 5

  # Today's diary
  %(prog)s food-entries

Environment variables:
  CLIENT_ID            FatSecret consumer key
  CLIENT_SECRET        FatSecret consumer secret
  ACCESS_TOKEN         Delegated user token (normally saved by 'auth')
  ACCESS_TOKEN_SECRET  Delegated user token secret

  Note: Each variable is also checked with a 'FATSECRET_' prefix
        (e.g., FATSECRET_CLIENT_ID)
        """
    )
    parser.add_argument('--env-file', default='.env',
                        help='Environment file to load (default: .env)')
    parser.add_argument('--config-file', default=DEFAULT_CONFIG_PATH,
                        help=f'Saved credentials file (default: {DEFAULT_CONFIG_PATH})')
    parser.add_argument('--verbose', action='store_true',
                        help='Print debug output for each request')

    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('setup', help='Enter and save the consumer key and secret')

    auth = sub.add_parser('auth', help='Run the OAuth authorization flow')
    auth.add_argument('--callback-url', default='oob',
                      help="OAuth callback URL (default: 'oob')")

    sub.add_parser('status', help='Show which credentials are configured')

    search_foods = sub.add_parser('search-foods', help='Search foods')
    search_foods.add_argument('expression')
    search_foods.add_argument('--page', type=int, default=0)
    search_foods.add_argument('--max-results', type=int, default=20)

    get_food = sub.add_parser('get-food', help='Get a food by id')
    get_food.add_argument('food_id')

    search_recipes = sub.add_parser('search-recipes', help='Search recipes')
    search_recipes.add_argument('expression')
    search_recipes.add_argument('--page', type=int, default=0)
    search_recipes.add_argument('--max-results', type=int, default=20)

    sub.add_parser('profile', help="Show the authorized user's profile")

    entries = sub.add_parser('food-entries', help='Show diary entries for a day')
    entries.add_argument('--date', help='YYYY-MM-DD (default: today)')

    return parser


async def run_command(args, api, console):
    """Dispatch one parsed command. Returns the data to print, or None."""
    if args.command == 'setup':
        console.setup_credentials()
        return None
    if args.command == 'auth':
        await console.authorize(args.callback_url)
        return None
    if args.command == 'status':
        console.status()
        return None
    if args.command == 'search-foods':
        return await api.search_foods(args.expression, page_number=args.page,
                                      max_results=args.max_results)
    if args.command == 'get-food':
        return await api.get_food(args.food_id)
    if args.command == 'search-recipes':
        return await api.search_recipes(args.expression, page_number=args.page,
                                        max_results=args.max_results)
    if args.command == 'profile':
        return await api.get_profile()
    if args.command == 'food-entries':
        return await api.get_food_entries(args.date)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None, api=None, input_func=input, open_browser=webbrowser.open):
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        if api is None:
            api = FatSecretAPI.from_env(env_file=args.env_file, config_path=args.config_file,
                                        verbose=args.verbose)
        console = FatSecretConsole(api, config_path=args.config_file,
                                   input_func=input_func, open_browser=open_browser)
        result = asyncio.run(run_command(args, api, console))
    except (FatSecretError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result is not None:
        print(json.dumps(result, indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
