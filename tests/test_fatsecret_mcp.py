#!/usr/bin/env python3
"""
Tests for the FatSecret MCP server: JSON-RPC handling, tool listing and
dispatch of each tool to the client.
"""
import asyncio
import io
import json
import urllib.parse

import pytest

from creds import load_config
from fatsecret_api import FatSecretAPI, REQUEST_TOKEN_URL, ACCESS_TOKEN_URL, API_URL
from fatsecret_mcp import FatSecretMCPServer, TOOLS, main


def run(coro):
    return asyncio.run(coro)


class RoutingTransport:
    """Fake transport answering by endpoint URL."""

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    async def __call__(self, method, url, headers, body):
        base = url.split('?', 1)[0]
        query = urllib.parse.urlsplit(url).query if method == 'GET' else body
        self.calls.append((method, base, dict(urllib.parse.parse_qsl(query))))
        return self.replies[base]


TOKEN_REPLIES = {
    REQUEST_TOKEN_URL: (200, 'oauth_token=rt&oauth_token_secret=rts&oauth_callback_confirmed=true'),
    ACCESS_TOKEN_URL: (200, 'oauth_token=at&oauth_token_secret=ats&user_id=42'),
}


def make_server(tmp_path, replies=None, **creds):
    transport = RoutingTransport(replies or {})
    api = FatSecretAPI(client_id=creds.pop('client_id', 'consumer-key'),
                       client_secret=creds.pop('client_secret', 'consumer-secret'),
                       transport=transport, **creds)
    server = FatSecretMCPServer(api, config_path=str(tmp_path / 'config.json'))
    return server, transport


def authed_server(tmp_path, body):
    return make_server(tmp_path, {API_URL: (200, json.dumps(body))},
                       access_token='at', access_token_secret='ats')


def call(server, name, arguments=None):
    return run(server.call_tool(name, arguments or {}))


def text_of(result):
    return result['content'][0]['text']


class TestProtocol:
    """JSON-RPC message handling."""

    def test_initialize(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_message({'jsonrpc': '2.0', 'id': 1, 'method': 'initialize',
                                           'params': {}}))
        assert reply['id'] == 1
        assert reply['result']['serverInfo']['name'] == 'fatsecret-mcp-server'
        assert 'tools' in reply['result']['capabilities']

    def test_notification_gets_no_reply(self, tmp_path):
        server, _ = make_server(tmp_path)
        message = {'jsonrpc': '2.0', 'method': 'notifications/initialized'}
        assert run(server.handle_message(message)) is None

    def test_tools_list(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_message({'jsonrpc': '2.0', 'id': 2, 'method': 'tools/list'}))
        names = [tool['name'] for tool in reply['result']['tools']]
        assert names == [tool['name'] for tool in TOOLS]
        assert set(names) == set(server.tool_map)
        for tool in reply['result']['tools']:
            assert tool['inputSchema']['type'] == 'object'

    def test_unknown_method(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_message({'jsonrpc': '2.0', 'id': 3, 'method': 'resources/read'}))
        assert reply['error']['code'] == -32601

    def test_tools_call_unknown_tool(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_message({
            'jsonrpc': '2.0', 'id': 4, 'method': 'tools/call',
            'params': {'name': 'drop_tables', 'arguments': {}},
        }))
        assert reply['error']['code'] == -32601
        assert 'drop_tables' in reply['error']['message']

    def test_tools_call_missing_argument(self, tmp_path):
        server, transport = make_server(tmp_path)
        reply = run(server.handle_message({
            'jsonrpc': '2.0', 'id': 5, 'method': 'tools/call',
            'params': {'name': 'get_food', 'arguments': {}},
        }))
        assert reply['error']['code'] == -32602
        assert 'foodId' in reply['error']['message']
        assert transport.calls == []

    def test_tools_call_bad_params(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_message({'jsonrpc': '2.0', 'id': 6, 'method': 'tools/call',
                                           'params': {'arguments': {}}}))
        assert reply['error']['code'] == -32602

    def test_parse_error(self, tmp_path):
        server, _ = make_server(tmp_path)
        reply = run(server.handle_line('{not json'))
        assert reply['error']['code'] == -32700
        assert reply['id'] is None

    def test_serve_writes_one_line_per_reply(self, tmp_path):
        server, _ = make_server(tmp_path)
        reader = io.StringIO(
            json.dumps({'jsonrpc': '2.0', 'id': 1, 'method': 'ping'}) + '\n'
            + '\n'
            + json.dumps({'jsonrpc': '2.0', 'method': 'notifications/initialized'}) + '\n'
            + json.dumps({'jsonrpc': '2.0', 'id': 2, 'method': 'tools/list'}) + '\n'
        )
        writer = io.StringIO()

        run(server.serve(reader, writer))

        lines = writer.getvalue().splitlines()
        assert [json.loads(line)['id'] for line in lines] == [1, 2]


class TestAuthTools:
    """Credential and OAuth tools."""

    def test_set_credentials_saves_config(self, tmp_path):
        server, _ = make_server(tmp_path, client_id='', client_secret='')

        result = call(server, 'set_credentials', {'clientId': 'id', 'clientSecret': 'secret'})

        assert result['isError'] is False
        assert server.api.has_credentials()
        assert load_config(str(tmp_path / 'config.json')) == {'clientId': 'id', 'clientSecret': 'secret'}

    def test_oauth_flow(self, tmp_path):
        server, transport = make_server(tmp_path, TOKEN_REPLIES)

        started = text_of(call(server, 'start_oauth_flow'))
        assert 'Request Token: rt' in started
        assert 'Request Token Secret: rts' in started
        assert 'oauth/authorize?oauth_token=rt' in started
        assert transport.calls[0][2]['oauth_callback'] == 'oob'

        done = call(server, 'complete_oauth_flow',
                    {'requestToken': 'rt', 'requestTokenSecret': 'rts', 'verifier': 'v1'})

        assert done['isError'] is False
        assert 'User ID: 42' in text_of(done)
        assert transport.calls[1][2]['oauth_verifier'] == 'v1'
        assert server.api.has_access_token()
        saved = load_config(str(tmp_path / 'config.json'))
        assert saved['accessToken'] == 'at'
        assert saved['userId'] == '42'

    def test_start_without_credentials(self, tmp_path):
        server, transport = make_server(tmp_path, TOKEN_REPLIES, client_id='', client_secret='')

        result = call(server, 'start_oauth_flow', {'callbackUrl': 'oob'})

        assert result['isError'] is True
        assert 'set_credentials' in text_of(result)
        assert transport.calls == []

    @pytest.mark.parametrize('creds, status', [
        ({}, 'Credentials set, authentication needed'),
        ({'access_token': 'at', 'access_token_secret': 'ats', 'user_id': '9'}, 'Fully authenticated'),
        ({'client_id': '', 'client_secret': ''}, 'Not configured'),
    ])
    def test_check_auth_status(self, tmp_path, creds, status):
        server, _ = make_server(tmp_path, **creds)
        text = text_of(call(server, 'check_auth_status'))
        assert f'Authentication Status: {status}' in text
        assert 'consumer-secret' not in text


class TestFoodTools:
    """Food and recipe tools."""

    def test_search_foods(self, tmp_path):
        body = {'foods': {'food': {'food_id': '1', 'food_name': 'Egg', 'food_type': 'Generic',
                                   'food_description': 'Per 1 large'},
                          'max_results': '5', 'page_number': '1', 'total_results': '1'}}
        server, transport = make_server(tmp_path, {API_URL: (200, json.dumps(body))})

        result = call(server, 'search_foods',
                      {'searchExpression': 'egg', 'pageNumber': 1, 'maxResults': 5, 'region': 'US'})

        assert result['isError'] is False
        assert json.loads(text_of(result))['foods']['food'][0]['food_name'] == 'Egg'
        params = transport.calls[0][2]
        assert params['method'] == 'foods.search'
        assert params['search_expression'] == 'egg'
        assert params['page_number'] == '1'
        assert params['max_results'] == '5'
        assert params['region'] == 'US'

    def test_get_food_api_error(self, tmp_path):
        body = {'error': {'code': 106, 'message': 'Invalid ID: food_id'}}
        server, _ = make_server(tmp_path, {API_URL: (200, json.dumps(body))})

        result = call(server, 'get_food', {'foodId': '999'})

        assert result['isError'] is True
        assert text_of(result) == 'Error: FatSecret API error 106: Invalid ID: food_id'

    def test_food_tools_need_credentials(self, tmp_path):
        server, transport = make_server(tmp_path, client_id='', client_secret='')
        result = call(server, 'get_recipe', {'recipeId': '1'})
        assert result['isError'] is True
        assert transport.calls == []


class TestDiaryTools:
    """Tools acting on the authorized user's data."""

    def test_user_tools_need_token(self, tmp_path):
        server, transport = make_server(tmp_path)

        result = call(server, 'get_user_profile')

        assert result['isError'] is True
        assert 'complete the OAuth flow' in text_of(result)
        assert transport.calls == []

    def test_get_user_food_entries(self, tmp_path):
        server, transport = authed_server(tmp_path, {})

        result = call(server, 'get_user_food_entries', {'date': '2024-01-01'})

        assert json.loads(text_of(result)) == {'food_entries': {'food_entry': []}}
        assert transport.calls[0][2]['method'] == 'food_entries.get'
        assert transport.calls[0][2]['date'] == '19723'

    def test_add_food_entry(self, tmp_path):
        server, transport = authed_server(tmp_path, {'food_entry_id': {'value': '555'}})

        result = call(server, 'add_food_entry', {
            'foodId': '33691', 'foodName': 'Egg', 'servingId': '50321',
            'quantity': 2, 'mealType': 'breakfast', 'date': '2024-01-01',
        })

        assert result['isError'] is False
        assert text_of(result).startswith('Food entry added successfully!')
        method, _, params = transport.calls[0]
        assert method == 'POST'
        assert params['method'] == 'food_entry.create'
        assert params['number_of_units'] == '2'
        assert params['meal'] == 'breakfast'

    def test_add_food_entry_invalid_meal(self, tmp_path):
        server, transport = authed_server(tmp_path, {})

        result = call(server, 'add_food_entry', {
            'foodId': '1', 'foodName': 'Egg', 'servingId': '2', 'quantity': 1, 'mealType': 'brunch',
        })

        assert result['isError'] is True
        assert transport.calls == []

    def test_edit_food_entry_sends_only_given_fields(self, tmp_path):
        server, transport = authed_server(tmp_path, {'success': {'value': '1'}})

        result = call(server, 'edit_food_entry', {'foodEntryId': '555', 'quantity': 1.5})

        assert result['isError'] is False
        params = transport.calls[0][2]
        assert params['method'] == 'food_entry.edit'
        assert params['number_of_units'] == '1.5'
        assert 'meal' not in params
        assert 'food_entry_name' not in params

    def test_delete_food_entry(self, tmp_path):
        server, transport = authed_server(tmp_path, {'success': {'value': '1'}})

        result = call(server, 'delete_food_entry', {'foodEntryId': '555'})

        assert text_of(result).startswith('Food entry deleted successfully!')
        assert transport.calls[0][2]['food_entry_id'] == '555'

    @pytest.mark.parametrize('tool, method', [
        ('get_food_entries_month', 'food_entries.get_month'),
        ('get_weight_month', 'weights.get_month'),
    ])
    def test_month_tools(self, tmp_path, tool, method):
        server, transport = authed_server(tmp_path, {'month': {}})

        result = call(server, tool, {'date': '2024-01-15'})

        assert result['isError'] is False
        assert transport.calls[0][2]['method'] == method
        assert transport.calls[0][2]['date'] == '19737'

    def test_update_weight(self, tmp_path):
        server, transport = authed_server(tmp_path, {'success': {'value': '1'}})

        result = call(server, 'update_weight', {
            'currentWeightKg': 70.0, 'goalWeightKg': 65, 'currentHeightCm': 170,
            'weightType': 'kg', 'comment': 'after run',
        })

        assert text_of(result).startswith('Weight entry updated successfully!')
        params = transport.calls[0][2]
        assert params['method'] == 'weight.update'
        assert params['current_weight_kg'] == '70'
        assert params['goal_weight_kg'] == '65'
        assert params['current_height_cm'] == '170'
        assert params['comment'] == 'after run'


class TestMain:
    """Entry point."""

    def test_invalid_config_file(self, tmp_path, capsys, monkeypatch):
        for name in ('CLIENT_ID', 'CLIENT_SECRET', 'FATSECRET_CLIENT_ID', 'FATSECRET_CLIENT_SECRET'):
            monkeypatch.delenv(name, raising=False)
        config = tmp_path / 'config.json'
        config.write_text('{broken')

        code = main(['--env-file', str(tmp_path / '.env'), '--config-file', str(config)])

        assert code == 1
        assert capsys.readouterr().err.startswith('Error:')
