"""
Tests for Telegram update mapping and the Bot API client.

The client is exercised against httpx.MockTransport, no network needed.

Run with: python -m pytest tests/test_telegram.py -v
"""
import sys
import os
import asyncio
import json

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
import pytest

from telegram_api import TelegramAPI
from telegram_mapper import (
    author_display_name,
    build_message,
    is_from_bot,
    is_group_message,
    message_key,
    split_message_key,
)

FORUM_MESSAGE = {
    'message_id': 42,
    'date': 1714566600,
    'chat': {'id': -1001234567890, 'type': 'supergroup', 'title': 'Dev Community'},
    'from': {'id': 555, 'is_bot': False, 'first_name': 'Mallory', 'username': 'mal'},
    'text': 'Check out my services',
    'is_topic_message': True,
    'message_thread_id': 7,
    'reply_to_message': {'forum_topic_created': {'name': 'Jobs'}},
}


class TestMapper:

    def test_forum_topic_message(self):
        message = build_message(FORUM_MESSAGE, {'description': 'Talk about code'})

        assert message.message_id == "-1001234567890:42"
        assert message.author_id == "555"
        assert message.group_id == "-1001234567890"
        assert message.channel_id == "-1001234567890:7"
        assert message.channel_name == "Dev Community / Jobs"
        assert message.channel_topic == "Talk about code"
        assert message.author_name == "Mallory (@mal)"
        assert message.content == "Check out my services"
        assert message.created_at.timestamp() == 1714566600

    def test_plain_group_message(self):
        raw = {
            'message_id': 3,
            'date': 1714566600,
            'chat': {'id': -4242, 'type': 'group', 'title': 'Small Group'},
            'from': {'id': 9, 'first_name': 'Bob'},
            'caption': 'photo caption',
        }
        message = build_message(raw)

        assert message.channel_id == "-4242:general"
        assert message.channel_name == "Small Group"
        assert message.channel_topic == "No topic set"
        assert message.content == "photo caption"
        assert message.author_name == "Bob"

    def test_message_key_round_trip(self):
        key = message_key(-1001234567890, 42)
        assert key == "-1001234567890:42"
        assert split_message_key(key) == ("-1001234567890", "42")

    def test_filters(self):
        assert is_group_message(FORUM_MESSAGE) is True
        assert is_group_message({'chat': {'type': 'private'}}) is False
        assert is_from_bot({'from': {'is_bot': True}}) is True
        assert is_from_bot(FORUM_MESSAGE) is False

    def test_author_display_name_fallback(self):
        assert author_display_name({}) == "Unknown"


def make_api(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramAPI("123:abc", client=client)


class TestTelegramAPI:

    def test_successful_call(self):
        seen = []

        def handler(request):
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={'ok': True, 'result': {'message_id': 9}})

        api = make_api(handler)
        result = asyncio.run(api.send_message(-100, "hi", reply_markup={'inline_keyboard': []}))

        assert result == {'message_id': 9}
        path, payload = seen[0]
        assert path.endswith("/sendMessage")
        assert payload['chat_id'] == -100
        assert payload['parse_mode'] == 'HTML'

    def test_api_error_returns_none(self):
        def handler(request):
            return httpx.Response(400, json={'ok': False, 'description': 'Bad Request: chat not found'})

        api = make_api(handler)
        assert asyncio.run(api.get_chat(-1)) is None
        assert asyncio.run(api.delete_message(-1, 5)) is False

    def test_transport_error_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        assert asyncio.run(make_api(handler).get_me()) is None

    def test_get_updates_propagates_timeouts(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        api = make_api(handler)
        with pytest.raises(httpx.TimeoutException):
            asyncio.run(api.get_updates(0, timeout=1))
        # Other calls swallow timeouts
        assert asyncio.run(api.get_me()) is None

    def test_is_admin(self):
        def handler(request):
            user_id = json.loads(request.content)['user_id']
            status = 'administrator' if user_id == 1 else 'member'
            return httpx.Response(200, json={'ok': True, 'result': {'status': status}})

        api = make_api(handler)
        assert asyncio.run(api.is_admin(-100, 1)) is True
        assert asyncio.run(api.is_admin(-100, 2)) is False

    def test_kick_bans_then_unbans(self):
        methods = []

        def handler(request):
            methods.append(request.url.path.rsplit('/', 1)[-1])
            return httpx.Response(200, json={'ok': True, 'result': True})

        assert asyncio.run(make_api(handler).kick_member(-100, 555)) is True
        assert methods == ['banChatMember', 'unbanChatMember']


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
