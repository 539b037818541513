"""
Tests for moderator button handling.

Run with: python -m pytest tests/test_moderation_actions.py -v
"""
import sys
import os
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from config import Config
from message_store import MessageStore
from models import StoredMessage
from moderation_actions import ModerationActions, parse_callback_data

GROUP = "-1001234567890"
KEY = f"{GROUP}:42"
ADMIN_ID = 1001


def callback(action, moderator_id=ADMIN_ID):
    return {
        'id': 'cb-1',
        'from': {'id': moderator_id, 'first_name': 'Mod'},
        'data': f"mod_{action}_{GROUP}_42_555",
        'message': {
            'message_id': 77,
            'chat': {'id': -100999},
            'text': "Potential Spam Detected\n\nCheck out my services",
        },
    }


@pytest.fixture
def api():
    mock = AsyncMock()
    mock.is_admin.return_value = False
    mock.delete_message.return_value = True
    mock.get_chat.return_value = {'title': 'Dev Chat'}
    mock.send_message.return_value = {'message_id': 5}
    mock.kick_member.return_value = True
    return mock


@pytest.fixture
def store(tmp_path):
    s = MessageStore(str(tmp_path / "test.db"))
    s.initialize()
    s.save_message(StoredMessage(
        KEY, "555", f"{GROUP}:general", GROUP, "Check out my services",
        datetime.now(timezone.utc) - timedelta(minutes=5),
    ))
    return s


@pytest.fixture
def actions(api, store):
    config = Config()
    config.ADMIN_USER_IDS = [ADMIN_ID]
    return ModerationActions(api, store, config)


def recent(store):
    return store.get_recent_messages("555", GROUP, datetime.now(timezone.utc) - timedelta(days=1))


class TestParseCallbackData:

    def test_valid(self):
        parsed = parse_callback_data(f"mod_kick_{GROUP}_42_555")
        assert parsed.action == "kick"
        assert parsed.group_id == GROUP
        assert parsed.message_id == "42"
        assert parsed.user_id == "555"
        assert parsed.store_key == KEY

    @pytest.mark.parametrize("data", [
        None, "", "mod_ban_-100_1_2", "mod_kick_-100_1", "approve_-100_1_2", "mod_kick_abc_1_2",
    ])
    def test_invalid(self, data):
        assert parse_callback_data(data) is None


def test_non_moderator_is_rejected(actions, api, store):
    handled = asyncio.run(actions.handle_callback(callback("spam", moderator_id=2002)))

    assert handled is False
    api.answer_callback_query.assert_awaited_once_with(
        'cb-1', "You do not have permission to use moderation actions.", show_alert=True
    )
    api.delete_message.assert_not_awaited()
    assert len(recent(store)) == 1
    assert store.get_moderation_log(KEY) == []


def test_chat_admin_is_accepted(actions, api, store):
    api.is_admin.return_value = True
    assert asyncio.run(actions.handle_callback(callback("approve", moderator_id=2002))) is True
    api.is_admin.assert_awaited_once_with(GROUP, 2002)


def test_approve(actions, api, store):
    assert asyncio.run(actions.handle_callback(callback("approve"))) is True

    api.delete_message.assert_not_awaited()
    assert len(recent(store)) == 1
    log = store.get_moderation_log(KEY)
    assert [(e['action'], e['moderator_id']) for e in log] == [("approved", str(ADMIN_ID))]

    chat_id, message_id, text = api.edit_message_text.call_args.args
    assert (chat_id, message_id) == (-100999, 77)
    assert text.endswith("✅ Approved by Mod")


def test_spam_warns_and_deletes(actions, api, store):
    assert asyncio.run(actions.handle_callback(callback("spam"))) is True

    api.delete_message.assert_awaited_once_with(GROUP, "42")
    assert recent(store) == []
    user_id, notice = api.send_message.call_args.args
    assert user_id == "555"
    assert "Dev Chat" in notice
    api.kick_member.assert_not_awaited()
    assert [e['action'] for e in store.get_moderation_log(KEY)] == ["spam"]


def test_kick(actions, api, store):
    assert asyncio.run(actions.handle_callback(callback("kick"))) is True

    api.kick_member.assert_awaited_once_with(GROUP, "555")
    assert recent(store) == []
    assert [e['action'] for e in store.get_moderation_log(KEY)] == ["spam_kick"]
    assert "Kicked" in api.edit_message_text.call_args.args[2]


def test_failed_kick_is_logged_as_spam(actions, api, store):
    api.kick_member.return_value = False
    assert asyncio.run(actions.handle_callback(callback("kick"))) is True
    assert [e['action'] for e in store.get_moderation_log(KEY)] == ["spam"]
    assert "kick failed" in api.edit_message_text.call_args.args[2]


def test_message_already_gone(actions, api, store):
    api.delete_message.return_value = False
    api.send_message.return_value = None
    assert asyncio.run(actions.handle_callback(callback("spam"))) is True
    assert recent(store) == []


def test_unknown_callback_is_ignored(actions, api):
    cb = callback("spam")
    cb['data'] = "something_else"
    assert asyncio.run(actions.handle_callback(cb)) is False
    api.answer_callback_query.assert_not_awaited()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
