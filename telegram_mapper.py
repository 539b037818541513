"""
Sentinel - Telegram update mapping
Keeps Bot API payload details out of the detector.

Telegram message ids are only unique within a chat, so the core message id
is "<chat_id>:<message_id>". A forum topic is the "channel"; chats without
topics use a single "general" channel.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from models import Message

GROUP_CHAT_TYPES = ('group', 'supergroup')
GENERAL_TOPIC = "general"


def message_key(chat_id, message_id) -> str:
    return f"{chat_id}:{message_id}"


def split_message_key(key: str) -> Tuple[str, str]:
    chat_id, _, message_id = key.rpartition(':')
    return chat_id, message_id


def is_group_message(raw: Dict) -> bool:
    return raw.get('chat', {}).get('type') in GROUP_CHAT_TYPES


def is_from_bot(raw: Dict) -> bool:
    return bool(raw.get('from', {}).get('is_bot'))


def message_text(raw: Dict) -> str:
    return raw.get('text') or raw.get('caption') or ''


def _topic(raw: Dict) -> Tuple[str, Optional[str]]:
    """(topic id, topic name if Telegram included it)"""
    if not raw.get('is_topic_message'):
        return GENERAL_TOPIC, None
    thread_id = raw.get('message_thread_id')
    created = (raw.get('reply_to_message') or {}).get('forum_topic_created') or {}
    return str(thread_id), created.get('name')


def author_display_name(user: Dict) -> str:
    name = user.get('first_name') or 'Unknown'
    if user.get('username'):
        name = f"{name} (@{user['username']})"
    return name


def build_message(raw: Dict, chat_info: Optional[Dict] = None) -> Message:
    """Build a core Message from a Bot API `message` object."""
    chat = raw.get('chat', {})
    chat_id = chat.get('id')
    user = raw.get('from', {})

    topic_id, topic_name = _topic(raw)
    chat_title = chat.get('title') or str(chat_id)
    channel_name = f"{chat_title} / {topic_name}" if topic_name else chat_title

    description = (chat_info or {}).get('description') or "No topic set"

    return Message(
        message_id=message_key(chat_id, raw.get('message_id')),
        author_id=str(user.get('id')),
        channel_id=f"{chat_id}:{topic_id}",
        group_id=str(chat_id),
        content=message_text(raw),
        created_at=datetime.fromtimestamp(raw.get('date', 0), tz=timezone.utc),
        author_name=author_display_name(user),
        channel_name=channel_name,
        channel_topic=description,
    )
