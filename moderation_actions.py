"""
Sentinel - Moderator Actions
Handles the Approve / Spam (Warn) / Spam (Kick) buttons on queue reports.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from config import Config
from message_store import MessageStore
from telegram_api import TelegramAPI
from telegram_mapper import message_key

logger = logging.getLogger(__name__)

_CALLBACK = re.compile(r'^mod_(approve|spam|kick)_(-?\d+)_(\d+)_(\d+)$')

MAX_REPORT_CHARS = 4000

USER_NOTICE = (
    "⚠️ Your message in <b>{group}</b> was removed as it appears to be spam or "
    "unwanted self-promotion.\n\nPlease review the group rules before posting again. "
    "If you believe this was a mistake, contact a group admin."
)


@dataclass(frozen=True)
class ModAction:
    action: str
    group_id: str
    message_id: str
    user_id: str

    @property
    def store_key(self) -> str:
        return message_key(self.group_id, self.message_id)


def parse_callback_data(data: Optional[str]) -> Optional[ModAction]:
    match = _CALLBACK.match(data or '')
    if not match:
        return None
    action, group_id, message_id, user_id = match.groups()
    return ModAction(action=action, group_id=group_id, message_id=message_id, user_id=user_id)


class ModerationActions:
    def __init__(self, api: TelegramAPI, store: MessageStore, config: Optional[Config] = None):
        self.api = api
        self.store = store
        self.config = config or Config()

    async def _is_moderator(self, group_id: str, user_id: int) -> bool:
        if user_id in self.config.ADMIN_USER_IDS:
            return True
        return await self.api.is_admin(group_id, user_id)

    async def handle_callback(self, callback_query: Dict) -> bool:
        """
        Resolve a report button press.

        Returns True if an action was carried out.
        """
        parsed = parse_callback_data(callback_query.get('data'))
        if parsed is None:
            return False

        moderator = callback_query.get('from', {})
        moderator_id = moderator.get('id')
        moderator_name = moderator.get('first_name') or str(moderator_id)

        if not await self._is_moderator(parsed.group_id, moderator_id):
            await self.api.answer_callback_query(
                callback_query['id'],
                "You do not have permission to use moderation actions.",
                show_alert=True,
            )
            return False

        await self.api.answer_callback_query(callback_query['id'])

        report = callback_query.get('message') or {}
        try:
            if parsed.action == 'approve':
                outcome = self._approve(parsed, moderator_id, moderator_name)
            elif parsed.action == 'spam':
                outcome = await self._remove(parsed, moderator_id, moderator_name, kick=False)
            else:
                outcome = await self._remove(parsed, moderator_id, moderator_name, kick=True)
        except Exception as e:
            logger.error(f"Error handling moderation action {parsed}: {e}", exc_info=True)
            return False

        if report.get('message_id'):
            text = (report.get('text') or '')[:MAX_REPORT_CHARS]
            await self.api.edit_message_text(
                report['chat']['id'], report['message_id'], f"{text}\n\n{outcome}"
            )
        logger.info(f"🛡️ {parsed.action} on {parsed.store_key} by {moderator_name}")
        return True

    def _approve(self, parsed: ModAction, moderator_id, moderator_name: str) -> str:
        self.store.log_moderation_action(parsed.store_key, parsed.user_id, 'approved', str(moderator_id))
        return f"✅ Approved by {moderator_name}"

    async def _remove(self, parsed: ModAction, moderator_id, moderator_name: str, kick: bool) -> str:
        deleted = await self.api.delete_message(parsed.group_id, parsed.message_id)
        if not deleted:
            logger.info(f"Could not delete message {parsed.store_key} (already gone?)")
        self.store.delete_message(parsed.store_key)

        chat = await self.api.get_chat(parsed.group_id) or {}
        notice = USER_NOTICE.format(group=chat.get('title') or 'the group')
        if await self.api.send_message(parsed.user_id, notice) is None:
            logger.info(f"Could not notify user {parsed.user_id}")

        if kick:
            if await self.api.kick_member(parsed.group_id, parsed.user_id):
                self.store.log_moderation_action(
                    parsed.store_key, parsed.user_id, 'spam_kick', str(moderator_id)
                )
                return f"🚫 Kicked and message deleted by {moderator_name}"
            logger.warning(f"Kick failed for user {parsed.user_id} in {parsed.group_id}")
            self.store.log_moderation_action(parsed.store_key, parsed.user_id, 'spam', str(moderator_id))
            return f"⚠️ Message deleted by {moderator_name} (kick failed, check bot permissions)"

        self.store.log_moderation_action(parsed.store_key, parsed.user_id, 'spam', str(moderator_id))
        return f"⚠️ Marked as spam: warned and message deleted by {moderator_name}"
