"""
Sentinel - Telegram Bot API client
Thin httpx wrapper; failures are logged and reported as None/False.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class TelegramAPI:
    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None):
        self.token = token
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(35.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5)
        )

    def _url(self, method: str) -> str:
        return f"{API_BASE}/bot{self.token}/{method}"

    async def call(self, method: str, payload: Optional[Dict] = None,
                   timeout: float = 10.0, raise_timeout: bool = False) -> Optional[Any]:
        """POST a Bot API method. Returns `result` on success, None otherwise."""
        try:
            response = await self.client.post(self._url(method), json=payload or {}, timeout=timeout)
            data = response.json()
        except httpx.TimeoutException:
            if raise_timeout:
                raise
            logger.warning(f"Telegram {method} timed out")
            return None
        except Exception as e:
            logger.error(f"Telegram {method} failed: {e}")
            return None

        if not data.get('ok'):
            logger.warning(f"Telegram {method} error: {data.get('description', data)}")
            return None
        return data.get('result')

    async def get_me(self) -> Optional[Dict]:
        return await self.call('getMe')

    async def get_updates(self, offset: int, timeout: int = 30) -> List[Dict]:
        """Long-poll for updates. Timeouts propagate so the caller can retry."""
        result = await self.call(
            'getUpdates',
            {
                'offset': offset,
                'timeout': timeout,
                'allowed_updates': ['message', 'callback_query'],
            },
            timeout=timeout + 5,
            raise_timeout=True,
        )
        return result or []

    async def get_chat(self, chat_id) -> Optional[Dict]:
        return await self.call('getChat', {'chat_id': chat_id})

    async def is_admin(self, chat_id, user_id) -> bool:
        member = await self.call('getChatMember', {'chat_id': chat_id, 'user_id': user_id})
        return bool(member) and member.get('status') in ('creator', 'administrator')

    async def send_message(self, chat_id, text: str, reply_markup: Optional[Dict] = None,
                           parse_mode: Optional[str] = 'HTML') -> Optional[Dict]:
        payload = {'chat_id': chat_id, 'text': text, 'disable_web_page_preview': True}
        if parse_mode:
            payload['parse_mode'] = parse_mode
        if reply_markup:
            payload['reply_markup'] = reply_markup
        return await self.call('sendMessage', payload)

    async def edit_message_text(self, chat_id, message_id, text: str) -> bool:
        # No reply_markup: Telegram drops the inline keyboard
        result = await self.call(
            'editMessageText',
            {'chat_id': chat_id, 'message_id': message_id, 'text': text},
        )
        return result is not None

    async def delete_message(self, chat_id, message_id) -> bool:
        return await self.call('deleteMessage', {'chat_id': chat_id, 'message_id': message_id}) is not None

    async def kick_member(self, chat_id, user_id) -> bool:
        """Ban then immediately unban, so the user can rejoin later."""
        banned = await self.call('banChatMember', {'chat_id': chat_id, 'user_id': user_id})
        if banned is None:
            return False
        await self.call(
            'unbanChatMember',
            {'chat_id': chat_id, 'user_id': user_id, 'only_if_banned': True},
        )
        return True

    async def answer_callback_query(self, callback_query_id: str, text: str = "",
                                    show_alert: bool = False) -> bool:
        payload = {'callback_query_id': callback_query_id, 'show_alert': show_alert}
        if text:
            payload['text'] = text
        return await self.call('answerCallbackQuery', payload) is not None

    async def close(self):
        await self.client.aclose()
