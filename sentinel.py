"""
Sentinel - Main Bot
Screens Telegram group messages for spam/self-promotion and escalates to moderators
"""

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx

from config import Config, ConfigError
from gemini_adjudicator import GeminiAdjudicator
from message_store import MessageStore
from models import DetectionVerdict, Message, StoredMessage
from moderation_actions import ModerationActions
from moderation_queue import ModerationQueue
from spam_detector import SpamDetector
from telegram_api import TelegramAPI
from telegram_mapper import build_message, is_from_bot, is_group_message, message_text

logger = logging.getLogger(__name__)


def setup_logging(config: Config):
    log_dir = os.path.dirname(config.LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(config.LOG_FILE),
            logging.StreamHandler()
        ]
    )
    # httpx logs every request URL, which includes the bot token
    logging.getLogger("httpx").setLevel(logging.WARNING)


class Sentinel:
    """
    Sentinel Bot - Telegram spam screening

    Per group message:
    - Save to history (needed for near-duplicate checks)
    - Run the staged detector
    - Post spam verdicts to the admin chat with action buttons

    A failure while processing one message is logged and the message is
    treated as not spam, so the loop keeps going.
    """

    def __init__(self, config: Optional[Config] = None, api: Optional[TelegramAPI] = None,
                 store: Optional[MessageStore] = None, detector: Optional[SpamDetector] = None,
                 queue: Optional[ModerationQueue] = None, actions: Optional[ModerationActions] = None):
        self.config = config or Config()
        self.api = api or TelegramAPI(self.config.BOT_TOKEN)
        self.store = store or MessageStore(self.config.DATABASE_PATH)
        self.detector = detector or SpamDetector(
            self.store, GeminiAdjudicator(self.config), self.config
        )
        self.queue = queue or ModerationQueue(self.api, self.config)
        self.actions = actions or ModerationActions(self.api, self.store, self.config)

        # chat_id -> getChat result (title, description)
        self.chat_info: Dict[int, Dict] = {}

        self.stats = {
            'messages_checked': 0,
            'spam_detected': 0,
            'reports_sent': 0,
            'errors': 0,
            'start_time': datetime.now(timezone.utc)
        }

        self.running = True
        self.offset = 0
        self._cleanup_task: Optional[asyncio.Task] = None

        logger.info("🛡️ Sentinel initialized")

    async def start(self):
        """Initialize storage and start polling"""
        logger.info("🛡️ Sentinel starting...")

        self.store.initialize()
        self._run_cleanup()
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

        bot_info = await self.api.get_me()
        if bot_info:
            logger.info(f"Bot: @{bot_info.get('username', 'unknown')} (ID: {bot_info.get('id')})")

        try:
            await self._poll_updates()
        finally:
            self._cleanup_task.cancel()

    def stop(self):
        logger.info("Shutting down gracefully...")
        self.running = False

    async def _poll_updates(self):
        logger.info("Starting update polling...")

        while self.running:
            try:
                updates = await self.api.get_updates(self.offset, self.config.POLL_TIMEOUT_SECONDS)
                for update in updates:
                    self.offset = update['update_id'] + 1
                    await self._handle_update(update)
            except httpx.TimeoutException:
                continue
            except Exception as e:
                logger.error(f"Polling error: {e}")
                await asyncio.sleep(5)

    async def _handle_update(self, update: Dict):
        try:
            if 'callback_query' in update:
                await self.actions.handle_callback(update['callback_query'])
                return

            raw = update.get('message')
            if raw:
                await self._handle_message(raw)
        except Exception as e:
            logger.error(f"Error handling update: {e}", exc_info=True)

    async def _handle_message(self, raw: Dict):
        # Only moderate group messages from humans with text
        if not is_group_message(raw) or is_from_bot(raw) or not message_text(raw):
            return

        chat_id = raw['chat']['id']
        user_id = raw.get('from', {}).get('id')
        if user_id in self.config.ADMIN_USER_IDS or await self.api.is_admin(chat_id, user_id):
            return

        chat_info = await self._get_chat_info(chat_id)
        await self.process_message(build_message(raw, chat_info))

    async def _get_chat_info(self, chat_id: int) -> Dict:
        if chat_id not in self.chat_info:
            self.chat_info[chat_id] = await self.api.get_chat(chat_id) or {}
        return self.chat_info[chat_id]

    async def process_message(self, message: Message) -> Optional[DetectionVerdict]:
        """
        Save, screen and (if spam) escalate one message.

        Returns the verdict, or None if processing failed.
        """
        self.stats['messages_checked'] += 1
        try:
            self.store.save_message(StoredMessage.from_message(message))
            verdict = await self.detector.detect(message)
        except Exception as e:
            self.stats['errors'] += 1
            logger.error(f"Error processing message {message.message_id}: {e}", exc_info=True)
            return None

        if verdict.is_spam:
            self.stats['spam_detected'] += 1
            logger.warning(
                f"🚨 SPAM suspected from {message.author_name} in {message.channel_name} "
                f"({verdict.confidence:.0%}): {list(verdict.reasons)}"
            )
            if await self.queue.send(message, verdict):
                self.stats['reports_sent'] += 1
        else:
            logger.debug(f"Message {message.message_id} clean: {verdict.to_dict()}")
        return verdict

    def _run_cleanup(self) -> int:
        try:
            return self.store.clean_old_messages(self.config.HISTORY_DAYS)
        except Exception as e:
            logger.error(f"Error cleaning old messages: {e}")
            return 0

    async def _cleanup_loop(self):
        interval = self.config.CLEANUP_INTERVAL_HOURS * 3600
        while self.running:
            await asyncio.sleep(interval)
            self._run_cleanup()


async def main():
    print("""
╔═══════════════════════════════════════════════════╗
║                 🛡️  SENTINEL                       ║
║      Telegram Spam & Self-Promotion Screening     ║
╚═══════════════════════════════════════════════════╝
    """)

    config = Config()
    setup_logging(config)
    try:
        config.require_valid(require_telegram=True)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    bot = Sentinel(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, bot.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        await bot.start()
    finally:
        await bot.api.close()
        logger.info("Telegram client closed")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
