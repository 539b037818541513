"""
Sentinel - Moderation Queue
Posts spam verdicts to the admin chat with one-click resolution buttons.
"""

import html
import logging
from typing import Dict, Optional

from config import Config
from models import DetectionVerdict, Message
from telegram_api import TelegramAPI
from telegram_mapper import split_message_key

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    'approve': '✅ Approve',
    'spam': '⚠️ Spam (Warn)',
    'kick': '🚫 Spam (Kick)',
}


def confidence_marker(confidence: float) -> str:
    if confidence >= 0.8:
        return '🔴'
    if confidence >= 0.6:
        return '🟠'
    if confidence >= 0.4:
        return '🟡'
    return '🟢'


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + '...'


def message_link(group_id: str, raw_message_id: str) -> Optional[str]:
    """t.me link for supergroup messages (private groups have none)."""
    if group_id.startswith('-100'):
        return f"https://t.me/c/{group_id[4:]}/{raw_message_id}"
    return None


def callback_data(action: str, message: Message) -> str:
    group_id, raw_message_id = split_message_key(message.message_id)
    return f"mod_{action}_{group_id}_{raw_message_id}_{message.author_id}"


class ModerationQueue:
    """Formats verdicts and sends them to ADMIN_CHAT_ID."""

    def __init__(self, api: TelegramAPI, config: Optional[Config] = None):
        self.api = api
        self.config = config or Config()

    def format_report(self, message: Message, verdict: DetectionVerdict) -> str:
        cfg = self.config
        esc = html.escape

        lines = [
            f"{confidence_marker(verdict.confidence)} <b>Potential Spam Detected</b>",
            "",
            f"👤 Author: {esc(message.author_name)} (<code>{esc(message.author_id)}</code>)",
            f"💬 Channel: {esc(message.channel_name)}",
            f"📊 Confidence: {round(verdict.confidence * 100)}% | Heuristic score: {verdict.heuristics.score}",
            f"🕒 {message.created_at.strftime('%Y-%m-%d %H:%M UTC')}",
            "",
            "📝 <b>Message:</b>",
            f"<code>{esc(_truncate(message.content, cfg.REPORT_MAX_CONTENT_CHARS))}</code>",
        ]

        if verdict.reasons:
            lines += ["", "⚠️ <b>Detection Reasons:</b>"]
            lines += [f"• {esc(r)}" for r in verdict.reasons[:cfg.REPORT_MAX_REASONS]]

        ai = verdict.ai_analysis
        if ai is not None:
            lines += [
                "",
                f"🤖 <b>AI Analysis:</b> {ai.classification.value} ({round(ai.confidence * 100)}%)",
                esc(ai.reasoning),
            ]
            if not ai.channel_relevant:
                lines.append("📌 Message appears off-topic for this channel")

        if verdict.similar_messages:
            lines += ["", f"🔁 <b>Similar Messages ({len(verdict.similar_messages)} found):</b>"]
            for match in verdict.similar_messages[:cfg.REPORT_MAX_SIMILAR]:
                record = match.record
                preview = _truncate(record.content, cfg.REPORT_SIMILAR_PREVIEW_CHARS)
                lines.append(
                    f"• {record.created_at.strftime('%Y-%m-%d')} in {esc(record.channel_id)}: "
                    f"\"{esc(preview)}\" ({round(match.similarity * 100)}%)"
                )

        group_id, raw_message_id = split_message_key(message.message_id)
        lines += ["", f"🆔 Message ID: <code>{esc(message.message_id)}</code>"]
        link = message_link(group_id, raw_message_id)
        if link:
            lines.append(f'🔗 <a href="{link}">Jump to message</a>')

        return "\n".join(lines)

    def build_action_buttons(self, message: Message) -> Dict:
        return {
            'inline_keyboard': [[
                {'text': label, 'callback_data': callback_data(action, message)}
                for action, label in ACTION_LABELS.items()
            ]]
        }

    async def send(self, message: Message, verdict: DetectionVerdict) -> bool:
        """Escalate a spam verdict. Non-spam verdicts are never sent."""
        if not verdict.is_spam:
            return False
        if not self.config.ADMIN_CHAT_ID:
            logger.warning("No ADMIN_CHAT_ID configured; spam report dropped")
            return False

        sent = await self.api.send_message(
            self.config.ADMIN_CHAT_ID,
            self.format_report(message, verdict),
            reply_markup=self.build_action_buttons(message),
        )
        if sent is None:
            logger.error(f"Failed to send report for message {message.message_id}")
            return False
        logger.info(f"📨 Reported message {message.message_id} to moderation queue")
        return True
