"""
Sentinel - Google Gemini Adjudicator
Second opinion on borderline messages, with rate limiting and a safe fallback.
"""

import asyncio
import json
import logging
import re
import time
from collections import deque
from typing import Optional, Sequence

from google import genai

from config import Config
from models import AIResult, Classification

logger = logging.getLogger(__name__)

TRANSPORT_FAILURE = "AI analysis failed"
PARSE_FAILURE = "Failed to parse AI response"

_JSON_OBJECT = re.compile(r'\{[\s\S]*\}')

PROMPT_TEMPLATE = """You are a Telegram group moderation assistant. Analyze this message for spam/self-promotion.

Channel: #{channel_name}
Channel Topic: {channel_topic}
Author: {author_name}
Message:
\"\"\"
{text}
\"\"\"

Heuristic flags already detected:
{flags}

Analyze this message and determine:
1. Is this spam or unwanted self-promotion?
2. Is this message relevant to the channel's stated purpose?

Common spam patterns in community groups:
- Job postings in non-job channels
- Self-promotional introductions listing services/skills for hire
- Copy-paste promotional content posted across multiple channels
- "DM me" or "let's talk" calls to action for services

Respond with a single JSON object only:
{{
  "classification": "spam" | "likely_spam" | "uncertain" | "legitimate",
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation",
  "channelRelevant": true/false
}}"""


class AdjudicatorTransportError(Exception):
    """The model could not be reached or did not answer in time."""


def build_prompt(text: str, channel_name: str, channel_topic: str,
                 author_name: str, heuristic_reasons: Sequence[str]) -> str:
    flags = "\n".join(f"- {r}" for r in heuristic_reasons) or "- none"
    return PROMPT_TEMPLATE.format(
        channel_name=channel_name or "unknown",
        channel_topic=channel_topic or "No topic set",
        author_name=author_name or "unknown",
        text=text,
        flags=flags,
    )


def parse_ai_response(raw_text: Optional[str]) -> AIResult:
    """
    Turn a model reply into an AIResult.

    The outermost {...} block is parsed as JSON. Anything missing, malformed
    or out of range yields the uncertain fallback.
    """
    match = _JSON_OBJECT.search(raw_text or "")
    if not match:
        logger.error(f"No JSON object in AI response: {(raw_text or '')[:200]!r}")
        return AIResult.uncertain(PARSE_FAILURE)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"AI JSON parse error: {e}")
        return AIResult.uncertain(PARSE_FAILURE)

    if not isinstance(data, dict):
        return AIResult.uncertain(PARSE_FAILURE)

    try:
        classification = Classification(data.get('classification'))
    except ValueError:
        logger.warning(f"AI returned unknown classification: {data.get('classification')!r}")
        return AIResult.uncertain(PARSE_FAILURE)

    confidence = data.get('confidence')
    # bool is an int subclass
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return AIResult.uncertain(PARSE_FAILURE)
    if not 0.0 <= confidence <= 1.0:
        logger.warning(f"AI confidence out of range: {confidence}")
        return AIResult.uncertain(PARSE_FAILURE)

    channel_relevant = data.get('channelRelevant', True)
    if not isinstance(channel_relevant, bool):
        return AIResult.uncertain(PARSE_FAILURE)

    reasoning = data.get('reasoning', '')
    if not isinstance(reasoning, str):
        return AIResult.uncertain(PARSE_FAILURE)

    return AIResult(
        classification=classification,
        confidence=float(confidence),
        reasoning=reasoning,
        channel_relevant=channel_relevant,
    )


class GeminiAdjudicator:
    """
    Classifies borderline messages with Google's Gemini LLM.

    analyze() never raises: transport problems, timeouts and local rate
    limiting all degrade to an "uncertain" result. It returns None only when
    the adjudicator is disabled, in which case the AI stage is skipped.
    """

    def __init__(self, config: Optional[Config] = None, client=None):
        self.config = config or Config()
        self.model_name = self.config.GEMINI_MODEL
        self.rpm_limit = self.config.GEMINI_RPM_LIMIT
        self.timeout = self.config.AI_TIMEOUT_SECONDS
        self.max_retries = self.config.AI_MAX_RETRIES
        self.retry_backoff = self.config.AI_RETRY_BACKOFF_SECONDS

        # Rate limiting: timestamps of recent requests
        self._request_timestamps = deque()
        self.client = client
        self.enabled = client is not None

        if self.client is None and self.config.GEMINI_ENABLED:
            if self.config.GEMINI_API_KEY:
                try:
                    self.client = genai.Client(api_key=self.config.GEMINI_API_KEY)
                    self.enabled = True
                    logger.info(f"✨ Gemini adjudicator initialized (Model: {self.model_name})")
                except Exception as e:
                    logger.error(f"Failed to initialize Gemini: {e}")
            else:
                logger.warning("⚠️ Gemini enabled but no API key found. AI stage disabled.")

    def _check_rate_limit(self) -> bool:
        """
        Reserve a request slot for the current minute.
        Returns True if allowed, False if rate limited.
        """
        now = time.time()
        while self._request_timestamps and self._request_timestamps[0] < now - 60:
            self._request_timestamps.popleft()

        if len(self._request_timestamps) < self.rpm_limit:
            self._request_timestamps.append(now)
            return True
        return False

    async def _generate(self, prompt: str) -> str:
        """Single model call. Raises AdjudicatorTransportError on any failure."""
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.models.generate_content,
                    model=self.model_name,
                    contents=prompt,
                    config={'response_mime_type': 'application/json', 'temperature': 0.0},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AdjudicatorTransportError(f"timed out after {self.timeout}s") from e
        except Exception as e:
            raise AdjudicatorTransportError(str(e)) from e
        return response.text or ""

    async def analyze(self, text: str, channel_name: str, channel_topic: str,
                      author_name: str, heuristic_reasons: Sequence[str]) -> Optional[AIResult]:
        """
        Classify a message.

        Args:
            text: Message text
            channel_name: Channel (topic) name shown to the model
            channel_topic: Channel description shown to the model
            author_name: Display name of the author
            heuristic_reasons: Flags already raised by the heuristic scorer

        Returns:
            AIResult, or None if the adjudicator is disabled
        """
        if not self.enabled:
            return None

        if not self._check_rate_limit():
            logger.warning("⏳ Gemini rate limit reached. Treating as failed call.")
            return AIResult.uncertain(TRANSPORT_FAILURE)

        prompt = build_prompt(text, channel_name, channel_topic, author_name, heuristic_reasons)

        attempts = 1 + max(0, self.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                raw = await self._generate(prompt)
            except AdjudicatorTransportError as e:
                error_msg = str(e).lower()
                if 'quota' in error_msg or 'rate' in error_msg:
                    logger.warning(f"⏳ Gemini quota/rate limit: {e}")
                else:
                    logger.error(f"❌ Gemini call failed (attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.retry_backoff * attempt)
                    continue
                return AIResult.uncertain(TRANSPORT_FAILURE)
            return parse_ai_response(raw)

        return AIResult.uncertain(TRANSPORT_FAILURE)
