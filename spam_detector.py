"""
Sentinel - Spam Detection Engine
Combines heuristics, near-duplicate history and AI adjudication into one verdict
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from config import Config
from gemini_adjudicator import GeminiAdjudicator
from heuristics import HeuristicScorer
from message_store import MessageStore
from models import AIResult, Classification, DetectionVerdict, HeuristicResult, Message, SimilarMatch
from similarity import combined_similarity, has_comparable_content

logger = logging.getLogger(__name__)


class DetectionStage(Enum):
    INIT = "init"
    HEURISTIC_SCORED = "heuristic_scored"
    SIMILARITY_CHECKED = "similarity_checked"
    AI_EVALUATED = "ai_evaluated"
    AI_SKIPPED = "ai_skipped"
    FINAL = "final"


class SpamDetector:
    """
    Staged spam detection for a single message.

    1. Heuristic score (always)
    2. Fast path: score >= 2x threshold is spam, nothing else runs
    3. Near-duplicate scan of the author's recent history in the group
    4. AI adjudication for the ambiguous score band or any duplicate
    5. Fusion of all signals into is_spam + confidence

    Holds no per-message state; concurrent detect() calls are independent.
    """

    def __init__(self, store: MessageStore, adjudicator: Optional[GeminiAdjudicator] = None,
                 config: Optional[Config] = None, scorer: Optional[HeuristicScorer] = None):
        self.config = config or Config()
        self.store = store
        self.adjudicator = adjudicator
        self.scorer = scorer or HeuristicScorer(self.config)

    def _stage(self, message: Message, stage: DetectionStage):
        logger.debug(f"message {message.message_id}: {stage.value}")

    async def detect(self, message: Message) -> DetectionVerdict:
        """
        Run the full pipeline on a message.

        Args:
            message: The incoming message

        Returns:
            DetectionVerdict

        Raises:
            Whatever the history store raises; the caller decides how to
            handle a failed run.
        """
        threshold = self.config.HEURISTIC_THRESHOLD
        self._stage(message, DetectionStage.INIT)

        heuristics = self.scorer.analyze(message.content)
        self._stage(message, DetectionStage.HEURISTIC_SCORED)

        # Fast path for obvious spam
        if heuristics.score >= threshold * 2:
            self._stage(message, DetectionStage.FINAL)
            return DetectionVerdict(
                is_spam=True,
                confidence=min(heuristics.score / 15, 1.0),
                reasons=heuristics.reasons,
                heuristics=heuristics,
            )

        context_reasons: List[str] = []

        similar = await self.find_similar_messages(message)
        if similar:
            context_reasons.append(
                f"Found {len(similar)} similar message(s) in the past {self.config.HISTORY_DAYS} days"
            )
        self._stage(message, DetectionStage.SIMILARITY_CHECKED)

        ai_analysis: Optional[AIResult] = None
        if self.needs_ai(heuristics, len(similar)) and self.adjudicator is not None:
            ai_analysis = await self.adjudicator.analyze(
                message.content,
                message.channel_name,
                message.channel_topic,
                message.author_name,
                heuristics.reasons,
            )
        self._stage(
            message,
            DetectionStage.AI_EVALUATED if ai_analysis is not None else DetectionStage.AI_SKIPPED,
        )

        if ai_analysis is not None:
            if not ai_analysis.channel_relevant:
                context_reasons.append("Message not relevant to channel topic")
            if ai_analysis.classification.is_spam_signal:
                context_reasons.append(f"AI: {ai_analysis.reasoning}")

        verdict = DetectionVerdict(
            is_spam=self.final_decision(heuristics, ai_analysis, len(similar)),
            confidence=self.calculate_confidence(heuristics, ai_analysis, len(similar)),
            reasons=heuristics.reasons + tuple(context_reasons),
            heuristics=heuristics,
            ai_analysis=ai_analysis,
            similar_messages=tuple(similar),
        )
        self._stage(message, DetectionStage.FINAL)
        return verdict

    async def find_similar_messages(self, message: Message) -> List[SimilarMatch]:
        """Author's recent messages in the same group that look like this one."""
        # Short replies and lone emoji all look alike; nothing to compare
        if not has_comparable_content(message.content):
            return []

        since = datetime.now(timezone.utc) - timedelta(days=self.config.HISTORY_DAYS)
        history = await asyncio.to_thread(
            self.store.get_recent_messages,
            message.author_id,
            message.group_id,
            since,
        )

        matches = []
        for stored in history:
            # The message itself is saved before detection runs
            if stored.id == message.message_id:
                continue
            similarity = combined_similarity(stored.content, message.content)
            if similarity >= self.config.SIMILARITY_THRESHOLD:
                matches.append(SimilarMatch(record=stored, similarity=similarity))
        return matches

    def needs_ai(self, heuristics: HeuristicResult, similar_count: int) -> bool:
        threshold = self.config.HEURISTIC_THRESHOLD
        in_ambiguous_band = threshold / 2 <= heuristics.score < threshold * 2
        return in_ambiguous_band or similar_count > 0

    def final_decision(self, heuristics: HeuristicResult, ai_analysis: Optional[AIResult],
                       similar_count: int) -> bool:
        threshold = self.config.HEURISTIC_THRESHOLD
        score = heuristics.score

        # High heuristic score
        if score >= threshold:
            return True

        # AI is confident it's spam
        if (ai_analysis is not None
                and ai_analysis.classification.is_spam_signal
                and ai_analysis.confidence >= self.config.AI_THRESHOLD):
            return True

        # Repeated copy-paste
        if similar_count >= 2:
            return True

        # Medium score + a duplicate, unless the AI vouches for it
        if (score >= threshold / 2
                and similar_count >= 1
                and (ai_analysis is None or ai_analysis.classification != Classification.LEGITIMATE)):
            return True

        # Off-topic + promotional
        if ai_analysis is not None and not ai_analysis.channel_relevant and score >= threshold / 2:
            return True

        return False

    def calculate_confidence(self, heuristics: HeuristicResult, ai_analysis: Optional[AIResult],
                             similar_count: int) -> float:
        confidence = min(heuristics.score / 12, 0.4)
        if ai_analysis is not None and ai_analysis.classification.is_spam_signal:
            confidence += ai_analysis.confidence * 0.4
        confidence += min(similar_count * 0.1, 0.2)
        return max(0.0, min(confidence, 1.0))
