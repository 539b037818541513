"""
Sentinel - Data Model
Plain dataclasses shared by the detector, the store and the moderation queue.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Message:
    """An incoming chat message. Never mutated by the detector."""

    message_id: str
    author_id: str
    channel_id: str
    group_id: str
    content: str
    created_at: datetime
    # Display context (AI prompt + moderator report only)
    author_name: str = "unknown"
    channel_name: str = "unknown"
    channel_topic: str = "No topic set"


@dataclass(frozen=True)
class StoredMessage:
    """A message as persisted by the history store."""

    id: str
    user_id: str
    channel_id: str
    group_id: str
    content: str
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "StoredMessage":
        return cls(
            id=message.message_id,
            user_id=message.author_id,
            channel_id=message.channel_id,
            group_id=message.group_id,
            content=message.content,
            created_at=message.created_at,
        )


@dataclass(frozen=True)
class HeuristicResult:
    score: int = 0
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SimilarMatch:
    record: StoredMessage
    similarity: float


class Classification(str, Enum):
    SPAM = "spam"
    LIKELY_SPAM = "likely_spam"
    UNCERTAIN = "uncertain"
    LEGITIMATE = "legitimate"

    @property
    def is_spam_signal(self) -> bool:
        return self in (Classification.SPAM, Classification.LIKELY_SPAM)


@dataclass(frozen=True)
class AIResult:
    classification: Classification
    confidence: float
    reasoning: str
    channel_relevant: bool = True

    @classmethod
    def uncertain(cls, reasoning: str) -> "AIResult":
        """Fallback used whenever the adjudicator cannot give a usable answer."""
        return cls(
            classification=Classification.UNCERTAIN,
            confidence=0.5,
            reasoning=reasoning,
            channel_relevant=True,
        )


@dataclass(frozen=True)
class DetectionVerdict:
    """Final output of a detection run."""

    is_spam: bool
    confidence: float
    reasons: Tuple[str, ...]
    heuristics: HeuristicResult
    ai_analysis: Optional[AIResult] = None
    similar_messages: Tuple[SimilarMatch, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        ai = None
        if self.ai_analysis is not None:
            ai = {
                'classification': self.ai_analysis.classification.value,
                'confidence': self.ai_analysis.confidence,
                'reasoning': self.ai_analysis.reasoning,
                'channel_relevant': self.ai_analysis.channel_relevant,
            }
        return {
            'is_spam': self.is_spam,
            'confidence': round(self.confidence, 3),
            'reasons': list(self.reasons),
            'heuristic_score': self.heuristics.score,
            'ai_analysis': ai,
            'similar_messages': [
                {'id': m.record.id, 'similarity': round(m.similarity, 3)}
                for m in self.similar_messages
            ],
        }
