"""
Sentinel - Heuristic Scorer
Rule-based suspicion score for self-promotion / job spam
"""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from config import Config
from models import HeuristicResult

logger = logging.getLogger(__name__)


class HeuristicScorer:
    """
    Scores a single message text against fixed rule tables.

    Every rule category runs on every message and adds to the score:
    - Keywords: +1 per keyword found
    - High-weight phrases: +2 per phrase (on top of the keyword pass)
    - Promotional patterns: +2 per pattern
    - Contact info: +1 per pattern
    - Length: +1 over 500 chars, +1 more over 1000
    - Emojis: +1 over 5
    - Bullet lists: +1 over 3 bullet lines
    - Tech stack listing: +2 over 4 distinct technologies

    The result depends on the text alone.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self._compile_patterns()

    def _compile_patterns(self):
        """Build the rule tables once"""
        # (needle, reason, weight)
        self.keyword_rules: List[Tuple[str, str, int]] = [
            (kw.lower(), f'Contains keyword: "{kw}"', 1)
            for kw in self.config.SPAM_KEYWORDS
        ]
        self.phrase_rules: List[Tuple[str, str, int]] = [
            (phrase.lower(), f'Contains high-weight phrase: "{phrase}"', 2)
            for phrase in self.config.HIGH_WEIGHT_PHRASES
        ]

        # (pattern, reason, weight)
        self.promo_rules: List[Tuple[Pattern, str, int]] = [
            (re.compile(pattern, re.IGNORECASE), f"Matches promotional pattern: {label}", 2)
            for pattern, label in self.config.PROMO_PATTERNS
        ]
        self.contact_rules: List[Tuple[Pattern, str, int]] = [
            (re.compile(pattern, re.IGNORECASE), f"Contains contact information ({label})", 1)
            for pattern, label in self.config.CONTACT_PATTERNS
        ]

        terms = sorted(self.config.TECH_STACK_TERMS, key=len, reverse=True)
        self.tech_stack_pattern = re.compile(
            '|'.join(re.escape(t.lower()) for t in terms), re.IGNORECASE
        )

        self.bullet_pattern = re.compile(r'^[ \t]*[-•*]\s', re.MULTILINE)

        # Emoji code points (variation selectors and joiners are not counted)
        self.emoji_pattern = re.compile(
            r'[\U0001F300-\U0001F5FF]|'  # Symbols & pictographs
            r'[\U0001F600-\U0001F64F]|'  # Emoticons
            r'[\U0001F680-\U0001F6FF]|'  # Transport & map symbols
            r'[\U0001F900-\U0001F9FF]|'  # Supplemental symbols
            r'[\U0001FA70-\U0001FAFF]|'  # Symbols & pictographs ext-A
            r'[\U0001F1E6-\U0001F1FF]|'  # Regional indicators (flags)
            r'[\U00002600-\U000026FF]|'  # Misc symbols
            r'[\U00002700-\U000027BF]|'  # Dingbats
            r'[\U00002B50-\U00002B55]|'  # Stars and circles
            r'[\U00002934-\U00002935]|'  # Arrows
            r'[\U00003030\U0000303D]'     # Wavy dash, part alternation mark
        )

    def analyze(self, text: str) -> HeuristicResult:
        """
        Score a message text.

        Args:
            text: Raw message text

        Returns:
            HeuristicResult with the summed score and reasons in rule order
        """
        if not text:
            return HeuristicResult(score=0, reasons=())

        content = text.lower()
        score = 0
        reasons: List[str] = []

        for hits in (
            self.keyword_hits(content),
            self.phrase_hits(content),
            self.pattern_hits(content),
            self.contact_hits(content),
            self.length_hits(text),
            self.emoji_hits(text),
            self.bullet_hits(text),
            self.tech_stack_hits(content),
        ):
            for reason, weight in hits:
                score += weight
                reasons.append(reason)

        return HeuristicResult(score=score, reasons=tuple(reasons))

    def keyword_hits(self, content: str) -> List[Tuple[str, int]]:
        return [(reason, w) for needle, reason, w in self.keyword_rules if needle in content]

    def phrase_hits(self, content: str) -> List[Tuple[str, int]]:
        return [(reason, w) for needle, reason, w in self.phrase_rules if needle in content]

    def pattern_hits(self, content: str) -> List[Tuple[str, int]]:
        return [(reason, w) for pattern, reason, w in self.promo_rules if pattern.search(content)]

    def contact_hits(self, content: str) -> List[Tuple[str, int]]:
        return [(reason, w) for pattern, reason, w in self.contact_rules if pattern.search(content)]

    def length_hits(self, text: str) -> List[Tuple[str, int]]:
        hits = []
        if len(text) > self.config.LONG_MESSAGE_CHARS:
            hits.append((f"Long message (>{self.config.LONG_MESSAGE_CHARS} chars)", 1))
        if len(text) > self.config.VERY_LONG_MESSAGE_CHARS:
            hits.append((f"Very long message (>{self.config.VERY_LONG_MESSAGE_CHARS} chars)", 1))
        return hits

    def emoji_hits(self, text: str) -> List[Tuple[str, int]]:
        emoji_count = len(self.emoji_pattern.findall(text))
        if emoji_count > self.config.MAX_EMOJIS:
            return [(f"Excessive emojis ({emoji_count})", 1)]
        return []

    def bullet_hits(self, text: str) -> List[Tuple[str, int]]:
        bullet_count = len(self.bullet_pattern.findall(text))
        if bullet_count > self.config.MAX_BULLETS:
            return [(f"List formatting ({bullet_count} bullets)", 1)]
        return []

    def tech_stack_hits(self, content: str) -> List[Tuple[str, int]]:
        technologies = {m.lower() for m in self.tech_stack_pattern.findall(content)}
        if len(technologies) > self.config.MAX_TECH_TERMS:
            return [(f"Tech stack listing ({len(technologies)} technologies)", 2)]
        return []


_default_scorer: Optional[HeuristicScorer] = None


def analyze_heuristics(text: str) -> HeuristicResult:
    """Score text with the default lexicons."""
    global _default_scorer
    if _default_scorer is None:
        _default_scorer = HeuristicScorer()
    return _default_scorer.analyze(text)
