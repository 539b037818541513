"""
Sentinel Configuration
Spam & Self-Promotion Screening for Telegram Groups
"""

import os
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """Raised at startup when the configuration cannot be used."""


def _int_list(raw: str) -> Tuple[List[int], List[str]]:
    """Parse "1, 2, 3" into ints; entries that are not integers are returned separately."""
    values, invalid = [], []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            values.append(int(item))
        except ValueError:
            invalid.append(item)
    return values, invalid


class Config:
    # Telegram Settings
    BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
    ADMIN_CHAT_ID = os.getenv("ADMIN_CHAT_ID")  # Moderation queue chat
    ADMIN_USER_IDS, INVALID_ADMIN_USER_IDS = _int_list(os.getenv("ADMIN_USER_IDS", ""))
    POLL_TIMEOUT_SECONDS = 30

    # Detection thresholds
    HEURISTIC_THRESHOLD = int(os.getenv("HEURISTIC_THRESHOLD", "5"))         # int >= 1
    AI_THRESHOLD = float(os.getenv("AI_THRESHOLD", "0.7"))                   # 0.0 - 1.0
    SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))   # 0.0 - 1.0
    HISTORY_DAYS = int(os.getenv("HISTORY_DAYS", "7"))                       # lookback + retention window

    # Gemini adjudicator
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_ENABLED = os.getenv("GEMINI_ENABLED", "true").lower() in ("1", "true", "yes")
    GEMINI_RPM_LIMIT = int(os.getenv("GEMINI_RPM_LIMIT", "10"))
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "15"))
    AI_MAX_RETRIES = int(os.getenv("AI_MAX_RETRIES", "0"))  # transport errors only
    AI_RETRY_BACKOFF_SECONDS = float(os.getenv("AI_RETRY_BACKOFF_SECONDS", "1.0"))

    # Storage
    DATABASE_PATH = os.getenv("DATABASE_PATH", os.path.join("data", "sentinel.db"))
    CLEANUP_INTERVAL_HOURS = float(os.getenv("CLEANUP_INTERVAL_HOURS", "24"))

    # Moderation queue
    REPORT_MAX_CONTENT_CHARS = 1000
    REPORT_MAX_REASONS = 10
    REPORT_MAX_SIMILAR = 3
    REPORT_SIMILAR_PREVIEW_CHARS = 100

    # Spam Detection Lexicons
    SPAM_KEYWORDS = [
        # Job/work related
        "remote work", "work from home", "daily pay", "flexible hours",
        "hiring", "freelance", "freelancer", "freelancers needed",
        "job opportunity", "work opportunities", "overtime", "morning shift",
        "typing job", "copy and paste",

        # Self-promotion phrases
        "i'm a developer", "i'm an engineer", "my services",
        "years of experience", "years experience", "i can help you",
        "let's talk", "let's connect", "dm me", "dm me for", "reach out",
        "contact me", "book a call", "jump on a call",

        # Tech buzzwords in promotional framing
        "ai automation", "ai agent", "custom ai", "llm integration",
        "production-ready solutions", "ai-powered",

        # Looking for work
        "looking for projects", "looking for opportunities",
        "looking for clients", "looking for work", "available for hire",
        "open for work", "if you're looking", "i specialize in",
        "my expertise", "key projects",
    ]

    # Strong indicators, scored on top of the keyword pass
    HIGH_WEIGHT_PHRASES = [
        "daily pay", "freelancers needed", "dm me for", "book a call",
        "available for hire", "looking for clients", "freelance work",
    ]

    # (regex, label) - each matching pattern scores +2
    PROMO_PATTERNS = [
        (r'\d+\s*\+?\s*years?\s*(?:of\s*)?(?:experience|exp)', "years of experience claim"),
        (r'(?:morning|evening|night)\s*shift', "shift times"),
        (r'\b(?:\d{1,2}\s*)?(?:am|pm)\s*(?:to|-)\s*(?:\d{1,2}\s*)?(?:am|pm)\b', "am/pm range"),
        (r'\$\d+(?:/hr|/hour|/day|k)?', "rate or price"),
        (r'(?:senior|junior|lead)\s+(?:developer|engineer|designer)', "seniority and role title"),
    ]

    # (regex, label) - each matching pattern scores +1
    CONTACT_PATTERNS = [
        (r'[\w.+-]+@[\w-]+\.[\w.-]+', "email address"),
        (r'(?:discord|telegram|whatsapp)\s*[:#]?\s*[\w@#]+', "messenger handle"),
    ]

    TECH_STACK_TERMS = [
        "react", "node", "python", "javascript", "typescript", "aws",
        "docker", "kubernetes", "openai", "claude", "gpt",
    ]

    LONG_MESSAGE_CHARS = 500
    VERY_LONG_MESSAGE_CHARS = 1000
    MAX_EMOJIS = 5
    MAX_BULLETS = 3
    MAX_TECH_TERMS = 4

    # Logging
    LOG_FILE = os.getenv("LOG_FILE", os.path.join("logs", "sentinel.log"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    def validate(self, require_telegram: bool = False) -> List[str]:
        """Return a list of configuration problems (empty when usable)."""
        problems = []
        if self.HEURISTIC_THRESHOLD < 1:
            problems.append(f"HEURISTIC_THRESHOLD must be >= 1 (got {self.HEURISTIC_THRESHOLD})")
        if not 0.0 <= self.AI_THRESHOLD <= 1.0:
            problems.append(f"AI_THRESHOLD must be within 0..1 (got {self.AI_THRESHOLD})")
        if not 0.0 <= self.SIMILARITY_THRESHOLD <= 1.0:
            problems.append(f"SIMILARITY_THRESHOLD must be within 0..1 (got {self.SIMILARITY_THRESHOLD})")
        if self.HISTORY_DAYS < 1:
            problems.append(f"HISTORY_DAYS must be >= 1 (got {self.HISTORY_DAYS})")
        if self.AI_TIMEOUT_SECONDS <= 0:
            problems.append(f"AI_TIMEOUT_SECONDS must be > 0 (got {self.AI_TIMEOUT_SECONDS})")
        if self.AI_MAX_RETRIES < 0:
            problems.append(f"AI_MAX_RETRIES must be >= 0 (got {self.AI_MAX_RETRIES})")
        if self.GEMINI_RPM_LIMIT < 1:
            problems.append(f"GEMINI_RPM_LIMIT must be >= 1 (got {self.GEMINI_RPM_LIMIT})")
        if self.INVALID_ADMIN_USER_IDS:
            problems.append(f"ADMIN_USER_IDS has non-integer entries: {', '.join(self.INVALID_ADMIN_USER_IDS)}")
        if require_telegram:
            if not self.BOT_TOKEN:
                problems.append("Missing TELEGRAM_BOT_TOKEN")
            if not self.ADMIN_CHAT_ID:
                problems.append("Missing ADMIN_CHAT_ID")
        return problems

    def require_valid(self, require_telegram: bool = False):
        """Fail fast on startup if the configuration is unusable."""
        problems = self.validate(require_telegram=require_telegram)
        if problems:
            raise ConfigError("; ".join(problems))
