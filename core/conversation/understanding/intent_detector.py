"""
Keyword intent detection for the guided flow.

The first question of the flow asks whether the user needs a driver, a
software app or a game. Answers are matched on keywords; anything else that
looks like a real request falls back to a software search so the user is
never stuck on the first question.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass

from config import settings
from models.schemas import Intent

logger = logging.getLogger(__name__)


@dataclass
class IntentPattern:
    """Keyword that maps a message to an intent"""
    keyword: str
    intent: Intent


@dataclass
class DetectedIntent:
    """Result of intent detection"""
    intent: Optional[Intent]
    query_name: Optional[str] = None
    matched_keyword: Optional[str] = None
    original_message: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        """True when the intent was defaulted from free text"""
        return self.intent is not None and self.matched_keyword is None


class IntentDetector:
    """
    Maps the answer to the intent question onto an Intent.

    Keywords are checked in priority order: "driver" wins over "game",
    which wins over "software"/"app".
    """

    def __init__(self, min_free_text_length: Optional[int] = None):
        self._min_free_text_length = min_free_text_length
        self.patterns: List[IntentPattern] = [
            IntentPattern("driver", Intent.DRIVER),
            IntentPattern("game", Intent.GAME),
            IntentPattern("software", Intent.SOFTWARE),
            IntentPattern("app", Intent.SOFTWARE),
        ]

    @property
    def min_free_text_length(self) -> int:
        if self._min_free_text_length is not None:
            return self._min_free_text_length
        return settings.MIN_FREE_TEXT_QUERY_LENGTH

    def detect(self, message: str) -> DetectedIntent:
        """
        Detect the intent of a message.

        Args:
            message: Raw user text or clicked option label

        Returns:
            DetectedIntent; intent is None when nothing could be inferred
        """
        lower = (message or "").lower()

        for pattern in self.patterns:
            if pattern.keyword in lower:
                return DetectedIntent(
                    intent=pattern.intent,
                    matched_keyword=pattern.keyword,
                    original_message=message,
                )

        # Free text such as "I need VLC" is treated as a software request
        if len(lower.strip()) >= self.min_free_text_length:
            logger.debug(f"No intent keyword in {message!r}, defaulting to software")
            return DetectedIntent(
                intent=Intent.SOFTWARE,
                query_name=message.strip(),
                original_message=message,
            )

        return DetectedIntent(intent=None, original_message=message)


# Singleton instance for easy access
intent_detector = IntentDetector()
