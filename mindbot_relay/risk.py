"""
Keyword-based self-harm risk detection.
"""

from collections.abc import Iterable

from .config import DEFAULT_RISK_PHRASES


class RiskDetector:
    """Flags text containing any of a fixed set of high-risk phrases."""

    def __init__(self, phrases: Iterable[str] = DEFAULT_RISK_PHRASES) -> None:
        self.phrases = tuple(phrase.lower() for phrase in phrases if phrase)

    def is_high_risk(self, text: str) -> bool:
        """Case-insensitive substring match against the phrase set."""
        lower = text.lower()
        return any(phrase in lower for phrase in self.phrases)
