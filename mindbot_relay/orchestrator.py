"""
Chat turn orchestration for the MindBot Relay service.

A chat turn fans one user message out to the risk detector, the sentiment
classifier and the completion service, then records the turn and the derived
mood. The response is assembled from the values computed during the turn, never
re-read from storage.
"""

import asyncio
import logging
from typing import Protocol

from .errors import InvalidInputError
from .models import ChatReply, ChatTurn, MoodEntry, StoredMood, utc_now
from .risk import RiskDetector
from .sentiment import NEUTRAL_LABEL
from .store import ChatStore, MoodStore

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, text: str) -> str: ...


class Completer(Protocol):
    async def complete(self, user_message: str) -> str: ...


class ChatOrchestrator:
    """
    Handles a single chat message end to end.

    Sentiment classification never fails a turn (it degrades to "neutral").
    A failure of the completion service or of either store write propagates to
    the caller. The two writes are independent: if the mood write fails after
    the chat turn was stored, the chat turn is kept.
    """

    def __init__(
        self,
        risk_detector: RiskDetector,
        sentiment: Classifier,
        completion: Completer,
        chat_store: ChatStore,
        mood_store: MoodStore,
    ) -> None:
        self.risk_detector = risk_detector
        self.sentiment = sentiment
        self.completion = completion
        self.chat_store = chat_store
        self.mood_store = mood_store

    async def handle_chat(self, message: str | None) -> ChatReply:
        """
        Classify, answer and record one user message.

        Args:
            message: The user's raw message

        Returns:
            The reply together with the derived sentiment and risk flag

        Raises:
            InvalidInputError: If the message is missing or empty
        """
        if not message:
            raise InvalidInputError("message")

        risk = self.risk_detector.is_high_risk(message)
        if risk:
            logger.warning("High-risk phrase detected in chat message")

        # The reply depends only on the raw message, so classification runs alongside it.
        sentiment_task = asyncio.ensure_future(self.sentiment.classify(message))
        try:
            reply = await self.completion.complete(message)
        except BaseException:
            sentiment_task.cancel()
            raise
        try:
            sentiment = await sentiment_task
        except Exception:
            logger.exception("Sentiment classification failed, using neutral label")
            sentiment = NEUTRAL_LABEL

        await self.chat_store.add(
            ChatTurn(
                message=message,
                reply=reply,
                sentiment=sentiment,
                risk=risk,
                timestamp=utc_now(),
            )
        )
        await self.mood_store.add(MoodEntry(mood=sentiment, timestamp=utc_now()))

        return ChatReply(reply=reply, sentiment=sentiment, risk=risk)


class MoodService:
    """Reads and appends standalone mood entries."""

    def __init__(self, mood_store: MoodStore) -> None:
        self.mood_store = mood_store

    async def get_moods(self) -> list[StoredMood]:
        return await self.mood_store.fetch_all()

    async def append_mood(self, mood: str | None) -> list[StoredMood]:
        """
        Record a mood and return the full, current list.

        Raises:
            InvalidInputError: If the mood is missing or empty
        """
        if not mood:
            raise InvalidInputError("mood")

        await self.mood_store.add(MoodEntry(mood=mood, timestamp=utc_now()))
        return await self.mood_store.fetch_all()
