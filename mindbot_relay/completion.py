"""
Client for the external chat-completion service (OpenAI-compatible API).
"""

import logging
from typing import Any

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an empathetic mental health support chatbot. Always respond kindly, "
    "encourage conversation, and avoid giving medical advice. If user is at risk, "
    "encourage professional help."
)

FALLBACK_REPLY = "I'm here to listen. Can you tell me more about how you're feeling?"


def parse_completion_reply(completion: Any) -> str | None:
    """Return the first choice's message content, or None if it is absent or empty."""
    choices = getattr(completion, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if not isinstance(content, str) or not content:
        return None
    return content


class CompletionClient:
    """
    Generates a supportive reply to a single user message.

    Transport and service failures are not absorbed here; they propagate to
    the caller as `openai.APIError` subclasses.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._client = client
        self.model = model
        self.system_prompt = system_prompt

    def build_messages(self, user_message: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": user_message},
        ]

    async def complete(self, user_message: str) -> str:
        """
        Ask the language model for a reply to `user_message`.

        Returns:
            The reply text, or the fixed fallback reply if the response has none
        """
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(user_message),
        )

        reply = parse_completion_reply(completion)
        if reply is None:
            logger.warning("Completion response had no content, using fallback reply")
            return FALLBACK_REPLY
        return reply
