"""
Client for the external emotion-classification service.

The service answers with a nested, ranked list of `{label, score}` candidates.
Classification never fails a request: any transport error, non-2xx status or
unexpected body degrades to the "neutral" label.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

NEUTRAL_LABEL = "neutral"


def parse_sentiment_label(payload: Any) -> str | None:
    """
    Extract the top label of the top candidate group.

    Args:
        payload: Decoded JSON body from the classifier

    Returns:
        The label, or None when the payload does not have the expected shape
    """
    if not isinstance(payload, list) or not payload:
        return None
    group = payload[0]
    if not isinstance(group, list) or not group:
        return None
    candidate = group[0]
    if not isinstance(candidate, dict):
        return None
    label = candidate.get("label")
    if not isinstance(label, str) or not label:
        return None
    return label


class SentimentClient:
    """Classifies text into a single emotion label."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_url: str,
        api_key: str | None = None,
    ) -> None:
        self._http = http_client
        self.api_url = api_url
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    async def classify(self, text: str) -> str:
        """
        Classify the emotional tone of `text`.

        Returns:
            The top emotion label, or "neutral" if none could be obtained
        """
        try:
            response = await self._http.post(
                self.api_url, json={"inputs": text}, headers=self._headers
            )
        except httpx.HTTPError as e:
            logger.warning("Sentiment request failed: %s", e)
            return NEUTRAL_LABEL

        if not response.is_success:
            logger.warning("Sentiment service returned HTTP %s", response.status_code)
            return NEUTRAL_LABEL

        try:
            payload = response.json()
        except (ValueError, RecursionError):
            logger.warning("Sentiment service returned an undecodable body")
            return NEUTRAL_LABEL

        label = parse_sentiment_label(payload)
        if label is None:
            logger.warning("Sentiment response had no usable label")
            return NEUTRAL_LABEL
        return label
