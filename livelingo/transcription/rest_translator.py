"""Gemini generateContent translator over plain HTTPS."""

import logging
from typing import Optional

import aiohttp

from ..errors import TransportError
from ..models.transcription import TranslationRequest

logger = logging.getLogger(__name__)

BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiRestTranslator:
    """Sends translation prompts to the generateContent endpoint."""

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash", timeout: float = 15.0):
        """Initialize the translator.

        Args:
            api_key: Gemini API key
            model: Model used for generateContent
            timeout: Total request timeout in seconds
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.url = f"{BASE_URL}/{model}:generateContent"

        logger.info(f"GeminiRestTranslator initialized with model: {model}")

    async def translate(self, request: TranslationRequest) -> Optional[str]:
        """Send the request's prompt and return the translated text.

        Raises:
            TransportError: If the request fails or the response has no text
        """
        data = {"contents": [{"parts": [{"text": request.prompt}]}]}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, params={"key": self.api_key}, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise TransportError(f"Translation API error: {response.status} - {error_text}")
                    result = await response.json()
        except aiohttp.ClientError as e:
            raise TransportError(f"Translation request failed: {e}") from e

        try:
            text = result["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Unexpected translation response: {result}") from e

        return text.strip()
