"""
Completion Service - thin wrapper over the OpenAI chat completions API
"""
import asyncio
import json
import logging
from typing import Any, Optional

from openai import OpenAI

from backend.utils.errors import GenerationError
from config.settings import settings

logger = logging.getLogger(__name__)


class CompletionService:
    """Single `complete_chat` entry point used by every generation call site."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[OpenAI] = None):
        self.api_key = api_key or settings.openai_api_key
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                logger.error("OPENAI_API_KEY is not set. Cannot call the completion API.")
                raise GenerationError("AI features are not configured. Please try again later.")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    async def complete_chat(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        json_response: bool = False,
    ) -> Any:
        """
        Run one chat completion.

        Args:
            system_prompt: System message
            user_prompt: User message
            model: Model name (defaults to OPENAI_MODEL)
            temperature: Sampling temperature (defaults to OPENAI_TEMPERATURE)
            json_response: Ask for a JSON object and return it parsed

        Returns:
            Generated text, or the parsed JSON object when json_response is set

        Raises:
            GenerationError: API failure, empty content or unparseable JSON
        """
        request = {
            "model": model or settings.openai_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": settings.openai_temperature if temperature is None else temperature,
        }
        if json_response:
            request["response_format"] = {"type": "json_object"}

        client = self.client
        try:
            response = await asyncio.to_thread(client.chat.completions.create, **request)
        except Exception as e:
            logger.warning(f"OpenAI completion failed: {e}")
            raise GenerationError() from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("OpenAI completion returned empty content")
            raise GenerationError()

        if not json_response:
            return content.strip()

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"OpenAI returned invalid JSON: {e}")
            raise GenerationError() from e
