"""OpenAI chat completion provider implementation."""

import logging

from openai import AsyncOpenAI

from ..conversation import FALLBACK_RESPONSE, ChatTurn
from ..errors import ProviderAPIError, ProviderAuthError
from .base import ChatResponder

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"


class OpenAIChatResponder(ChatResponder):
    """OpenAI Chat Completions provider with fixed sampling parameters."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 150,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise ProviderAuthError("OpenAI API Key is not configured")
        self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def respond(self, messages: list[ChatTurn]) -> str:
        """Return the top completion for the conversation.

        Falls back to a canned apology when the completion is empty.

        Raises:
            ProviderAuthError: If no API key is configured or it is rejected
            ProviderAPIError: If the completion request fails
        """
        client = self._get_client()
        logger.debug(f"Requesting completion for {len(messages)} messages")

        try:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            status = getattr(e, "status_code", None)
            if status == 401:
                raise ProviderAuthError(f"Authentication failed: {e}", e) from e
            raise ProviderAPIError(str(e) or "Failed to generate chat response", status, e) from e

        content = None
        if completion.choices:
            content = completion.choices[0].message.content
        return content or FALLBACK_RESPONSE
