"""Chat-completion client for the language-model extraction service."""
import logging
from typing import Optional

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class ExtractionClient:
    """
    Thin wrapper over the OpenAI chat-completions API.

    The client is only created when a credential is configured; without
    one, :attr:`is_available` is False and callers skip extraction.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = 'gpt-4o',
        temperature: float = 0.2,
        max_tokens: int = 8000,
        timeout: float = 120.0
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._api_key = api_key
        self._client: Optional[AsyncOpenAI] = None

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self.timeout)
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one system+user prompt pair and return the raw response text.

        Raises:
            RuntimeError: If no credential is configured
            openai.OpenAIError: On API failures
        """
        if not self.is_available:
            raise RuntimeError('Extraction client has no API key configured')

        response = await self._get_client().chat.completions.create(
            model=self.model_name,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            messages=[
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': user_prompt},
            ],
        )
        if response.usage:
            logger.info(
                f"Extraction used {response.usage.total_tokens} tokens",
                extra={
                    'prompt_tokens': response.usage.prompt_tokens,
                    'completion_tokens': response.usage.completion_tokens,
                }
            )
        return response.choices[0].message.content or ''
