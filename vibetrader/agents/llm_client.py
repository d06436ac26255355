"""Chat completion client for the decision agent."""
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, List, Optional
from openai import AsyncOpenAI, OpenAIError
from vibetrader.core.config import get_settings
from vibetrader.core.error_codes import GenerationError
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

Message = Dict[str, str]


class ChatCompletionClient(ABC):
    """Text generation over a list of role/content messages."""

    @abstractmethod
    async def complete(self, messages: List[Message]) -> str:
        """Return the full generated text."""
        pass

    @abstractmethod
    def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        """Yield generated text fragments in order."""
        pass


class OpenAIChatClient(ChatCompletionClient):
    """OpenAI chat completions. Errors surface as GenerationError."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 temperature: Optional[float] = None, max_tokens: Optional[int] = None):
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self.temperature = temperature if temperature is not None else settings.llm_temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.timeout = settings.llm_timeout_seconds
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        # Built on first use: AsyncOpenAI refuses to construct without a key
        if self._client is None:
            if not self.api_key:
                raise GenerationError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(self, messages: List[Message]) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.error(f"Chat completion failed: {e}")
            raise GenerationError(f"Chat completion failed: {type(e).__name__}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            logger.error(f"Chat completion stream failed: {e}")
            raise GenerationError(f"Chat completion stream failed: {type(e).__name__}") from e
