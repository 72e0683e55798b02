"""Chat-completion client used to classify messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

import httpx

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api"


class ClassifierError(Exception):
    """The classifier could not produce a usable answer."""


@dataclass(slots=True, frozen=True)
class ChatMessage:
    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls("user", content)

    def as_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ChatProvider(Protocol):
    async def chat(self, messages: Sequence[ChatMessage]) -> str: ...


class OpenRouterClient:
    """Minimal OpenRouter chat-completion client.

    The active model can be swapped at any time; a request that is already
    running keeps the model name it started with.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        timeout: float = 30.0,
        base_url: str = OPENROUTER_BASE_URL,
        temperature: float = 0.8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    @property
    def model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        logger.info("Switching classifier model %s -> %s", self._model, model)
        self._model = model

    async def close(self) -> None:
        await self._client.aclose()

    async def chat(self, messages: Sequence[ChatMessage]) -> str:
        model = self._model
        body = {
            "model": model,
            "provider": {"sort": "price"},
            "messages": [message.as_payload() for message in messages],
            "temperature": self.temperature,
            "reasoning": {"exclude": True},
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/v1/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ClassifierError(f"classifier request to {model} timed out") from exc
        except httpx.HTTPError as exc:
            raise ClassifierError(f"classifier request failed: {exc}") from exc
        except ValueError as exc:
            raise ClassifierError("classifier returned a non-JSON body") from exc

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ClassifierError("no choice messages in the classifier response") from exc
        if not isinstance(content, str):
            raise ClassifierError("classifier message content is not text")
        return content
