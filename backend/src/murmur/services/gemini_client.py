"""HTTP client for the Gemini generative language API."""

import json
import logging
from collections.abc import Sequence
from typing import Any, AsyncGenerator

import httpx

from murmur.config import settings
from murmur.exceptions import StreamError
from murmur.services.backends import Turn

logger = logging.getLogger(__name__)


def _candidate_text(payload: dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate in a response chunk."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    # Thought summaries are not part of the visible answer
    return "".join(part.get("text", "") for part in parts if not part.get("thought"))


class GeminiClient:
    """Async client for streaming chat, structured completions and images."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        image_model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.model = model or settings.gemini_model
        self.image_model = image_model or settings.image_model
        self.timeout = timeout or settings.request_timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"x-goog-api-key": self.api_key},
        )

    def build_chat_request(
        self,
        system_instruction: str,
        history: Sequence[Turn],
        prompt: str,
    ) -> dict[str, Any]:
        """Build the request body for a chat turn."""
        contents = [{"role": turn.role, "parts": [{"text": turn.text}]} for turn in history]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": contents,
            # Optimize for faster response
            "generationConfig": {"thinkingConfig": {"thinkingBudget": 0}},
        }

    async def stream_chat(
        self,
        system_instruction: str,
        history: Sequence[Turn],
        prompt: str,
    ) -> AsyncGenerator[str, None]:
        """
        Stream a chat reply as text fragments.

        Yields:
            Non-empty text deltas in arrival order

        Raises:
            StreamError: On HTTP errors, transport errors or an error payload

        """
        body = self.build_chat_request(system_instruction, history, prompt)
        url = f"{self.base_url}/models/{self.model}:streamGenerateContent"

        async with self._client() as client:
            try:
                async with client.stream("POST", url, params={"alt": "sse"}, json=body) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.startswith("data: "):
                            continue
                        try:
                            payload = json.loads(line[6:])
                        except json.JSONDecodeError:
                            continue
                        if "error" in payload:
                            message = payload["error"].get("message", "Unknown error")
                            raise StreamError(f"Gemini stream error: {message}")
                        text = _candidate_text(payload)
                        if text:
                            yield text
            except httpx.HTTPStatusError as e:
                logger.error(f"Gemini HTTP error: {e}")
                raise StreamError(f"HTTP {e.response.status_code}") from e
            except httpx.RequestError as e:
                logger.error(f"Gemini request error: {e}")
                raise StreamError(f"Request failed: {str(e)}") from e

    async def generate(self, prompt: str, response_schema: dict[str, Any] | None = None) -> str:
        """Single non-streaming completion.

        With ``response_schema`` the model is asked for JSON matching it and the
        raw JSON text is returned.
        """
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if response_schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            }

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                json=body,
            )
            response.raise_for_status()
            return _candidate_text(response.json())

    async def generate_images(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        number_of_images: int = 1,
    ) -> list[str]:
        """Generate images, returning base64-encoded PNG bytes."""
        body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": number_of_images,
                "aspectRatio": aspect_ratio,
                "outputOptions": {"mimeType": "image/png"},
            },
        }
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/models/{self.image_model}:predict",
                json=body,
            )
            response.raise_for_status()
            predictions = response.json().get("predictions") or []
        return [p["bytesBase64Encoded"] for p in predictions if p.get("bytesBase64Encoded")]
