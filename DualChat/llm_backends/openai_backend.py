from __future__ import annotations

import logging
import os
import time
from typing import Any, List, Optional

import httpx

from .base import ChatMessage, CompletionErrorKind, CompletionResult, CompletionService, ImagePayload

logger = logging.getLogger("dualchat.backends")

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatibleBackend(CompletionService):
    """
    Minimal OpenAI-compatible Chat Completions backend using HTTPX.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        api_key_env: str = "OPENAI_API_KEY",
        timeout_seconds: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or os.environ.get(api_key_env)
        self.api_key_env = api_key_env
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    def _messages(
        self,
        prompt: str,
        system_instruction: Optional[str],
        image: Optional[ImagePayload],
    ) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        if image is not None:
            content: Any = [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{image.mime_type};base64,{image.data}"},
                },
            ]
        else:
            content = prompt
        messages.append({"role": "user", "content": content})
        return messages

    async def generate(
        self,
        prompt: str,
        model: str,
        system_instruction: Optional[str] = None,
        image: Optional[ImagePayload] = None,
    ) -> CompletionResult:
        if not self.api_key:
            return CompletionResult.failure(
                CompletionErrorKind.CREDENTIAL_MISSING,
                f"API key is not configured (set {self.api_key_env})",
            )

        payload = {
            "model": model,
            "messages": self._messages(prompt, system_instruction, image),
        }

        start = time.perf_counter()
        try:
            resp = await self._client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug("OpenAI-compatible request failed: %s", e)
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"{type(e).__name__}: {e}", duration_ms
            )
        duration_ms = (time.perf_counter() - start) * 1000

        if resp.status_code in (401, 403):
            return CompletionResult.failure(
                CompletionErrorKind.CREDENTIAL_INVALID,
                "API key is invalid or lacks permission",
                duration_ms,
            )
        if resp.status_code >= 400:
            logger.debug("OpenAI-compatible HTTP %s: %s", resp.status_code, resp.text[:500])
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"HTTP {resp.status_code}: {resp.text[:200]}", duration_ms
            )

        try:
            data = resp.json()
            text = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"Malformed completion response: {e!r}", duration_ms
            )
        return CompletionResult(text=text, duration_ms=duration_ms)

    async def aclose(self) -> None:
        await self._client.aclose()
