from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

import httpx

from .base import CompletionErrorKind, CompletionResult, CompletionService, ImagePayload

logger = logging.getLogger("dualchat.backends")

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiBackend(CompletionService):
    """
    Gemini generateContent backend using HTTPX.

    A missing key is reported per call as CREDENTIAL_MISSING rather than at
    construction, so a session can surface it as a normal step failure.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        api_key_env: str = "GEMINI_API_KEY",
        timeout_seconds: float = 180.0,
        thinking_budgets: Optional[dict[str, int]] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or os.environ.get(api_key_env)
        self.api_key_env = api_key_env
        self.thinking_budgets = thinking_budgets or {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    def _payload(
        self,
        prompt: str,
        model: str,
        system_instruction: Optional[str],
        image: Optional[ImagePayload],
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        if image is not None:
            parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.data}})
        parts.append({"text": prompt})

        payload: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        budget = self.thinking_budgets.get(model)
        if budget is not None:
            payload["generationConfig"] = {"thinkingConfig": {"thinkingBudget": budget}}
        return payload

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

        start = time.perf_counter()
        try:
            resp = await self._client.post(
                f"/models/{model}:generateContent",
                json=self._payload(prompt, model, system_instruction, image),
                headers={"x-goog-api-key": self.api_key},
            )
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug("Gemini request failed: %s", e)
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"{type(e).__name__}: {e}", duration_ms
            )
        duration_ms = (time.perf_counter() - start) * 1000

        if resp.status_code >= 400:
            body = resp.text
            if resp.status_code in (401, 403) or (
                resp.status_code == 400 and "API key not valid" in body
            ):
                return CompletionResult.failure(
                    CompletionErrorKind.CREDENTIAL_INVALID,
                    "API key is invalid or lacks permission",
                    duration_ms,
                )
            logger.debug("Gemini HTTP %s: %s", resp.status_code, body[:500])
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"HTTP {resp.status_code}: {body[:200]}", duration_ms
            )

        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            return CompletionResult.failure(
                CompletionErrorKind.OTHER, f"Malformed Gemini response: {e!r}", duration_ms
            )

        text = "".join(p.get("text", "") for p in parts if not p.get("thought"))
        return CompletionResult(text=text, duration_ms=duration_ms)

    async def aclose(self) -> None:
        await self._client.aclose()
