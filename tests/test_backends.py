"""Tests for the HTTP completion backends using httpx.MockTransport."""

import base64
import json

import httpx
import pytest

from DualChat.config import DualChatConfig
from DualChat.llm_backends import (
    CompletionErrorKind,
    GeminiBackend,
    ImagePayload,
    OpenAICompatibleBackend,
    build_completion_service,
    image_to_payload,
)

IMAGE = ImagePayload(mime_type="image/png", data="aGVsbG8=")


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status=200, body=None, exc=None):
        self.status = status
        self.body = body if body is not None else {}
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc(f"simulated {self.exc.__name__}", request=request)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, json=self.body)

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)


def gemini(recorder, api_key="test-key", **kwargs):
    return GeminiBackend(api_key=api_key, transport=httpx.MockTransport(recorder), **kwargs)


def openai(recorder, api_key="test-key", **kwargs):
    return OpenAICompatibleBackend(api_key=api_key, transport=httpx.MockTransport(recorder), **kwargs)


GEMINI_OK = {
    "candidates": [{
        "content": {"parts": [
            {"text": "thinking...", "thought": True},
            {"text": "Hello "},
            {"text": "there"},
        ]}
    }]
}

OPENAI_OK = {"choices": [{"message": {"role": "assistant", "content": "Hi!"}}]}


# === Gemini ===

@pytest.mark.asyncio
async def test_gemini_success_skips_thought_parts():
    recorder = Recorder(body=GEMINI_OK)
    backend = gemini(recorder, thinking_budgets={"gemini-2.5-flash": 1024})

    result = await backend.generate("prompt", "gemini-2.5-flash", system_instruction="sys", image=IMAGE)
    await backend.aclose()

    assert result.ok
    assert result.text == "Hello there"
    request = recorder.requests[0]
    assert request.url.path.endswith("/models/gemini-2.5-flash:generateContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    payload = recorder.payload
    parts = payload["contents"][0]["parts"]
    assert parts[0] == {"inlineData": {"mimeType": "image/png", "data": "aGVsbG8="}}
    assert parts[1] == {"text": "prompt"}
    assert payload["systemInstruction"] == {"parts": [{"text": "sys"}]}
    assert payload["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 1024


@pytest.mark.asyncio
async def test_gemini_omits_optional_fields():
    recorder = Recorder(body=GEMINI_OK)
    backend = gemini(recorder)

    await backend.generate("prompt", "other-model")

    payload = recorder.payload
    assert "systemInstruction" not in payload
    assert "generationConfig" not in payload
    assert len(payload["contents"][0]["parts"]) == 1


@pytest.mark.asyncio
async def test_gemini_missing_key_makes_no_request(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    recorder = Recorder(body=GEMINI_OK)
    backend = gemini(recorder, api_key=None)

    result = await backend.generate("prompt", "m")

    assert result.error_kind == CompletionErrorKind.CREDENTIAL_MISSING
    assert "GEMINI_API_KEY" in result.error_message
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_gemini_reads_key_from_environment(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    recorder = Recorder(body=GEMINI_OK)

    await gemini(recorder, api_key=None).generate("prompt", "m")

    assert recorder.requests[0].headers["x-goog-api-key"] == "from-env"


@pytest.mark.asyncio
@pytest.mark.parametrize("status, body, kind", [
    (401, {"error": "unauthenticated"}, CompletionErrorKind.CREDENTIAL_INVALID),
    (403, {"error": "forbidden"}, CompletionErrorKind.CREDENTIAL_INVALID),
    (400, "API key not valid. Please pass a valid API key.", CompletionErrorKind.CREDENTIAL_INVALID),
    (400, "Invalid argument", CompletionErrorKind.OTHER),
    (500, "internal", CompletionErrorKind.OTHER),
    (503, "overloaded", CompletionErrorKind.OTHER),
])
async def test_gemini_error_mapping(status, body, kind):
    result = await gemini(Recorder(status=status, body=body)).generate("prompt", "m")
    assert not result.ok
    assert result.error_kind == kind


@pytest.mark.asyncio
async def test_gemini_malformed_body_is_other():
    result = await gemini(Recorder(body={"candidates": []})).generate("prompt", "m")
    assert result.error_kind == CompletionErrorKind.OTHER
    assert "Malformed" in result.error_message


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [httpx.ConnectTimeout, httpx.ConnectError, httpx.ReadTimeout])
async def test_gemini_transport_errors_are_other(exc):
    result = await gemini(Recorder(exc=exc)).generate("prompt", "m")
    assert result.error_kind == CompletionErrorKind.OTHER
    assert exc.__name__ in result.error_message


# === OpenAI-compatible ===

@pytest.mark.asyncio
async def test_openai_success_with_system_and_image():
    recorder = Recorder(body=OPENAI_OK)
    backend = openai(recorder, base_url="http://localhost:8080/v1/")

    result = await backend.generate("prompt", "gpt-4o", system_instruction="sys", image=IMAGE)

    assert result.ok and result.text == "Hi!"
    request = recorder.requests[0]
    assert str(request.url) == "http://localhost:8080/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer test-key"
    messages = recorder.payload["messages"]
    assert messages[0] == {"role": "system", "content": "sys"}
    assert messages[1]["content"][0] == {"type": "text", "text": "prompt"}
    assert messages[1]["content"][1]["image_url"]["url"] == "data:image/png;base64,aGVsbG8="
    assert recorder.payload["model"] == "gpt-4o"


@pytest.mark.asyncio
async def test_openai_plain_prompt():
    recorder = Recorder(body=OPENAI_OK)
    await openai(recorder).generate("prompt", "gpt-4o")
    assert recorder.payload["messages"] == [{"role": "user", "content": "prompt"}]


@pytest.mark.asyncio
async def test_openai_null_content_is_empty_text():
    body = {"choices": [{"message": {"role": "assistant", "content": None}}]}
    result = await openai(Recorder(body=body)).generate("prompt", "gpt-4o")
    assert result.ok and result.text == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("status, kind", [
    (401, CompletionErrorKind.CREDENTIAL_INVALID),
    (403, CompletionErrorKind.CREDENTIAL_INVALID),
    (429, CompletionErrorKind.OTHER),
    (500, CompletionErrorKind.OTHER),
])
async def test_openai_error_mapping(status, kind):
    result = await openai(Recorder(status=status, body="nope")).generate("prompt", "gpt-4o")
    assert result.error_kind == kind


@pytest.mark.asyncio
async def test_openai_missing_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    recorder = Recorder(body=OPENAI_OK)
    result = await openai(recorder, api_key=None).generate("prompt", "gpt-4o")
    assert result.error_kind == CompletionErrorKind.CREDENTIAL_MISSING
    assert recorder.requests == []


# === Factory and image loading ===

def test_build_completion_service_selects_provider(tmp_path):
    gemini_config = DualChatConfig(
        config_path=tmp_path / "none.yaml",
        data={"models": {"logical": {"name": "a", "thinking_budget": 10}, "creative": "b"}},
    )
    service = build_completion_service(gemini_config)
    assert isinstance(service, GeminiBackend)
    assert service.thinking_budgets == {"a": 10}

    openai_config = DualChatConfig(config_path=tmp_path / "none.yaml", data={"backend": {"provider": "openai"}})
    service = build_completion_service(openai_config)
    assert isinstance(service, OpenAICompatibleBackend)
    assert service.api_key_env == "OPENAI_API_KEY"


def test_image_to_payload(tmp_path):
    path = tmp_path / "pic.png"
    path.write_bytes(b"\x89PNG fake")

    payload = image_to_payload(path)

    assert payload.mime_type == "image/png"
    assert base64.b64decode(payload.data) == b"\x89PNG fake"


def test_image_to_payload_rejects_missing_and_unsupported(tmp_path):
    with pytest.raises(ValueError):
        image_to_payload(tmp_path / "absent.png")
    text_file = tmp_path / "notes.txt"
    text_file.write_text("not an image")
    with pytest.raises(ValueError):
        image_to_payload(text_file)
