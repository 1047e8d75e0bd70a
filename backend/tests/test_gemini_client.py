"""
Testes para o cliente Gemini com httpx.MockTransport
"""
import asyncio
import base64
import json

import httpx
import pytest

from direito_edge.core.config import Settings
from direito_edge.services.credential_pool import CredentialPool, GEMINI_IMAGE, GEMINI_TEXT, GEMINI_TTS
from direito_edge.services.fallback_dispatcher import (
    FatalDispatchError,
    PoolExhaustedError,
    retry_transient_failures,
)
from direito_edge.services.gemini_client import GeminiClient, extract_inline_data, extract_text


def _text_response(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _inline_response(data, mime_type):
    return {"candidates": [{"content": {"parts": [
        {"text": "descrição"},
        {"inlineData": {"mimeType": mime_type, "data": data}},
    ]}}]}


class RecordingHandler:
    def __init__(self, responses_by_key):
        self.responses_by_key = responses_by_key
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.params["key"]
        status, body = self.responses_by_key[key]
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)


def _client(handler, keys=("k1", "k2", "k3"), **kwargs):
    config = Settings(_env_file=None, RETRY_POLICY="all")
    pools = {
        service: CredentialPool.from_values(service, keys)
        for service in (GEMINI_TEXT, GEMINI_IMAGE, GEMINI_TTS)
    }
    return GeminiClient(config, pools=pools, transport=httpx.MockTransport(handler), **kwargs)


def test_generate_text_falls_back_on_quota():
    handler = RecordingHandler({
        "k1": (429, '{"error": {"status": "RESOURCE_EXHAUSTED"}}'),
        "k2": (200, _text_response("Explicação do artigo")),
        "k3": (200, _text_response("não usado")),
    })

    text = asyncio.run(_client(handler).generate_text("Explique o art. 5º"))

    assert text == "Explicação do artigo"
    assert [r.url.params["key"] for r in handler.requests] == ["k1", "k2"]
    body = json.loads(handler.requests[0].content)
    assert body["contents"][0]["parts"][0]["text"] == "Explique o art. 5º"
    assert body["generationConfig"]["temperature"] == 0.5
    assert handler.requests[0].url.path.endswith("/models/gemini-2.0-flash:generateContent")


def test_generate_text_empty_text_tries_next_key():
    handler = RecordingHandler({
        "k1": (200, {"candidates": []}),
        "k2": (200, _text_response("ok")),
        "k3": (200, _text_response("não usado")),
    })

    assert asyncio.run(_client(handler).generate_text("p")) == "ok"
    assert len(handler.requests) == 2


def test_generate_text_all_keys_fail():
    handler = RecordingHandler({
        "k1": (429, "quota"),
        "k2": (503, "overloaded"),
        "k3": (500, "internal"),
    })

    with pytest.raises(PoolExhaustedError) as exc:
        asyncio.run(_client(handler).generate_text("p"))

    assert exc.value.pool_size == 3
    assert len(handler.requests) == 3


def test_fatal_policy_stops_on_client_error():
    handler = RecordingHandler({
        "k1": (400, "INVALID_ARGUMENT"),
        "k2": (200, _text_response("não usado")),
        "k3": (200, _text_response("não usado")),
    })
    client = _client(handler, is_retryable=retry_transient_failures)

    with pytest.raises(FatalDispatchError):
        asyncio.run(client.generate_text("p"))

    assert len(handler.requests) == 1


def test_generate_image_returns_inline_image():
    png_b64 = base64.b64encode(b"\x89PNG fake").decode()
    handler = RecordingHandler({
        "k1": (200, _text_response("sem imagem")),
        "k2": (200, _inline_response(png_b64, "image/png")),
        "k3": (500, "x"),
    })

    image = asyncio.run(_client(handler).generate_image("capa"))

    assert image == {"data": png_b64, "mimeType": "image/png"}
    body = json.loads(handler.requests[1].content)
    assert body["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]


def test_synthesize_speech_uses_voice_and_returns_pcm():
    pcm_b64 = base64.b64encode(b"\x00\x01" * 10).decode()
    handler = RecordingHandler({
        "k1": (200, _inline_response(pcm_b64, "audio/L16;codec=pcm;rate=24000")),
        "k2": (500, "x"),
        "k3": (500, "x"),
    })

    audio = asyncio.run(_client(handler).synthesize_speech("Art. 1º", voice="Puck"))

    assert audio == pcm_b64
    body = json.loads(handler.requests[0].content)
    voice = body["generationConfig"]["speech_config"]["voice_config"]["prebuilt_voice_config"]["voice_name"]
    assert voice == "Puck"
    assert body["generationConfig"]["response_modalities"] == ["AUDIO"]
    assert "tts" in handler.requests[0].url.path


def test_network_error_is_retryable():
    calls = []

    def handler(request):
        calls.append(request.url.params["key"])
        if request.url.params["key"] == "k1":
            raise httpx.ConnectError("conexão recusada", request=request)
        return httpx.Response(200, json=_text_response("ok"))

    assert asyncio.run(_client(handler).generate_text("p")) == "ok"
    assert calls == ["k1", "k2"]


def test_extract_helpers():
    assert extract_text({}) == ""
    assert extract_text(_text_response("abc")) == "abc"
    assert extract_inline_data({"candidates": [{"content": {"parts": [{"text": "x"}]}}]}) is None
    inline = extract_inline_data(_inline_response("ZGF0YQ==", "image/webp"), mime_prefix="image/")
    assert inline["mimeType"] == "image/webp"
    assert extract_inline_data(_inline_response("ZGF0YQ==", "audio/wav"), mime_prefix="image/") is None
