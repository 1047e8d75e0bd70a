"""
Cliente Gemini (texto, imagem e TTS) sobre a API REST generateContent.

Todas as chamadas passam pelo dispatcher de fallback: a chave vai na query
string e cada chave do pool é tentada em ordem.
"""
import httpx
import logging
from typing import Any, Dict, Optional, Union

from direito_edge.core.config import Settings, settings
from direito_edge.services.credential_pool import (
    CredentialPool,
    GEMINI_IMAGE,
    GEMINI_TEXT,
    GEMINI_TTS,
    get_credential_pool,
)
from direito_edge.services.fallback_dispatcher import (
    EmptyUpstreamResponse,
    RetryPredicate,
    UpstreamFailure,
    dispatch,
    get_retry_policy,
)

logger = logging.getLogger(__name__)


def extract_text(data: Dict[str, Any]) -> str:
    """candidates[0].content.parts[0].text ou string vazia"""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        return ""
    return parts[0].get("text") or ""


def extract_inline_data(data: Dict[str, Any], mime_prefix: Optional[str] = None) -> Optional[Dict[str, str]]:
    """Primeiro inlineData (opcionalmente filtrado por prefixo de mimeType)"""
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    for part in (candidates[0].get("content") or {}).get("parts") or []:
        inline = part.get("inlineData")
        if not inline or not inline.get("data"):
            continue
        if mime_prefix and not (inline.get("mimeType") or "").startswith(mime_prefix):
            continue
        return inline
    return None


class GeminiClient:
    def __init__(
        self,
        config: Settings = None,
        pools: Optional[Dict[str, CredentialPool]] = None,
        is_retryable: Optional[RetryPredicate] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or settings
        self._pools = pools or {}
        self.is_retryable = is_retryable or get_retry_policy(self.config.RETRY_POLICY)
        self._transport = transport

    def pool(self, service: str) -> CredentialPool:
        if service in self._pools:
            return self._pools[service]
        return get_credential_pool(service)

    async def _post_generate(
        self,
        model: str,
        credential: str,
        body: Dict[str, Any],
        timeout: float,
    ) -> Union[Dict[str, Any], UpstreamFailure]:
        url = f"{self.config.GEMINI_BASE_URL}/models/{model}:generateContent"
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            response = await client.post(url, params={"key": credential}, json=body)

        if not response.is_success:
            return UpstreamFailure(status_code=response.status_code, body=response.text)

        return response.json()

    async def generate_text(
        self,
        prompt: str,
        temperature: float = 0.5,
        max_output_tokens: int = 8192,
    ) -> str:
        """Gera texto com fallback entre chaves."""
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }

        async def request(credential: str):
            data = await self._post_generate(
                self.config.GEMINI_TEXT_MODEL, credential, body, self.config.HTTP_TIMEOUT_SECONDS
            )
            if isinstance(data, UpstreamFailure):
                return data
            text = extract_text(data)
            if not text:
                raise EmptyUpstreamResponse("Resposta Gemini sem texto")
            return text

        return await dispatch(self.pool(GEMINI_TEXT), request, self.is_retryable)

    async def generate_image(self, prompt: str) -> Dict[str, str]:
        """
        Gera uma imagem e devolve {"data": base64, "mimeType": ...}.
        """
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

        async def request(credential: str):
            data = await self._post_generate(
                self.config.GEMINI_IMAGE_MODEL, credential, body, self.config.HTTP_TIMEOUT_SECONDS
            )
            if isinstance(data, UpstreamFailure):
                return data
            inline = extract_inline_data(data, mime_prefix="image/")
            if inline is None:
                raise EmptyUpstreamResponse("Resposta Gemini sem imagem")
            return {"data": inline["data"], "mimeType": inline.get("mimeType", "image/png")}

        return await dispatch(self.pool(GEMINI_IMAGE), request, self.is_retryable)

    async def synthesize_speech(self, text: str, voice: Optional[str] = None) -> str:
        """
        Sintetiza fala e devolve o PCM L16 24kHz mono em base64.
        """
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "response_modalities": ["AUDIO"],
                "speech_config": {
                    "voice_config": {
                        "prebuilt_voice_config": {"voice_name": voice or self.config.GEMINI_TTS_VOICE},
                    },
                },
            },
        }

        async def request(credential: str):
            data = await self._post_generate(
                self.config.GEMINI_TTS_MODEL, credential, body, self.config.TTS_TIMEOUT_SECONDS
            )
            if isinstance(data, UpstreamFailure):
                return data
            inline = extract_inline_data(data)
            if inline is None:
                raise EmptyUpstreamResponse("Resposta Gemini TTS sem dados de áudio")
            return inline["data"]

        logger.info(f"Sintetizando {len(text)} caracteres com voz {voice or self.config.GEMINI_TTS_VOICE}")
        return await dispatch(self.pool(GEMINI_TTS), request, self.is_retryable)
