"""
Operações de geração de conteúdo (explicação, narração e capa).

Usadas tanto pelos endpoints avulsos quanto pelos lotes.
"""
import asyncio
import base64
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from direito_edge.core.config import settings
from direito_edge.services.audio import NarrationResult, generate_narration
from direito_edge.services.gemini_client import GeminiClient
from direito_edge.services.image_compressor import TinyPNGCompressor
from direito_edge.services.prompts import build_capa_prompt, build_explicacao_prompt

logger = logging.getLogger(__name__)


@dataclass
class ImageResult:
    data: bytes
    mime_type: str
    compressed: bool

    @property
    def image_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class GenerationService:
    def __init__(
        self,
        gemini: GeminiClient,
        compressor: Optional[TinyPNGCompressor] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gemini = gemini
        self.compressor = compressor
        self._sleep = sleep

    async def generate_text(self, prompt: str, temperature: float = 0.5, max_output_tokens: int = 8192) -> str:
        return await self.gemini.generate_text(prompt, temperature=temperature, max_output_tokens=max_output_tokens)

    async def explain(self, texto: str) -> str:
        """Explicação didática de um dispositivo legal."""
        return await self.gemini.generate_text(build_explicacao_prompt(texto), temperature=0.5)

    async def narrate(self, texto: str, voice: Optional[str] = None) -> NarrationResult:
        return await generate_narration(self.gemini.synthesize_speech, texto, voice=voice, sleep=self._sleep)

    async def generate_image(self, prompt: str, compress: bool = True) -> ImageResult:
        image = await self.gemini.generate_image(prompt)
        raw = base64.b64decode(image["data"])
        mime_type = image.get("mimeType", "image/png")

        if compress and self.compressor is not None:
            compressed = await self.compressor.compress(raw, mime_type)
            return ImageResult(data=compressed.data, mime_type=compressed.mime_type, compressed=compressed.compressed)

        return ImageResult(data=raw, mime_type=mime_type, compressed=False)

    async def cover(self, titulo: str, compress: bool = True) -> ImageResult:
        """Capa ilustrativa para um tema."""
        return await self.generate_image(build_capa_prompt(titulo), compress=compress)


@lru_cache()
def get_generation_service() -> GenerationService:
    compressor = TinyPNGCompressor(settings.TINYPNG_API_KEY, timeout=settings.HTTP_TIMEOUT_SECONDS)
    return GenerationService(GeminiClient(settings), compressor)
