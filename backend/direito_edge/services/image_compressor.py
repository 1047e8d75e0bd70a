"""
Compressão de imagens via TinyPNG, com conversão para WebP.

Melhor esforço: sem chave ou com qualquer falha, devolve os bytes originais.
"""
import httpx
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

TINYPNG_SHRINK_URL = "https://api.tinify.com/shrink"


@dataclass
class CompressionResult:
    data: bytes
    mime_type: str
    compressed: bool


class TinyPNGCompressor:
    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth("api", self.api_key)

    async def compress(self, image_bytes: bytes, mime_type: str = "image/png") -> CompressionResult:
        """Comprime e converte para WebP; se a conversão falhar, baixa o PNG comprimido."""
        original = CompressionResult(data=image_bytes, mime_type=mime_type, compressed=False)
        if not self.api_key:
            return original

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                upload = await client.post(
                    TINYPNG_SHRINK_URL,
                    content=image_bytes,
                    headers={"Content-Type": mime_type},
                    auth=self._auth(),
                )
                if not upload.is_success:
                    logger.warning(f"TinyPNG shrink falhou com status {upload.status_code}")
                    return original

                output_url = (upload.json().get("output") or {}).get("url")
                if not output_url:
                    return original

                convert = await client.post(
                    output_url,
                    json={"convert": {"type": ["image/webp"]}},
                    auth=self._auth(),
                )
                if convert.is_success:
                    logger.info(f"TinyPNG: {len(image_bytes)} -> {len(convert.content)} bytes (webp)")
                    return CompressionResult(data=convert.content, mime_type="image/webp", compressed=True)

                download = await client.get(output_url, auth=self._auth())
                download.raise_for_status()
                return CompressionResult(data=download.content, mime_type=mime_type, compressed=True)

        except httpx.HTTPError as e:
            logger.error(f"Erro TinyPNG: {e}")
            return original
        except ValueError as e:
            logger.error(f"Resposta TinyPNG inválida: {e}")
            return original
