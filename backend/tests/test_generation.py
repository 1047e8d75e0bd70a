"""
Testes para o serviço de geração
"""
import asyncio
import base64

from direito_edge.services.generation import GenerationService
from direito_edge.services.image_compressor import CompressionResult


class FakeGemini:
    def __init__(self):
        self.prompts = []

    async def generate_text(self, prompt, temperature=0.5, max_output_tokens=8192):
        self.prompts.append(prompt)
        return "texto"

    async def generate_image(self, prompt):
        self.prompts.append(prompt)
        return {"data": base64.b64encode(b"png-bruto").decode(), "mimeType": "image/png"}

    async def synthesize_speech(self, text, voice=None):
        return base64.b64encode(b"\x00\x00").decode()


class FakeCompressor:
    async def compress(self, image_bytes, mime_type="image/png"):
        return CompressionResult(data=image_bytes[:3], mime_type="image/webp", compressed=True)


async def _no_sleep(seconds):
    pass


def test_explain_uses_article_text_in_prompt():
    gemini = FakeGemini()
    service = GenerationService(gemini, sleep=_no_sleep)

    assert asyncio.run(service.explain("Art. 5º Todos são iguais perante a lei")) == "texto"
    assert "Todos são iguais perante a lei" in gemini.prompts[0]


def test_cover_is_compressed_when_compressor_available():
    service = GenerationService(FakeGemini(), FakeCompressor(), sleep=_no_sleep)

    image = asyncio.run(service.cover("Direito Penal"))

    assert image.data == b"png"
    assert image.mime_type == "image/webp"
    assert image.compressed is True


def test_image_without_compression():
    service = GenerationService(FakeGemini(), FakeCompressor(), sleep=_no_sleep)

    image = asyncio.run(service.generate_image("prompt", compress=False))

    assert image.data == b"png-bruto"
    assert image.mime_type == "image/png"
    assert image.compressed is False


def test_narrate_returns_wav():
    service = GenerationService(FakeGemini(), sleep=_no_sleep)

    narration = asyncio.run(service.narrate("Art. 1º"))

    assert narration.segments == 1
    assert narration.wav_bytes[:4] == b"RIFF"
