"""
Narração: divisão do texto, síntese por segmento e montagem do WAV.

O Gemini TTS devolve PCM L16 24kHz mono em base64; segmentos são
sintetizados em sequência e concatenados antes de ganhar o cabeçalho WAV.
"""
import asyncio
import base64
import io
import logging
import wave
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

# Limite de caracteres para uma única chamada TTS
MAX_CHARS_PER_CALL = 3500
# Janela (em caracteres) ao redor do meio onde se procura fim de frase
SPLIT_WINDOW = 500

PCM_SAMPLE_RATE = 24000
PCM_SAMPLE_WIDTH = 2  # 16 bits
PCM_CHANNELS = 1

PAUSE_BETWEEN_SEGMENTS_SECONDS = 2.0


@dataclass
class NarrationResult:
    wav_bytes: bytes
    segments: int

    @property
    def wav_base64(self) -> str:
        return base64.b64encode(self.wav_bytes).decode("ascii")


def split_text_for_tts(text: str, max_chars: int = MAX_CHARS_PER_CALL) -> List[str]:
    """
    Divide o texto em no máximo duas partes, cortando no fim de frase
    mais próximo do meio (quando houver um dentro da janela).
    """
    if len(text) <= max_chars:
        return [text]

    middle = len(text) // 2
    cut = middle

    head = text[:middle + SPLIT_WINDOW]
    last_stop = max(head.rfind(". "), head.rfind("! "), head.rfind("? "))
    if middle - SPLIT_WINDOW < last_stop < middle + SPLIT_WINDOW:
        cut = last_stop + 2

    first = text[:cut].strip()
    second = text[cut:].strip()
    logger.info(f"Texto dividido: parte 1 ({len(first)} chars), parte 2 ({len(second)} chars)")
    return [first, second]


def concatenate_pcm(segments: List[bytes]) -> bytes:
    return b"".join(segments)


def pcm_to_wav(pcm_data: bytes, sample_rate: int = PCM_SAMPLE_RATE) -> bytes:
    """Envolve PCM 16-bit mono em um container WAV (RIFF)."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(PCM_CHANNELS)
        wav.setsampwidth(PCM_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm_data)
    return buffer.getvalue()


SpeechSynthesizer = Callable[[str, Optional[str]], Awaitable[str]]


async def generate_narration(
    synthesize: SpeechSynthesizer,
    text: str,
    voice: Optional[str] = None,
    pause_seconds: float = PAUSE_BETWEEN_SEGMENTS_SECONDS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> NarrationResult:
    """
    Gera a narração completa de um texto.

    Args:
        synthesize: Corrotina (texto, voz) -> PCM em base64, em geral
            GeminiClient.synthesize_speech
        text: Texto a narrar
        voice: Voz pré-definida (opcional)
        pause_seconds: Pausa entre segmentos, respeitando rate limit
        sleep: Função de espera (injetável em testes)

    Raises:
        ValueError: texto vazio
        DispatchError: falha em qualquer segmento derruba a narração inteira
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Texto vazio para narração")

    parts = split_text_for_tts(text)
    pcm_segments: List[bytes] = []

    for i, part in enumerate(parts):
        audio_b64 = await synthesize(part, voice)
        pcm = base64.b64decode(audio_b64)
        logger.info(f"Parte {i + 1}/{len(parts)}: {len(pcm)} bytes PCM")
        pcm_segments.append(pcm)

        if i < len(parts) - 1:
            await sleep(pause_seconds)

    wav_bytes = pcm_to_wav(concatenate_pcm(pcm_segments))
    return NarrationResult(wav_bytes=wav_bytes, segments=len(parts))
