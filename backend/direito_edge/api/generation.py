"""
Endpoints de geração avulsa (equivalentes às edge functions).
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from direito_edge.api.schemas import (
    ImageGenerationRequest,
    ImageGenerationResponse,
    NarrationRequest,
    NarrationResponse,
    TextGenerationRequest,
    TextGenerationResponse,
)
from direito_edge.services.credential_pool import MissingCredentialsError
from direito_edge.services.fallback_dispatcher import FatalDispatchError, PoolExhaustedError
from direito_edge.services.generation import GenerationService, get_generation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/geracao", tags=["geracao"])

limiter = Limiter(key_func=get_remote_address)


def _raise_http_error(e: Exception, operation: str):
    """Converte erros de dispatch em uma única mensagem para o usuário."""
    if isinstance(e, PoolExhaustedError):
        logger.error(f"{operation}: {e}")
        raise HTTPException(
            status_code=503,
            detail=f"Não foi possível {operation} agora: todas as {e.pool_size} chaves falharam. Tente novamente mais tarde."
        )
    if isinstance(e, FatalDispatchError):
        logger.error(f"{operation}: {e}")
        raise HTTPException(status_code=502, detail=f"Erro ao {operation}: provedor recusou a requisição ({e.status_code})")
    if isinstance(e, MissingCredentialsError):
        raise HTTPException(status_code=503, detail=str(e))
    raise e


@router.post("/texto", response_model=TextGenerationResponse)
@limiter.limit("30/minute")
async def generate_text(
    request: Request,
    payload: TextGenerationRequest,
    service: GenerationService = Depends(get_generation_service)
):
    try:
        text = await service.generate_text(
            payload.prompt,
            temperature=payload.temperature,
            max_output_tokens=payload.max_output_tokens,
        )
    except (PoolExhaustedError, FatalDispatchError, MissingCredentialsError) as e:
        _raise_http_error(e, "gerar o texto")
    return TextGenerationResponse(text=text)


@router.post("/imagem", response_model=ImageGenerationResponse)
@limiter.limit("10/minute")
async def generate_image(
    request: Request,
    payload: ImageGenerationRequest,
    service: GenerationService = Depends(get_generation_service)
):
    try:
        image = await service.generate_image(payload.prompt, compress=payload.compress)
    except (PoolExhaustedError, FatalDispatchError, MissingCredentialsError) as e:
        _raise_http_error(e, "gerar a imagem")
    return ImageGenerationResponse(
        image_base64=image.image_base64,
        mime_type=image.mime_type,
        compressed=image.compressed,
    )


@router.post("/narracao", response_model=NarrationResponse)
@limiter.limit("10/minute")
async def generate_narration(
    request: Request,
    payload: NarrationRequest,
    service: GenerationService = Depends(get_generation_service)
):
    try:
        narration = await service.narrate(payload.texto, voice=payload.voice)
    except ValueError as e:
        # Texto só com espaços passa pelo min_length do schema
        raise HTTPException(status_code=422, detail=str(e))
    except (PoolExhaustedError, FatalDispatchError, MissingCredentialsError) as e:
        _raise_http_error(e, "gerar a narração")
    return NarrationResponse(audio_base64=narration.wav_base64, segments=narration.segments)
