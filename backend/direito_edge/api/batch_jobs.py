"""
API endpoints para geração em lote.
Suporta explicações, narrações e capas, com progresso e cancelamento.
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from direito_edge.api.schemas import BatchCreateRequest, BatchJobResponse, BatchListResponse
from direito_edge.tasks.batch_jobs import (
    BatchJobManager,
    BatchWorkItem,
    JobNotFoundError,
    JobNotRunningError,
    get_batch_manager,
)
from direito_edge.tasks.batch_runner import BatchAlreadyRunningError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/batch-jobs", tags=["batch-jobs"])

limiter = Limiter(key_func=get_remote_address)


@router.post("", response_model=BatchJobResponse)
@limiter.limit("5/minute")
async def create_batch_job(
    request: Request,
    payload: BatchCreateRequest,
    background_tasks: BackgroundTasks,
    manager: BatchJobManager = Depends(get_batch_manager)
):
    """Cria o job e dispara o processamento em background."""
    items = [BatchWorkItem(id=item.id, texto=item.texto) for item in payload.items]
    try:
        job = manager.create_job(payload.kind, items, delay_ms=payload.delay_ms)
    except BatchAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))

    background_tasks.add_task(manager.run_job, job.id)
    logger.info(f"Lote {job.id} ({payload.kind.value}) agendado com {len(items)} itens")

    return BatchJobResponse.from_record(job)


@router.get("", response_model=BatchListResponse)
def list_batch_jobs(manager: BatchJobManager = Depends(get_batch_manager)):
    """Lista os jobs (sem os payloads gerados)."""
    jobs = manager.list_jobs()
    return BatchListResponse(
        items=[BatchJobResponse.from_record(job, include_results=False) for job in jobs],
        total=len(jobs),
    )


@router.get("/{job_id}", response_model=BatchJobResponse)
def get_batch_job(job_id: str, manager: BatchJobManager = Depends(get_batch_manager)):
    try:
        job = manager.get_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Lote nao encontrado")
    return BatchJobResponse.from_record(job)


@router.post("/{job_id}/cancel")
def cancel_batch_job(job_id: str, manager: BatchJobManager = Depends(get_batch_manager)):
    """
    Solicita o cancelamento do lote.

    O item em andamento termina; nenhum item novo é iniciado.
    """
    try:
        manager.cancel_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Lote nao encontrado")
    except JobNotRunningError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Cancelamento solicitado"}
