"""
Jobs de geração em lote (explicações, narrações e capas).

Cada tipo de geração tem o seu próprio BatchRunner, então no máximo um lote
por tipo roda de cada vez. Os registros dos jobs ficam em memória; o job
roda no mesmo event loop da API e é cancelado pela flag do seu token.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from direito_edge.core.config import settings
from direito_edge.services.generation import GenerationService
from direito_edge.tasks.batch_runner import (
    BatchAlreadyRunningError,
    BatchItemFailure,
    BatchRunner,
    BatchRunState,
    CancellationToken,
)

logger = logging.getLogger(__name__)


class BatchKind(str, enum.Enum):
    EXPLICACAO = "explicacao"
    NARRACAO = "narracao"
    CAPA = "capa"


class BatchJobStatus(str, enum.Enum):
    """Status do job de lote"""
    PENDING = "PENDING"         # Job criado, nao iniciado
    RUNNING = "RUNNING"         # Itens sendo processados
    COMPLETED = "COMPLETED"     # Todos os itens processados (pode haver falhas)
    CANCELLED = "CANCELLED"     # Cancelado pelo usuario
    ERROR = "ERROR"             # Erro no nivel do lote


class JobNotFoundError(KeyError):
    pass


class JobNotRunningError(RuntimeError):
    pass


@dataclass
class BatchWorkItem:
    id: Union[int, str]
    texto: str


@dataclass
class BatchJobRecord:
    id: str
    kind: BatchKind
    items: List[BatchWorkItem]
    delay_ms: int
    status: BatchJobStatus = BatchJobStatus.PENDING
    # Progresso exibido pela UI; volta para (0, 0) quando o job termina
    current: int = 0
    total: int = 0
    processed: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)
    results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status in (BatchJobStatus.PENDING, BatchJobStatus.RUNNING)


ItemOperation = Callable[[BatchWorkItem], Awaitable[Dict[str, Any]]]


def build_item_operations(service: GenerationService) -> Dict[BatchKind, ItemOperation]:
    """Operação por item para cada tipo de lote."""

    async def explicacao(item: BatchWorkItem) -> Dict[str, Any]:
        text = await service.explain(item.texto)
        return {"text": text, "chars": len(text)}

    async def narracao(item: BatchWorkItem) -> Dict[str, Any]:
        narration = await service.narrate(item.texto)
        return {
            "audio_base64": narration.wav_base64,
            "mime_type": "audio/wav",
            "segments": narration.segments,
            "bytes": len(narration.wav_bytes),
        }

    async def capa(item: BatchWorkItem) -> Dict[str, Any]:
        image = await service.cover(item.texto)
        return {
            "image_base64": image.image_base64,
            "mime_type": image.mime_type,
            "compressed": image.compressed,
            "bytes": len(image.data),
        }

    return {
        BatchKind.EXPLICACAO: explicacao,
        BatchKind.NARRACAO: narracao,
        BatchKind.CAPA: capa,
    }


def default_delays() -> Dict[BatchKind, int]:
    return {
        BatchKind.EXPLICACAO: settings.BATCH_DELAY_DEFAULT_MS,
        BatchKind.NARRACAO: settings.BATCH_DELAY_NARRACAO_MS,
        BatchKind.CAPA: settings.BATCH_DELAY_DEFAULT_MS,
    }


class BatchJobManager:
    def __init__(
        self,
        operations: Dict[BatchKind, ItemOperation],
        delays: Optional[Dict[BatchKind, int]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.operations = operations
        self.delays = delays or default_delays()
        runner_kwargs = {"sleep": sleep} if sleep else {}
        self.runners: Dict[BatchKind, BatchRunner] = {
            kind: BatchRunner(name=kind.value, **runner_kwargs) for kind in BatchKind
        }
        self.jobs: Dict[str, BatchJobRecord] = {}

    def create_job(
        self,
        kind: BatchKind,
        items: List[BatchWorkItem],
        delay_ms: Optional[int] = None,
    ) -> BatchJobRecord:
        """
        Registra um job PENDING.

        Raises:
            ValueError: lista de itens vazia
            BatchAlreadyRunningError: já existe job ativo do mesmo tipo
        """
        if not items:
            raise ValueError("Nenhum item para processar")

        if self.runners[kind].is_running or any(j.kind == kind and j.is_active for j in self.jobs.values()):
            raise BatchAlreadyRunningError(f"Já existe um lote de '{kind.value}' em execução")

        job = BatchJobRecord(
            id=uuid.uuid4().hex,
            kind=kind,
            items=list(items),
            delay_ms=self.delays[kind] if delay_ms is None else delay_ms,
            total=len(items),
        )
        self.jobs[job.id] = job
        logger.info(f"Job {job.id} criado: {kind.value} com {len(items)} itens")
        return job

    def get_job(self, job_id: str) -> BatchJobRecord:
        try:
            return self.jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id)

    def list_jobs(self) -> List[BatchJobRecord]:
        return sorted(self.jobs.values(), key=lambda j: j.created_at, reverse=True)

    def cancel_job(self, job_id: str) -> BatchJobRecord:
        job = self.get_job(job_id)
        if not job.is_active:
            raise JobNotRunningError(f"Não é possível cancelar job com status {job.status.value}")

        job.cancel_token.request_cancel()
        logger.info(f"Cancelamento solicitado para job {job_id}")
        return job

    async def run_job(self, job_id: str) -> BatchJobRecord:
        job = self.get_job(job_id)
        runner = self.runners[job.kind]
        operation = self.operations[job.kind]

        # Cancelado antes de começar: nenhum item é iniciado
        if job.cancel_token.is_cancelled():
            self._finish(job, BatchJobStatus.CANCELLED)
            return job

        async def run_item(item: BatchWorkItem) -> Dict[str, Any]:
            outcome = await operation(item)
            job.results[str(item.id)] = outcome
            return outcome

        def on_progress(current: int, total: int) -> None:
            job.current = current
            job.total = total
            job.processed = current

        def on_item_error(failure: BatchItemFailure) -> None:
            job.failures.append({
                "item_id": failure.item.id,
                "position": failure.position,
                "error": failure.error,
            })

        job.status = BatchJobStatus.RUNNING
        try:
            result = await runner.run_batch(
                job.items,
                run_item,
                job.delay_ms,
                on_progress=on_progress,
                on_item_error=on_item_error,
                cancel_token=job.cancel_token,
            )
        except BatchAlreadyRunningError as e:
            job.error_message = str(e)
            self._finish(job, BatchJobStatus.ERROR)
            return job
        except Exception as e:
            logger.error(f"Erro inesperado no job {job_id}: {e}")
            job.error_message = str(e)[:1000]
            self._finish(job, BatchJobStatus.ERROR)
            raise

        status = BatchJobStatus.CANCELLED if result.status == BatchRunState.CANCELLED else BatchJobStatus.COMPLETED
        if result.failures:
            job.error_message = f"{len(result.failures)} de {result.total} itens falharam"
        self._finish(job, status)
        return job

    def _finish(self, job: BatchJobRecord, status: BatchJobStatus) -> None:
        job.status = status
        job.current = 0
        job.total = 0
        job.finished_at = datetime.utcnow()
        logger.info(f"Job {job.id} finalizado com status {status.value}")


_manager: Optional[BatchJobManager] = None


def get_batch_manager() -> BatchJobManager:
    global _manager
    if _manager is None:
        from direito_edge.services.generation import get_generation_service
        _manager = BatchJobManager(build_item_operations(get_generation_service()))
    return _manager
