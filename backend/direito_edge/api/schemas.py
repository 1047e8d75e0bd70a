from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime

from direito_edge.tasks.batch_jobs import BatchJobRecord, BatchJobStatus, BatchKind


class TextGenerationRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    temperature: float = 0.5
    max_output_tokens: int = 8192


class TextGenerationResponse(BaseModel):
    text: str


class ImageGenerationRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    compress: bool = True


class ImageGenerationResponse(BaseModel):
    image_base64: str
    mime_type: str
    compressed: bool


class NarrationRequest(BaseModel):
    texto: str = Field(..., min_length=1)
    voice: Optional[str] = None


class NarrationResponse(BaseModel):
    audio_base64: str
    mime_type: str = "audio/wav"
    segments: int


class BatchItemIn(BaseModel):
    id: Union[int, str]
    texto: str = Field(..., min_length=1)


class BatchCreateRequest(BaseModel):
    kind: BatchKind
    items: List[BatchItemIn] = Field(..., min_length=1)
    delay_ms: Optional[int] = Field(None, ge=0)


class BatchItemFailureInfo(BaseModel):
    item_id: Union[int, str]
    position: int
    error: str


class BatchJobResponse(BaseModel):
    """Estado de um job de lote, com progresso para a barra da UI"""
    id: str
    kind: BatchKind
    status: BatchJobStatus
    current: int
    total: int
    processed: int
    item_count: int
    delay_ms: int
    failures: List[BatchItemFailureInfo] = []
    results: Dict[str, Dict[str, Any]] = {}
    error_message: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, job: BatchJobRecord, include_results: bool = True) -> "BatchJobResponse":
        return cls(
            id=job.id,
            kind=job.kind,
            status=job.status,
            current=job.current,
            total=job.total,
            processed=job.processed,
            item_count=len(job.items),
            delay_ms=job.delay_ms,
            failures=[BatchItemFailureInfo(**f) for f in job.failures],
            results=job.results if include_results else {},
            error_message=job.error_message,
            created_at=job.created_at,
            finished_at=job.finished_at,
        )


class BatchListResponse(BaseModel):
    items: List[BatchJobResponse]
    total: int
