"""
Dispatcher com fallback entre chaves de API.

Executa uma única requisição lógica contra um provedor upstream tentando
cada credencial do pool, em ordem, até uma funcionar:

- exceção de transporte (rede, timeout, resposta malformada): próxima chave
- status não-2xx: consulta o predicado; retentável segue para a próxima
  chave, fatal aborta o dispatch imediatamente
- todas as chaves falharam: um único PoolExhaustedError agregado

As tentativas são sequenciais e imediatas, sem backoff.
"""
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from direito_edge.core.logging import log_api_call
from direito_edge.services.credential_pool import CredentialPool

logger = logging.getLogger(__name__)

# Marcadores de cota/recurso esgotado no corpo da resposta de erro
QUOTA_MARKERS = ("resource_exhausted", "quota", "rate limit", "too many requests")


@dataclass
class UpstreamFailure:
    """Resposta não-2xx devolvida pelo request builder."""
    status_code: int
    body: str = ""

    def __str__(self) -> str:
        return f"HTTP {self.status_code}: {self.body[:200]}"


class EmptyUpstreamResponse(Exception):
    """Resposta 2xx sem o conteúdo esperado (sem texto, sem inlineData)."""


class AttemptOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    RETRYABLE_FAILURE = "RETRYABLE_FAILURE"
    FATAL_FAILURE = "FATAL_FAILURE"


class DispatchAttemptResult(BaseModel):
    """Resultado de uma tentativa (credencial, requisição)"""
    credential_index: int  # 0-based
    outcome: AttemptOutcome
    payload: Any = None
    error_kind: Optional[str] = None  # http_status | transport
    status_code: Optional[int] = None
    message: Optional[str] = None
    duration_ms: float = 0.0


class DispatchReport(BaseModel):
    service: str
    payload: Any = None
    attempts: List[DispatchAttemptResult] = []


class DispatchError(Exception):
    """Base dos erros de dispatch. Carrega as tentativas realizadas."""

    def __init__(self, service: str, message: str, attempts: Optional[List[DispatchAttemptResult]] = None):
        self.service = service
        self.attempts = attempts or []
        super().__init__(message)


class FatalDispatchError(DispatchError):
    """O predicado classificou a falha como não-retentável."""

    def __init__(self, service: str, failure: UpstreamFailure, attempts: List[DispatchAttemptResult]):
        self.status_code = failure.status_code
        self.body = failure.body
        super().__init__(
            service,
            f"Falha fatal em '{service}' na chave {len(attempts)}: {failure}",
            attempts,
        )


class PoolExhaustedError(DispatchError):
    """Todas as credenciais do pool foram tentadas e falharam."""

    def __init__(self, service: str, pool_size: int, last_error: str, attempts: List[DispatchAttemptResult]):
        self.pool_size = pool_size
        self.last_error = last_error
        super().__init__(
            service,
            f"Todas as {pool_size} chaves de '{service}' falharam. Último erro: {last_error}",
            attempts,
        )


RetryPredicate = Callable[[int, str], bool]
RequestBuilder = Callable[[str], Awaitable[Any]]


def is_quota_failure(status_code: int, body: str) -> bool:
    """429 ou corpo com marcadores de cota esgotada"""
    if status_code == 429:
        return True
    lowered = (body or "").lower()
    return any(marker in lowered for marker in QUOTA_MARKERS)


def retry_all_failures(status_code: int, body: str) -> bool:
    """Política observada: qualquer falha tenta a próxima chave."""
    return True


def retry_transient_failures(status_code: int, body: str) -> bool:
    """Cota, timeout (408) e 5xx são retentáveis; demais 4xx são fatais."""
    return is_quota_failure(status_code, body) or status_code == 408 or status_code >= 500


RETRY_POLICIES: Dict[str, RetryPredicate] = {
    "all": retry_all_failures,
    "quota": is_quota_failure,
    "transient": retry_transient_failures,
}


def get_retry_policy(name: str) -> RetryPredicate:
    try:
        return RETRY_POLICIES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Política de retry desconhecida: {name}. Use uma de {sorted(RETRY_POLICIES)}"
        )


async def dispatch_with_report(
    pool: CredentialPool,
    request_builder: RequestBuilder,
    is_retryable: RetryPredicate = retry_all_failures,
) -> DispatchReport:
    """
    Executa a requisição com fallback e devolve o payload junto das tentativas.

    Args:
        pool: Pool não-vazio de credenciais, sempre percorrido a partir do índice 0
        request_builder: Corrotina que recebe a credencial e devolve o payload
            de sucesso ou um UpstreamFailure
        is_retryable: Predicado (status, corpo) que decide se a falha é retentável

    Raises:
        FatalDispatchError: falha classificada como não-retentável
        PoolExhaustedError: todas as credenciais falharam
    """
    attempts: List[DispatchAttemptResult] = []
    pool_size = len(pool)
    last_error = ""

    for index, credential in enumerate(pool):
        start = time.perf_counter()
        try:
            result = await request_builder(credential)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            last_error = f"{type(e).__name__}: {e}"
            attempts.append(DispatchAttemptResult(
                credential_index=index,
                outcome=AttemptOutcome.RETRYABLE_FAILURE,
                error_kind="transport",
                message=last_error,
                duration_ms=duration_ms,
            ))
            log_api_call(logger, pool.service, index + 1, pool_size, "exception",
                         duration_ms=duration_ms, error=last_error)
            continue

        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        if isinstance(result, UpstreamFailure):
            last_error = str(result)
            retryable = is_retryable(result.status_code, result.body)
            attempts.append(DispatchAttemptResult(
                credential_index=index,
                outcome=AttemptOutcome.RETRYABLE_FAILURE if retryable else AttemptOutcome.FATAL_FAILURE,
                error_kind="http_status",
                status_code=result.status_code,
                message=last_error,
                duration_ms=duration_ms,
            ))
            log_api_call(logger, pool.service, index + 1, pool_size,
                         "failure" if retryable else "fatal",
                         status_code=result.status_code, duration_ms=duration_ms, error=result.body)
            if not retryable:
                raise FatalDispatchError(pool.service, result, attempts)
            continue

        attempts.append(DispatchAttemptResult(
            credential_index=index,
            outcome=AttemptOutcome.SUCCESS,
            payload=result,
            duration_ms=duration_ms,
        ))
        log_api_call(logger, pool.service, index + 1, pool_size, "success", duration_ms=duration_ms)
        return DispatchReport(service=pool.service, payload=result, attempts=attempts)

    raise PoolExhaustedError(pool.service, pool_size, last_error, attempts)


async def dispatch(
    pool: CredentialPool,
    request_builder: RequestBuilder,
    is_retryable: RetryPredicate = retry_all_failures,
) -> Any:
    """Como dispatch_with_report, mas devolve apenas o payload."""
    report = await dispatch_with_report(pool, request_builder, is_retryable)
    return report.payload
