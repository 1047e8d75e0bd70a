"""
Executor sequencial de lotes com progresso e cancelamento cooperativo.

Máquina de estados: IDLE -> RUNNING -> (COMPLETED | CANCELLED) -> IDLE.

- itens processados um a um, na ordem de entrada
- o cancelamento é verificado uma vez, no topo de cada iteração; o item em
  andamento sempre termina
- falha de um item é registrada e o lote segue para o próximo
- on_progress(atual, total) dispara após cada item, antes do delay
- o delay só é aplicado entre itens consecutivos
- ao terminar, o progresso volta para (0, 0)
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class BatchRunState(str, enum.Enum):
    """Estado do executor de lote"""
    IDLE = "IDLE"               # Nenhum lote em execucao
    RUNNING = "RUNNING"         # Processando itens
    COMPLETED = "COMPLETED"     # Todos os itens processados (com ou sem falhas)
    CANCELLED = "CANCELLED"     # Interrompido pelo usuario


class BatchAlreadyRunningError(RuntimeError):
    """Já existe um lote em execução neste executor."""


class CancellationToken:
    """Flag de cancelamento que pode ser acionada a qualquer momento pela UI/API."""

    def __init__(self):
        self._cancelled = False

    def request_cancel(self) -> None:
        self._cancelled = True

    def is_cancelled(self) -> bool:
        return self._cancelled

    def reset(self) -> None:
        self._cancelled = False


@dataclass
class BatchItemFailure:
    position: int  # 1-based, igual ao progresso reportado
    item: Any
    error: str


@dataclass
class BatchRunResult:
    status: BatchRunState
    total: int
    processed: int = 0
    outcomes: List[Tuple[Any, Any]] = field(default_factory=list)
    failures: List[BatchItemFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.processed - len(self.failures)


ItemOperation = Callable[[Any], Awaitable[Any]]
ProgressCallback = Callable[[int, int], None]
FailureCallback = Callable[[BatchItemFailure], None]


class BatchRunner:
    """
    Executa uma operação assíncrona sobre cada item de uma lista.

    Uma instância executa no máximo um lote por vez.
    """

    def __init__(self, name: str = "lote", sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.name = name
        self.state = BatchRunState.IDLE
        self.current = 0
        self.total = 0
        self.last_status: Optional[BatchRunState] = None
        self.cancel_token = CancellationToken()
        self._sleep = sleep

    @property
    def progress(self) -> Tuple[int, int]:
        return self.current, self.total

    @property
    def is_running(self) -> bool:
        return self.state == BatchRunState.RUNNING

    def request_cancel(self) -> None:
        self.cancel_token.request_cancel()

    async def run_batch(
        self,
        items: Sequence[Any],
        operation: ItemOperation,
        inter_item_delay_ms: int,
        on_progress: Optional[ProgressCallback] = None,
        on_item_error: Optional[FailureCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchRunResult:
        """
        Processa os itens em sequência.

        Args:
            items: Itens do lote (não pode ser vazio)
            operation: Corrotina aplicada a cada item
            inter_item_delay_ms: Espera entre itens consecutivos
            on_progress: Chamado com (itens processados, total) após cada item
            on_item_error: Chamado com a falha de um item; o lote continua
            cancel_token: Token externo, respeitado como está: se já estiver
                cancelado, nenhum item é iniciado. Sem ele, usa o token do
                executor, que é zerado no início de cada execução.

        Raises:
            ValueError: lista de itens vazia
            BatchAlreadyRunningError: já existe lote em execução
        """
        items = list(items)
        if not items:
            raise ValueError("Nenhum item para processar")
        if self.state == BatchRunState.RUNNING:
            raise BatchAlreadyRunningError(f"Lote '{self.name}' já está em execução")

        if cancel_token is None:
            self.cancel_token.reset()
            token = self.cancel_token
        else:
            token = cancel_token

        total = len(items)
        self.state = BatchRunState.RUNNING
        self.current = 0
        self.total = total
        result = BatchRunResult(status=BatchRunState.COMPLETED, total=total)
        delay_seconds = max(inter_item_delay_ms, 0) / 1000

        logger.info(f"Lote '{self.name}' iniciado com {total} itens (delay={inter_item_delay_ms}ms)")

        try:
            for i, item in enumerate(items):
                if token.is_cancelled():
                    result.status = BatchRunState.CANCELLED
                    logger.info(f"Lote '{self.name}' cancelado após {result.processed}/{total} itens")
                    break

                try:
                    outcome = await operation(item)
                    result.outcomes.append((item, outcome))
                except Exception as e:
                    failure = BatchItemFailure(position=i + 1, item=item, error=str(e) or type(e).__name__)
                    result.failures.append(failure)
                    logger.error(f"Lote '{self.name}': erro no item {i + 1}/{total} ({item!r}): {failure.error}")
                    if on_item_error:
                        on_item_error(failure)

                result.processed = i + 1
                self.current = i + 1
                if on_progress:
                    on_progress(self.current, total)

                if i < total - 1:
                    await self._sleep(delay_seconds)

        except asyncio.CancelledError:
            result.status = BatchRunState.CANCELLED
            raise

        finally:
            self.last_status = result.status
            self.state = BatchRunState.IDLE
            self.current = 0
            self.total = 0

        logger.info(
            f"Lote '{self.name}' finalizado: status={result.status.value}, "
            f"processados={result.processed}, falhas={len(result.failures)}"
        )
        return result
