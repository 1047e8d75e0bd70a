"""
Testes para o executor de lotes
"""
import asyncio

import pytest

from direito_edge.tasks.batch_runner import (
    BatchAlreadyRunningError,
    BatchRunner,
    BatchRunState,
    CancellationToken,
)


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _runner():
    sleep = FakeSleep()
    return BatchRunner(name="teste", sleep=sleep), sleep


def test_all_items_processed_in_order():
    runner, sleep = _runner()
    seen = []
    progress = []

    async def operation(item):
        seen.append(item)
        return item * 10

    result = asyncio.run(runner.run_batch(
        [1, 2, 3, 4, 5], operation, 3000, on_progress=lambda c, t: progress.append((c, t))
    ))

    assert seen == [1, 2, 3, 4, 5]
    assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]
    assert sleep.calls == [3.0, 3.0, 3.0, 3.0]
    assert result.status == BatchRunState.COMPLETED
    assert result.outcomes == [(1, 10), (2, 20), (3, 30), (4, 40), (5, 50)]
    assert runner.progress == (0, 0)
    assert runner.state == BatchRunState.IDLE
    assert runner.last_status == BatchRunState.COMPLETED


def test_single_item_has_no_delay():
    runner, sleep = _runner()

    async def operation(item):
        return item

    asyncio.run(runner.run_batch(["x"], operation, 5000))

    assert sleep.calls == []


def test_item_failure_does_not_abort_batch():
    """Item 3 lança erro: itens 4 e 5 ainda são processados"""
    runner, sleep = _runner()
    seen = []
    progress = []
    notified = []

    async def operation(item):
        seen.append(item)
        if item == 3:
            raise RuntimeError("Todas as 3 chaves falharam")
        return "ok"

    result = asyncio.run(runner.run_batch(
        [1, 2, 3, 4, 5],
        operation,
        3000,
        on_progress=lambda c, t: progress.append((c, t)),
        on_item_error=notified.append,
    ))

    assert seen == [1, 2, 3, 4, 5]
    assert progress == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]
    assert result.status == BatchRunState.COMPLETED
    assert len(result.failures) == 1
    assert result.failures[0].item == 3
    assert result.failures[0].position == 3
    assert "chaves falharam" in result.failures[0].error
    assert notified == result.failures
    assert result.succeeded == 4


def test_cancel_after_second_item():
    """Cancelamento após onProgress(2, 5): item 3 nunca começa"""
    runner, sleep = _runner()
    seen = []
    progress = []

    async def operation(item):
        seen.append(item)

    def on_progress(current, total):
        progress.append((current, total))
        if current == 2:
            runner.request_cancel()

    result = asyncio.run(runner.run_batch([1, 2, 3, 4, 5], operation, 3000, on_progress=on_progress))

    assert seen == [1, 2]
    assert progress == [(1, 5), (2, 5)]
    assert result.status == BatchRunState.CANCELLED
    assert result.processed == 2
    assert runner.progress == (0, 0)
    assert runner.last_status == BatchRunState.CANCELLED
    assert runner.state == BatchRunState.IDLE


def test_cancel_during_item_lets_it_finish():
    """O item em andamento sempre termina"""
    runner, _ = _runner()
    token = CancellationToken()
    finished = []

    async def operation(item):
        token.request_cancel()
        await asyncio.sleep(0)
        finished.append(item)

    result = asyncio.run(runner.run_batch([1, 2, 3], operation, 0, cancel_token=token))

    assert finished == [1]
    assert result.status == BatchRunState.CANCELLED


def test_cancel_on_last_item_still_completes():
    runner, _ = _runner()

    async def operation(item):
        if item == 2:
            runner.request_cancel()

    result = asyncio.run(runner.run_batch([1, 2], operation, 0))

    assert result.status == BatchRunState.COMPLETED
    assert result.processed == 2


def test_internal_token_is_reset_on_new_run():
    runner, _ = _runner()
    runner.request_cancel()

    async def operation(item):
        return item

    result = asyncio.run(runner.run_batch([1, 2], operation, 0))

    assert result.status == BatchRunState.COMPLETED
    assert result.processed == 2


def test_external_token_cancelled_before_start():
    """Token externo já cancelado: nenhum item é iniciado"""
    runner, sleep = _runner()
    token = CancellationToken()
    token.request_cancel()
    seen = []

    async def operation(item):
        seen.append(item)

    result = asyncio.run(runner.run_batch([1, 2, 3], operation, 0, cancel_token=token))

    assert seen == []
    assert sleep.calls == []
    assert result.status == BatchRunState.CANCELLED
    assert result.processed == 0
    assert runner.state == BatchRunState.IDLE
    assert runner.last_status == BatchRunState.CANCELLED
    assert token.is_cancelled()


def test_empty_items_rejected():
    runner, _ = _runner()

    async def operation(item):
        return item

    with pytest.raises(ValueError):
        asyncio.run(runner.run_batch([], operation, 0))
    assert runner.state == BatchRunState.IDLE


def test_only_one_batch_at_a_time():
    runner, _ = _runner()
    errors = []

    async def scenario():
        async def operation(item):
            if item == 1:
                try:
                    await runner.run_batch([9], operation, 0)
                except BatchAlreadyRunningError as e:
                    errors.append(e)
            return item

        return await runner.run_batch([1, 2], operation, 0)

    result = asyncio.run(scenario())

    assert len(errors) == 1
    assert result.status == BatchRunState.COMPLETED


def test_running_state_and_progress_during_run():
    runner, _ = _runner()
    snapshots = []

    async def operation(item):
        snapshots.append((runner.state, runner.progress, runner.is_running))

    asyncio.run(runner.run_batch(["a", "b"], operation, 0))

    assert snapshots == [
        (BatchRunState.RUNNING, (0, 2), True),
        (BatchRunState.RUNNING, (1, 2), True),
    ]
    assert not runner.is_running
