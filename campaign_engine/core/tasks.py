"""
Background tasks do pipeline de entrega.

safe_create_task/schedule_with_delay envolvem a coroutine para que
uma falha seja logada e contada sem derrubar o event loop.
TaskSupervisor guarda as tasks por nome: loops de campanha e
resolucoes adiadas do vendor.
"""
import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]

# Falhas por nome de task, exposto no /health
_failure_counts: dict[str, int] = {}


def _task_name(coro: Coroutine, fallback: str) -> str:
    return getattr(coro, "__qualname__", None) or fallback


async def _run_guarded(coro: Coroutine, name: str, on_error: Optional[ErrorCallback]) -> Any:
    """Executa a coroutine; excecao vira log + contador, cancelamento propaga."""
    try:
        return await coro
    except asyncio.CancelledError:
        logger.debug(f"Background task '{name}' cancelada")
        raise
    except Exception as e:
        _failure_counts[name] = _failure_counts.get(name, 0) + 1
        logger.error(
            f"Falha na background task '{name}': {e}",
            exc_info=True,
            extra={"task_name": name, "error_type": type(e).__name__},
        )
        if on_error is not None:
            try:
                on_error(e)
            except Exception as cb_error:
                logger.error(f"on_error de '{name}' falhou: {cb_error}")
        return None


def safe_create_task(
    coro: Coroutine,
    name: Optional[str] = None,
    on_error: Optional[ErrorCallback] = None,
) -> asyncio.Task:
    """
    asyncio.create_task com guarda de erro.

    O resultado da task e None quando a coroutine levanta excecao.

    Args:
        coro: Coroutine a executar
        name: Nome usado em logs e no contador de falhas
        on_error: Chamado com a excecao, se houver
    """
    name = name or _task_name(coro, "unknown")
    return asyncio.create_task(_run_guarded(coro, name, on_error), name=name)


def schedule_with_delay(
    coro: Coroutine,
    delay_seconds: float,
    name: Optional[str] = None,
) -> asyncio.Task:
    """Como safe_create_task, mas dorme delay_seconds antes de executar."""
    async def delayed():
        try:
            await asyncio.sleep(delay_seconds)
        except asyncio.CancelledError:
            # Cancelada antes de comecar: fecha a coroutine que nunca rodou
            coro.close()
            raise
        return await coro

    name = name or f"delayed:{_task_name(coro, 'task')}"
    return safe_create_task(delayed(), name=name)


def get_task_failure_counts() -> dict[str, int]:
    return dict(_failure_counts)


def reset_task_failure_counts():
    _failure_counts.clear()


class TaskSupervisor:
    """
    Dono das background tasks do pipeline de entrega.

    Cada task tem nome (ex: "delivery-loop:<campaign_id>",
    "vendor-outcome:<message_id>") e pode ser consultada ou
    cancelada. drain() aguarda ate nao restar nenhuma task,
    inclusive as criadas por outras tasks durante a espera.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._by_name: dict[str, asyncio.Task] = {}

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        """Cria task supervisionada que executa imediatamente."""
        task = safe_create_task(coro, name=name)
        self._track(task, name)
        return task

    def spawn_later(self, coro: Coroutine, delay_seconds: float, name: str) -> asyncio.Task:
        """Cria task supervisionada que executa apos delay."""
        task = schedule_with_delay(coro, delay_seconds, name=name)
        self._track(task, name)
        return task

    def _track(self, task: asyncio.Task, name: str) -> None:
        self._tasks.add(task)
        self._by_name[name] = task

        def _done(t: asyncio.Task):
            self._tasks.discard(t)
            if self._by_name.get(name) is t:
                del self._by_name[name]

        task.add_done_callback(_done)

    def is_running(self, name: str) -> bool:
        task = self._by_name.get(name)
        return task is not None and not task.done()

    def cancel(self, name: str) -> bool:
        """
        Cancela task pelo nome.

        Returns:
            True se havia task ativa com esse nome
        """
        task = self._by_name.get(name)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def active_names(self) -> list[str]:
        return sorted(self._by_name.keys())

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Aguarda todas as tasks terminarem.

        Raises:
            asyncio.TimeoutError: se timeout estourar antes de esvaziar
        """
        async def _wait_all():
            while self._tasks:
                await asyncio.wait(list(self._tasks))

        if timeout is None:
            await _wait_all()
        else:
            await asyncio.wait_for(_wait_all(), timeout=timeout)

    async def shutdown(self) -> None:
        """Cancela todas as tasks ativas (shutdown da aplicacao)."""
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"TaskSupervisor encerrado ({len(pending)} tasks canceladas)")
