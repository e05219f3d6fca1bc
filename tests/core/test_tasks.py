"""
Testes para utilidades de tasks assincronas e TaskSupervisor.
"""
import asyncio
import inspect
from unittest.mock import MagicMock, patch

import pytest

from campaign_engine.core.tasks import (
    TaskSupervisor,
    get_task_failure_counts,
    reset_task_failure_counts,
    safe_create_task,
    schedule_with_delay,
)


class TestSafeCreateTask:
    """Testes para safe_create_task."""

    def setup_method(self):
        reset_task_failure_counts()

    @pytest.mark.asyncio
    async def test_executa_task_com_sucesso(self):
        async def task_ok():
            return "sucesso"

        result = await safe_create_task(task_ok(), name="task_ok")

        assert result == "sucesso"
        assert get_task_failure_counts().get("task_ok", 0) == 0

    @pytest.mark.asyncio
    async def test_captura_erro_sem_crashar(self):
        """Task com erro nao propaga e conta a falha."""
        async def task_erro():
            raise ValueError("Erro simulado")

        result = await safe_create_task(task_erro(), name="task_erro")

        assert result is None
        assert get_task_failure_counts()["task_erro"] == 1

    @pytest.mark.asyncio
    async def test_loga_erro(self):
        async def task_erro():
            raise RuntimeError("Erro de teste")

        with patch("campaign_engine.core.tasks.logger") as mock_logger:
            await safe_create_task(task_erro(), name="task_logada")

            mock_logger.error.assert_called()
            assert "task_logada" in str(mock_logger.error.call_args)

    @pytest.mark.asyncio
    async def test_callback_on_error(self):
        callback = MagicMock()

        async def task_erro():
            raise ValueError("Erro")

        await safe_create_task(task_erro(), name="task_callback", on_error=callback)

        callback.assert_called_once()
        assert isinstance(callback.call_args[0][0], ValueError)

    @pytest.mark.asyncio
    async def test_cancelamento_propaga(self):
        async def task_lenta():
            await asyncio.sleep(10)

        task = safe_create_task(task_lenta(), name="task_lenta")
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert "task_lenta" not in get_task_failure_counts()


class TestScheduleWithDelay:

    @pytest.mark.asyncio
    async def test_executa_apos_delay(self):
        executed = False

        async def task_delayed():
            nonlocal executed
            executed = True

        task = schedule_with_delay(task_delayed(), delay_seconds=0.05, name="delayed_test")

        await asyncio.sleep(0.01)
        assert not executed

        await task
        assert executed

    @pytest.mark.asyncio
    async def test_cancelada_durante_delay_fecha_coroutine(self):
        async def nunca_executa():
            raise AssertionError("nao deveria rodar")

        coro = nunca_executa()
        task = schedule_with_delay(coro, delay_seconds=10, name="delayed_cancelada")
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED
        assert "delayed_cancelada" not in get_task_failure_counts()


class TestTaskSupervisor:
    """Controle de ciclo de vida das tasks de entrega."""

    @pytest.mark.asyncio
    async def test_spawn_rastreia_por_nome(self):
        supervisor = TaskSupervisor()
        liberar = asyncio.Event()

        async def loop():
            await liberar.wait()

        supervisor.spawn(loop(), name="delivery-loop:1")
        await asyncio.sleep(0)

        assert supervisor.is_running("delivery-loop:1")
        assert supervisor.active_names() == ["delivery-loop:1"]
        assert supervisor.active_count == 1

        liberar.set()
        await supervisor.drain(timeout=1)

        assert not supervisor.is_running("delivery-loop:1")
        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_drain_espera_tasks_criadas_durante_a_espera(self):
        """Tasks filhas (ex: resolucao do vendor) tambem sao aguardadas."""
        supervisor = TaskSupervisor()
        executadas = []

        async def filha():
            executadas.append("filha")

        async def pai():
            executadas.append("pai")
            supervisor.spawn_later(filha(), 0.01, name="vendor-outcome:m1")

        supervisor.spawn(pai(), name="delivery-loop:1")
        await supervisor.drain(timeout=1)

        assert executadas == ["pai", "filha"]
        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_drain_com_timeout(self):
        supervisor = TaskSupervisor()

        async def eterna():
            await asyncio.sleep(10)

        supervisor.spawn(eterna(), name="eterna")

        with pytest.raises(asyncio.TimeoutError):
            await supervisor.drain(timeout=0.05)

        await supervisor.shutdown()

    @pytest.mark.asyncio
    async def test_cancel_por_nome(self):
        supervisor = TaskSupervisor()

        async def eterna():
            await asyncio.sleep(10)

        supervisor.spawn(eterna(), name="delivery-loop:2")
        await asyncio.sleep(0)

        assert supervisor.cancel("delivery-loop:2") is True
        await supervisor.drain(timeout=1)

        assert supervisor.cancel("delivery-loop:2") is False
        assert not supervisor.is_running("delivery-loop:2")

    @pytest.mark.asyncio
    async def test_shutdown_cancela_tudo(self):
        supervisor = TaskSupervisor()

        async def eterna():
            await asyncio.sleep(10)

        for i in range(3):
            supervisor.spawn(eterna(), name=f"t{i}")
        await asyncio.sleep(0)

        await supervisor.shutdown()
        await asyncio.sleep(0)

        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_falha_nao_derruba_supervisor(self):
        supervisor = TaskSupervisor()

        async def falha():
            raise RuntimeError("boom")

        supervisor.spawn(falha(), name="falha")
        await supervisor.drain(timeout=1)

        assert get_task_failure_counts()["falha"] == 1
        assert supervisor.active_count == 0
