"""
Rotas de health check.
"""
import logging

from fastapi import APIRouter, Depends

from campaign_engine.api.deps import get_task_supervisor
from campaign_engine.core.config import settings
from campaign_engine.core.tasks import TaskSupervisor, get_task_failure_counts
from campaign_engine.core.timezone import now_utc

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(supervisor: TaskSupervisor = Depends(get_task_supervisor)):
    """
    Verifica se a API esta funcionando.
    Usado para monitoramento e load balancers.
    """
    return {
        "status": "healthy",
        "timestamp": now_utc().isoformat(),
        "service": settings.APP_NAME,
        "storage": settings.STORAGE_BACKEND,
        "background_tasks": supervisor.active_count,
        "task_failures": get_task_failure_counts(),
    }
