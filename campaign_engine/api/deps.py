"""
Dependency Injection dos servicos.

Monta o grafo de servicos uma unica vez (singletons via lru_cache)
a partir dos repositories escolhidos por STORAGE_BACKEND. Nenhum
servico cria suas proprias dependencias: tudo entra pelo construtor.

Uso em endpoints:
    @router.post("/campaigns/{campaign_id}/send")
    async def send(campaign_id: str, service: CampaignService = Depends(get_campaign_service)):
        ...

Uso em testes:
    app.dependency_overrides[get_campaign_service] = lambda: service
"""
from functools import lru_cache

from campaign_engine.core.config import settings
from campaign_engine.core.tasks import TaskSupervisor
from campaign_engine.repositories.deps import (
    get_audience_store,
    get_campaign_repo,
    get_message_repo,
)
from campaign_engine.services.campaigns.orchestrator import DeliveryOrchestrator
from campaign_engine.services.campaigns.service import CampaignService
from campaign_engine.services.receipts import ReceiptProcessor
from campaign_engine.services.stats import StatsAggregator
from campaign_engine.services.vendor.callbacks import (
    HttpReceiptPoster,
    InProcessReceiptPoster,
    ReceiptPoster,
)
from campaign_engine.services.vendor.simulator import VendorGateway


@lru_cache()
def get_task_supervisor() -> TaskSupervisor:
    return TaskSupervisor()


@lru_cache()
def get_stats_aggregator() -> StatsAggregator:
    return StatsAggregator(get_campaign_repo(), get_message_repo())


@lru_cache()
def get_receipt_processor() -> ReceiptProcessor:
    return ReceiptProcessor(
        get_message_repo(),
        get_stats_aggregator(),
        secret=settings.WEBHOOK_SECRET,
    )


def build_receipt_poster() -> ReceiptPoster:
    """HTTP quando WEBHOOK_BASE_URL esta configurado; senao in-process."""
    if settings.webhook_receipt_url:
        return HttpReceiptPoster(
            settings.webhook_receipt_url,
            timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
            max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
        )
    return InProcessReceiptPoster(get_receipt_processor())


@lru_cache()
def get_vendor_gateway() -> VendorGateway:
    return VendorGateway(
        get_message_repo(),
        get_stats_aggregator(),
        get_task_supervisor(),
        secret=settings.WEBHOOK_SECRET,
        receipt_poster=build_receipt_poster(),
        success_rate=settings.VENDOR_SUCCESS_RATE,
        min_delay=settings.VENDOR_MIN_DELAY_SECONDS,
        max_delay=settings.VENDOR_MAX_DELAY_SECONDS,
        max_retry_count=settings.MAX_RETRY_COUNT,
    )


@lru_cache()
def get_orchestrator() -> DeliveryOrchestrator:
    return DeliveryOrchestrator(
        get_campaign_repo(),
        get_message_repo(),
        get_audience_store(),
        get_vendor_gateway(),
        get_task_supervisor(),
        pacing_seconds=settings.DELIVERY_PACING_SECONDS,
    )


@lru_cache()
def get_campaign_service() -> CampaignService:
    return CampaignService(
        get_campaign_repo(),
        get_message_repo(),
        get_audience_store(),
        get_orchestrator(),
        get_vendor_gateway(),
        get_stats_aggregator(),
    )
