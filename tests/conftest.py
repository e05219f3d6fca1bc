"""
Configuracao global de testes - Fixtures compartilhadas.

Os servicos sao montados com repositories em memoria e dependencias
explicitas, sem patches de modulo.
"""
import random
from datetime import timedelta

import pytest

from campaign_engine.core.tasks import TaskSupervisor, reset_task_failure_counts
from campaign_engine.core.timezone import now_utc
from campaign_engine.repositories.memory import (
    InMemoryAudienceStore,
    InMemoryCampaignRepository,
    InMemoryMessageRecordRepository,
)
from campaign_engine.services.campaigns.orchestrator import DeliveryOrchestrator
from campaign_engine.services.campaigns.service import CampaignService
from campaign_engine.services.receipts import ReceiptProcessor
from campaign_engine.services.stats import StatsAggregator
from campaign_engine.services.vendor.callbacks import InProcessReceiptPoster
from campaign_engine.services.vendor.simulator import VendorGateway

WEBHOOK_SECRET = "test-secret"


# =============================================================================
# FACTORIES
# =============================================================================


def make_customer(id: str, **overrides) -> dict:
    """Linha da tabela customers com valores padrao."""
    agora = now_utc()
    row = {
        "id": id,
        "name": f"Cliente {id}",
        "email": f"{id}@example.com",
        "phone": "+919800000000",
        "total_spending": 1000.0,
        "visits": 1,
        "last_visit": (agora - timedelta(days=10)).isoformat(),
        "registration_date": (agora - timedelta(days=400)).isoformat(),
        "segment": "regular",
        "is_active": True,
        "tags": [],
    }
    row.update(overrides)
    return row


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_task_counters():
    reset_task_failure_counts()
    yield
    reset_task_failure_counts()


@pytest.fixture
def campaign_repo():
    return InMemoryCampaignRepository()


@pytest.fixture
def message_repo():
    return InMemoryMessageRecordRepository()


@pytest.fixture
def audience_store():
    return InMemoryAudienceStore()


@pytest.fixture
def customers():
    """Tres clientes com perfis distintos."""
    return [
        make_customer("c1", name="Jane Doe", total_spending=60000, visits=12, segment="vip"),
        make_customer("c2", name="Raj Kumar", total_spending=25000, visits=5, segment="premium"),
        make_customer("c3", name="Ana Lima", total_spending=3000, visits=2, segment="regular"),
    ]


@pytest.fixture
def seeded_store(audience_store, customers):
    for customer in customers:
        audience_store.add(customer)
    return audience_store


@pytest.fixture
def supervisor():
    return TaskSupervisor()


@pytest.fixture
def stats(campaign_repo, message_repo):
    return StatsAggregator(campaign_repo, message_repo)


@pytest.fixture
def receipt_processor(message_repo, stats):
    return ReceiptProcessor(message_repo, stats, secret=WEBHOOK_SECRET)


@pytest.fixture
def gateway(message_repo, stats, supervisor, receipt_processor):
    """Vendor sem delay, sempre entrega, recibo in-process."""
    return VendorGateway(
        message_repo,
        stats,
        supervisor,
        secret=WEBHOOK_SECRET,
        receipt_poster=InProcessReceiptPoster(receipt_processor),
        success_rate=1.0,
        min_delay=0,
        max_delay=0,
        rng=random.Random(42),
    )


@pytest.fixture
def orchestrator(campaign_repo, message_repo, seeded_store, gateway, supervisor):
    return DeliveryOrchestrator(
        campaign_repo,
        message_repo,
        seeded_store,
        gateway,
        supervisor,
        pacing_seconds=0,
    )


@pytest.fixture
def service(campaign_repo, message_repo, seeded_store, orchestrator, gateway, stats):
    return CampaignService(
        campaign_repo,
        message_repo,
        seeded_store,
        orchestrator,
        gateway,
        stats,
    )


@pytest.fixture
def sample_rules():
    return [
        {"field": "totalSpending", "operator": ">", "value": 10000, "logicalOperator": "AND"},
        {"field": "visits", "operator": ">=", "value": 3},
    ]
