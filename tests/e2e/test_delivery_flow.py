"""
Fluxo completo: criar campanha, enviar, receber recibos, retry.

Usa repositories em memoria, vendor sem delay e recibos entregues
in-process (assinados e verificados).
"""
import random

import pytest

from campaign_engine.services.campaigns.types import CampaignStatus, MessageStatus
from campaign_engine.services.vendor.callbacks import InProcessReceiptPoster
from campaign_engine.services.vendor.simulator import VendorGateway

pytestmark = pytest.mark.integration


class TestDeliveryFlow:

    @pytest.mark.asyncio
    async def test_tres_clientes_entregues(self, service, supervisor, message_repo, campaign_repo):
        campaign = await service.create(
            "Boas-vindas",
            "Hi {firstName}, thanks for {visits} visits",
            [{"field": "isActive", "operator": "==", "value": True}],
        )
        assert campaign.audience_size == 3

        await service.send(campaign.id)
        await supervisor.drain(timeout=5)

        final, logs = await service.get(campaign.id)
        assert final.status == CampaignStatus.COMPLETED
        assert len(logs) == 3
        assert len({r.message_id for r in logs}) == 3
        assert {r.customer_id for r in logs} == {"c1", "c2", "c3"}
        assert all(r.status == MessageStatus.DELIVERED for r in logs)
        assert "Hi Jane, thanks for 12 visits" in {r.message for r in logs}

        assert final.stats.total_sent == 3
        assert final.stats.total_delivered == 3
        assert final.stats.delivery_rate == 100.0

    @pytest.mark.asyncio
    async def test_falhas_e_retry(
        self, campaign_repo, message_repo, seeded_store, supervisor, stats,
        receipt_processor, orchestrator, service,
    ):
        """Vendor que sempre falha: todos failed, retry ate o teto."""
        failing = VendorGateway(
            message_repo,
            stats,
            supervisor,
            secret=receipt_processor.secret,
            receipt_poster=InProcessReceiptPoster(receipt_processor),
            success_rate=0.0,
            min_delay=0,
            max_delay=0,
            rng=random.Random(1),
        )
        orchestrator.vendor = failing
        service.vendor = failing

        campaign = await service.create(
            "Reativacao", "Volte {name}",
            [{"field": "totalSpending", "operator": ">=", "value": 20000}],
        )
        await service.send(campaign.id)
        await supervisor.drain(timeout=5)

        breakdown = await service.delivery_stats(campaign.id)
        assert breakdown["failed"] == 2
        assert breakdown["deliveryRate"] == 0.0

        for _ in range(4):
            await service.retry(campaign.id)
            await supervisor.drain(timeout=5)

        _, logs = await service.get(campaign.id)
        assert all(r.retry_count == 3 for r in logs)
        assert (await service.retry(campaign.id))["retriedCount"] == 0

        final = await campaign_repo.get(campaign.id)
        assert final.stats.total_failed == 2
        assert final.stats.total_sent == 2
