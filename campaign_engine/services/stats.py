"""
Agregacao de estatisticas de campanha.

As estatisticas sao sempre recalculadas a partir de todos os
MessageRecords da campanha, nunca incrementadas. Assim recibos
duplicados ou fora de ordem nao fazem os contadores divergirem.

Categorias:
- totalSent: registros que sairam de pending (sent, delivered, failed, bounced)
- totalDelivered: delivered
- totalFailed: failed + bounced
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List

from campaign_engine.core.timezone import to_utc
from campaign_engine.repositories.campaign import CampaignRepository
from campaign_engine.repositories.message import MessageRecordRepository
from campaign_engine.services.campaigns.types import CampaignStats, MessageRecord, MessageStatus

logger = logging.getLogger(__name__)

SENT_STATUSES = (
    MessageStatus.SENT,
    MessageStatus.DELIVERED,
    MessageStatus.FAILED,
    MessageStatus.BOUNCED,
)
FAILED_STATUSES = (MessageStatus.FAILED, MessageStatus.BOUNCED)


def delivery_rate(delivered: int, sent: int) -> float:
    """Percentual entregue com 2 casas; 0 quando nada foi enviado."""
    if sent <= 0:
        return 0.0
    return round(delivered / sent * 100, 2)


def stats_from_counts(counts: Dict[str, int]) -> CampaignStats:
    """Monta CampaignStats a partir da contagem por status."""
    total_sent = sum(counts.get(s.value, 0) for s in SENT_STATUSES)
    total_failed = sum(counts.get(s.value, 0) for s in FAILED_STATUSES)
    total_delivered = counts.get(MessageStatus.DELIVERED.value, 0)

    return CampaignStats(
        total_sent=total_sent,
        total_failed=total_failed,
        total_delivered=total_delivered,
        delivery_rate=delivery_rate(total_delivered, total_sent),
    )


def hourly_buckets(records: Iterable[MessageRecord]) -> List[dict]:
    """
    Conta registros por dia e hora (UTC) de criacao.

    Returns:
        [{date: "YYYY-MM-DD", hour, count}] ordenado por data e hora
    """
    buckets = Counter(
        (created.strftime("%Y-%m-%d"), created.hour)
        for created in (to_utc(r.created_at) for r in records if r.created_at)
    )
    return [
        {"date": day, "hour": hour, "count": count}
        for (day, hour), count in sorted(buckets.items())
    ]


class StatsAggregator:
    """Recalcula e grava stats da campanha."""

    def __init__(
        self,
        campaign_repo: CampaignRepository,
        message_repo: MessageRecordRepository,
    ):
        self.campaign_repo = campaign_repo
        self.message_repo = message_repo

    async def recompute(self, campaign_id: str) -> CampaignStats:
        """
        Recalcula stats da campanha e grava no registro da campanha.

        Chamado apos qualquer mudanca de status de MessageRecord.
        """
        counts = await self.message_repo.count_by_status(campaign_id)
        stats = stats_from_counts(counts)

        updated = await self.campaign_repo.update(campaign_id, {"stats": stats.to_dict()})
        if updated is None:
            logger.warning(
                f"Stats calculadas para campanha inexistente: {campaign_id}",
                extra={"campaign_id": campaign_id},
            )

        logger.debug(
            f"Stats da campanha {campaign_id}: sent={stats.total_sent} "
            f"delivered={stats.total_delivered} failed={stats.total_failed} "
            f"rate={stats.delivery_rate}",
            extra={"campaign_id": campaign_id},
        )
        return stats

    async def breakdown(self, campaign_id: str) -> dict:
        """
        Contagem por status calculada sob demanda.

        Returns:
            {total, pending, sent, delivered, failed, bounced, deliveryRate}
        """
        counts = await self.message_repo.count_by_status(campaign_id)
        stats = stats_from_counts(counts)

        result = {status.value: counts.get(status.value, 0) for status in MessageStatus}
        result["total"] = sum(counts.values())
        result["deliveryRate"] = stats.delivery_rate
        return result

    async def timeline(self, campaign_id: str) -> List[dict]:
        """Serie de envios por dia/hora de criacao do MessageRecord."""
        records = await self.message_repo.list_by_campaign(campaign_id)
        return hourly_buckets(records)
