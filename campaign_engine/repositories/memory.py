"""
Repositories em memoria.

Usados em desenvolvimento (STORAGE_BACKEND=memory) e nos testes.
Guardam linhas no mesmo formato do banco e devolvem copias, entao
alterar uma entidade devolvida nao altera o estado guardado.
"""
import copy
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from campaign_engine.core.timezone import now_utc
from campaign_engine.repositories.campaign import CampaignRepository
from campaign_engine.repositories.customer import AudienceStore, Customer
from campaign_engine.repositories.message import MessageRecordRepository
from campaign_engine.services.audience.predicate import Predicate
from campaign_engine.services.campaigns.types import Campaign, MessageRecord, MessageStatus

logger = logging.getLogger(__name__)


class InMemoryCampaignRepository(CampaignRepository):
    def __init__(self):
        self._rows: Dict[str, dict] = {}

    async def get(self, campaign_id: str) -> Optional[Campaign]:
        row = self._rows.get(campaign_id)
        return Campaign.from_db_row(copy.deepcopy(row)) if row else None

    async def list(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        rows = [r for r in self._rows.values() if not status or r["status"] == status]
        if search:
            termo = search.lower()
            rows = [
                r for r in rows
                if termo in (r.get("name") or "").lower()
                or termo in (r.get("description") or "").lower()
            ]
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        page = rows[offset:offset + limit]
        return [Campaign.from_db_row(copy.deepcopy(r)) for r in page], len(rows)

    async def create(self, campaign: Campaign) -> Campaign:
        agora = now_utc()
        campaign.created_at = agora
        campaign.updated_at = agora
        self._rows[campaign.id] = campaign.to_dict()
        return Campaign.from_db_row(copy.deepcopy(self._rows[campaign.id]))

    async def update(self, campaign_id: str, data: dict) -> Optional[Campaign]:
        row = self._rows.get(campaign_id)
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        row["updated_at"] = now_utc().isoformat()
        return Campaign.from_db_row(copy.deepcopy(row))

    async def delete(self, campaign_id: str) -> bool:
        return self._rows.pop(campaign_id, None) is not None


class InMemoryMessageRecordRepository(MessageRecordRepository):
    def __init__(self):
        self._rows: Dict[str, dict] = {}
        # Ordem de insercao desempata created_at iguais
        self._seq: Dict[str, int] = {}

    async def create(self, record: MessageRecord) -> MessageRecord:
        agora = now_utc()
        record.created_at = agora
        record.updated_at = agora
        self._rows[record.message_id] = record.to_dict()
        self._seq[record.message_id] = len(self._seq)
        return MessageRecord.from_db_row(copy.deepcopy(self._rows[record.message_id]))

    async def get(self, message_id: str) -> Optional[MessageRecord]:
        row = self._rows.get(message_id)
        return MessageRecord.from_db_row(copy.deepcopy(row)) if row else None

    async def update(self, message_id: str, data: dict) -> Optional[MessageRecord]:
        row = self._rows.get(message_id)
        if row is None:
            return None
        row.update(copy.deepcopy(data))
        row["updated_at"] = now_utc().isoformat()
        return MessageRecord.from_db_row(copy.deepcopy(row))

    def _by_campaign(self, campaign_id: str) -> List[dict]:
        return [r for r in self._rows.values() if r["campaign_id"] == campaign_id]

    async def list_by_campaign(
        self,
        campaign_id: str,
        limit: Optional[int] = None,
    ) -> List[MessageRecord]:
        rows = sorted(
            self._by_campaign(campaign_id),
            key=lambda r: self._seq[r["message_id"]],
            reverse=True,
        )
        if limit is not None:
            rows = rows[:limit]
        return [MessageRecord.from_db_row(copy.deepcopy(r)) for r in rows]

    async def find_retryable(self, campaign_id: str, max_retries: int) -> List[MessageRecord]:
        rows = [
            r for r in self._by_campaign(campaign_id)
            if r["status"] == MessageStatus.FAILED.value and r["retry_count"] < max_retries
        ]
        rows.sort(key=lambda r: self._seq[r["message_id"]])
        return [MessageRecord.from_db_row(copy.deepcopy(r)) for r in rows]

    async def count_by_status(self, campaign_id: str) -> Dict[str, int]:
        return dict(Counter(r["status"] for r in self._by_campaign(campaign_id)))


class InMemoryAudienceStore(AudienceStore):
    """
    Clientes em memoria, filtrados com Predicate.matches().

    Linhas usam as colunas snake_case da tabela customers.
    """

    def __init__(self, customers: Optional[Iterable[dict]] = None):
        self._rows: Dict[str, dict] = {}
        for customer in customers or []:
            self.add(customer)

    def add(self, customer: dict) -> None:
        self._rows[str(customer["id"])] = copy.deepcopy(customer)

    def clear(self) -> None:
        self._rows.clear()

    def _matching(self, predicate: Predicate) -> List[dict]:
        return [row for _, row in sorted(self._rows.items()) if predicate.matches(row)]

    async def count_matching(self, predicate: Predicate) -> int:
        return len(self._matching(predicate))

    async def find_matching(
        self,
        predicate: Predicate,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        rows = self._matching(predicate)
        if limit is not None:
            rows = rows[:limit]
        return [Customer.from_dict(row) for row in rows]
