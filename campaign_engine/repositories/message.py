"""
Repository para MessageRecords.

Linhas nunca sao deletadas: a tabela e o historico de entregas.
"""
import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, List, Optional

from campaign_engine.core.timezone import now_utc
from campaign_engine.repositories.base import BaseRepository
from campaign_engine.services.campaigns.types import MessageRecord, MessageStatus

logger = logging.getLogger(__name__)


class MessageRecordRepository(ABC):
    """Contrato de persistencia de MessageRecords."""

    @abstractmethod
    async def create(self, record: MessageRecord) -> MessageRecord:
        """Persiste registro novo."""

    @abstractmethod
    async def get(self, message_id: str) -> Optional[MessageRecord]:
        """Busca por message_id (None se nao existir)."""

    @abstractmethod
    async def update(self, message_id: str, data: dict) -> Optional[MessageRecord]:
        """
        Atualiza colunas do registro.

        Returns:
            Registro atualizado ou None se nao encontrado
        """

    @abstractmethod
    async def list_by_campaign(
        self,
        campaign_id: str,
        limit: Optional[int] = None,
    ) -> List[MessageRecord]:
        """Registros da campanha, mais recentes primeiro."""

    @abstractmethod
    async def find_retryable(self, campaign_id: str, max_retries: int) -> List[MessageRecord]:
        """Registros failed com retry_count < max_retries."""

    @abstractmethod
    async def count_by_status(self, campaign_id: str) -> Dict[str, int]:
        """Contagem de registros da campanha por status (todos os status presentes)."""


class SupabaseMessageRecordRepository(BaseRepository, MessageRecordRepository):
    """MessageRecords na tabela `message_records`."""

    table_name = "message_records"

    async def create(self, record: MessageRecord) -> MessageRecord:
        agora = now_utc()
        record.created_at = agora
        record.updated_at = agora

        response = self._execute(
            self._table().insert(record.to_dict()),
            "criar message record",
        )
        if response.data:
            return MessageRecord.from_db_row(response.data[0])
        return record

    async def get(self, message_id: str) -> Optional[MessageRecord]:
        response = self._execute(
            self._table().select("*").eq("message_id", message_id).limit(1),
            "buscar message record",
        )
        if response.data:
            return MessageRecord.from_db_row(response.data[0])
        return None

    async def update(self, message_id: str, data: dict) -> Optional[MessageRecord]:
        payload = {**data, "updated_at": now_utc().isoformat()}
        response = self._execute(
            self._table().update(payload).eq("message_id", message_id),
            "atualizar message record",
        )
        if response.data:
            return MessageRecord.from_db_row(response.data[0])
        return None

    async def list_by_campaign(
        self,
        campaign_id: str,
        limit: Optional[int] = None,
    ) -> List[MessageRecord]:
        def build():
            return (
                self._table()
                .select("*")
                .eq("campaign_id", campaign_id)
                .order("created_at", desc=True)
            )

        if limit is not None:
            response = self._execute(build().limit(limit), "listar message records")
            rows = response.data or []
        else:
            rows = self._fetch_all(build, "listar message records")
        return [MessageRecord.from_db_row(row) for row in rows]

    async def find_retryable(self, campaign_id: str, max_retries: int) -> List[MessageRecord]:
        def build():
            return (
                self._table()
                .select("*")
                .eq("campaign_id", campaign_id)
                .eq("status", MessageStatus.FAILED.value)
                .lt("retry_count", max_retries)
                .order("created_at")
            )

        rows = self._fetch_all(build, "buscar falhas para retry")
        return [MessageRecord.from_db_row(row) for row in rows]

    async def count_by_status(self, campaign_id: str) -> Dict[str, int]:
        def build():
            return self._table().select("status").eq("campaign_id", campaign_id)

        rows = self._fetch_all(build, "contar message records")
        return dict(Counter(row["status"] for row in rows))
