"""
Repository para Campanhas.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from campaign_engine.core.timezone import now_utc
from campaign_engine.repositories.base import BaseRepository
from campaign_engine.services.campaigns.types import Campaign

logger = logging.getLogger(__name__)


class CampaignRepository(ABC):
    """Contrato de persistencia de campanhas."""

    @abstractmethod
    async def get(self, campaign_id: str) -> Optional[Campaign]:
        """Busca campanha por ID (None se nao existir)."""

    @abstractmethod
    async def list(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        """
        Lista campanhas, mais recentes primeiro.

        Args:
            status: Filtra por status
            search: Busca parcial (case-insensitive) em name e description
            limit: Tamanho da pagina
            offset: Pular N primeiros resultados

        Returns:
            (pagina de campanhas, total que casa com o filtro)
        """

    @abstractmethod
    async def create(self, campaign: Campaign) -> Campaign:
        """Persiste campanha nova (created_at/updated_at preenchidos aqui)."""

    @abstractmethod
    async def update(self, campaign_id: str, data: dict) -> Optional[Campaign]:
        """
        Atualiza colunas da campanha.

        Args:
            campaign_id: ID da campanha
            data: Colunas no formato do banco (snake_case, datas em ISO)

        Returns:
            Campanha atualizada ou None se nao encontrada
        """

    @abstractmethod
    async def delete(self, campaign_id: str) -> bool:
        """Remove campanha. True se removeu."""


class SupabaseCampaignRepository(BaseRepository, CampaignRepository):
    """
    Campanhas na tabela `campaigns`.

    Uso:
        repo = SupabaseCampaignRepository(get_supabase_client())
        campaign = await repo.get("uuid")
    """

    table_name = "campaigns"

    async def get(self, campaign_id: str) -> Optional[Campaign]:
        response = self._execute(
            self._table().select("*").eq("id", campaign_id).limit(1),
            "buscar campanha",
        )
        if response.data:
            return Campaign.from_db_row(response.data[0])
        return None

    async def list(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[Campaign], int]:
        query = self._table().select("*", count="exact")
        if status:
            query = query.eq("status", status)
        if search:
            termo = search.replace(",", " ").replace("(", " ").replace(")", " ")
            query = query.or_(f"name.ilike.*{termo}*,description.ilike.*{termo}*")

        response = self._execute(
            query.order("created_at", desc=True).range(offset, offset + limit - 1),
            "listar campanhas",
        )
        campaigns = [Campaign.from_db_row(row) for row in response.data or []]
        total = response.count if response.count is not None else len(campaigns)
        return campaigns, total

    async def create(self, campaign: Campaign) -> Campaign:
        agora = now_utc()
        campaign.created_at = agora
        campaign.updated_at = agora

        response = self._execute(
            self._table().insert(campaign.to_dict()),
            "criar campanha",
        )
        if response.data:
            return Campaign.from_db_row(response.data[0])
        return campaign

    async def update(self, campaign_id: str, data: dict) -> Optional[Campaign]:
        payload = {**data, "updated_at": now_utc().isoformat()}
        response = self._execute(
            self._table().update(payload).eq("id", campaign_id),
            "atualizar campanha",
        )
        if response.data:
            return Campaign.from_db_row(response.data[0])
        return None

    async def delete(self, campaign_id: str) -> bool:
        response = self._execute(
            self._table().delete().eq("id", campaign_id),
            "deletar campanha",
        )
        return bool(response.data)
