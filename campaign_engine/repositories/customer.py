"""
AudienceStore - busca de clientes por predicado compilado.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from campaign_engine.core.timezone import isoformat_or_none, parse_datetime
from campaign_engine.repositories.base import BaseRepository
from campaign_engine.services.audience.predicate import Predicate

logger = logging.getLogger(__name__)

# Projecao minima usada pelo envio
CUSTOMER_COLUMNS = "id,name,email,phone,total_spending,visits,last_visit,segment,tags"


@dataclass
class Customer:
    """Projecao de cliente devolvida pelo AudienceStore."""

    id: str
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    total_spending: float = 0.0
    visits: int = 0
    last_visit: Optional[datetime] = None
    segment: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        """Cria Customer a partir de dict do banco."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            email=data.get("email"),
            phone=data.get("phone"),
            total_spending=float(data.get("total_spending") or 0),
            visits=int(data.get("visits") or 0),
            last_visit=parse_datetime(data.get("last_visit")),
            segment=data.get("segment"),
            tags=list(data.get("tags") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "totalSpending": self.total_spending,
            "visits": self.visits,
            "lastVisit": isoformat_or_none(self.last_visit),
            "segment": self.segment,
        }


class AudienceStore(ABC):
    """Contrato do colaborador de audiencia."""

    @abstractmethod
    async def count_matching(self, predicate: Predicate) -> int:
        """Quantidade de clientes que casam com o predicado."""

    @abstractmethod
    async def find_matching(
        self,
        predicate: Predicate,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        """
        Clientes que casam com o predicado.

        Args:
            predicate: Predicado compilado
            limit: Maximo de clientes (None = sem limite)
        """


class SupabaseAudienceStore(BaseRepository, AudienceStore):
    """
    Audiencia na tabela `customers`.

    O predicado e renderizado como filtro logico do PostgREST e
    aplicado com `.or_()`; predicado vazio nao filtra nada.
    """

    table_name = "customers"

    def _apply(self, query, predicate: Predicate):
        filtro = predicate.to_postgrest()
        if filtro:
            query = query.or_(filtro)
        return query

    async def count_matching(self, predicate: Predicate) -> int:
        query = self._apply(self._table().select("id", count="exact"), predicate)
        response = self._execute(query.limit(1), "contar audiencia")
        return response.count or 0

    async def find_matching(
        self,
        predicate: Predicate,
        limit: Optional[int] = None,
    ) -> List[Customer]:
        def build():
            return self._apply(
                self._table().select(CUSTOMER_COLUMNS).order("id"), predicate
            )

        if limit is not None:
            response = self._execute(build().limit(limit), "buscar audiencia")
            rows = response.data or []
        else:
            rows = self._fetch_all(build, "buscar audiencia")
        return [Customer.from_dict(row) for row in rows]
