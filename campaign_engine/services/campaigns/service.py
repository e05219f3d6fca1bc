"""
Application Service de Campanhas.

Ponto de entrada dos casos de uso: as rotas da API chamam apenas
este modulo. Lanca excecoes de dominio (core.exceptions), nunca
excecoes HTTP.

Fluxos que tocam o AudienceStore sempre chamam validate() e
compile() antes.
"""
import logging
import math
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from campaign_engine.core.config import settings
from campaign_engine.core.exceptions import CampaignStateError, NotFoundError, ValidationError
from campaign_engine.repositories.campaign import CampaignRepository
from campaign_engine.repositories.customer import AudienceStore
from campaign_engine.repositories.message import MessageRecordRepository
from campaign_engine.services.audience import RuleCompiler, rule_compiler
from campaign_engine.services.campaigns.orchestrator import DeliveryOrchestrator
from campaign_engine.services.campaigns.types import (
    LOCKED_STATUSES,
    RULES_EDITABLE_STATUSES,
    Campaign,
    CampaignStatus,
    MessageRecord,
    MessageType,
)
from campaign_engine.services.stats import StatsAggregator
from campaign_engine.services.vendor.simulator import VendorGateway

logger = logging.getLogger(__name__)

# Registros devolvidos junto com a campanha em get()
CAMPAIGN_MESSAGES_LIMIT = 100

EDITABLE_FIELDS = ("name", "description", "message", "message_type", "audience_rules", "scheduled_at")


class CampaignService:
    """
    Casos de uso de campanhas.

    Exceções lançadas:
        - NotFoundError: campanha nao encontrada
        - ValidationError: dados ou regras invalidos
        - CampaignStateError: operacao nao permitida no status atual
        - DatabaseError: falha na persistencia
    """

    def __init__(
        self,
        campaign_repo: CampaignRepository,
        message_repo: MessageRecordRepository,
        audience_store: AudienceStore,
        orchestrator: DeliveryOrchestrator,
        vendor: VendorGateway,
        stats: StatsAggregator,
        compiler: Optional[RuleCompiler] = None,
    ):
        self.campaign_repo = campaign_repo
        self.message_repo = message_repo
        self.audience_store = audience_store
        self.orchestrator = orchestrator
        self.vendor = vendor
        self.stats = stats
        self.compiler = compiler or rule_compiler

    async def _get(self, campaign_id: str) -> Campaign:
        campaign = await self.campaign_repo.get(campaign_id)
        if campaign is None:
            raise NotFoundError("Campanha", campaign_id)
        return campaign

    async def _audience_size(self, rules: List[dict]) -> Tuple[List[dict], int]:
        """Valida, compila e conta. Retorna (regras normalizadas, tamanho)."""
        if not rules:
            raise ValidationError("Audience rules are required")

        normalized = self.compiler.validate(rules)
        predicate = self.compiler.compile(normalized)
        size = await self.audience_store.count_matching(predicate)
        return [rule.to_dict() for rule in normalized], size

    async def preview(self, rules: List[dict]) -> dict:
        """
        Caso de Uso: Pre-visualizar audiencia.

        Returns:
            {audienceSize, sampleCustomers, rules, estimatedCost, estimatedDeliveryTime}
        """
        if not rules:
            raise ValidationError("Audience rules are required")

        normalized = self.compiler.validate(rules)
        predicate = self.compiler.compile(normalized)
        size = await self.audience_store.count_matching(predicate)
        sample = await self.audience_store.find_matching(
            predicate, limit=settings.PREVIEW_SAMPLE_SIZE
        )

        return {
            "audienceSize": size,
            "sampleCustomers": [customer.to_dict() for customer in sample],
            "rules": [rule.to_dict() for rule in normalized],
            "estimatedCost": round(size * settings.COST_PER_MESSAGE, 2),
            "estimatedDeliveryTime": math.ceil(size / settings.MESSAGES_PER_MINUTE),
        }

    async def create(
        self,
        name: str,
        message: str,
        audience_rules: List[dict],
        description: Optional[str] = None,
        message_type: str = MessageType.EMAIL.value,
        scheduled_at: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> Campaign:
        """
        Caso de Uso: Criar campanha.

        Status inicial e draft (scheduled quando scheduled_at vem
        preenchido). Com status="sending" a campanha e criada como
        draft e enviada em seguida.
        """
        if not (name or "").strip():
            raise ValidationError("Campaign name is required")
        if not (message or "").strip():
            raise ValidationError("Campaign message is required")

        tipo = _parse_message_type(message_type)
        send_now = status == CampaignStatus.SENDING.value
        if status and not send_now and status not in (s.value for s in RULES_EDITABLE_STATUSES):
            raise ValidationError(
                f"Status inicial invalido: {status}",
                details={"validos": ["draft", "scheduled", "sending"]},
            )

        _, size = await self._audience_size(audience_rules)

        initial = CampaignStatus.SCHEDULED if scheduled_at else CampaignStatus.DRAFT
        if status == CampaignStatus.SCHEDULED.value:
            initial = CampaignStatus.SCHEDULED

        campaign = await self.campaign_repo.create(Campaign(
            id=str(uuid.uuid4()),
            name=name.strip(),
            message=message,
            audience_rules=list(audience_rules),
            description=description,
            audience_size=size,
            message_type=tipo,
            status=initial,
            scheduled_at=scheduled_at,
        ))

        logger.info(
            f"Campanha criada: id={campaign.id}, audiencia={size}",
            extra={"campaign_id": campaign.id},
        )

        if send_now:
            campaign = await self.orchestrator.send(campaign.id)
        return campaign

    async def update(self, campaign_id: str, changes: Dict[str, Any]) -> Campaign:
        """
        Caso de Uso: Atualizar campanha.

        Bloqueado em sending/completed. Regras so mudam em
        draft/scheduled, e a mudanca recalcula audienceSize.
        """
        campaign = await self._get(campaign_id)

        if campaign.status in LOCKED_STATUSES:
            raise CampaignStateError(
                "Cannot update campaign that is already sent or being sent",
                status=campaign.status.value,
            )

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Campos nao editaveis: {sorted(unknown)}")

        data: Dict[str, Any] = {}

        if "name" in changes:
            if not (changes["name"] or "").strip():
                raise ValidationError("Campaign name is required")
            data["name"] = changes["name"].strip()

        if "description" in changes:
            data["description"] = changes["description"]

        if "message" in changes:
            if not (changes["message"] or "").strip():
                raise ValidationError("Campaign message is required")
            data["message"] = changes["message"]

        if "message_type" in changes:
            data["message_type"] = _parse_message_type(changes["message_type"]).value

        if "audience_rules" in changes:
            if campaign.status not in RULES_EDITABLE_STATUSES:
                raise CampaignStateError(
                    "Audience rules can only change while draft or scheduled",
                    status=campaign.status.value,
                )
            rules = list(changes["audience_rules"] or [])
            _, size = await self._audience_size(rules)
            data["audience_rules"] = rules
            data["audience_size"] = size

        if "scheduled_at" in changes:
            scheduled_at = changes["scheduled_at"]
            data["scheduled_at"] = scheduled_at.isoformat() if scheduled_at else None
            if campaign.status in RULES_EDITABLE_STATUSES:
                status = CampaignStatus.SCHEDULED if scheduled_at else CampaignStatus.DRAFT
                data["status"] = status.value

        if not data:
            return campaign

        updated = await self.campaign_repo.update(campaign_id, data)
        if updated is None:
            raise NotFoundError("Campanha", campaign_id)

        logger.info(
            f"Campanha atualizada: id={campaign_id}, campos={sorted(data)}",
            extra={"campaign_id": campaign_id},
        )
        return updated

    async def delete(self, campaign_id: str) -> None:
        """
        Caso de Uso: Remover campanha.

        Apenas draft/scheduled: campanhas que ja enviaram tem
        MessageRecords e o historico e preservado.
        """
        campaign = await self._get(campaign_id)

        if campaign.status not in RULES_EDITABLE_STATUSES:
            raise CampaignStateError(
                "Only draft or scheduled campaigns can be deleted",
                status=campaign.status.value,
            )

        await self.campaign_repo.delete(campaign_id)
        logger.info(f"Campanha removida: id={campaign_id}", extra={"campaign_id": campaign_id})

    async def get(self, campaign_id: str) -> Tuple[Campaign, List[MessageRecord]]:
        """Campanha e seus MessageRecords mais recentes."""
        campaign = await self._get(campaign_id)
        messages = await self.message_repo.list_by_campaign(
            campaign_id, limit=CAMPAIGN_MESSAGES_LIMIT
        )
        return campaign, messages

    async def list(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Campaign], dict]:
        """
        Lista campanhas paginadas, mais recentes primeiro.

        Returns:
            (campanhas, {page, limit, total, pages})
        """
        if status and status not in (s.value for s in CampaignStatus):
            raise ValidationError(f"Status invalido: {status}")

        page = max(page, 1)
        limit = max(limit, 1)
        campaigns, total = await self.campaign_repo.list(
            status=status,
            search=search,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return campaigns, {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        }

    async def send(self, campaign_id: str) -> Campaign:
        return await self.orchestrator.send(campaign_id)

    async def pause(self, campaign_id: str) -> Campaign:
        return await self.orchestrator.pause(campaign_id)

    async def delivery_stats(self, campaign_id: str) -> dict:
        """Contagem por status calculada sob demanda."""
        await self._get(campaign_id)
        return await self.stats.breakdown(campaign_id)

    async def analytics(self, campaign_id: str) -> dict:
        """
        Caso de Uso: Analytics de uma campanha.

        Returns:
            {campaign, statusBreakdown, timeAnalytics}
        """
        campaign = await self._get(campaign_id)
        return {
            "campaign": {
                "name": campaign.name,
                "status": campaign.status.value,
                "audienceSize": campaign.audience_size,
                "stats": campaign.stats.to_response(),
            },
            "statusBreakdown": await self.stats.breakdown(campaign_id),
            "timeAnalytics": await self.stats.timeline(campaign_id),
        }

    async def retry(self, campaign_id: str) -> dict:
        """
        Caso de Uso: Reenviar mensagens que falharam.

        Returns:
            {retriedCount, results}
        """
        await self._get(campaign_id)
        return await self.vendor.retry_failed_messages(
            campaign_id, max_retries=settings.MAX_RETRY_COUNT
        )


def _parse_message_type(value: Any) -> MessageType:
    try:
        return MessageType(value or MessageType.EMAIL.value)
    except ValueError:
        raise ValidationError(
            f"messageType invalido: {value}",
            details={"validos": [t.value for t in MessageType]},
        )
