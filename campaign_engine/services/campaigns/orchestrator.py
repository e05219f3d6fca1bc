"""
Orquestrador de entrega de campanhas.

Maquina de estados:
    draft/scheduled -> sending -> completed | failed
    sending -> paused -> sending

send() persiste `sending` e dispara o loop de entrega como task
supervisionada, sem bloquear quem chamou. O loop processa os
destinatarios em sequencia, com pausa fixa entre envios.

Limitacao conhecida: pause() nao interrompe um loop em andamento.
Ele so impede que um novo loop comece; o loop atual termina e grava
`completed`.
"""
import asyncio
import logging
import uuid
from typing import Optional

from campaign_engine.core.exceptions import CampaignStateError, NotFoundError, ValidationError
from campaign_engine.core.tasks import TaskSupervisor
from campaign_engine.core.timezone import now_utc
from campaign_engine.repositories.campaign import CampaignRepository
from campaign_engine.repositories.customer import AudienceStore, Customer
from campaign_engine.repositories.message import MessageRecordRepository
from campaign_engine.services.audience import RuleCompiler, rule_compiler
from campaign_engine.services.campaigns.personalization import render_message
from campaign_engine.services.campaigns.types import (
    PAUSABLE_STATUSES,
    SENDABLE_STATUSES,
    Campaign,
    CampaignStatus,
    MessageRecord,
    MessageType,
    Recipient,
)
from campaign_engine.services.vendor.base import Vendor

logger = logging.getLogger(__name__)


def delivery_loop_name(campaign_id: str) -> str:
    return f"delivery-loop:{campaign_id}"


class DeliveryOrchestrator:
    """Controla status da campanha e executa o loop de entrega."""

    def __init__(
        self,
        campaign_repo: CampaignRepository,
        message_repo: MessageRecordRepository,
        audience_store: AudienceStore,
        vendor: Vendor,
        supervisor: TaskSupervisor,
        compiler: Optional[RuleCompiler] = None,
        pacing_seconds: float = 0.1,
    ):
        self.campaign_repo = campaign_repo
        self.message_repo = message_repo
        self.audience_store = audience_store
        self.vendor = vendor
        self.supervisor = supervisor
        self.compiler = compiler or rule_compiler
        self.pacing_seconds = pacing_seconds

    async def _get(self, campaign_id: str) -> Campaign:
        campaign = await self.campaign_repo.get(campaign_id)
        if campaign is None:
            raise NotFoundError("Campanha", campaign_id)
        return campaign

    async def send(self, campaign_id: str) -> Campaign:
        """
        Inicia (ou retoma) a entrega da campanha.

        Retorna assim que o status `sending` e gravado; o loop roda em
        background.

        Raises:
            NotFoundError: campanha inexistente
            CampaignStateError: status fora de draft/scheduled/paused
            ValidationError: campanha sem regras, sem mensagem ou com regras invalidas
        """
        campaign = await self._get(campaign_id)

        if campaign.status not in SENDABLE_STATUSES:
            raise CampaignStateError(
                "Campaign cannot be sent in its current status",
                status=campaign.status.value,
            )
        if not campaign.audience_rules:
            raise ValidationError("Campaign must have audience rules defined")
        if not (campaign.message or "").strip():
            raise ValidationError("Campaign must have a message")

        # Regras invalidas falham antes de qualquer mudanca de estado
        self.compiler.validate(campaign.audience_rules)

        updated = await self.campaign_repo.update(campaign_id, {
            "status": CampaignStatus.SENDING.value,
            "sent_at": now_utc().isoformat(),
        })
        if updated is None:
            raise NotFoundError("Campanha", campaign_id)

        name = delivery_loop_name(campaign_id)
        if self.supervisor.is_running(name):
            logger.info(
                f"Campanha {campaign_id} retomada; loop de entrega ainda ativo",
                extra={"campaign_id": campaign_id},
            )
            return updated

        self.supervisor.spawn(self._delivery_loop(campaign_id), name=name)
        logger.info(
            f"Entrega da campanha {campaign_id} iniciada",
            extra={"campaign_id": campaign_id},
        )
        return updated

    async def pause(self, campaign_id: str) -> Campaign:
        """
        Pausa campanha em envio.

        Raises:
            CampaignStateError: campanha fora de `sending`
        """
        campaign = await self._get(campaign_id)

        if campaign.status not in PAUSABLE_STATUSES:
            raise CampaignStateError(
                "Only sending campaigns can be paused",
                status=campaign.status.value,
            )

        updated = await self.campaign_repo.update(campaign_id, {
            "status": CampaignStatus.PAUSED.value,
        })
        logger.info(f"Campanha {campaign_id} pausada", extra={"campaign_id": campaign_id})
        return updated

    async def _delivery_loop(self, campaign_id: str) -> None:
        """
        Loop de entrega.

        Falha por destinatario e logada e o loop segue. Falha do loop
        (ex: erro ao buscar audiencia) marca a campanha como failed.
        """
        try:
            campaign = await self.campaign_repo.get(campaign_id)
            if campaign is None or campaign.status != CampaignStatus.SENDING:
                logger.info(
                    f"Loop da campanha {campaign_id} ignorado (status atual nao e sending)",
                    extra={"campaign_id": campaign_id},
                )
                return

            predicate = self.compiler.compile(campaign.audience_rules)
            customers = await self.audience_store.find_matching(predicate)

            if not customers:
                logger.info(
                    f"Campanha {campaign_id} sem audiencia; concluida",
                    extra={"campaign_id": campaign_id},
                )
                await self._complete(campaign_id)
                return

            enviados = 0
            for index, customer in enumerate(customers):
                if index > 0 and self.pacing_seconds > 0:
                    await asyncio.sleep(self.pacing_seconds)
                try:
                    await self._deliver_one(campaign, customer)
                    enviados += 1
                except Exception as e:
                    logger.error(
                        f"Erro ao enviar para cliente {customer.id}: {e}",
                        extra={"campaign_id": campaign_id, "error_type": type(e).__name__},
                    )

            await self._complete(campaign_id)
            logger.info(
                f"Campanha {campaign_id} concluida: {enviados}/{len(customers)} enviados",
                extra={"campaign_id": campaign_id},
            )

        except asyncio.CancelledError:
            logger.warning(
                f"Loop da campanha {campaign_id} cancelado",
                extra={"campaign_id": campaign_id},
            )
            raise
        except Exception as e:
            logger.error(
                f"Erro no loop de entrega da campanha {campaign_id}: {e}",
                exc_info=True,
                extra={"campaign_id": campaign_id, "error_type": type(e).__name__},
            )
            await self.campaign_repo.update(campaign_id, {
                "status": CampaignStatus.FAILED.value,
            })

    async def _deliver_one(self, campaign: Campaign, customer: Customer) -> MessageRecord:
        """Cria o MessageRecord pending e entrega ao vendor."""
        # "both" usa email como canal do registro
        message_type = (
            MessageType.EMAIL if campaign.message_type == MessageType.BOTH
            else campaign.message_type
        )

        record = await self.message_repo.create(MessageRecord(
            message_id=str(uuid.uuid4()),
            campaign_id=campaign.id,
            customer_id=customer.id,
            message=render_message(campaign.message, customer),
            message_type=message_type,
            recipient=Recipient(email=customer.email, phone=customer.phone),
            metadata={"campaignName": campaign.name},
        ))

        await self.vendor.send(
            record.message_id,
            record.recipient.address_for(message_type),
            record.message,
            message_type,
        )
        return record

    async def _complete(self, campaign_id: str) -> None:
        await self.campaign_repo.update(campaign_id, {
            "status": CampaignStatus.COMPLETED.value,
            "completed_at": now_utc().isoformat(),
        })
