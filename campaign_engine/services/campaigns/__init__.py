"""
Modulo de campanhas.

Estrutura:
- types: Tipos e enums
- personalization: Renderizacao de placeholders
- orchestrator: Maquina de estados e loop de entrega
- service: Casos de uso (preview, CRUD, stats, retry)
"""
from campaign_engine.services.campaigns.types import (
    Campaign,
    CampaignStats,
    CampaignStatus,
    DeliveryReceipt,
    MessageRecord,
    MessageStatus,
    MessageType,
    Recipient,
)

__all__ = [
    "Campaign",
    "CampaignStats",
    "CampaignStatus",
    "DeliveryReceipt",
    "MessageRecord",
    "MessageStatus",
    "MessageType",
    "Recipient",
]
