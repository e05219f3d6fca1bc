"""
Repositories de persistencia.

Estrutura:
- campaign: CampaignRepository
- message: MessageRecordRepository
- customer: AudienceStore e projecao Customer
- memory: implementacoes em memoria
- deps: selecao do backend e singletons
"""
from campaign_engine.repositories.campaign import CampaignRepository, SupabaseCampaignRepository
from campaign_engine.repositories.customer import AudienceStore, Customer, SupabaseAudienceStore
from campaign_engine.repositories.memory import (
    InMemoryAudienceStore,
    InMemoryCampaignRepository,
    InMemoryMessageRecordRepository,
)
from campaign_engine.repositories.message import (
    MessageRecordRepository,
    SupabaseMessageRecordRepository,
)

__all__ = [
    "CampaignRepository",
    "SupabaseCampaignRepository",
    "MessageRecordRepository",
    "SupabaseMessageRecordRepository",
    "AudienceStore",
    "SupabaseAudienceStore",
    "Customer",
    "InMemoryCampaignRepository",
    "InMemoryMessageRecordRepository",
    "InMemoryAudienceStore",
]
