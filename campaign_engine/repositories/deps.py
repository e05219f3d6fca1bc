"""
Dependency Injection para Repositories.

O backend e escolhido por STORAGE_BACKEND:
- "memory": repositories em memoria (default, desenvolvimento)
- "supabase": tabelas campaigns, message_records e customers

Uso em testes:
    repo = create_campaign_repo("memory")
"""
from functools import lru_cache

from campaign_engine.core.config import settings
from campaign_engine.core.exceptions import ConfigurationError
from campaign_engine.repositories.campaign import CampaignRepository, SupabaseCampaignRepository
from campaign_engine.repositories.customer import AudienceStore, SupabaseAudienceStore
from campaign_engine.repositories.memory import (
    InMemoryAudienceStore,
    InMemoryCampaignRepository,
    InMemoryMessageRecordRepository,
)
from campaign_engine.repositories.message import (
    MessageRecordRepository,
    SupabaseMessageRecordRepository,
)

BACKENDS = ("memory", "supabase")


def _check_backend(backend: str) -> str:
    backend = (backend or "").lower()
    if backend not in BACKENDS:
        raise ConfigurationError(
            f"STORAGE_BACKEND invalido: {backend}",
            details={"validos": list(BACKENDS)},
        )
    return backend


def _supabase():
    from campaign_engine.services.supabase import get_supabase_client

    return get_supabase_client()


def create_campaign_repo(backend: str) -> CampaignRepository:
    if _check_backend(backend) == "supabase":
        return SupabaseCampaignRepository(_supabase())
    return InMemoryCampaignRepository()


def create_message_repo(backend: str) -> MessageRecordRepository:
    if _check_backend(backend) == "supabase":
        return SupabaseMessageRecordRepository(_supabase())
    return InMemoryMessageRecordRepository()


def create_audience_store(backend: str) -> AudienceStore:
    if _check_backend(backend) == "supabase":
        return SupabaseAudienceStore(_supabase())
    return InMemoryAudienceStore()


@lru_cache()
def get_campaign_repo() -> CampaignRepository:
    """Retorna instancia singleton do CampaignRepository."""
    return create_campaign_repo(settings.STORAGE_BACKEND)


@lru_cache()
def get_message_repo() -> MessageRecordRepository:
    """Retorna instancia singleton do MessageRecordRepository."""
    return create_message_repo(settings.STORAGE_BACKEND)


@lru_cache()
def get_audience_store() -> AudienceStore:
    """Retorna instancia singleton do AudienceStore."""
    return create_audience_store(settings.STORAGE_BACKEND)
