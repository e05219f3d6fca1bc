"""
Client Supabase compartilhado pelos repositories.
"""
import logging
from functools import lru_cache

from supabase import Client, create_client

from campaign_engine.core.config import settings
from campaign_engine.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Client com service key, criado no primeiro uso.

    Com STORAGE_BACKEND=memory nada chama esta funcao.
    """
    url, key = settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY
    if not (url and key):
        raise ConfigurationError(
            "SUPABASE_URL e SUPABASE_SERVICE_KEY sao obrigatorios",
            details={"storage_backend": settings.STORAGE_BACKEND},
        )

    logger.info(f"Conectando ao Supabase em {url}")
    return create_client(url, key)
