"""
Settings do campaign_engine (variaveis de ambiente / .env).
"""
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

RECEIPT_PATH = "/api/webhooks/delivery-receipt"


class Settings(BaseSettings):

    APP_NAME: str = "Campaign Engine"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # "memory" (dev/testes) ou "supabase"
    STORAGE_BACKEND: str = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # Vendor simulado: probabilidade de entrega e janela do resultado
    VENDOR_SUCCESS_RATE: float = 0.9
    VENDOR_MIN_DELAY_SECONDS: float = 0.5
    VENDOR_MAX_DELAY_SECONDS: float = 2.5

    DELIVERY_PACING_SECONDS: float = 0.1
    MAX_RETRY_COUNT: int = 3

    # Sem WEBHOOK_BASE_URL o recibo vai direto para o ReceiptProcessor
    WEBHOOK_SECRET: str = "webhook-secret-key"
    WEBHOOK_BASE_URL: str = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 5.0
    WEBHOOK_MAX_ATTEMPTS: int = 3

    PREVIEW_SAMPLE_SIZE: int = 5
    COST_PER_MESSAGE: float = 0.1
    MESSAGES_PER_MINUTE: int = 100
    CURRENCY_SYMBOL: str = "₹"

    # Lista separada por virgula, ou "*"
    CORS_ORIGINS: str = "*"

    @property
    def webhook_receipt_url(self) -> str:
        """Endpoint de recibo do proprio servico; vazio = modo in-process."""
        base = self.WEBHOOK_BASE_URL.rstrip("/")
        return f"{base}{RECEIPT_PATH}" if base else ""

    @property
    def cors_origins_list(self) -> list[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        if origins == ["*"] and self.ENVIRONMENT.lower() == "production":
            logger.warning("CORS_ORIGINS='*' em producao; restrinja as origens")
        return origins or ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
