"""
Testes para Settings.
"""
from campaign_engine.core.config import Settings


class TestWebhookReceiptUrl:

    def test_vazio_quando_sem_base_url(self):
        assert Settings(WEBHOOK_BASE_URL="").webhook_receipt_url == ""

    def test_monta_url_sem_barra_duplicada(self):
        settings = Settings(WEBHOOK_BASE_URL="http://localhost:8000/")

        assert settings.webhook_receipt_url == "http://localhost:8000/api/webhooks/delivery-receipt"


class TestCorsOrigins:

    def test_wildcard(self):
        assert Settings(CORS_ORIGINS="*").cors_origins_list == ["*"]

    def test_lista_separada_por_virgula(self):
        settings = Settings(CORS_ORIGINS="http://a.com, http://b.com,")

        assert settings.cors_origins_list == ["http://a.com", "http://b.com"]

    def test_vazio_vira_wildcard(self):
        assert Settings(CORS_ORIGINS="").cors_origins_list == ["*"]
