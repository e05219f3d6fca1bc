"""
Hierarquia de erros do campaign_engine.

Toda excecao de dominio carrega message + details (dict serializavel),
que o error handler da API devolve como {error, message, details}.
"""
from typing import Optional


class CampaignEngineError(Exception):
    """Raiz da hierarquia."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        if not self.details:
            return self.message
        return f"{self.message} - {self.details}"


# Regras de audiencia e payloads de entrada


class ValidationError(CampaignEngineError):
    """Entrada invalida. Em regras, rule_index aponta a regra ofensora."""

    def __init__(
        self,
        message: str,
        rule_index: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        merged = dict(details or {})
        if rule_index is not None:
            merged["rule_index"] = rule_index
        super().__init__(message, merged)
        self.rule_index = rule_index


class UnsupportedField(ValidationError):
    """Campo fora do conjunto aceito."""


class UnsupportedOperator(ValidationError):
    """Operador que nao vale para o tipo do campo."""


class InvalidValue(ValidationError):
    """Valor com tipo errado para o campo."""


class InvalidDate(ValidationError):
    """Data nao interpretavel."""


# Recursos e estado


class NotFoundError(CampaignEngineError):

    def __init__(self, resource: str, identifier: Optional[str] = None):
        details = {"id": identifier} if identifier else {}
        super().__init__(f"{resource} nao encontrado", details)
        self.resource = resource


class CampaignStateError(CampaignEngineError):
    """Transicao proibida pelo status atual da campanha."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message, {"status": status} if status else {})


class AuthenticationError(CampaignEngineError):
    """Recibo com assinatura que nao confere."""


# Infraestrutura


class DatabaseError(CampaignEngineError):
    """Falha no Supabase/PostgREST."""


class ExternalAPIError(CampaignEngineError):
    """Falha em chamada HTTP de saida; service identifica o destino."""

    def __init__(
        self,
        message: str,
        service: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.service = service


class ConfigurationError(CampaignEngineError):
    """Setting obrigatorio ausente ou invalido."""
