"""
Regras de audiencia: tipos, normalizacao e validacao.

Uma regra e a tupla (field, operator, value, logicalOperator). O
logicalOperator so tem significado relativo a posicao da regra na
lista: ele liga a regra a proxima (ver compiler.py).
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from campaign_engine.core.exceptions import (
    InvalidDate,
    InvalidValue,
    UnsupportedField,
    UnsupportedOperator,
    ValidationError,
)
from campaign_engine.core.timezone import end_of_day, parse_datetime

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    """Tipo do campo, que decide operadores validos e o builder usado."""

    NUMERIC = "numeric"
    RECENCY = "recency"
    DATE = "date"
    SEGMENT = "segment"
    BOOLEAN = "boolean"
    TAGS = "tags"


class RuleField(str, Enum):
    """Campos aceitos em regras (nomes do wire format)."""

    TOTAL_SPENDING = "totalSpending"
    VISITS = "visits"
    DAYS_SINCE_LAST_VISIT = "daysSinceLastVisit"
    REGISTRATION_DATE = "registrationDate"
    SEGMENT = "segment"
    IS_ACTIVE = "isActive"
    TAGS = "tags"

    @property
    def kind(self) -> FieldKind:
        return _FIELD_KINDS[self]

    @property
    def column(self) -> str:
        """Coluna correspondente na tabela de clientes."""
        return _FIELD_COLUMNS[self]


_FIELD_KINDS = {
    RuleField.TOTAL_SPENDING: FieldKind.NUMERIC,
    RuleField.VISITS: FieldKind.NUMERIC,
    RuleField.DAYS_SINCE_LAST_VISIT: FieldKind.RECENCY,
    RuleField.REGISTRATION_DATE: FieldKind.DATE,
    RuleField.SEGMENT: FieldKind.SEGMENT,
    RuleField.IS_ACTIVE: FieldKind.BOOLEAN,
    RuleField.TAGS: FieldKind.TAGS,
}

_FIELD_COLUMNS = {
    RuleField.TOTAL_SPENDING: "total_spending",
    RuleField.VISITS: "visits",
    RuleField.DAYS_SINCE_LAST_VISIT: "last_visit",
    RuleField.REGISTRATION_DATE: "registration_date",
    RuleField.SEGMENT: "segment",
    RuleField.IS_ACTIVE: "is_active",
    RuleField.TAGS: "tags",
}


class RuleOperator(str, Enum):
    """Operadores de comparacao."""

    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "=="
    NEQ = "!="
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


COMPARISON_OPERATORS = frozenset({
    RuleOperator.GT, RuleOperator.LT, RuleOperator.GTE,
    RuleOperator.LTE, RuleOperator.EQ, RuleOperator.NEQ,
})
EQUALITY_OPERATORS = frozenset({RuleOperator.EQ, RuleOperator.NEQ})
MEMBERSHIP_OPERATORS = frozenset({RuleOperator.CONTAINS, RuleOperator.NOT_CONTAINS})

OPERATORS_BY_KIND = {
    FieldKind.NUMERIC: COMPARISON_OPERATORS,
    FieldKind.RECENCY: COMPARISON_OPERATORS,
    FieldKind.DATE: COMPARISON_OPERATORS,
    FieldKind.SEGMENT: EQUALITY_OPERATORS | MEMBERSHIP_OPERATORS,
    FieldKind.BOOLEAN: EQUALITY_OPERATORS,
    FieldKind.TAGS: EQUALITY_OPERATORS | MEMBERSHIP_OPERATORS,
}

# Tiers gravados no cadastro do cliente
CANONICAL_SEGMENTS = ("premium", "regular", "standard", "vip", "bronze", "silver", "gold")

# Labels antigos, mapeados para faixas de gasto (compatibilidade)
LEGACY_SEGMENTS = ("VIP", "Premium", "Regular", "New")


@dataclass(frozen=True)
class AudienceRule:
    """Regra de audiencia ja normalizada."""

    field: RuleField
    operator: RuleOperator
    value: Any
    logical_operator: Optional[LogicalOperator] = None

    @property
    def kind(self) -> FieldKind:
        return self.field.kind

    def to_dict(self) -> dict:
        """Converte para o wire format (camelCase)."""
        value = self.value
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, tuple):
            value = list(value)

        data = {
            "field": self.field.value,
            "operator": self.operator.value,
            "value": value,
        }
        if self.logical_operator:
            data["logicalOperator"] = self.logical_operator.value
        return data


RuleInput = Union[AudienceRule, dict]


def validate(rules: Iterable[RuleInput]) -> List[AudienceRule]:
    """
    Valida e normaliza lista de regras.

    - Converte valores (texto -> numero/bool/data, tags -> tupla)
    - logicalOperator ausente vira AND em todas menos a ultima
    - Rejeita campo/operador desconhecido, contains/not_contains fora
      de tags/segment, valor nao numerico em campo numerico e datas
      invalidas

    Args:
        rules: Lista de dicts no wire format ou AudienceRule

    Returns:
        Lista de AudienceRule normalizadas

    Raises:
        ValidationError (ou subtipo) com rule_index da regra ofensora
    """
    if isinstance(rules, (str, bytes, dict)) or rules is None:
        raise ValidationError("Regras devem ser uma lista")

    rules = list(rules)
    normalized = []
    ultimo = len(rules) - 1

    for index, raw in enumerate(rules):
        if isinstance(raw, AudienceRule):
            raw = raw.to_dict()
        if not isinstance(raw, dict):
            raise ValidationError(f"Regra {index} invalida: esperado objeto", rule_index=index)

        field = _parse_field(raw.get("field"), index)
        operator = _parse_operator(raw.get("operator"), index)
        _check_operator(field, operator, index)

        if "value" not in raw or raw.get("value") is None:
            raise InvalidValue(f"Valor ausente na regra {index}", rule_index=index)

        value = _normalize_value(field, operator, raw["value"], index)
        if index < ultimo:
            logical = _parse_logical(raw.get("logicalOperator"), index) or LogicalOperator.AND
        else:
            # Ultima regra nao liga a nada: operador invalido e descartado
            try:
                logical = _parse_logical(raw.get("logicalOperator"), index)
            except ValidationError:
                logical = None

        normalized.append(AudienceRule(
            field=field,
            operator=operator,
            value=value,
            logical_operator=logical,
        ))

    return normalized


def sample_rules() -> List[dict]:
    """Exemplo de regras (docs e testes)."""
    return [
        {"field": "totalSpending", "operator": ">", "value": 10000, "logicalOperator": "AND"},
        {"field": "visits", "operator": "<", "value": 3, "logicalOperator": "OR"},
        {"field": "daysSinceLastVisit", "operator": ">=", "value": 90},
    ]


def _parse_field(raw: Any, index: int) -> RuleField:
    try:
        return RuleField(raw)
    except ValueError:
        raise UnsupportedField(f"Campo invalido na regra {index}: {raw}", rule_index=index)


def _parse_operator(raw: Any, index: int) -> RuleOperator:
    try:
        return RuleOperator(raw)
    except ValueError:
        raise UnsupportedOperator(f"Operador invalido na regra {index}: {raw}", rule_index=index)


def _parse_logical(raw: Any, index: int) -> Optional[LogicalOperator]:
    if raw is None or raw == "":
        return None
    try:
        return LogicalOperator(str(raw).upper())
    except ValueError:
        raise ValidationError(
            f"Operador logico invalido na regra {index}: {raw}", rule_index=index
        )


def _check_operator(field: RuleField, operator: RuleOperator, index: int) -> None:
    if operator in MEMBERSHIP_OPERATORS and field.kind not in (FieldKind.TAGS, FieldKind.SEGMENT):
        raise UnsupportedOperator(
            f"Operador {operator.value} so e valido para tags ou segment (regra {index})",
            rule_index=index,
        )
    if operator not in OPERATORS_BY_KIND[field.kind]:
        raise UnsupportedOperator(
            f"Operador {operator.value} invalido para campo {field.value} (regra {index})",
            rule_index=index,
        )


def _normalize_value(field: RuleField, operator: RuleOperator, value: Any, index: int) -> Any:
    kind = field.kind

    if kind in (FieldKind.NUMERIC, FieldKind.RECENCY):
        if isinstance(value, bool):
            raise InvalidValue(f"Valor numerico invalido na regra {index}: {value}", rule_index=index)
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InvalidValue(f"Valor numerico invalido na regra {index}: {value}", rule_index=index)
        if not math.isfinite(number):
            raise InvalidValue(f"Valor numerico nao finito na regra {index}: {value}", rule_index=index)
        return number

    if kind == FieldKind.DATE:
        try:
            parsed = parse_datetime(value)
        except (TypeError, ValueError, OverflowError):
            parsed = None
        if parsed is None:
            raise InvalidDate(f"Data invalida na regra {index}: {value}", rule_index=index)
        try:
            end_of_day(parsed)
        except OverflowError:
            raise InvalidDate(f"Data fora do intervalo suportado na regra {index}: {value}", rule_index=index)
        return parsed

    if kind == FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise InvalidValue(f"Valor booleano invalido na regra {index}: {value}", rule_index=index)

    if kind == FieldKind.SEGMENT:
        if value in CANONICAL_SEGMENTS:
            return value
        if value in LEGACY_SEGMENTS:
            if operator not in EQUALITY_OPERATORS:
                raise UnsupportedOperator(
                    f"Segmento legado {value} aceita apenas == ou != (regra {index})",
                    rule_index=index,
                )
            return value
        validos = ", ".join(CANONICAL_SEGMENTS + LEGACY_SEGMENTS)
        raise InvalidValue(
            f"Segmento invalido na regra {index}: {value}. Validos: {validos}",
            rule_index=index,
        )

    if kind == FieldKind.TAGS:
        if isinstance(value, str):
            tags = [v.strip() for v in value.split(",")]
        elif isinstance(value, (list, tuple, set)):
            tags = [str(v).strip() for v in value]
        else:
            tags = [str(value).strip()]
        tags = tuple(t for t in tags if t)
        if not tags:
            raise InvalidValue(f"Lista de tags vazia na regra {index}", rule_index=index)
        return tags

    # Todos os FieldKind tratados acima
    raise AssertionError(f"FieldKind sem normalizacao: {kind}")
