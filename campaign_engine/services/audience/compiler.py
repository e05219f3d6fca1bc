"""
Compilador de regras de audiencia.

Transforma a lista ordenada de regras na arvore de predicados
consumida pelo AudienceStore.

Agrupamento POSICIONAL (nao e precedencia booleana padrao):
- Percorre as regras da esquerda para a direita mantendo um grupo
  corrente e seu tipo (AND no inicio)
- Para cada regra apos a primeira, olha o logicalOperator da regra
  ANTERIOR: se for OR, fecha o grupo corrente e abre um grupo OR
  com a regra atual; senao, a regra entra no grupo corrente
- Grupos AND com mais de um membro viram um no And em and_groups;
  grupos OR sao achatados em or_conditions
- Resultado exige and_groups E or_conditions ao mesmo tempo

Consequencia conhecida: [A(AND), B(OR), C] vira And(And(A, B), Or(C)),
ou seja, C e obrigatorio; o OR nao tem efeito disjuntivo. O
comportamento e mantido por compatibilidade com audiencias salvas.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from campaign_engine.core.exceptions import InvalidDate, InvalidValue
from campaign_engine.core.timezone import end_of_day, now_utc, start_of_day
from campaign_engine.services.audience.predicate import (
    MATCH_ALL,
    And,
    Condition,
    Not,
    Op,
    Or,
    Predicate,
)
from campaign_engine.services.audience.rules import (
    CANONICAL_SEGMENTS,
    AudienceRule,
    FieldKind,
    LogicalOperator,
    RuleField,
    RuleInput,
    RuleOperator,
    validate,
)

logger = logging.getLogger(__name__)

# Faixas de gasto dos segmentos legados
LEGACY_SEGMENT_RANGES = {
    "VIP": (50000.0, None),
    "Premium": (20000.0, 50000.0),
    "Regular": (5000.0, 20000.0),
    "New": (None, 5000.0),
}

_COMPARISON_OPS = {
    RuleOperator.GT: Op.GT,
    RuleOperator.LT: Op.LT,
    RuleOperator.GTE: Op.GTE,
    RuleOperator.LTE: Op.LTE,
    RuleOperator.EQ: Op.EQ,
    RuleOperator.NEQ: Op.NEQ,
}


def compile_rules(rules: Iterable[RuleInput], now: Optional[datetime] = None) -> Predicate:
    """
    Compila regras em predicado.

    Args:
        rules: Regras ja validadas (AudienceRule) ou dicts no wire
            format (sao validados aqui)
        now: Instante de avaliacao para regras relativas
            (daysSinceLastVisit). Default: agora em UTC

    Returns:
        Predicate. Lista vazia casa com todos os clientes.

    Raises:
        ValidationError: se alguma regra for invalida
    """
    rules = list(rules)
    if not all(isinstance(r, AudienceRule) for r in rules):
        rules = validate(rules)

    if not rules:
        return MATCH_ALL

    now = now or now_utc()

    # Regra unica: folha sem wrapper
    if len(rules) == 1:
        return build_condition(rules[0], now, index=0)

    and_groups: List[Predicate] = []
    or_conditions: List[Predicate] = []

    current_type = LogicalOperator.AND
    current_group = [build_condition(rules[0], now, index=0)]

    for i in range(1, len(rules)):
        condition = build_condition(rules[i], now, index=i)

        if rules[i - 1].logical_operator == LogicalOperator.OR:
            _flush_group(current_type, current_group, and_groups, or_conditions)
            current_type = LogicalOperator.OR
            current_group = [condition]
        else:
            current_group.append(condition)

    _flush_group(current_type, current_group, and_groups, or_conditions)

    if len(and_groups) == 1 and not or_conditions:
        return and_groups[0]
    if len(or_conditions) == 1 and not and_groups:
        return or_conditions[0]

    children = list(and_groups)
    if or_conditions:
        children.append(Or(tuple(or_conditions)))
    return And(tuple(children))


def _flush_group(
    group_type: LogicalOperator,
    group: List[Predicate],
    and_groups: List[Predicate],
    or_conditions: List[Predicate],
) -> None:
    if group_type == LogicalOperator.AND:
        if len(group) > 1:
            and_groups.append(And(tuple(group)))
        else:
            and_groups.append(group[0])
    else:
        or_conditions.extend(group)


def build_condition(rule: AudienceRule, now: datetime, index: int = 0) -> Predicate:
    """
    Constroi a folha de uma regra conforme o tipo do campo.

    Raises:
        InvalidValue/InvalidDate: se a data de corte ou o limite do
            dia sair do intervalo de datetime
    """
    builder = _BUILDERS[rule.kind]
    try:
        return builder(rule, now)
    except (OverflowError, ValueError):
        if rule.kind == FieldKind.DATE:
            raise InvalidDate(f"Data fora do intervalo suportado na regra {index}", rule_index=index)
        raise InvalidValue(f"Valor fora do intervalo suportado na regra {index}", rule_index=index)


def _build_numeric(rule: AudienceRule, now: datetime) -> Predicate:
    return Condition(rule.field.column, _COMPARISON_OPS[rule.operator], float(rule.value))


def _build_recency(rule: AudienceRule, now: datetime) -> Predicate:
    """
    N dias desde a ultima visita -> data de corte (hoje - N, inicio do dia).

    ">" N dias = ultima visita estritamente antes do corte.
    """
    column = rule.field.column
    cutoff = start_of_day(now) - timedelta(days=int(rule.value))
    next_day = cutoff + timedelta(days=1)
    op = rule.operator

    if op == RuleOperator.GT:
        return Condition(column, Op.LT, cutoff)
    if op == RuleOperator.LT:
        return Condition(column, Op.GT, cutoff)
    if op == RuleOperator.GTE:
        return Condition(column, Op.LTE, cutoff)
    if op == RuleOperator.LTE:
        return Condition(column, Op.GTE, cutoff)
    if op == RuleOperator.EQ:
        return And((Condition(column, Op.GTE, cutoff), Condition(column, Op.LT, next_day)))
    # NEQ
    return Or((Condition(column, Op.LT, cutoff), Condition(column, Op.GTE, next_day)))


def _build_date(rule: AudienceRule, now: datetime) -> Predicate:
    column = rule.field.column
    day_start = start_of_day(rule.value)
    day_end = end_of_day(rule.value)
    op = rule.operator

    if op == RuleOperator.GT:
        return Condition(column, Op.GT, day_end)
    if op == RuleOperator.LT:
        return Condition(column, Op.LT, day_start)
    if op == RuleOperator.GTE:
        return Condition(column, Op.GTE, day_start)
    if op == RuleOperator.LTE:
        return Condition(column, Op.LTE, day_end)
    if op == RuleOperator.EQ:
        return And((Condition(column, Op.GTE, day_start), Condition(column, Op.LTE, day_end)))
    # NEQ
    return Or((Condition(column, Op.LT, day_start), Condition(column, Op.GT, day_end)))


def _build_segment(rule: AudienceRule, now: datetime) -> Predicate:
    column = rule.field.column
    value = rule.value
    op = rule.operator

    if value in CANONICAL_SEGMENTS:
        if op == RuleOperator.EQ:
            return Condition(column, Op.EQ, value)
        if op == RuleOperator.NEQ:
            return Condition(column, Op.NEQ, value)
        if op == RuleOperator.CONTAINS:
            return Condition(column, Op.ICONTAINS, value)
        return Condition(column, Op.NOT_ICONTAINS, value)

    # Label legado: faixa de gasto
    spending = _spending_range(*LEGACY_SEGMENT_RANGES[value])
    if op == RuleOperator.EQ:
        return spending
    return Not(spending)


def _spending_range(minimo: Optional[float], maximo: Optional[float]) -> Predicate:
    column = RuleField.TOTAL_SPENDING.column
    parts = []
    if minimo is not None:
        parts.append(Condition(column, Op.GTE, minimo))
    if maximo is not None:
        parts.append(Condition(column, Op.LT, maximo))
    if len(parts) == 1:
        return parts[0]
    return And(tuple(parts))


def _build_boolean(rule: AudienceRule, now: datetime) -> Predicate:
    op = Op.EQ if rule.operator == RuleOperator.EQ else Op.NEQ
    return Condition(rule.field.column, op, bool(rule.value))


def _build_tags(rule: AudienceRule, now: datetime) -> Predicate:
    ops = {
        RuleOperator.CONTAINS: Op.ANY_OF,
        RuleOperator.NOT_CONTAINS: Op.NONE_OF,
        RuleOperator.EQ: Op.SET_EQ,
        RuleOperator.NEQ: Op.SET_NEQ,
    }
    return Condition(rule.field.column, ops[rule.operator], tuple(rule.value))


_BUILDERS: Dict[FieldKind, Callable[[AudienceRule, datetime], Predicate]] = {
    FieldKind.NUMERIC: _build_numeric,
    FieldKind.RECENCY: _build_recency,
    FieldKind.DATE: _build_date,
    FieldKind.SEGMENT: _build_segment,
    FieldKind.BOOLEAN: _build_boolean,
    FieldKind.TAGS: _build_tags,
}

_missing = set(FieldKind) - set(_BUILDERS)
if _missing:
    raise RuntimeError(f"FieldKind sem builder: {sorted(k.value for k in _missing)}")
