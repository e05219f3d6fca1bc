"""
Arvore de predicados de audiencia.

Nos imutaveis: Condition (folha), And, Or, Not. Cada no sabe:
- avaliar um cliente (dict com colunas snake_case) -> bool
- se renderizar como filtro logico do PostgREST (Supabase)

Semantica de valor ausente segue a de document store: operadores
negativos (neq, none_of, not_icontains, set_neq) casam com valor
ausente; os demais nao casam.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from campaign_engine.core.timezone import parse_datetime


class Op(str, Enum):
    """Operadores de folha."""

    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"
    ANY_OF = "any_of"
    NONE_OF = "none_of"
    SET_EQ = "set_eq"
    SET_NEQ = "set_neq"
    ICONTAINS = "icontains"
    NOT_ICONTAINS = "not_icontains"


# Operadores que casam quando o atributo esta ausente
_NEGATIVE_OPS = {Op.NEQ, Op.NONE_OF, Op.SET_NEQ, Op.NOT_ICONTAINS}

_POSTGREST_RESERVED = set(',.:()"\' ')


class Predicate:
    """Base dos nos da arvore."""

    def matches(self, customer: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def to_postgrest(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Condition(Predicate):
    """Comparacao de uma coluna do cliente com um valor."""

    column: str
    op: Op
    value: Any

    def matches(self, customer: Mapping[str, Any]) -> bool:
        actual = _coerce(customer.get(self.column), self.value)
        if actual is None:
            return self.op in _NEGATIVE_OPS

        if self.op == Op.GT:
            return actual > self.value
        if self.op == Op.LT:
            return actual < self.value
        if self.op == Op.GTE:
            return actual >= self.value
        if self.op == Op.LTE:
            return actual <= self.value
        if self.op == Op.EQ:
            return actual == self.value
        if self.op == Op.NEQ:
            return actual != self.value
        if self.op == Op.ANY_OF:
            return _any_of(actual, self.value)
        if self.op == Op.NONE_OF:
            return not _any_of(actual, self.value)
        if self.op == Op.SET_EQ:
            return _set_eq(actual, self.value)
        if self.op == Op.SET_NEQ:
            return not _set_eq(actual, self.value)
        if self.op == Op.ICONTAINS:
            return str(self.value).lower() in str(actual).lower()
        if self.op == Op.NOT_ICONTAINS:
            return str(self.value).lower() not in str(actual).lower()
        raise AssertionError(f"Op sem avaliacao: {self.op}")

    def to_postgrest(self) -> str:
        col = self.column

        if self.op in (Op.GT, Op.LT, Op.GTE, Op.LTE, Op.EQ):
            return f"{col}.{self.op.value}.{_format_value(self.value)}"
        if self.op == Op.NEQ:
            return f"or({col}.is.null,{col}.neq.{_format_value(self.value)})"
        if self.op == Op.ANY_OF:
            return f"{col}.ov.{_format_array(self.value)}"
        if self.op == Op.NONE_OF:
            return f"or({col}.is.null,{col}.not.ov.{_format_array(self.value)})"
        if self.op == Op.SET_EQ:
            arr = _format_array(self.value)
            return f"and({col}.cs.{arr},{col}.cd.{arr})"
        if self.op == Op.SET_NEQ:
            arr = _format_array(self.value)
            return f"or({col}.is.null,not.and({col}.cs.{arr},{col}.cd.{arr}))"
        if self.op == Op.ICONTAINS:
            return f"{col}.ilike.{_format_value(f'*{self.value}*')}"
        if self.op == Op.NOT_ICONTAINS:
            return f"or({col}.is.null,{col}.not.ilike.{_format_value(f'*{self.value}*')})"
        raise AssertionError(f"Op sem renderizacao: {self.op}")


@dataclass(frozen=True)
class And(Predicate):
    """Todos os filhos devem casar. And vazio casa com todos."""

    children: Tuple[Predicate, ...] = ()

    def matches(self, customer: Mapping[str, Any]) -> bool:
        return all(child.matches(customer) for child in self.children)

    def to_postgrest(self) -> str:
        if not self.children:
            return ""
        return f"and({','.join(child.to_postgrest() for child in self.children)})"


@dataclass(frozen=True)
class Or(Predicate):
    """Ao menos um filho deve casar."""

    children: Tuple[Predicate, ...] = ()

    def matches(self, customer: Mapping[str, Any]) -> bool:
        return any(child.matches(customer) for child in self.children)

    def to_postgrest(self) -> str:
        return f"or({','.join(child.to_postgrest() for child in self.children)})"


@dataclass(frozen=True)
class Not(Predicate):
    """Negacao do filho."""

    child: Predicate

    def matches(self, customer: Mapping[str, Any]) -> bool:
        return not self.child.matches(customer)

    def to_postgrest(self) -> str:
        inner = self.child.to_postgrest()
        if isinstance(self.child, (And, Or)):
            return f"not.{inner}"
        return f"not.and({inner})"


MATCH_ALL = And(())


def _coerce(actual: Any, expected: Any) -> Any:
    """Converte o valor do cliente para o tipo do valor da regra."""
    if actual is None:
        return None
    if isinstance(expected, datetime):
        try:
            return parse_datetime(actual)
        except (TypeError, ValueError):
            return None
    if isinstance(expected, float) and not isinstance(actual, bool):
        try:
            return float(actual)
        except (TypeError, ValueError):
            return None
    return actual


def _any_of(actual: Any, expected: Tuple[Any, ...]) -> bool:
    if isinstance(actual, (list, tuple, set)):
        return bool(set(actual) & set(expected))
    return actual in expected


def _set_eq(actual: Any, expected: Tuple[Any, ...]) -> bool:
    if not isinstance(actual, (list, tuple, set)):
        actual = [actual]
    return set(actual) == set(expected) and len(actual) == len(expected)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return f'"{value.isoformat()}"'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    texto = str(value)
    if any(c in _POSTGREST_RESERVED for c in texto):
        return '"' + texto.replace('"', '\\"') + '"'
    return texto


def _format_array(values: Tuple[Any, ...]) -> str:
    return "{" + ",".join(_format_value(v) for v in values) + "}"


def describe(predicate: Optional[Predicate]) -> str:
    """Representacao curta para logs."""
    if predicate is None:
        return "<none>"
    return predicate.to_postgrest() or "<match-all>"
