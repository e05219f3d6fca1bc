"""
Modulo de audiencia.

Estrutura:
- rules: Tipos de regra e validacao
- predicate: Arvore de predicados (avaliacao e filtro PostgREST)
- compiler: Compilacao posicional das regras
"""
from datetime import datetime
from typing import Iterable, List, Optional

from campaign_engine.services.audience.compiler import compile_rules
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
    AudienceRule,
    FieldKind,
    LogicalOperator,
    RuleField,
    RuleInput,
    RuleOperator,
    sample_rules,
    validate,
)


class RuleCompiler:
    """Fachada validate() + compile() usada pelos fluxos de campanha."""

    def validate(self, rules: Iterable[RuleInput]) -> List[AudienceRule]:
        return validate(rules)

    def compile(self, rules: Iterable[RuleInput], now: Optional[datetime] = None) -> Predicate:
        return compile_rules(rules, now=now)


# Instancia singleton
rule_compiler = RuleCompiler()

__all__ = [
    "RuleCompiler",
    "rule_compiler",
    "AudienceRule",
    "FieldKind",
    "LogicalOperator",
    "RuleField",
    "RuleOperator",
    "sample_rules",
    "validate",
    "compile_rules",
    "Predicate",
    "Condition",
    "And",
    "Or",
    "Not",
    "Op",
    "MATCH_ALL",
]
