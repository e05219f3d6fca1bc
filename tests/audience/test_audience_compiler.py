"""
Testes para o compilador de regras.

Inclui o agrupamento posicional de AND/OR como comportamento atual
documentado (nao e precedencia booleana padrao).
"""
from datetime import datetime, timedelta, timezone

import pytest

from campaign_engine.core.exceptions import InvalidValue, UnsupportedField
from campaign_engine.services.audience import (
    MATCH_ALL,
    And,
    AudienceRule,
    Condition,
    FieldKind,
    Not,
    Op,
    Or,
    RuleField,
    RuleOperator,
    compile_rules,
    rule_compiler,
)
from campaign_engine.services.audience import compiler as compiler_module

NOW = datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)

A = {"field": "totalSpending", "operator": ">", "value": 10000}
B = {"field": "visits", "operator": "<", "value": 3}
C = {"field": "isActive", "operator": "==", "value": True}

LEAF_A = Condition("total_spending", Op.GT, 10000.0)
LEAF_B = Condition("visits", Op.LT, 3.0)
LEAF_C = Condition("is_active", Op.EQ, True)


def _with(rule: dict, logical: str) -> dict:
    return {**rule, "logicalOperator": logical}


class TestAgrupamentoPosicional:

    def test_regra_unica_vira_folha_sem_wrapper(self):
        assert compile_rules([A], now=NOW) == LEAF_A

    def test_lista_vazia_casa_com_todos(self):
        predicate = compile_rules([], now=NOW)

        assert predicate == MATCH_ALL
        assert predicate.matches({})

    def test_so_and_vira_um_no_and(self):
        predicate = compile_rules([_with(A, "AND"), B], now=NOW)

        assert predicate == And((LEAF_A, LEAF_B))

    def test_and_or_trailing_vira_condicao_obrigatoria(self):
        """
        [A(AND), B(OR), C] -> And(And(A, B), Or(C)).

        Comportamento atual documentado: o OR antes de C nao tem efeito
        disjuntivo; C e obrigatorio.
        """
        predicate = compile_rules([_with(A, "AND"), _with(B, "OR"), C], now=NOW)

        assert predicate == And((And((LEAF_A, LEAF_B)), Or((LEAF_C,))))

        # Casa A e B mas nao C: fica de fora
        assert not predicate.matches({"total_spending": 20000, "visits": 1, "is_active": False})
        assert predicate.matches({"total_spending": 20000, "visits": 1, "is_active": True})

    def test_or_simples_tambem_e_conjuncao(self):
        """[A(OR), B] -> And(A, Or(B)): ambos obrigatorios."""
        predicate = compile_rules([_with(A, "OR"), B], now=NOW)

        assert predicate == And((LEAF_A, Or((LEAF_B,))))
        assert not predicate.matches({"total_spending": 20000, "visits": 10})

    def test_grupo_or_com_varios_membros(self):
        predicate = compile_rules([_with(A, "OR"), _with(B, "OR"), C], now=NOW)

        assert predicate == And((LEAF_A, Or((LEAF_B, LEAF_C))))
        assert predicate.matches({"total_spending": 20000, "visits": 10, "is_active": True})
        assert predicate.matches({"total_spending": 20000, "visits": 1, "is_active": False})

    def test_valida_antes_de_compilar(self):
        with pytest.raises(UnsupportedField):
            rule_compiler.compile([{"field": "age", "operator": ">", "value": 1}], now=NOW)


class TestRecencia:
    """daysSinceLastVisit: corte = hoje - N, inicio do dia."""

    cutoff = datetime(2024, 5, 16, tzinfo=timezone.utc)

    def _rule(self, operator, value=30):
        return {"field": "daysSinceLastVisit", "operator": operator, "value": value}

    def test_maior_que_usa_visita_antes_do_corte(self):
        predicate = compile_rules([self._rule(">")], now=NOW)

        assert predicate == Condition("last_visit", Op.LT, self.cutoff)

    def test_maior_que_exclui_dia_do_corte(self):
        predicate = compile_rules([self._rule(">")], now=NOW)

        assert not predicate.matches({"last_visit": "2024-05-16T08:00:00Z"})
        assert not predicate.matches({"last_visit": "2024-06-10T08:00:00Z"})
        assert predicate.matches({"last_visit": "2024-05-15T23:59:00Z"})

    def test_menor_que_usa_visita_depois_do_corte(self):
        predicate = compile_rules([self._rule("<")], now=NOW)

        assert predicate == Condition("last_visit", Op.GT, self.cutoff)

    def test_inclusivos(self):
        assert compile_rules([self._rule(">=")], now=NOW) == Condition("last_visit", Op.LTE, self.cutoff)
        assert compile_rules([self._rule("<=")], now=NOW) == Condition("last_visit", Op.GTE, self.cutoff)

    def test_igual_e_o_dia_do_corte(self):
        predicate = compile_rules([self._rule("==")], now=NOW)

        assert predicate == And((
            Condition("last_visit", Op.GTE, self.cutoff),
            Condition("last_visit", Op.LT, self.cutoff + timedelta(days=1)),
        ))
        assert predicate.matches({"last_visit": "2024-05-16T20:00:00Z"})
        assert not predicate.matches({"last_visit": "2024-05-17T00:00:00Z"})

    def test_diferente_e_disjuncao(self):
        predicate = compile_rules([self._rule("!=")], now=NOW)

        assert isinstance(predicate, Or)
        assert predicate.matches({"last_visit": "2024-05-10T00:00:00Z"})
        assert not predicate.matches({"last_visit": "2024-05-16T12:00:00Z"})

    def test_sem_ultima_visita_nao_casa(self):
        predicate = compile_rules([self._rule(">")], now=NOW)

        assert not predicate.matches({"last_visit": None})


class TestDatas:

    def _rule(self, operator):
        return {"field": "registrationDate", "operator": operator, "value": "2024-01-01"}

    def test_maior_que_usa_fim_do_dia(self):
        predicate = compile_rules([self._rule(">")], now=NOW)

        assert not predicate.matches({"registration_date": "2024-01-01T12:00:00Z"})
        assert predicate.matches({"registration_date": "2024-01-02T00:00:00Z"})

    def test_menor_que_usa_inicio_do_dia(self):
        predicate = compile_rules([self._rule("<")], now=NOW)

        assert predicate == Condition(
            "registration_date", Op.LT, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

    def test_igual_e_o_dia_inteiro(self):
        predicate = compile_rules([self._rule("==")], now=NOW)

        assert predicate.matches({"registration_date": "2024-01-01T00:00:00Z"})
        assert predicate.matches({"registration_date": "2024-01-01T23:59:59Z"})
        assert not predicate.matches({"registration_date": "2024-01-02T00:00:00Z"})

    def test_diferente_e_os_dois_lados(self):
        predicate = compile_rules([self._rule("!=")], now=NOW)

        assert predicate.matches({"registration_date": "2023-12-31T23:00:00Z"})
        assert not predicate.matches({"registration_date": "2024-01-01T10:00:00Z"})


class TestSegmento:

    def test_segmento_canonico_compara_tier(self):
        predicate = compile_rules([{"field": "segment", "operator": "==", "value": "vip"}], now=NOW)

        assert predicate == Condition("segment", Op.EQ, "vip")

    def test_contains_em_segmento_canonico(self):
        predicate = compile_rules(
            [{"field": "segment", "operator": "contains", "value": "premium"}], now=NOW
        )

        assert predicate == Condition("segment", Op.ICONTAINS, "premium")
        assert predicate.matches({"segment": "Premium"})

    def test_legado_vip_vira_faixa_de_gasto(self):
        predicate = compile_rules([{"field": "segment", "operator": "==", "value": "VIP"}], now=NOW)

        assert predicate == Condition("total_spending", Op.GTE, 50000.0)

    def test_legado_premium_e_intervalo_semiaberto(self):
        predicate = compile_rules(
            [{"field": "segment", "operator": "==", "value": "Premium"}], now=NOW
        )

        assert predicate.matches({"total_spending": 20000})
        assert predicate.matches({"total_spending": 49999})
        assert not predicate.matches({"total_spending": 50000})

    def test_legado_diferente_nega_faixa(self):
        predicate = compile_rules([{"field": "segment", "operator": "!=", "value": "New"}], now=NOW)

        assert predicate == Not(Condition("total_spending", Op.LT, 5000.0))
        assert predicate.matches({"total_spending": 5000})
        assert not predicate.matches({"total_spending": 4999})


class TestBooleanoETags:

    def test_booleano(self):
        predicate = compile_rules(
            [{"field": "isActive", "operator": "!=", "value": "true"}], now=NOW
        )

        assert predicate == Condition("is_active", Op.NEQ, True)
        assert predicate.matches({"is_active": False})

    def test_tags_contains_e_pertinencia(self):
        predicate = compile_rules(
            [{"field": "tags", "operator": "contains", "value": "vip,loyal"}], now=NOW
        )

        assert predicate == Condition("tags", Op.ANY_OF, ("vip", "loyal"))
        assert predicate.matches({"tags": ["loyal", "new"]})
        assert not predicate.matches({"tags": ["new"]})

    def test_tags_not_contains(self):
        predicate = compile_rules(
            [{"field": "tags", "operator": "not_contains", "value": "churn"}], now=NOW
        )

        assert predicate.matches({"tags": ["vip"]})
        assert predicate.matches({})
        assert not predicate.matches({"tags": ["churn", "vip"]})

    def test_tags_igualdade_de_conjunto(self):
        predicate = compile_rules(
            [{"field": "tags", "operator": "==", "value": ["a", "b"]}], now=NOW
        )

        assert predicate.matches({"tags": ["b", "a"]})
        assert not predicate.matches({"tags": ["a", "b", "c"]})
        assert not predicate.matches({"tags": ["a"]})

    def test_tags_diferente(self):
        predicate = compile_rules(
            [{"field": "tags", "operator": "!=", "value": ["a", "b"]}], now=NOW
        )

        assert predicate.matches({"tags": ["a"]})
        assert not predicate.matches({"tags": ["b", "a"]})


class TestBuilders:

    def test_todo_field_kind_tem_builder(self):
        assert set(compiler_module._BUILDERS) == set(FieldKind)


class TestValoresForaDoIntervalo:
    """Datas de corte fora do intervalo de datetime viram erro de validacao."""

    @pytest.mark.parametrize("days", [1e7, -1e7, 1e12])
    def test_recencia_gigante(self, days):
        rules = [
            A,
            {"field": "daysSinceLastVisit", "operator": ">", "value": days},
        ]

        with pytest.raises(InvalidValue) as exc:
            compile_rules(rules, now=NOW)

        assert exc.value.rule_index == 1

    def test_regra_ja_normalizada_com_infinito(self):
        rule = AudienceRule(RuleField.DAYS_SINCE_LAST_VISIT, RuleOperator.GT, float("inf"))

        with pytest.raises(InvalidValue):
            rule_compiler.compile([rule], now=NOW)
