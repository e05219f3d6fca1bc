"""
Testes para a arvore de predicados.
"""
from datetime import datetime, timezone

from campaign_engine.services.audience import MATCH_ALL, And, Condition, Not, Op, Or
from campaign_engine.services.audience.predicate import describe


class TestMatches:

    def test_valor_ausente_so_casa_com_operadores_negativos(self):
        assert Condition("segment", Op.NEQ, "vip").matches({})
        assert Condition("tags", Op.NONE_OF, ("a",)).matches({})
        assert Condition("segment", Op.NOT_ICONTAINS, "vip").matches({"segment": None})
        assert not Condition("segment", Op.EQ, "vip").matches({})
        assert not Condition("visits", Op.LT, 3.0).matches({})

    def test_coage_numero_em_texto(self):
        assert Condition("total_spending", Op.GT, 100.0).matches({"total_spending": "150"})

    def test_data_invalida_no_cliente_nao_casa(self):
        cutoff = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert not Condition("last_visit", Op.LT, cutoff).matches({"last_visit": "xx"})

    def test_not(self):
        predicate = Not(Condition("visits", Op.GT, 5.0))

        assert predicate.matches({"visits": 2})
        assert not predicate.matches({"visits": 9})

    def test_match_all(self):
        assert MATCH_ALL.matches({"qualquer": "coisa"})


class TestPostgrest:

    def test_comparacao_simples(self):
        assert Condition("total_spending", Op.GT, 10000.0).to_postgrest() == "total_spending.gt.10000"

    def test_and_or(self):
        predicate = And((
            Condition("total_spending", Op.GT, 10000.0),
            Or((Condition("visits", Op.LT, 3.0), Condition("is_active", Op.EQ, True))),
        ))

        assert predicate.to_postgrest() == (
            "and(total_spending.gt.10000,or(visits.lt.3,is_active.eq.true))"
        )

    def test_neq_inclui_nulos(self):
        assert Condition("segment", Op.NEQ, "vip").to_postgrest() == (
            "or(segment.is.null,segment.neq.vip)"
        )

    def test_arrays(self):
        assert Condition("tags", Op.ANY_OF, ("a", "b")).to_postgrest() == "tags.ov.{a,b}"
        assert Condition("tags", Op.SET_EQ, ("a",)).to_postgrest() == (
            "and(tags.cs.{a},tags.cd.{a})"
        )

    def test_datas_entre_aspas(self):
        cutoff = datetime(2024, 5, 16, tzinfo=timezone.utc)

        assert Condition("last_visit", Op.LT, cutoff).to_postgrest() == (
            'last_visit.lt."2024-05-16T00:00:00+00:00"'
        )

    def test_valor_com_virgula_entre_aspas(self):
        assert Condition("name", Op.EQ, "a,b").to_postgrest() == 'name.eq."a,b"'

    def test_ilike(self):
        assert Condition("segment", Op.ICONTAINS, "premium").to_postgrest() == (
            "segment.ilike.*premium*"
        )

    def test_not_de_folha_e_de_grupo(self):
        folha = Condition("total_spending", Op.LT, 5000.0)

        assert Not(folha).to_postgrest() == "not.and(total_spending.lt.5000)"
        assert Not(And((folha,))).to_postgrest() == "not.and(total_spending.lt.5000)"

    def test_match_all_sem_filtro(self):
        assert MATCH_ALL.to_postgrest() == ""
        assert describe(MATCH_ALL) == "<match-all>"
