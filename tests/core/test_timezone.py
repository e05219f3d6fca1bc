"""
Testes para o modulo de timezone.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from campaign_engine.core.timezone import (
    TZ_UTC,
    end_of_day,
    isoformat_or_none,
    now_utc,
    parse_datetime,
    start_of_day,
    to_utc,
)


class TestNowUtc:

    def test_retorna_datetime_timezone_aware(self):
        agora = now_utc()

        assert agora.tzinfo is not None
        assert agora.utcoffset() == timedelta(0)


class TestToUtc:

    def test_naive_assume_utc(self):
        dt = to_utc(datetime(2024, 3, 1, 10, 0))

        assert dt == datetime(2024, 3, 1, 10, 0, tzinfo=TZ_UTC)

    def test_converte_outro_fuso(self):
        fuso = timezone(timedelta(hours=5, minutes=30))
        dt = to_utc(datetime(2024, 3, 1, 10, 0, tzinfo=fuso))

        assert dt.hour == 4
        assert dt.minute == 30
        assert dt.tzinfo == TZ_UTC


class TestParseDatetime:

    def test_none(self):
        assert parse_datetime(None) is None

    def test_sufixo_z(self):
        assert parse_datetime("2024-01-01T12:00:00Z") == datetime(2024, 1, 1, 12, tzinfo=TZ_UTC)

    def test_somente_data(self):
        assert parse_datetime("2024-01-01") == datetime(2024, 1, 1, tzinfo=TZ_UTC)

    def test_objeto_date(self):
        assert parse_datetime(date(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=TZ_UTC)

    def test_string_invalida(self):
        with pytest.raises(ValueError):
            parse_datetime("ontem")

    def test_tipo_nao_suportado(self):
        with pytest.raises(ValueError):
            parse_datetime(12345)


class TestLimitesDoDia:

    def test_inicio_e_fim(self):
        dt = datetime(2024, 6, 15, 14, 30, tzinfo=TZ_UTC)

        assert start_of_day(dt) == datetime(2024, 6, 15, tzinfo=TZ_UTC)
        assert end_of_day(dt) == datetime(2024, 6, 15, 23, 59, 59, 999999, tzinfo=TZ_UTC)


class TestIsoformat:

    def test_isoformat_or_none(self):
        assert isoformat_or_none(None) is None
        assert isoformat_or_none(datetime(2024, 1, 1, tzinfo=TZ_UTC)) == "2024-01-01T00:00:00+00:00"
