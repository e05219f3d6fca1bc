"""
Modulo centralizado para tratamento de datas.

Convencoes:
- Todas as datas sao armazenadas e comparadas em UTC (timezone-aware)
- `now_utc()`: timestamp atual
- `start_of_day(dt)` / `end_of_day(dt)`: limites do dia civil em UTC
- `parse_datetime(valor)`: aceita datetime, date ou string ISO-8601
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union


TZ_UTC = timezone.utc


def now_utc() -> datetime:
    """
    Retorna datetime atual em UTC (timezone-aware).

    Returns:
        datetime em UTC com tzinfo
    """
    return datetime.now(TZ_UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Converte datetime para UTC.

    Args:
        dt: datetime a converter (pode ser naive ou aware)

    Returns:
        datetime em UTC
    """
    if dt.tzinfo is None:
        # Assume que datetime naive esta em UTC
        return dt.replace(tzinfo=TZ_UTC)
    return dt.astimezone(TZ_UTC)


def parse_datetime(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """
    Interpreta valor como datetime UTC.

    Args:
        value: datetime, date ou string ISO-8601 (aceita sufixo "Z")

    Returns:
        datetime aware em UTC, ou None se value for None

    Raises:
        ValueError: se a string nao for uma data valida
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=TZ_UTC)
    if isinstance(value, str):
        texto = value.strip()
        if texto.endswith("Z"):
            texto = texto[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(texto))
    raise ValueError(f"Tipo de data nao suportado: {type(value).__name__}")


def start_of_day(dt: datetime) -> datetime:
    """Retorna 00:00:00.000000 do mesmo dia (UTC)."""
    dt = to_utc(dt)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    """Retorna 23:59:59.999999 do mesmo dia (UTC)."""
    return start_of_day(dt) + timedelta(days=1) - timedelta(microseconds=1)


def isoformat_or_none(dt: Optional[datetime]) -> Optional[str]:
    """Serializa datetime para ISO-8601 (para gravar no banco)."""
    return dt.isoformat() if dt else None
