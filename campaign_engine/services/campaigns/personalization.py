"""
Personalizacao de mensagens de campanha.

Placeholders suportados:
    {name}, {firstName}, {email}, {totalSpending}, {visits}, {segment}
"""
from typing import Optional, Union

from campaign_engine.core.config import settings
from campaign_engine.repositories.customer import Customer

# (limite minimo inclusivo, segmento), do maior para o menor
SEGMENT_THRESHOLDS = (
    (50000, "VIP"),
    (20000, "Premium"),
    (5000, "Regular"),
)
DEFAULT_SEGMENT = "New"


def derive_segment(total_spending: Union[float, int, None]) -> str:
    """
    Segmento derivado do gasto total.

    Limites inclusivos: 50000 -> VIP, 20000 -> Premium, 5000 -> Regular.
    Abaixo de 5000 (ou sem gasto) -> New.
    """
    valor = float(total_spending or 0)
    for minimo, segmento in SEGMENT_THRESHOLDS:
        if valor >= minimo:
            return segmento
    return DEFAULT_SEGMENT


def format_currency(valor: Union[float, int, None], symbol: Optional[str] = None) -> str:
    """
    Formata valor monetario com agrupamento indiano.

    Args:
        valor: Valor numerico
        symbol: Simbolo da moeda (default: CURRENCY_SYMBOL)

    Returns:
        Valor formatado: ₹1,500.00 / ₹12,34,567.50
    """
    symbol = settings.CURRENCY_SYMBOL if symbol is None else symbol
    valor = float(valor or 0)
    sinal = "-" if valor < 0 else ""

    inteiro, decimais = f"{abs(valor):.2f}".split(".")

    # Ultimos 3 digitos juntos, o resto em pares
    if len(inteiro) > 3:
        cabeca, cauda = inteiro[:-3], inteiro[-3:]
        pares = []
        while len(cabeca) > 2:
            pares.insert(0, cabeca[-2:])
            cabeca = cabeca[:-2]
        if cabeca:
            pares.insert(0, cabeca)
        inteiro = ",".join(pares + [cauda])

    return f"{sinal}{symbol}{inteiro}.{decimais}"


def first_name(name: Optional[str]) -> str:
    partes = (name or "").split()
    return partes[0] if partes else ""


def render_message(template: str, customer: Customer) -> str:
    """
    Substitui os placeholders pelos dados do cliente.

    Placeholders desconhecidos ficam como estao.
    """
    valores = {
        "{name}": customer.name or "",
        "{firstName}": first_name(customer.name),
        "{email}": customer.email or "",
        "{totalSpending}": format_currency(customer.total_spending),
        "{visits}": str(customer.visits),
        "{segment}": derive_segment(customer.total_spending),
    }

    mensagem = template or ""
    for placeholder, valor in valores.items():
        mensagem = mensagem.replace(placeholder, valor)
    return mensagem
