"""
Единое форматирование денег для текстов коучинга.

Usage:
    from app.utils.money import format_money

    format_money(15000)          -> "Rp 15.000"
    format_money(-2500)          -> "-Rp 2.500"
    format_money(0, prefix="")   -> "0"
"""
from app.config import get_settings


def format_money(amount: int, prefix: str | None = None) -> str:
    """
    Форматировать целую сумму: разделитель тысяч точка, префикс валюты

    Args:
        amount: сумма в минимальных единицах (int)
        prefix: префикс валюты, по умолчанию settings.CURRENCY_PREFIX

    Returns:
        "Rp 15.000" / "-Rp 2.500"
    """
    if prefix is None:
        prefix = get_settings().CURRENCY_PREFIX
    sign = "-" if amount < 0 else ""
    formatted = f"{abs(int(amount)):,}".replace(",", ".")
    if not prefix:
        return f"{sign}{formatted}"
    return f"{sign}{prefix} {formatted}"
