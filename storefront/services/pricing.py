from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

# PayPal принимает суммы заказа ровно с двумя знаками, settings.decimals только для показа
CENT = Decimal("0.01")


def _cents(value: float) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(value: float) -> str:
    return str(_cents(value))


def total_amount(prices: Iterable[float]) -> str:
    # сумма уже округлённых позиций, иначе item_total разойдётся с items
    return str(sum((_cents(p) for p in prices), Decimal("0.00")))
