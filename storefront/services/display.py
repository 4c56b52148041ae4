from __future__ import annotations

from typing import Dict, Iterable, List

from storefront.models import CartEntry, DisplayRow


def get_display_cart(entries: Iterable[CartEntry]) -> List[DisplayRow]:
    """
    Сворачивает записи корзины в строки по товару.

    Порядок строк = порядок первого появления товара, поля берутся
    из первой записи группы. Ничего не кэшируем.
    """
    rows: Dict[str, DisplayRow] = {}
    for e in entries:
        row = rows.get(e.product_id)
        if row is None:
            row = DisplayRow(
                product_id=e.product_id,
                name=e.name,
                unit_price=e.price,
                description=e.description,
                category=e.category,
                image_url=e.image_url,
            )
            rows[e.product_id] = row
        row.quantity += 1
        row.entry_ids.append(e.entry_id)
    return list(rows.values())
