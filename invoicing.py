from __future__ import annotations

import logging
from typing import Iterable, Optional

from models import Customer, Invoice, LineItem, Product

logger = logging.getLogger(__name__)


def compute_totals(line_items: Iterable[LineItem], taxes: float = 0.0) -> tuple[float, float]:
    """Return (subtotal, final_amount). Taxes are a flat amount, not a rate."""
    subtotal = float(sum(item.quantity * item.unit_cost for item in line_items))
    return subtotal, subtotal + float(taxes or 0.0)


def price_line_item(
    products: Iterable[Product],
    product_id: str | None = None,
    name: str = "",
    quantity: float = 1,
    unit_cost: float | None = None,
) -> Optional[LineItem]:
    """
    Build one invoice line.

    With a product_id the catalog supplies the name and unit cost unless they
    are given explicitly. Without one the line is a custom item and takes the
    name and cost as typed. An unknown product_id gives None.
    """
    if not product_id:
        return LineItem(name=(name or "").strip(), quantity=quantity, unit_cost=float(unit_cost or 0.0))

    product = next((p for p in products if p.id == product_id), None)
    if product is None:
        logger.warning("Dropping invoice line for unknown product %s", product_id)
        return None
    return LineItem(
        product_id=product.id,
        name=(name or "").strip() or product.name,
        quantity=quantity,
        unit_cost=product.unit_cost if unit_cost is None else float(unit_cost),
    )


def build_invoice(
    customers: Iterable[Customer],
    customer_id: str,
    line_items: Iterable[LineItem],
    taxes: float = 0.0,
    installation_date: str = "",
    company_address: str | None = None,
    tax_id: str | None = None,
    signatory: str | None = None,
) -> Optional[Invoice]:
    customer = next((c for c in customers if c.id == customer_id), None)
    if customer is None:
        logger.warning("Invoice not created: customer %s not found", customer_id or "<empty>")
        return None

    items = list(line_items)
    subtotal, final_amount = compute_totals(items, taxes)
    return Invoice(
        customer_id=customer.id,
        customer_name=customer.name,
        line_items=items,
        installation_date=installation_date or "",
        subtotal=subtotal,
        taxes=float(taxes or 0.0),
        final_amount=final_amount,
        company_address=(company_address or "").strip() or None,
        tax_id=(tax_id or "").strip() or None,
        signatory=(signatory or "").strip() or None,
    )
