from dataclasses import dataclass
from typing import Iterable, Optional

from snappy_serve.core.errors import EmptyItems, ValidationFailed
from snappy_serve.schemas import LineItem


@dataclass(frozen=True)
class BillTotals:
    """Amounts in minor currency units."""
    subtotal: int
    tax: int
    service: int
    total: int


def percent_of(amount: int, percent: int) -> int:
    """amount * percent / 100 rounded to nearest, ties up (integer math only)."""
    return (amount * percent + 50) // 100


def order_total(items: Iterable[LineItem]) -> int:
    return sum(item.line_total for item in items)


def compute_bill(
    items: Optional[list[LineItem]],
    tax_rate_percent: int = 5,
    service_rate_percent: int = 2,
) -> BillTotals:
    """
    Turn line items into subtotal, tax, service charge and total.

    Tax and service are each derived from the subtotal alone so either can be
    reproduced independently.

    Raises:
        EmptyItems: If there is nothing to bill
        ValidationFailed: If a line has a negative price or quantity below 1
    """
    if not items:
        raise EmptyItems("No items to bill")
    for item in items:
        if item.price < 0 or item.quantity < 1:
            raise ValidationFailed(f"Invalid line item: {item.name}")

    subtotal = order_total(items)
    tax = percent_of(subtotal, tax_rate_percent)
    service = percent_of(subtotal, service_rate_percent)
    return BillTotals(
        subtotal=subtotal,
        tax=tax,
        service=service,
        total=subtotal + tax + service,
    )
