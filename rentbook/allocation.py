"""
Payment allocation: split one cash receipt across a bill's outstanding
components in priority order (penalty > extra_fee > electricity > water > rent).
"""
from __future__ import annotations
from decimal import Decimal
from typing import Mapping, Union
import logging

from .billing import Number, to_money
from .models import (
    PRIORITY_ORDER, BillComponents, PaymentAllocation,
    InvalidInput, AllocationMismatch,
)

logger = logging.getLogger(__name__)

ComponentsLike = Union[BillComponents, Mapping[str, Number]]


def _outstanding_by_component(components: ComponentsLike) -> PaymentAllocation:
    if isinstance(components, BillComponents):
        raw = dict(components.items())
    else:
        unknown = set(components) - set(PRIORITY_ORDER)
        if unknown:
            raise InvalidInput(f"Unknown bill components: {sorted(unknown)}")
        raw = {name: components.get(name, 0) for name in PRIORITY_ORDER}
    out: PaymentAllocation = {}
    for name in PRIORITY_ORDER:
        amount = to_money(raw[name], name)
        if amount < 0:
            raise InvalidInput(f"{name} outstanding must be non-negative, got {amount}")
        out[name] = amount
    return out


def allocate_payment(payment_amount: Number, components: ComponentsLike) -> PaymentAllocation:
    """
    Walk the priority list taking min(remaining, outstanding) from each component.
    Components not reached get 0. A payment larger than the total outstanding is
    rejected rather than truncated.
    """
    payment = to_money(payment_amount, "payment_amount")
    if payment <= 0:
        raise InvalidInput(f"payment_amount must be positive, got {payment}")
    outstanding = _outstanding_by_component(components)
    total_outstanding = sum(outstanding.values(), Decimal(0))
    if payment > total_outstanding:
        raise InvalidInput(
            f"payment_amount {payment} exceeds total outstanding {total_outstanding}"
        )

    remaining = payment
    allocation: PaymentAllocation = {name: Decimal(0) for name in PRIORITY_ORDER}
    for name in PRIORITY_ORDER:
        if remaining <= 0:
            break
        portion = min(remaining, outstanding[name])
        allocation[name] = portion
        remaining -= portion
    return allocation


def validate_payment_allocation(allocation: Mapping[str, Number], payment_amount: Number) -> bool:
    """True only when the allocated amounts sum exactly to the payment"""
    total = sum((to_money(v, k) for k, v in allocation.items()), Decimal(0))
    return total == to_money(payment_amount, "payment_amount")


def ensure_valid_allocation(allocation: Mapping[str, Number], payment_amount: Number) -> None:
    """Raise AllocationMismatch unless the allocation is safe to commit."""
    if not validate_payment_allocation(allocation, payment_amount):
        logger.warning("Allocation %s does not sum to payment %s", dict(allocation), payment_amount)
        raise AllocationMismatch(
            f"Allocated components do not sum to payment amount {payment_amount}"
        )
