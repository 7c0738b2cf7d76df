from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Literal, Dict, Iterator, Tuple
from datetime import date, datetime
from uuid import UUID

BillStatus = Literal["active", "partially_paid", "fully_paid", "refund"]
ComponentType = Literal["penalty", "extra_fee", "electricity", "water", "rent"]

# Highest priority first: punitive and one-off charges clear before routine ones.
PRIORITY_ORDER: Tuple[str, ...] = ("penalty", "extra_fee", "electricity", "water", "rent")

PaymentAllocation = Dict[str, Decimal]

# --------- Errors ---------

class InvalidInput(ValueError):
    """Argument outside the calculator's contract."""

class AllocationMismatch(ValueError):
    """Allocated components do not sum to the payment amount."""

class RecordNotFound(ValueError):
    pass

# --------- Core dataclasses ---------

@dataclass(frozen=True)
class BillingCycle:
    start: date
    end: date
    cycle_number: int

@dataclass(frozen=True)
class BillComponents:
    penalty: Decimal = Decimal(0)
    extra_fee: Decimal = Decimal(0)
    electricity: Decimal = Decimal(0)
    water: Decimal = Decimal(0)
    rent: Decimal = Decimal(0)

    def items(self) -> Iterator[Tuple[str, Decimal]]:
        """(component, amount) pairs in allocation priority order"""
        for name in PRIORITY_ORDER:
            yield name, getattr(self, name)

    def total(self) -> Decimal:
        return sum((amount for _, amount in self.items()), Decimal(0))

@dataclass(frozen=True)
class Tenant:
    id: UUID
    full_name: str
    rent_start_date: date
    monthly_rent: Decimal
    advance_payment: Decimal
    security_deposit: Decimal
    is_active: bool = True
    move_out_date: Optional[date] = None

@dataclass(frozen=True)
class Bill:
    id: UUID
    tenant_id: UUID
    billing_period_start: date
    billing_period_end: date
    due_date: date
    monthly_rent_amount: Decimal
    electricity_amount: Decimal
    water_amount: Decimal
    extra_fee: Decimal
    penalty_amount: Decimal
    total_amount_due: Decimal
    amount_paid: Decimal
    status: BillStatus
    is_final_bill: bool = False

    @property
    def outstanding_balance(self) -> Decimal:
        return self.total_amount_due - self.amount_paid

    def components(self) -> BillComponents:
        return BillComponents(
            penalty=self.penalty_amount,
            extra_fee=self.extra_fee,
            electricity=self.electricity_amount,
            water=self.water_amount,
            rent=self.monthly_rent_amount,
        )

@dataclass(frozen=True)
class BillingSettings:
    penalty_percentage: Decimal
    default_electricity_rate: Decimal
    default_water_rate: Decimal

@dataclass(frozen=True)
class DepositCalculation:
    available_amount: Decimal
    forfeited_amount: Decimal
    refund_amount: Decimal
    applied_amount: Decimal

@dataclass(frozen=True)
class FinalBillCalculation:
    prorated_rent: Decimal
    electricity_charges: Decimal
    water_charges: Decimal
    extra_fees: Decimal
    outstanding_bills: Decimal
    total_before_deposits: Decimal
    deposit_application: DepositCalculation
    final_total: Decimal  # positive = tenant owes, negative = refund due

@dataclass(frozen=True)
class MonthlyBillCalculation:
    cycle: BillingCycle
    due_date: datetime
    monthly_rent_amount: Decimal
    electricity_consumption: Decimal
    electricity_amount: Decimal
    water_amount: Decimal
    extra_fee: Decimal
    total_amount_due: Decimal

@dataclass(frozen=True)
class PaymentReceipt:
    payment_id: UUID
    bill_id: UUID
    amount: Decimal
    allocation: PaymentAllocation = field(default_factory=dict)
    amount_paid: Decimal = Decimal(0)
    status: BillStatus = "active"

@dataclass(frozen=True)
class PenaltyResult:
    bill_id: UUID
    penalty_amount: Decimal
    total_amount_due: Decimal

@dataclass(frozen=True)
class MoveOutSettlement:
    bill_id: UUID
    status: BillStatus
    cycle: BillingCycle
    calculation: FinalBillCalculation
