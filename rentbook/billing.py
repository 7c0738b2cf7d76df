# ============================================================
# Billing calculations: cycles, due dates, penalties, proration,
# deposits and move-out settlement. Pure functions, no I/O.
# ============================================================

from __future__ import annotations
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union
import re

import pytz
from dateutil.relativedelta import relativedelta

from .models import (
    BillingCycle, DepositCalculation, FinalBillCalculation,
    MonthlyBillCalculation, InvalidInput,
)

DEFAULT_TIMEZONE = "Asia/Manila"
DUE_DATE_OFFSET_DAYS = 10
DEPOSIT_UNLOCK_CYCLES = 5

Number = Union[int, float, str, Decimal]
DateLike = Union[date, datetime]

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def to_money(value: Number, name: str = "amount") -> Decimal:
    """Decimal from int/float/str; floats go through str() so 0.1 stays 0.1"""
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be numeric, got {value!r}")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{name} must be numeric, got {value!r}") from None
    if not d.is_finite():
        raise InvalidInput(f"{name} must be finite, got {value!r}")
    return d

def non_negative(value: Number, name: str) -> Decimal:
    d = to_money(value, name)
    if d < 0:
        raise InvalidInput(f"{name} must be non-negative, got {value!r}")
    return d

def round_whole(amount: Decimal) -> Decimal:
    """Round half-up to a whole currency unit"""
    return amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)

def to_calendar_date(value: DateLike, tz_name: str = DEFAULT_TIMEZONE) -> date:
    """
    Calendar date with no time-of-day component.
    Aware datetimes are read in the billing timezone; naive ones are truncated.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(pytz.timezone(tz_name)).date()
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidInput(f"Expected a date, got {type(value).__name__}")

def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1

# ------------------------------------------------------------
# 1) Billing cycles & due dates
# ------------------------------------------------------------

def calculate_billing_period(
    anchor_date: DateLike, cycle_number: int, tz_name: str = DEFAULT_TIMEZONE,
) -> BillingCycle:
    """
    Cycle n runs from anchor + (n-1) months to the day before anchor + n months.
    Example: anchor 2025-03-17
      cycle 1: 2025-03-17 .. 2025-04-16
      cycle 2: 2025-04-17 .. 2025-05-16
    Month offsets are always taken from the anchor, so a day-31 anchor clamps
    to short month ends and recovers the 31st afterwards.
    """
    if isinstance(cycle_number, bool) or not isinstance(cycle_number, int):
        raise InvalidInput(f"cycle_number must be an integer, got {cycle_number!r}")
    if cycle_number < 1:
        raise InvalidInput(f"cycle_number must be >= 1, got {cycle_number}")
    anchor = to_calendar_date(anchor_date, tz_name)
    start = anchor + relativedelta(months=cycle_number - 1)
    end = anchor + relativedelta(months=cycle_number) - timedelta(days=1)
    return BillingCycle(start=start, end=end, cycle_number=cycle_number)

def get_current_billing_cycle(
    anchor_date: DateLike, as_of: DateLike, tz_name: str = DEFAULT_TIMEZONE,
) -> BillingCycle:
    """First cycle whose end is on or after as_of"""
    anchor = to_calendar_date(anchor_date, tz_name)
    today = to_calendar_date(as_of, tz_name)
    if today < anchor:
        raise InvalidInput(f"as_of {today} is before the rent start date {anchor}")
    cycle_number = 1
    cycle = calculate_billing_period(anchor, cycle_number, tz_name)
    while today > cycle.end:
        cycle_number += 1
        cycle = calculate_billing_period(anchor, cycle_number, tz_name)
    return cycle

def next_cycle_number(fully_paid_bill_count: int) -> int:
    """The next cycle to bill is the one after the fully paid ones"""
    if fully_paid_bill_count < 0:
        raise InvalidInput(f"fully_paid_bill_count must be >= 0, got {fully_paid_bill_count}")
    return fully_paid_bill_count + 1

def calculate_due_date(period_end: DateLike, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """
    Due date = period end + 10 calendar days, at local midnight in tz_name.
    Returned as a UTC instant for storage; rendered back in tz_name it shows
    the intended calendar date whatever offset transitions lie in between.
    """
    tz = pytz.timezone(tz_name)
    due_day = to_calendar_date(period_end, tz_name) + timedelta(days=DUE_DATE_OFFSET_DAYS)
    local_midnight = tz.localize(datetime.combine(due_day, time.min))
    return local_midnight.astimezone(pytz.utc)

# ------------------------------------------------------------
# 2) Charges & penalties
# ------------------------------------------------------------

def calculate_electricity_charge(present_reading: Number, previous_reading: Number, rate: Number) -> Decimal:
    """Electricity = (present - previous) kWh * rate"""
    present = non_negative(present_reading, "present_reading")
    previous = non_negative(previous_reading, "previous_reading")
    if present < previous:
        raise InvalidInput(f"present_reading {present} is below previous_reading {previous}")
    return (present - previous) * non_negative(rate, "electricity_rate")

def calculate_penalty(
    total_amount: Number,
    payment_date: DateLike,
    due_date: DateLike,
    penalty_percentage: Number,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Decimal:
    """
    Penalty = round(total * pct / 100) when paid after the due date, else 0.
    Dates compare as calendar days in the billing timezone. The percentage
    comes from system settings; there is no default.
    """
    pct = non_negative(penalty_percentage, "penalty_percentage")
    total = non_negative(total_amount, "total_amount")
    if to_calendar_date(payment_date, tz_name) <= to_calendar_date(due_date, tz_name):
        return Decimal(0)
    return round_whole(total * pct / 100)

def calculate_monthly_bill(
    rent_start_date: DateLike,
    cycle_number: int,
    monthly_rent: Number,
    previous_reading: Number,
    present_reading: Number,
    electricity_rate: Number,
    water_rate: Number,
    extra_fee: Number = 0,
    tz_name: str = DEFAULT_TIMEZONE,
) -> MonthlyBillCalculation:
    """Regular bill for one cycle: rent + metered electricity + flat water + extra fee"""
    cycle = calculate_billing_period(rent_start_date, cycle_number, tz_name)
    rent = non_negative(monthly_rent, "monthly_rent")
    electricity = calculate_electricity_charge(present_reading, previous_reading, electricity_rate)
    consumption = to_money(present_reading) - to_money(previous_reading)
    water = non_negative(water_rate, "water_rate")
    extra = non_negative(extra_fee, "extra_fee")
    return MonthlyBillCalculation(
        cycle=cycle,
        due_date=calculate_due_date(cycle.end, tz_name),
        monthly_rent_amount=rent,
        electricity_consumption=consumption,
        electricity_amount=electricity,
        water_amount=water,
        extra_fee=extra,
        total_amount_due=rent + electricity + water + extra,
    )

def bill_status_after_payment(amount_paid: Number, total_amount_due: Number) -> str:
    paid = to_money(amount_paid, "amount_paid")
    if paid >= to_money(total_amount_due, "total_amount_due"):
        return "fully_paid"
    if paid > 0:
        return "partially_paid"
    return "active"

# ------------------------------------------------------------
# 3) Move-out: proration, deposits, final bill
# ------------------------------------------------------------

def calculate_prorated_rent(
    monthly_rent: Number,
    period_start: DateLike,
    period_end: DateLike,
    move_out_date: DateLike,
    tz_name: str = DEFAULT_TIMEZONE,
) -> Decimal:
    """
    Prorated rent = round(monthly_rent / days_in_cycle * days_occupied),
    both day counts inclusive of the cycle start. Multiplying before dividing
    keeps a full-cycle stay equal to the monthly rent.
    """
    rent = non_negative(monthly_rent, "monthly_rent")
    start = to_calendar_date(period_start, tz_name)
    end = to_calendar_date(period_end, tz_name)
    move_out = to_calendar_date(move_out_date, tz_name)
    if end < start:
        raise InvalidInput(f"period_end {end} is before period_start {start}")
    if move_out < start:
        raise InvalidInput(f"move_out_date {move_out} is before period_start {start}")
    total_days = inclusive_days(start, end)
    days_occupied = inclusive_days(start, move_out)
    return round_whole(rent * days_occupied / total_days)

def calculate_deposit_application(
    fully_paid_bill_count: int,
    advance_payment: Number,
    security_deposit: Number,
    outstanding_balance: Number,
    is_room_transfer: bool = False,
) -> DepositCalculation:
    """
    5+ fully paid cycles, or a room transfer: advance + security are both available.
    Otherwise only the advance is available and the whole security deposit is forfeited.
    """
    if fully_paid_bill_count < 0:
        raise InvalidInput(f"fully_paid_bill_count must be >= 0, got {fully_paid_bill_count}")
    advance = non_negative(advance_payment, "advance_payment")
    security = non_negative(security_deposit, "security_deposit")
    outstanding = non_negative(outstanding_balance, "outstanding_balance")

    if is_room_transfer or fully_paid_bill_count >= DEPOSIT_UNLOCK_CYCLES:
        available = advance + security
        forfeited = Decimal(0)
    else:
        available = advance
        forfeited = security
    applied = min(available, outstanding)
    return DepositCalculation(
        available_amount=available,
        forfeited_amount=forfeited,
        refund_amount=available - applied,
        applied_amount=applied,
    )

def calculate_final_bill(
    monthly_rent: Number,
    period_start: DateLike,
    period_end: DateLike,
    move_out_date: DateLike,
    electricity_charges: Number,
    water_charges: Number,
    extra_fees: Number,
    outstanding_bills: Number,
    fully_paid_bill_count: int,
    advance_payment: Number,
    security_deposit: Number,
    is_room_transfer: bool = False,
    tz_name: str = DEFAULT_TIMEZONE,
) -> FinalBillCalculation:
    prorated = calculate_prorated_rent(monthly_rent, period_start, period_end, move_out_date, tz_name)
    electricity = non_negative(electricity_charges, "electricity_charges")
    water = non_negative(water_charges, "water_charges")
    extra = non_negative(extra_fees, "extra_fees")
    outstanding = non_negative(outstanding_bills, "outstanding_bills")

    total_before_deposits = prorated + electricity + water + extra + outstanding
    deposits = calculate_deposit_application(
        fully_paid_bill_count, advance_payment, security_deposit,
        total_before_deposits, is_room_transfer,
    )
    return FinalBillCalculation(
        prorated_rent=prorated,
        electricity_charges=electricity,
        water_charges=water,
        extra_fees=extra,
        outstanding_bills=outstanding,
        total_before_deposits=total_before_deposits,
        deposit_application=deposits,
        final_total=total_before_deposits - deposits.applied_amount,
    )

# ------------------------------------------------------------
# 4) Currency display
# ------------------------------------------------------------

def format_php(amount: Number) -> str:
    """₱1,234.50 style, always two decimals"""
    value = to_money(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}₱{abs(value):,.2f}"

def parse_php(value: str) -> Decimal:
    """Inverse of format_php; blanks and junk parse as 0"""
    cleaned = re.sub(r"[₱,\s]", "", value or "")
    try:
        d = Decimal(cleaned)
    except InvalidOperation:
        return Decimal(0)
    return d if d.is_finite() else Decimal(0)
