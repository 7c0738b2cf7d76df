import argparse, json, logging, sys
from dataclasses import asdict
from datetime import date, datetime
from uuid import UUID

from .billing import (
    calculate_billing_period, get_current_billing_cycle, calculate_due_date,
    calculate_penalty, calculate_prorated_rent, calculate_deposit_application,
    calculate_final_bill, format_php,
)
from .allocation import allocate_payment, validate_payment_allocation
from .models import BillComponents, InvalidInput
from . import db


def _date(s: str) -> date:
    return date.fromisoformat(s)

def _datetime(s: str) -> datetime:
    return datetime.fromisoformat(s)

def _dump(obj) -> None:
    if hasattr(obj, "__dataclass_fields__"):
        obj = asdict(obj)
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def cmd_cycle(args):
    if args.as_of:
        cycle = get_current_billing_cycle(args.rent_start, args.as_of, db.BILLING_TZ)
    else:
        cycle = calculate_billing_period(args.rent_start, args.cycle, db.BILLING_TZ)
    due = calculate_due_date(cycle.end, db.BILLING_TZ)
    out = asdict(cycle)
    out["due_date_utc"] = due.isoformat()
    return out

def cmd_due_date(args):
    due = calculate_due_date(args.period_end, db.BILLING_TZ)
    return {"period_end": args.period_end, "due_date_utc": due.isoformat(), "timezone": db.BILLING_TZ}

def cmd_penalty(args):
    penalty = calculate_penalty(args.total, args.payment_date, args.due_date, args.percentage, db.BILLING_TZ)
    return {"penalty": penalty, "display": format_php(penalty)}

def cmd_prorate(args):
    rent = calculate_prorated_rent(args.rent, args.period_start, args.period_end, args.move_out, db.BILLING_TZ)
    return {"prorated_rent": rent, "display": format_php(rent)}

def cmd_deposit(args):
    return calculate_deposit_application(
        args.fully_paid, args.advance, args.security, args.outstanding, args.room_transfer,
    )

def cmd_final_bill(args):
    return calculate_final_bill(
        args.rent, args.period_start, args.period_end, args.move_out,
        args.electricity, args.water, args.extra_fees, args.outstanding,
        args.fully_paid, args.advance, args.security, args.room_transfer, db.BILLING_TZ,
    )

def cmd_allocate(args):
    components = BillComponents(
        penalty=args.penalty, extra_fee=args.extra_fee,
        electricity=args.electricity, water=args.water, rent=args.rent,
    )
    allocation = allocate_payment(args.amount, components)
    return {"allocation": allocation, "valid": validate_payment_allocation(allocation, args.amount)}

def cmd_pay(args):
    return db.record_payment(
        args.bill_id, args.amount, args.payment_date or datetime.now().astimezone(),
        args.method, args.reference, args.notes,
    )

def cmd_apply_penalties(args):
    results = db.apply_overdue_penalties(args.as_of or date.today(), args.percentage)
    return {"applied": [asdict(r) for r in results], "count": len(results)}

def cmd_generate_bill(args):
    return db.generate_bill(args.tenant_id, args.previous_reading, args.present_reading, args.extra_fee)

def cmd_move_out(args):
    if not args.commit:
        return db.preview_final_bill(
            args.tenant_id, args.move_out, args.electricity, args.water,
            args.extra_fees, args.room_transfer,
        )
    if args.previous_reading is None or args.present_reading is None:
        raise InvalidInput("--commit needs --previous-reading and --present-reading")
    return db.finalize_move_out(
        args.tenant_id, args.move_out, args.previous_reading, args.present_reading,
        args.water, args.extra_fees, args.room_transfer,
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rentbook", description="Rent billing calculator")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("cycle", help="Billing period for a cycle number or date")
    p.add_argument("--rent-start", required=True, type=_date)
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--cycle", type=int)
    g.add_argument("--as-of", type=_date)
    p.set_defaults(func=cmd_cycle)

    p = sub.add_parser("due-date", help="Due date for a period end")
    p.add_argument("--period-end", required=True, type=_date)
    p.set_defaults(func=cmd_due_date)

    p = sub.add_parser("penalty", help="Late payment penalty")
    p.add_argument("--total", required=True)
    p.add_argument("--payment-date", required=True, type=_date)
    p.add_argument("--due-date", required=True, type=_date)
    p.add_argument("--percentage", required=True)
    p.set_defaults(func=cmd_penalty)

    p = sub.add_parser("prorate", help="Prorated rent for a mid-cycle move-out")
    p.add_argument("--rent", required=True)
    p.add_argument("--period-start", required=True, type=_date)
    p.add_argument("--period-end", required=True, type=_date)
    p.add_argument("--move-out", required=True, type=_date)
    p.set_defaults(func=cmd_prorate)

    def deposit_args(p):
        p.add_argument("--fully-paid", required=True, type=int)
        p.add_argument("--advance", required=True)
        p.add_argument("--security", required=True)
        p.add_argument("--room-transfer", action="store_true")

    p = sub.add_parser("deposit", help="Deposit application at move-out")
    deposit_args(p)
    p.add_argument("--outstanding", required=True)
    p.set_defaults(func=cmd_deposit)

    p = sub.add_parser("final-bill", help="Move-out settlement from explicit figures")
    deposit_args(p)
    p.add_argument("--rent", required=True)
    p.add_argument("--period-start", required=True, type=_date)
    p.add_argument("--period-end", required=True, type=_date)
    p.add_argument("--move-out", required=True, type=_date)
    p.add_argument("--electricity", default="0")
    p.add_argument("--water", default="0")
    p.add_argument("--extra-fees", default="0")
    p.add_argument("--outstanding", default="0")
    p.set_defaults(func=cmd_final_bill)

    p = sub.add_parser("allocate", help="Split a payment across bill components")
    p.add_argument("--amount", required=True)
    for name in ("penalty", "extra-fee", "electricity", "water", "rent"):
        p.add_argument(f"--{name}", default="0")
    p.set_defaults(func=cmd_allocate)

    p = sub.add_parser("pay", help="Record a payment against a bill")
    p.add_argument("--bill-id", required=True, type=UUID)
    p.add_argument("--amount", required=True)
    p.add_argument("--method", default="cash")
    p.add_argument("--payment-date", type=_datetime)
    p.add_argument("--reference")
    p.add_argument("--notes")
    p.set_defaults(func=cmd_pay)

    p = sub.add_parser("apply-penalties", help="Penalize overdue bills")
    p.add_argument("--as-of", type=_date)
    p.add_argument("--percentage", help="Override the configured penalty percentage")
    p.set_defaults(func=cmd_apply_penalties)

    p = sub.add_parser("generate-bill", help="Bill a tenant for their next cycle")
    p.add_argument("--tenant-id", required=True, type=UUID)
    p.add_argument("--previous-reading", required=True)
    p.add_argument("--present-reading", required=True)
    p.add_argument("--extra-fee", default="0")
    p.set_defaults(func=cmd_generate_bill)

    p = sub.add_parser("move-out", help="Preview or commit a tenant's final bill")
    p.add_argument("--tenant-id", required=True, type=UUID)
    p.add_argument("--move-out", required=True, type=_date)
    p.add_argument("--commit", action="store_true", help="Deactivate the tenant and save the final bill")
    p.add_argument("--electricity", default="0", help="Electricity charges for a preview")
    p.add_argument("--previous-reading")
    p.add_argument("--present-reading")
    p.add_argument("--water", help="Defaults to the configured water rate")
    p.add_argument("--extra-fees", default="0")
    p.add_argument("--room-transfer", action="store_true")
    p.set_defaults(func=cmd_move_out)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    try:
        out = args.func(args)
    except ValueError as e:
        _dump({"error": str(e), "type": type(e).__name__})
        return 1
    _dump(out)
    return 0

if __name__ == "__main__":
    sys.exit(main())
