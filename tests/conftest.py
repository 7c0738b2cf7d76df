import os

# Must be set before rentbook.db builds its module engine.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BILLING_TIMEZONE"] = "Asia/Manila"

from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from rentbook import db

SCHEMA = (Path(__file__).resolve().parent.parent / "schema.sql").read_text()


@pytest.fixture
def sqlite_engine(monkeypatch):
    """In-memory database swapped in for the module engine."""
    eng = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    with eng.begin() as conn:
        for stmt in SCHEMA.split(";"):
            conn.exec_driver_sql(stmt)
    monkeypatch.setattr(db, "engine", eng)
    yield eng
    eng.dispose()


def insert_bill(conn, tenant_id, **overrides):
    row = {
        "id": str(uuid4()),
        "tenant_id": str(tenant_id),
        "billing_period_start": "2025-01-01",
        "billing_period_end": "2025-01-31",
        "due_date": "2025-02-10",
        "monthly_rent_amount": 3000,
        "electricity_amount": 200,
        "water_amount": 100,
        "extra_fee": 50,
        "penalty_amount": 0,
        "total_amount_due": 3350,
        "amount_paid": 0,
        "status": "active",
        "is_final_bill": 0,
    }
    row.update(overrides)
    conn.execute(text(f"""
        INSERT INTO bills ({", ".join(row)})
        VALUES ({", ".join(":" + k for k in row)})
    """), row)
    return row["id"]


@pytest.fixture
def seeded(sqlite_engine):
    """One room, one tenant starting 2025-01-01, one unpaid January bill."""
    room_id, tenant_id = str(uuid4()), str(uuid4())
    with sqlite_engine.begin() as conn:
        conn.execute(text("INSERT INTO rooms VALUES (:id, '101', 3000)"), {"id": room_id})
        conn.execute(text("""
            INSERT INTO tenants (id, full_name, room_id, rent_start_date,
                                 advance_payment, security_deposit)
            VALUES (:id, 'Juan Dela Cruz', :room, '2025-01-01', 3000, 3000)
        """), {"id": tenant_id, "room": room_id})
        conn.execute(text("""
            INSERT INTO system_settings (key, value) VALUES
            ('penalty_percentage', '5'),
            ('default_electricity_rate', '12'),
            ('default_water_rate', '200')
        """))
        bill_id = insert_bill(conn, tenant_id)
    return {"engine": sqlite_engine, "tenant_id": tenant_id, "bill_id": bill_id}
