"""Seed sample financial_data rows for the dashboard (two years, three categories)."""

import os
import sys
from decimal import Decimal

import psycopg

DATABASE_URL = os.environ.get("DATABASE_URL", "")

MONTH_COLUMNS = [
    "januari", "februari", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS financial_data (
        id SERIAL PRIMARY KEY,
        year INTEGER NOT NULL,
        category VARCHAR(200),
        subcategory VARCHAR(200),
        jenis_bulan VARCHAR(50),
        januari NUMERIC(14, 2),
        februari NUMERIC(14, 2),
        march NUMERIC(14, 2),
        april NUMERIC(14, 2),
        may NUMERIC(14, 2),
        june NUMERIC(14, 2),
        july NUMERIC(14, 2),
        august NUMERIC(14, 2),
        september NUMERIC(14, 2),
        october NUMERIC(14, 2),
        november NUMERIC(14, 2),
        december NUMERIC(14, 2),
        total_amount NUMERIC(16, 2),
        currency VARCHAR(10) DEFAULT 'RM',
        data_source VARCHAR(200),
        created_at TIMESTAMPTZ DEFAULT NOW()
    )
"""

# (category, subcategory, monthly base amount in RM)
SAMPLE_SERIES = [
    ("Pembersihan", "Pembersihan Tandas Awam", "18500.00"),
    ("Pembersihan", "Pembersihan Pasar", "22400.00"),
    ("Pembersihan", "Pembersihan Pantai", "9800.00"),
    ("Pembayaran Perkhidmatan", "Sapuan Jalan Perumahan", "41200.00"),
    ("Pembayaran Perkhidmatan", "Sapuan Jalan Komersial", "36750.00"),
    ("Pembayaran Perkhidmatan", "Pembersihan Longkang Perumahan", "15300.00"),
    ("Pembayaran Perkhidmatan", "Pembersihan Longkang Komersial", "12900.00"),
    ("Pembayaran Perkhidmatan", "Pemotongan Rumput", "27600.00"),
    ("Summary PSPPA", "Kutipan Sisa Pepejal", "310000.00"),
    ("Summary PSPPA", "Pembersihan Awam", "185000.00"),
]

SAMPLE_YEARS = {2024: Decimal("1.00"), 2025: Decimal("1.06")}


def _monthly_amounts(base: Decimal, growth: Decimal) -> list[Decimal]:
    # Mild seasonality: heavier festive months (Jan-Apr, Dec).
    seasonal = [
        Decimal("1.10"), Decimal("1.15"), Decimal("1.05"), Decimal("1.08"),
        Decimal("0.95"), Decimal("0.92"), Decimal("0.94"), Decimal("0.97"),
        Decimal("0.96"), Decimal("0.98"), Decimal("1.00"), Decimal("1.12"),
    ]
    return [(base * growth * factor).quantize(Decimal("0.01")) for factor in seasonal]


def main():
    if not DATABASE_URL:
        print("ERROR: DATABASE_URL env var is not set")
        sys.exit(1)

    print("Connecting to database...")
    with psycopg.connect(DATABASE_URL) as conn:
        with conn.cursor() as cur:
            cur.execute(CREATE_TABLE_SQL)

            cur.execute("SELECT COUNT(*) FROM financial_data")
            existing = cur.fetchone()[0]
            if existing:
                print(f"  financial_data already has {existing} rows; skipping seed")
                return

            columns = ["year", "category", "subcategory", "jenis_bulan", *MONTH_COLUMNS,
                       "total_amount", "currency", "data_source"]
            insert_sql = (
                f"INSERT INTO financial_data ({', '.join(columns)}) "
                f"VALUES ({', '.join(['%s'] * len(columns))})"
            )

            created = 0
            for year, growth in SAMPLE_YEARS.items():
                for category, subcategory, base in SAMPLE_SERIES:
                    months = _monthly_amounts(Decimal(base), growth)
                    cur.execute(
                        insert_sql,
                        (year, category, subcategory, "Bulanan", *months,
                         sum(months, Decimal("0.00")), "RM", f"Laporan {category} {year}"),
                    )
                    created += 1
                    print(f"  [{created}] {year} {category} / {subcategory}")

    print(f"\nDone: {created} financial_data rows created")


if __name__ == "__main__":
    main()
