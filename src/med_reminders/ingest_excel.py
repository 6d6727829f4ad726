import argparse
import sqlite3
from pathlib import Path

import pandas as pd

from .config import DB_PATH, EXCEL_PATH
from .create_schema import ensure_schema

SLOT_COLS = ["morning_count", "afternoon_count", "evening_count"]

PATIENT_COLS = ["id", "name", "phone_number", "medical_id_number"]
MEDICINE_COLS = ["id", "name", "generic_name", "brand_name", "strength",
                 "tablets_per_sheet", "additional_details"]
PRESCRIPTION_COLS = ["id", "patient_id", "prescription_type", "valid_till"]
PM_COLS = ["id", "prescription_id", "medicine_id", *SLOT_COLS, "recurrence_type",
           "recurrence_interval", "recurrence_day_of_week", "last_executed_date", "is_active"]


def upsert_table(df, table, conn, pk_cols):
    """Delete-by-PK then fresh insert (simple, deterministic upsert)."""
    placeholders = ",".join("?" for _ in df.columns)
    cols_csv = ",".join(df.columns)
    with conn:
        if len(df):
            where = " OR ".join("(" + " AND ".join(f"{c}=?" for c in pk_cols) + ")" for _ in range(len(df)))
            vals = []
            for _, row in df[pk_cols].iterrows():
                vals.extend(row.tolist())
            conn.execute(f"DELETE FROM {table} WHERE {where}", vals)
        conn.executemany(f"INSERT INTO {table} ({cols_csv}) VALUES ({placeholders})",
                         df.itertuples(index=False, name=None))


def _with_columns(df, cols):
    for c in cols:
        if c not in df.columns:
            df[c] = None
    # sqlite3 cannot bind NaN / numpy scalars cleanly
    return df[cols].astype(object).where(df[cols].notna(), None)


def _iso_dates(series):
    return pd.to_datetime(series, errors="coerce").dt.strftime("%Y-%m-%d")


def clean_prescription_medicines(pm):
    for c in SLOT_COLS:
        if c in pm.columns:
            pm[c] = pd.to_numeric(pm[c], errors="coerce").fillna(0).astype(int).clip(lower=0)
        else:
            pm[c] = 0

    if "recurrence_type" in pm.columns:
        pm["recurrence_type"] = pm["recurrence_type"].fillna("daily").astype(str).str.strip().str.lower()
    else:
        pm["recurrence_type"] = "daily"

    if "recurrence_interval" in pm.columns:
        pm["recurrence_interval"] = (
            pd.to_numeric(pm["recurrence_interval"], errors="coerce").fillna(1).astype(int)
        )
    else:
        pm["recurrence_interval"] = 1

    if "is_active" in pm.columns:
        pm["is_active"] = pd.to_numeric(pm["is_active"], errors="coerce").fillna(1).astype(int)
    else:
        pm["is_active"] = 1

    if "last_executed_date" in pm.columns:
        pm["last_executed_date"] = _iso_dates(pm["last_executed_date"])

    # schema rejects rows with no dose in any slot
    empty = pm[SLOT_COLS].sum(axis=1) == 0
    for _, row in pm[empty].iterrows():
        print(f"[SKIP] prescription medicine {row.get('id')}: no tablets in any slot")
    return pm[~empty].copy()


def ingest(excel_path: Path, db_path: Path):
    x = pd.ExcelFile(excel_path)

    patients = pd.read_excel(x, "PatientsTb")
    medicines = pd.read_excel(x, "MedicinesTb")
    prescriptions = pd.read_excel(x, "PrescriptionsTb")
    pm = pd.read_excel(x, "PrescriptionMedicinesTb")

    # Drop trailing empty Excel columns
    for df in (patients, medicines, prescriptions, pm):
        df.drop(columns=[c for c in df.columns if str(c).startswith("Unnamed")],
                inplace=True, errors="ignore")

    patients["phone_number"] = patients["phone_number"].astype(str).str.strip()
    patients["medical_id_number"] = patients["medical_id_number"].astype(str).str.strip()

    if "tablets_per_sheet" in medicines.columns:
        medicines["tablets_per_sheet"] = (
            pd.to_numeric(medicines["tablets_per_sheet"], errors="coerce").fillna(10).astype(int)
        )
    else:
        medicines["tablets_per_sheet"] = 10

    prescriptions["prescription_type"] = prescriptions["prescription_type"].astype(str).str.strip()
    if "valid_till" in prescriptions.columns:
        prescriptions["valid_till"] = _iso_dates(prescriptions["valid_till"])

    pm = clean_prescription_medicines(pm)

    ensure_schema(db_path)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys=ON;")

    upsert_table(_with_columns(patients, PATIENT_COLS), "patients", conn, ["id"])
    upsert_table(_with_columns(medicines, MEDICINE_COLS), "medicines", conn, ["id"])
    upsert_table(_with_columns(prescriptions, PRESCRIPTION_COLS), "prescriptions", conn, ["id"])
    upsert_table(_with_columns(pm, PM_COLS), "prescription_medicines", conn, ["id"])

    counts = {}
    for t in ("patients", "medicines", "prescriptions", "prescription_medicines"):
        counts[t] = conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
        print(f"{t}: {counts[t]}")

    conn.close()
    return counts


def main(argv=None):
    parser = argparse.ArgumentParser(description="Load prescriptions from an Excel workbook")
    parser.add_argument("--excel", type=Path, default=EXCEL_PATH, help="Workbook to read")
    parser.add_argument("--db", type=Path, default=DB_PATH, help="SQLite database to write")
    args = parser.parse_args(argv)
    ingest(args.excel, args.db)


if __name__ == "__main__":
    main()
