"""sqlite3 record store for patients, medicines and prescriptions.

The instruction engine only needs two calls from here:
``list_active_prescription_medicines`` (read) and ``set_last_executed``
(write). The inserts exist so the store can be populated by the ingest
script and by tests.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


class DuplicateMedicineError(ValueError):
    """Medicine is already active on the prescription."""


@contextmanager
def connect(db_path: Path, create: bool = True):
    """Open ``db_path``. With ``create=False`` a missing file is an error, not a new empty db."""
    if create:
        conn = sqlite3.connect(db_path)
    else:
        conn = sqlite3.connect(Path(db_path).resolve().as_uri() + "?mode=rw", uri=True)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
    finally:
        conn.close()


def list_active_prescription_medicines(conn, patient_id: int, today: date):
    """Active rows on non-expired prescriptions, with medicine display fields."""
    return conn.execute("""
        SELECT
          pm.*,
          m.name AS medicine_name,
          m.strength AS medicine_strength,
          p.prescription_type
        FROM prescription_medicines pm
        JOIN medicines m ON pm.medicine_id = m.id
        JOIN prescriptions p ON pm.prescription_id = p.id
        WHERE p.patient_id = ?
          AND pm.is_active = 1
          AND (p.valid_till IS NULL OR date(p.valid_till) >= date(?))
        ORDER BY p.prescription_type, m.name, pm.id
    """, (patient_id, today.isoformat())).fetchall()


def set_last_executed(conn, prescription_medicine_id: int, today: date) -> bool:
    """Stamp ``today`` on one row. Returns False when no row has that id.

    A later date already on the row is kept; an unreadable one is replaced.
    """
    run_date = today.isoformat()
    with conn:
        cur = conn.execute("""
            UPDATE prescription_medicines
            SET last_executed_date = CASE
                  WHEN date(last_executed_date) IS NULL OR date(last_executed_date) < date(?)
                  THEN ? ELSE last_executed_date END,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        """, (run_date, run_date, prescription_medicine_id))
    return cur.rowcount > 0


def get_prescription_medicine(conn, prescription_medicine_id: int):
    return conn.execute(
        "SELECT * FROM prescription_medicines WHERE id = ?", (prescription_medicine_id,)
    ).fetchone()


def add_patient(conn, name, phone_number, medical_id_number) -> int:
    with conn:
        cur = conn.execute(
            "INSERT INTO patients (name, phone_number, medical_id_number) VALUES (?, ?, ?)",
            (name, phone_number, medical_id_number),
        )
    return cur.lastrowid


def add_medicine(conn, name, strength=None, generic_name=None, brand_name=None,
                 tablets_per_sheet=10, additional_details=None) -> int:
    with conn:
        cur = conn.execute("""
            INSERT INTO medicines (name, generic_name, brand_name, strength,
                                   tablets_per_sheet, additional_details)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (name, generic_name, brand_name, strength, tablets_per_sheet, additional_details))
    return cur.lastrowid


def add_prescription(conn, patient_id, prescription_type, valid_till=None) -> int:
    if isinstance(valid_till, date):
        valid_till = valid_till.isoformat()
    with conn:
        cur = conn.execute(
            "INSERT INTO prescriptions (patient_id, prescription_type, valid_till) VALUES (?, ?, ?)",
            (patient_id, str(prescription_type), valid_till),
        )
    return cur.lastrowid


def attach_medicine(conn, prescription_id, medicine_id, morning_count=0, afternoon_count=0,
                    evening_count=0, recurrence_type="daily", recurrence_interval=1,
                    recurrence_day_of_week=None, last_executed_date=None) -> int:
    """Add a medicine to a prescription and return the new row id."""
    existing = conn.execute("""
        SELECT id FROM prescription_medicines
        WHERE prescription_id = ? AND medicine_id = ? AND is_active = 1
    """, (prescription_id, medicine_id)).fetchone()
    if existing is not None:
        raise DuplicateMedicineError(
            f"Medicine {medicine_id} is already on prescription {prescription_id}"
        )

    if isinstance(last_executed_date, date):
        last_executed_date = last_executed_date.isoformat()
    with conn:
        cur = conn.execute("""
            INSERT INTO prescription_medicines (
              prescription_id, medicine_id, morning_count, afternoon_count, evening_count,
              recurrence_type, recurrence_interval, recurrence_day_of_week, last_executed_date
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (prescription_id, medicine_id, morning_count, afternoon_count, evening_count,
              str(recurrence_type), recurrence_interval, recurrence_day_of_week,
              last_executed_date))
    logger.debug("Attached medicine %s to prescription %s as row %s",
                 medicine_id, prescription_id, cur.lastrowid)
    return cur.lastrowid


def retire_prescription_medicine(conn, prescription_medicine_id: int) -> bool:
    with conn:
        cur = conn.execute("""
            UPDATE prescription_medicines
            SET is_active = 0, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND is_active = 1
        """, (prescription_medicine_id,))
    return cur.rowcount > 0
