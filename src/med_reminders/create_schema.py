import sqlite3
from pathlib import Path

from .config import DB_PATH

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS patients (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  phone_number TEXT NOT NULL,
  medical_id_number TEXT NOT NULL UNIQUE,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS medicines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,                     -- display name
  generic_name TEXT,
  brand_name TEXT,
  strength TEXT,                          -- e.g. '500mg'
  tablets_per_sheet INTEGER NOT NULL DEFAULT 10,
  additional_details TEXT,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS prescriptions (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  patient_id INTEGER NOT NULL,
  prescription_type TEXT NOT NULL
    CHECK (prescription_type IN ('daily_monitoring', 'weekly_refill')),
  valid_till TEXT,                        -- YYYY-MM-DD, NULL = open ended
  created_at TEXT DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
  FOREIGN KEY (patient_id) REFERENCES patients(id) ON DELETE CASCADE
);

-- one row per medicine on a prescription, each with its own clock
CREATE TABLE IF NOT EXISTS prescription_medicines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  prescription_id INTEGER NOT NULL,
  medicine_id INTEGER NOT NULL,
  morning_count INTEGER NOT NULL DEFAULT 0 CHECK (morning_count >= 0),
  afternoon_count INTEGER NOT NULL DEFAULT 0 CHECK (afternoon_count >= 0),
  evening_count INTEGER NOT NULL DEFAULT 0 CHECK (evening_count >= 0),
  recurrence_type TEXT NOT NULL DEFAULT 'daily'
    CHECK (recurrence_type IN ('daily', 'weekly', 'interval')),
  recurrence_interval INTEGER NOT NULL DEFAULT 1,   -- days, or weeks for 'weekly'
  recurrence_day_of_week INTEGER
    CHECK (recurrence_day_of_week IS NULL OR recurrence_day_of_week BETWEEN 0 AND 6),
  last_executed_date TEXT,                -- YYYY-MM-DD, NULL = never actioned
  is_active INTEGER NOT NULL DEFAULT 1,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP,
  updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
  CHECK (morning_count + afternoon_count + evening_count > 0),
  FOREIGN KEY (prescription_id) REFERENCES prescriptions(id) ON DELETE CASCADE,
  FOREIGN KEY (medicine_id) REFERENCES medicines(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_prescriptions_patient ON prescriptions (patient_id);
CREATE INDEX IF NOT EXISTS idx_pm_prescription ON prescription_medicines (prescription_id, is_active);
"""


def ensure_schema(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)


def main():
    ensure_schema(DB_PATH)
    print(f"Schema ensured at {DB_PATH.resolve()}")


if __name__ == "__main__":
    main()
