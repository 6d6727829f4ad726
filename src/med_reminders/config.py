import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DB_PATH = Path(os.getenv("MED_REMINDERS_DB", "").strip() or PROJECT_ROOT / "db" / "prescriptions.sqlite")
EXCEL_PATH = Path(os.getenv("MED_REMINDERS_EXCEL", "").strip() or PROJECT_ROOT / "data" / "prescriptions.xlsx")
