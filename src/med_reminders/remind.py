import argparse
import logging
import sqlite3
from datetime import date
from pathlib import Path

import pandas as pd

from .config import DB_PATH
from .instructions import PrescriptionService

COLUMNS = ["prescription_medicine_id", "prescription_type", "medicine_name",
           "medicine_strength", "timing", "total_tablets"]


def instructions_frame(result):
    rows = [i.to_dict() for i in result.instructions]
    df = pd.DataFrame(rows, columns=COLUMNS)
    df["timing"] = df["timing"].apply(", ".join)
    return df


def show(service, patient_id, run_date, verbose=False):
    result = service.get_medicine_instructions(patient_id, today=run_date)
    if not result.has_instructions:
        print(f"[INFO] Nothing due right now for patient {patient_id}.")
        return 0

    print(f"Medicines due for patient {patient_id} on {run_date}:")
    print(instructions_frame(result).to_string(index=False))
    if verbose:
        for i in result.instructions:
            print(f"[DEBUG] {i.to_dict()}")
    return 0


def done(service, prescription_medicine_id, run_date):
    try:
        ok = service.mark_prescription_medicine_executed(prescription_medicine_id, today=run_date)
    except sqlite3.Error as e:
        print(f"[ERROR] Could not mark {prescription_medicine_id} executed: {e}")
        return 1
    if not ok:
        print(f"[SKIP] No prescription medicine {prescription_medicine_id}.")
        return 1
    print(f"[OK] Prescription medicine {prescription_medicine_id} marked executed on {run_date}.")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Medicine reminders for a patient")
    parser.add_argument("--db", type=Path, default=DB_PATH, help="SQLite database to use")
    parser.add_argument("--verbose", action="store_true", help="Print debug info")
    sub = parser.add_subparsers(dest="command", required=True)

    p_show = sub.add_parser("show", help="List medicines due now")
    p_show.add_argument("patient_id", type=int)
    p_show.add_argument("--date", type=date.fromisoformat, help="As of YYYY-MM-DD (default: today)")

    p_done = sub.add_parser("done", help="Mark a prescription medicine as taken/refilled")
    p_done.add_argument("prescription_medicine_id", type=int)
    p_done.add_argument("--date", type=date.fromisoformat, help="Mark for YYYY-MM-DD (default: today)")

    args = parser.parse_args(argv)
    run_date = args.date or date.today()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        print(f"[DEBUG] DB: {args.db}")
        print(f"[DEBUG] Run date: {run_date}")

    service = PrescriptionService(args.db)
    if args.command == "show":
        return show(service, args.patient_id, run_date, verbose=args.verbose)
    return done(service, args.prescription_medicine_id, run_date)


if __name__ == "__main__":
    raise SystemExit(main())
