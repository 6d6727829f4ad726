import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional

from . import store
from .config import DB_PATH
from .recurrence import is_due, tablets_needed

logger = logging.getLogger(__name__)

SLOTS = (
    ("morning_count", "Morning"),
    ("afternoon_count", "Afternoon"),
    ("evening_count", "Evening"),
)


@dataclass
class MedicineInstruction:
    medicine_id: int
    medicine_name: str
    medicine_strength: Optional[str]
    morning_count: int
    afternoon_count: int
    evening_count: int
    total_tablets: int
    timing: List[str]
    prescription_type: str
    prescription_id: int
    prescription_medicine_id: int

    def to_dict(self):
        return asdict(self)


@dataclass
class PrescriptionInstructions:
    patient_id: int
    instructions: List[MedicineInstruction] = field(default_factory=list)

    @property
    def has_instructions(self) -> bool:
        return len(self.instructions) > 0

    def to_dict(self):
        return {
            "patient_id": self.patient_id,
            "instructions": [i.to_dict() for i in self.instructions],
            "has_instructions": self.has_instructions,
        }


def build_instruction(row) -> MedicineInstruction:
    """Turn a joined prescription-medicine row into a reminder."""
    timing = [label for col, label in SLOTS if row[col] > 0]
    return MedicineInstruction(
        medicine_id=row["medicine_id"],
        medicine_name=row["medicine_name"],
        medicine_strength=row["medicine_strength"],
        morning_count=row["morning_count"],
        afternoon_count=row["afternoon_count"],
        evening_count=row["evening_count"],
        total_tablets=tablets_needed(row, row["prescription_type"]),
        timing=timing,
        prescription_type=row["prescription_type"],
        prescription_id=row["prescription_id"],
        prescription_medicine_id=row["id"],
    )


class PrescriptionService:
    """Works out which prescribed medicines a patient has to act on now.

    Each call opens its own connection and recomputes everything from the
    stored ``last_executed_date`` values; nothing is cached between calls.
    """

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = db_path

    def get_medicine_instructions(self, patient_id: int,
                                  today: Optional[date] = None) -> PrescriptionInstructions:
        today = today or date.today()
        try:
            with store.connect(self.db_path, create=False) as conn:
                rows = store.list_active_prescription_medicines(conn, patient_id, today)
        except sqlite3.Error:
            # reminders are advisory: report nothing rather than fail the caller
            logger.exception("Error getting medicine instructions for patient %s", patient_id)
            return PrescriptionInstructions(patient_id=patient_id)

        instructions = []
        for row in rows:
            try:
                due = is_due(row, row["prescription_type"], today)
            except ValueError:
                logger.warning("Prescription medicine %s has unreadable last_executed_date %r",
                               row["id"], row["last_executed_date"])
                continue
            if due:
                instructions.append(build_instruction(row))

        logger.debug("Patient %s: %d of %d medicines due on %s",
                     patient_id, len(instructions), len(rows), today)
        return PrescriptionInstructions(patient_id=patient_id, instructions=instructions)

    def mark_prescription_medicine_executed(self, prescription_medicine_id: int,
                                            today: Optional[date] = None) -> bool:
        """Reset the due clock of one row. False if the row does not exist.

        Storage errors are raised, not swallowed.
        """
        today = today or date.today()
        try:
            with store.connect(self.db_path, create=False) as conn:
                return store.set_last_executed(conn, prescription_medicine_id, today)
        except sqlite3.Error:
            logger.exception("Error marking prescription medicine %s executed",
                             prescription_medicine_id)
            raise


prescription_service = PrescriptionService()
