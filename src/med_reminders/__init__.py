from .instructions import (
    MedicineInstruction,
    PrescriptionInstructions,
    PrescriptionService,
    prescription_service,
)
from .recurrence import PrescriptionType, RecurrenceType, is_due, weekly_multiplier

__all__ = [
    "MedicineInstruction",
    "PrescriptionInstructions",
    "PrescriptionService",
    "PrescriptionType",
    "RecurrenceType",
    "is_due",
    "prescription_service",
    "weekly_multiplier",
]
