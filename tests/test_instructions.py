import sqlite3
from datetime import date, timedelta

import pytest

from med_reminders import store
from med_reminders.instructions import PrescriptionService, build_instruction

TODAY = date(2026, 3, 10)


def test_end_to_end_daily_reminder(conn, service, patient, paracetamol):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    pm = store.attach_medicine(conn, rx, paracetamol, morning_count=1, evening_count=1)

    result = service.get_medicine_instructions(patient, today=TODAY)
    assert result.has_instructions
    [instruction] = result.instructions
    assert instruction.medicine_name == "Paracetamol"
    assert instruction.medicine_strength == "500mg"
    assert instruction.total_tablets == 2
    assert instruction.timing == ["Morning", "Evening"]
    assert instruction.prescription_type == "daily_monitoring"
    assert instruction.prescription_id == rx
    assert instruction.prescription_medicine_id == pm

    assert service.mark_prescription_medicine_executed(pm, today=TODAY)

    same_day = service.get_medicine_instructions(patient, today=TODAY)
    assert not same_day.has_instructions
    assert same_day.instructions == []

    next_day = service.get_medicine_instructions(patient, today=TODAY + timedelta(days=1))
    assert [i.prescription_medicine_id for i in next_day.instructions] == [pm]


def test_reading_instructions_does_not_stamp_rows(conn, service, patient, paracetamol):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    pm = store.attach_medicine(conn, rx, paracetamol, morning_count=1)

    service.get_medicine_instructions(patient, today=TODAY)
    service.get_medicine_instructions(patient, today=TODAY)
    assert store.get_prescription_medicine(conn, pm)["last_executed_date"] is None


def test_expired_prescription_is_excluded(conn, service, patient, paracetamol, metformin):
    expired = store.add_prescription(conn, patient, "daily_monitoring",
                                     valid_till=TODAY - timedelta(days=1))
    store.attach_medicine(conn, expired, paracetamol, morning_count=1)
    last_day = store.add_prescription(conn, patient, "daily_monitoring", valid_till=TODAY)
    pm = store.attach_medicine(conn, last_day, metformin, evening_count=1)

    result = service.get_medicine_instructions(patient, today=TODAY)
    assert [i.prescription_medicine_id for i in result.instructions] == [pm]


def test_inactive_rows_are_invisible(conn, service, patient, paracetamol):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    pm = store.attach_medicine(conn, rx, paracetamol, morning_count=1)
    assert store.retire_prescription_medicine(conn, pm)

    assert not service.get_medicine_instructions(patient, today=TODAY).has_instructions


def test_unknown_patient_has_no_instructions(service):
    result = service.get_medicine_instructions(999, today=TODAY)
    assert result.to_dict() == {"patient_id": 999, "instructions": [], "has_instructions": False}


def test_mark_executed_leaves_siblings_alone(conn, service, patient, paracetamol, metformin):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    first = store.attach_medicine(conn, rx, paracetamol, morning_count=1)
    second = store.attach_medicine(conn, rx, metformin, morning_count=1)

    assert service.mark_prescription_medicine_executed(first, today=TODAY)

    assert store.get_prescription_medicine(conn, first)["last_executed_date"] == TODAY.isoformat()
    assert store.get_prescription_medicine(conn, second)["last_executed_date"] is None
    due = service.get_medicine_instructions(patient, today=TODAY)
    assert [i.prescription_medicine_id for i in due.instructions] == [second]


def test_mark_executed_twice_same_day_is_idempotent(conn, service, patient, paracetamol):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    pm = store.attach_medicine(conn, rx, paracetamol, morning_count=1, recurrence_interval=2)

    assert service.mark_prescription_medicine_executed(pm, today=TODAY)
    after_once = store.get_prescription_medicine(conn, pm)["last_executed_date"]
    assert service.mark_prescription_medicine_executed(pm, today=TODAY)
    assert store.get_prescription_medicine(conn, pm)["last_executed_date"] == after_once

    for offset in range(4):
        day = TODAY + timedelta(days=offset)
        due = service.get_medicine_instructions(patient, today=day).has_instructions
        assert due == (offset >= 2)


def test_mark_executed_never_moves_clock_backwards(conn, service, patient, paracetamol):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    pm = store.attach_medicine(conn, rx, paracetamol, morning_count=1, last_executed_date=TODAY)

    assert service.mark_prescription_medicine_executed(pm, today=TODAY - timedelta(days=3))
    assert store.get_prescription_medicine(conn, pm)["last_executed_date"] == TODAY.isoformat()


def test_mark_executed_unknown_row_is_false(service):
    assert service.mark_prescription_medicine_executed(12345, today=TODAY) is False


def test_weekly_refill_quantities_and_cycle(conn, service, patient, paracetamol, metformin):
    rx = store.add_prescription(conn, patient, "weekly_refill")
    every_day = store.attach_medicine(conn, rx, paracetamol, morning_count=1, afternoon_count=1,
                                      evening_count=1, last_executed_date=TODAY - timedelta(days=7))
    every_third = store.attach_medicine(conn, rx, metformin, morning_count=1, evening_count=1,
                                        recurrence_type="interval", recurrence_interval=3,
                                        last_executed_date=TODAY - timedelta(days=6))

    due = service.get_medicine_instructions(patient, today=TODAY)
    assert [(i.prescription_medicine_id, i.total_tablets) for i in due.instructions] == [(every_day, 21)]

    later = service.get_medicine_instructions(patient, today=TODAY + timedelta(days=1))
    totals = {i.prescription_medicine_id: i.total_tablets for i in later.instructions}
    assert totals == {every_day: 21, every_third: 6}


def test_instructions_are_grouped_by_type_then_name(conn, service, patient, paracetamol, metformin):
    aspirin = store.add_medicine(conn, "Aspirin")
    refill = store.add_prescription(conn, patient, "weekly_refill")
    store.attach_medicine(conn, refill, aspirin, morning_count=1)
    daily = store.add_prescription(conn, patient, "daily_monitoring")
    store.attach_medicine(conn, daily, paracetamol, morning_count=1)
    store.attach_medicine(conn, daily, metformin, morning_count=1)

    result = service.get_medicine_instructions(patient, today=TODAY)
    assert [(i.prescription_type, i.medicine_name) for i in result.instructions] == [
        ("daily_monitoring", "Metformin"),
        ("daily_monitoring", "Paracetamol"),
        ("weekly_refill", "Aspirin"),
    ]
    assert result.instructions[-1].medicine_strength is None


def test_malformed_interval_row_is_skipped(conn, service, patient, paracetamol, metformin):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    store.attach_medicine(conn, rx, paracetamol, morning_count=1, recurrence_interval=0,
                          last_executed_date=TODAY - timedelta(days=30))
    ok = store.attach_medicine(conn, rx, metformin, morning_count=1)

    result = service.get_medicine_instructions(patient, today=TODAY)
    assert [i.prescription_medicine_id for i in result.instructions] == [ok]


def test_storage_unavailable_on_read_degrades_to_empty(tmp_path, caplog):
    service = PrescriptionService(tmp_path / "missing" / "nowhere.sqlite")
    result = service.get_medicine_instructions(1, today=TODAY)
    assert result.instructions == []
    assert result.has_instructions is False
    assert "Error getting medicine instructions" in caplog.text


def test_bad_stored_date_skips_only_that_row(conn, service, patient, paracetamol, metformin, caplog):
    rx = store.add_prescription(conn, patient, "daily_monitoring")
    bad = store.attach_medicine(conn, rx, paracetamol, morning_count=1, last_executed_date="03/01/2026")
    good = store.attach_medicine(conn, rx, metformin, morning_count=1)

    result = service.get_medicine_instructions(patient, today=TODAY)
    assert [i.prescription_medicine_id for i in result.instructions] == [good]
    assert "unreadable last_executed_date" in caplog.text

    # marking the bad row repairs its clock
    assert service.mark_prescription_medicine_executed(bad, today=TODAY)
    assert store.get_prescription_medicine(conn, bad)["last_executed_date"] == TODAY.isoformat()
    tomorrow = service.get_medicine_instructions(patient, today=TODAY + timedelta(days=1))
    assert [i.prescription_medicine_id for i in tomorrow.instructions] == [good, bad]


def test_missing_database_file_is_not_created(tmp_path):
    path = tmp_path / "absent.sqlite"
    service = PrescriptionService(path)

    assert not service.get_medicine_instructions(1, today=TODAY).has_instructions
    with pytest.raises(sqlite3.OperationalError):
        service.mark_prescription_medicine_executed(1, today=TODAY)
    assert not path.exists()


def test_storage_error_on_write_is_raised(tmp_path):
    service = PrescriptionService(tmp_path / "empty.sqlite")
    with pytest.raises(sqlite3.OperationalError):
        service.mark_prescription_medicine_executed(1, today=TODAY)


def test_build_instruction_timing_order():
    row = {
        "id": 7, "prescription_id": 3, "medicine_id": 2,
        "medicine_name": "Atenolol", "medicine_strength": "25mg",
        "morning_count": 0, "afternoon_count": 2, "evening_count": 1,
        "recurrence_type": "weekly", "recurrence_interval": 1,
        "prescription_type": "weekly_refill",
    }
    instruction = build_instruction(row)
    assert instruction.timing == ["Afternoon", "Evening"]
    assert instruction.total_tablets == 3
    assert instruction.to_dict()["prescription_medicine_id"] == 7
