import pytest

from med_reminders import store
from med_reminders.create_schema import ensure_schema
from med_reminders.instructions import PrescriptionService


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "db" / "prescriptions.sqlite"
    ensure_schema(path)
    return path


@pytest.fixture
def conn(db_path):
    with store.connect(db_path) as c:
        yield c


@pytest.fixture
def service(db_path):
    return PrescriptionService(db_path)


@pytest.fixture
def patient(conn):
    return store.add_patient(conn, "Asha Rao", "5550100", "MID-001")


@pytest.fixture
def paracetamol(conn):
    return store.add_medicine(conn, "Paracetamol", strength="500mg")


@pytest.fixture
def metformin(conn):
    return store.add_medicine(conn, "Metformin", strength="850mg")
