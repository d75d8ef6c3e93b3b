import pytest
from fastapi.testclient import TestClient

from main import create_app
from memory_store import MemoryStore


@pytest.fixture
def store():
    return MemoryStore("carehub_test")


@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as test_client:
        yield test_client


@pytest.fixture
def patient_payload():
    return {
        "patientId": "PAT1",
        "name": "John Doe",
        "age": 35,
        "gender": "Male",
        "address": "123 Main St",
        "phone": "555-1234",
    }


@pytest.fixture
def doctor_payload():
    return {
        "doctorId": "DOC1",
        "name": "Dr. Jane Smith",
        "specialization": "Cardiology",
        "availability": "Mon-Fri 9-5",
    }


@pytest.fixture
def appointment_payload():
    return {
        "appointmentId": "APP1",
        "patientId": "PAT1",
        "doctorId": "DOC1",
        "date": "2024-03-01",
        "time": "10:30",
        "description": "Annual checkup",
    }


@pytest.fixture
def bill_payload():
    return {
        "billId": "BILL1",
        "patientId": "PAT1",
        "amount": 150.0,
        "description": "Consultation",
    }
