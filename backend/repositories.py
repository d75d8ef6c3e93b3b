import hmac
import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import ValidationError

from errors import RepositoryError
from schemas import Appointment, Bill, Doctor, Patient, User, UserRole

logger = logging.getLogger(__name__)

T = TypeVar("T", Patient, Doctor, Appointment, Bill, User)


class Repository(Generic[T]):
    """Entity persistence keyed by business id.

    Expected outcomes come back as ``None``/``False``; only store failures
    raise (``RepositoryError``). Every guarded write is a single conditional
    call on the collection, so no check-then-write window exists here.
    """

    collection_name: str
    key: str
    model: Type[T]

    def __init__(self, store):
        self.collection = store.collection(self.collection_name)

    def _load(self, doc: Dict[str, Any]) -> T:
        try:
            return self.model.model_validate(doc)
        except ValidationError as e:
            raise RepositoryError(f"Malformed document in {self.collection_name}: {e.error_count()} invalid field(s)") from e

    def key_of(self, entity: T) -> str:
        return entity.to_document()[self.key]

    def list(self, **filters) -> List[T]:
        return [self._load(d) for d in self.collection.find(filters)]

    def get(self, key: str) -> Optional[T]:
        doc = self.collection.find_one({self.key: key})
        return self._load(doc) if doc is not None else None

    def exists(self, key: str) -> bool:
        return self.collection.find_one({self.key: key}) is not None

    def create(self, entity: T) -> bool:
        key = self.key_of(entity)
        if not self.collection.insert_one(entity.to_document(), self.key):
            logger.warning(f"{self.model.__name__} with ID {key} already exists")
            return False
        logger.info(f"{self.model.__name__} {key} inserted successfully")
        return True

    def update(self, entity: T) -> bool:
        doc = entity.to_document()
        key = doc.pop(self.key)
        if not self.collection.update_one({self.key: key}, doc):
            logger.warning(f"Cannot update: {self.model.__name__} with ID {key} does not exist")
            return False
        logger.info(f"{self.model.__name__} {key} updated successfully")
        return True

    def delete(self, key: str) -> bool:
        if not self.collection.delete_one({self.key: key}):
            logger.warning(f"Cannot delete: {self.model.__name__} with ID {key} does not exist")
            return False
        logger.info(f"{self.model.__name__} {key} deleted successfully")
        return True

    def delete_all(self) -> int:
        count = self.collection.delete_many()
        logger.info(f"Deleted {count} documents from {self.collection_name}")
        return count

    def _transition(self, key: str, flag: str) -> bool:
        # matches only while the flag is still unset
        return self.collection.update_one({self.key: key, flag: False}, {flag: True})


class PatientRepository(Repository[Patient]):
    collection_name = "patients"
    key = "patientId"
    model = Patient


class DoctorRepository(Repository[Doctor]):
    collection_name = "doctors"
    key = "doctorId"
    model = Doctor


class AppointmentRepository(Repository[Appointment]):
    collection_name = "appointments"
    key = "appointmentId"
    model = Appointment

    def mark_completed(self, appointment_id: str) -> bool:
        done = self._transition(appointment_id, "completed")
        if done:
            logger.info(f"Appointment {appointment_id} marked as completed")
        return done


class BillRepository(Repository[Bill]):
    collection_name = "bills"
    key = "billId"
    model = Bill

    def mark_paid(self, bill_id: str) -> bool:
        done = self._transition(bill_id, "paid")
        if done:
            logger.info(f"Bill {bill_id} marked as paid")
        return done


DEFAULT_USERS = [
    ("admin", "admin123", UserRole.ADMIN),
    ("doctor1", "doc123", UserRole.DOCTOR),
    ("reception1", "recep123", UserRole.RECEPTIONIST),
]


class UserRepository(Repository[User]):
    collection_name = "users"
    key = "username"
    model = User

    def authenticate(self, username: str, password: str) -> Optional[User]:
        user = self.get(username)
        if user is None:
            return None
        if not hmac.compare_digest(user.password.encode("utf-8"), password.encode("utf-8")):
            return None
        return user

    def seed_defaults(self) -> int:
        if self.collection.find():
            return 0
        created = sum(
            self.create(User(username=u, password=p, role=r)) for u, p, r in DEFAULT_USERS
        )
        logger.info(f"Default users initialized: {created}")
        return created


class Repositories:
    """The per-entity repositories built over one store handle."""

    def __init__(self, store):
        self.store = store
        self.patients = PatientRepository(store)
        self.doctors = DoctorRepository(store)
        self.appointments = AppointmentRepository(store)
        self.bills = BillRepository(store)
        self.users = UserRepository(store)

    def seed_sample_data(self) -> Dict[str, int]:
        """Insert the demo clinic; records whose id already exists are left alone."""
        created = {"users": self.users.seed_defaults()}
        for name, entities in (
            ("doctors", SAMPLE_DOCTORS),
            ("patients", SAMPLE_PATIENTS),
            ("appointments", SAMPLE_APPOINTMENTS),
            ("bills", SAMPLE_BILLS),
        ):
            repository = getattr(self, name)
            created[name] = sum(repository.create(entity) for entity in entities)
        logger.info(f"Sample data initialized: {created}")
        return created


SAMPLE_DOCTORS = [
    Doctor(doctor_id="DOC1", name="Dr. Smith", specialization="Cardiology", availability="9AM-5PM"),
    Doctor(doctor_id="DOC2", name="Dr. Johnson", specialization="Neurology", availability="10AM-6PM"),
    Doctor(doctor_id="DOC3", name="Dr. Williams", specialization="Pediatrics", availability="8AM-4PM"),
]

SAMPLE_PATIENTS = [
    Patient(patient_id="PAT1", name="John Doe", age=35, gender="Male", address="123 Main St", phone="555-1234"),
    Patient(patient_id="PAT2", name="Jane Smith", age=28, gender="Female", address="456 Oak Ave", phone="555-5678",
            allergies=["Peanuts"]),
    Patient(patient_id="PAT3", name="Robert Johnson", age=45, gender="Male", address="789 Pine Rd", phone="555-9012"),
]

SAMPLE_APPOINTMENTS = [
    Appointment(appointment_id="APP1", patient_id="PAT1", doctor_id="DOC1", date="2024-01-15", time="10:00",
                description="Regular checkup", patient_name="John Doe", doctor_name="Dr. Smith"),
    Appointment(appointment_id="APP2", patient_id="PAT2", doctor_id="DOC2", date="2024-01-15", time="11:30",
                description="Headache consultation", patient_name="Jane Smith", doctor_name="Dr. Johnson"),
]

SAMPLE_BILLS = [
    Bill(bill_id="BILL1", patient_id="PAT1", amount=150.0, description="Consultation fee"),
    Bill(bill_id="BILL2", patient_id="PAT2", amount=200.0, description="Lab tests"),
]
