"""Per-resource CRUD dispatch.

Each dispatcher turns a routed request into repository calls, applies the
existence and state guards, and returns a ``Result``. Failures are raised as
``ApiError`` subclasses; store failures are rewrapped as ``Internal`` with the
operation that hit them.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ValidationError

from codec import Result, decode_body
from errors import BadRequest, Conflict, Internal, NotFound, RepositoryError, Unauthorized
from repositories import (
    AppointmentRepository,
    BillRepository,
    DoctorRepository,
    PatientRepository,
    Repository,
    UserRepository,
)
from routing import RouteMatch
from schemas import Appointment, Bill, Credentials, Patient, User

logger = logging.getLogger(__name__)


@dataclass
class ApiRequest:
    match: RouteMatch
    body: bytes = b""
    query: Mapping[str, str] = field(default_factory=dict)

    @property
    def identifier(self) -> Optional[str]:
        return self.match.identifier

    def json(self) -> Dict[str, Any]:
        return decode_body(self.body)


@contextmanager
def store_errors(action: str):
    try:
        yield
    except RepositoryError as e:
        logger.error(f"Error {action}: {e}")
        raise Internal(f"Error {action}: {e}") from e


def validate(model, data: Dict[str, Any]):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        raise BadRequest(f"Invalid request: {problems}") from e


class ResourceDispatcher:
    kind = ""
    plural = ""
    # query parameters accepted as equality filters on list
    filters: Tuple[str, ...] = ()

    def __init__(self, repository: Repository):
        self.repository = repository
        self.operations: Dict[str, Callable[[ApiRequest], Result]] = {
            "list": self.list,
            "get": self.get,
            "create": self.create,
            "update": self.update,
            "delete": self.delete,
        }

    @property
    def noun(self) -> str:
        return self.kind.lower()

    def handle(self, request: ApiRequest) -> Result:
        operation = self.operations.get(request.match.operation)
        if operation is None:
            raise NotFound("Endpoint not found")
        return operation(request)

    def present(self, entity: BaseModel) -> Dict[str, Any]:
        return entity.to_document()

    def build(self, data: Dict[str, Any], identifier: Optional[str] = None):
        data = dict(data)
        if identifier is not None:
            # the path id wins over anything in the body
            data.pop(self.repository.key, None)
            data[self.repository.key] = identifier
        return validate(self.repository.model, data)

    def prepare_create(self, entity):
        return entity

    def carry_over(self, existing, entity):
        return entity

    def not_found(self, identifier: str) -> NotFound:
        return NotFound(f"{self.kind} with ID {identifier} not found")

    def list(self, request: ApiRequest) -> Result:
        filters = {f: request.query[f] for f in self.filters if request.query.get(f)}
        with store_errors(f"fetching {self.plural}"):
            entities = self.repository.list(**filters)
        return Result(200, [self.present(e) for e in entities])

    def get(self, request: ApiRequest) -> Result:
        with store_errors(f"fetching {self.noun}"):
            entity = self.repository.get(request.identifier)
        if entity is None:
            raise NotFound(f"{self.kind} not found")
        return Result(200, self.present(entity))

    def create(self, request: ApiRequest) -> Result:
        entity = self.build(request.json())
        with store_errors(f"creating {self.noun}"):
            entity = self.prepare_create(entity)
            created = self.repository.create(entity)
        if not created:
            raise Conflict(f"{self.kind} with ID {self.repository.key_of(entity)} already exists")
        return Result(201, self.present(entity))

    def update(self, request: ApiRequest) -> Result:
        identifier = request.identifier
        with store_errors(f"fetching {self.noun}"):
            existing = self.repository.get(identifier)
        if existing is None:
            raise self.not_found(identifier)

        entity = self.carry_over(existing, self.build(request.json(), identifier))
        with store_errors(f"updating {self.noun}"):
            updated = self.repository.update(entity)
        if not updated:
            # removed between the read and the write
            raise self.not_found(identifier)
        return Result(200, self.present(entity))

    def delete(self, request: ApiRequest) -> Result:
        identifier = request.identifier
        with store_errors(f"deleting {self.noun}"):
            deleted = self.repository.delete(identifier)
        if not deleted:
            raise self.not_found(identifier)
        return Result(200, {"message": f"{self.kind} {identifier} deleted successfully"})

    def transition(self, identifier: str, flag: str, mark: Callable[[str], bool], action: str, state: str) -> Result:
        """Guarded one-way false->true flip of ``flag``; a second call fails."""
        with store_errors(action):
            existing = self.repository.get(identifier)
            if existing is None:
                raise self.not_found(identifier)
            if getattr(existing, flag):
                raise BadRequest(f"{self.kind} {identifier} is already {state}")
            if not mark(identifier):
                # lost a race: someone else flipped or removed it first
                if not self.repository.exists(identifier):
                    raise self.not_found(identifier)
                raise BadRequest(f"{self.kind} {identifier} is already {state}")
        return Result(200, {"message": f"{self.kind} {identifier} marked as {state}"})


class PatientDispatcher(ResourceDispatcher):
    kind = "Patient"
    plural = "patients"
    repository: PatientRepository

    def __init__(self, repository: PatientRepository):
        super().__init__(repository)
        self.operations["deleteAll"] = self.delete_all

    def carry_over(self, existing: Patient, entity: Patient) -> Patient:
        return entity.model_copy(
            update={
                "allergies": list(existing.allergies),
                "medications": list(existing.medications),
                "medical_history": list(existing.medical_history),
            }
        )

    def delete_all(self, request: ApiRequest) -> Result:
        with store_errors("deleting all patients"):
            count = self.repository.delete_all()
        return Result(200, {"message": f"Deleted {count} patients", "deletedCount": count})


class DoctorDispatcher(ResourceDispatcher):
    kind = "Doctor"
    plural = "doctors"


class AppointmentDispatcher(ResourceDispatcher):
    kind = "Appointment"
    plural = "appointments"
    filters = ("patientId", "doctorId")
    repository: AppointmentRepository

    def __init__(self, repository: AppointmentRepository, patients: PatientRepository, doctors: DoctorRepository):
        super().__init__(repository)
        self.patients = patients
        self.doctors = doctors
        self.operations["complete"] = self.complete

    def build(self, data, identifier=None):
        entity = super().build(data, identifier)
        return entity.model_copy(update={"completed": False})

    def prepare_create(self, entity: Appointment) -> Appointment:
        names = {}
        if entity.patient_name is None:
            patient = self.patients.get(entity.patient_id)
            names["patient_name"] = patient.name if patient else None
        if entity.doctor_name is None:
            doctor = self.doctors.get(entity.doctor_id)
            names["doctor_name"] = doctor.name if doctor else None
        return entity.model_copy(update=names)

    def carry_over(self, existing: Appointment, entity: Appointment) -> Appointment:
        update = {"completed": existing.completed}
        for name in ("patient_name", "doctor_name"):
            if name not in entity.model_fields_set:
                update[name] = getattr(existing, name)
        return entity.model_copy(update=update)

    def complete(self, request: ApiRequest) -> Result:
        return self.transition(
            request.identifier, "completed", self.repository.mark_completed, "completing appointment", "completed"
        )


class BillDispatcher(ResourceDispatcher):
    kind = "Bill"
    plural = "bills"
    filters = ("patientId",)
    repository: BillRepository

    def __init__(self, repository: BillRepository):
        super().__init__(repository)
        self.operations["pay"] = self.pay

    def build(self, data, identifier=None):
        entity = super().build(data, identifier)
        return entity.model_copy(update={"paid": False})

    def carry_over(self, existing: Bill, entity: Bill) -> Bill:
        return entity.model_copy(update={"paid": existing.paid})

    def pay(self, request: ApiRequest) -> Result:
        return self.transition(request.identifier, "paid", self.repository.mark_paid, "paying bill", "paid")


class UserDispatcher(ResourceDispatcher):
    kind = "User"
    plural = "users"
    repository: UserRepository

    def present(self, entity: User) -> Dict[str, Any]:
        return entity.public()

    def build(self, data, identifier=None):
        if identifier is not None and "password" not in data:
            # password may be left out of an update; keep the stored one
            with store_errors("fetching user"):
                existing = self.repository.get(identifier)
            if existing is not None:
                data = dict(data, password=existing.password)
        return super().build(data, identifier)


class AuthDispatcher:
    def __init__(self, users: UserRepository):
        self.users = users

    def handle(self, request: ApiRequest) -> Result:
        credentials = validate(Credentials, request.json())
        with store_errors("authenticating user"):
            user = self.users.authenticate(credentials.username, credentials.password)
        if user is None:
            logger.warning(f"Failed login for {credentials.username}")
            raise Unauthorized("Invalid credentials")
        logger.info(f"User {user.username} logged in")
        return Result(200, {"message": "Login successful", "user": user.public()})
