from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    # camelCase on the wire, snake_case in code
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Medication(Record):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_active: bool = True


class MedicalRecord(Record):
    record_id: str
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    notes: Optional[str] = None
    visit_date: str = Field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d"))
    visit_time: str = Field(default_factory=lambda: datetime.now().strftime("%H:%M"))


class Patient(Record):
    patient_id: str
    name: str
    age: int = Field(ge=0, le=150)
    gender: Literal["Male", "Female", "Other"]
    address: str
    phone: str
    allergies: List[str] = []
    medications: List[Medication] = []
    medical_history: List[MedicalRecord] = []

    @field_validator("age", mode="before")
    @classmethod
    def reject_boolean_age(cls, value):
        # bool is an int subclass; numeric strings still parse
        if isinstance(value, bool):
            raise ValueError("age must be a number, not a boolean")
        return value

    @field_validator("allergies")
    @classmethod
    def drop_duplicate_allergies(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class Doctor(Record):
    doctor_id: str
    name: str
    specialization: str
    availability: str


class Appointment(Record):
    appointment_id: str
    patient_id: str
    doctor_id: str
    date: str
    time: str
    description: str
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None
    completed: bool = False


class Bill(Record):
    bill_id: str
    patient_id: str
    amount: float = Field(ge=0, allow_inf_nan=False)
    description: str
    paid: bool = False


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    RECEPTIONIST = "RECEPTIONIST"


class User(Record):
    username: str
    password: str
    role: UserRole

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def public(self) -> dict:
        doc = self.model_dump(by_alias=True, mode="json")
        doc.pop("password", None)
        return doc


class Credentials(BaseModel):
    username: str
    password: str
