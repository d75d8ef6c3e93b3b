import logging
from typing import Mapping, Optional

from codec import EncodedResponse, Result, encode_error, encode_exception, encode_result, preflight
from dispatchers import (
    ApiRequest,
    AppointmentDispatcher,
    AuthDispatcher,
    BillDispatcher,
    DoctorDispatcher,
    PatientDispatcher,
    UserDispatcher,
)
from errors import ApiError
from health import HealthReporter
from repositories import Repositories
from routing import Router

logger = logging.getLogger(__name__)


class HealthDispatcher:
    def __init__(self, reporter: HealthReporter):
        self.reporter = reporter

    def handle(self, request: ApiRequest) -> Result:
        return Result(200, self.reporter.snapshot())


class ClinicApi:
    """Routes a raw request to its dispatcher and encodes the outcome.

    ``handle`` never raises: every failure becomes a JSON error envelope.
    """

    def __init__(self, repositories: Repositories, router: Optional[Router] = None):
        self.repositories = repositories
        self.router = router or Router()
        patients = PatientDispatcher(repositories.patients)
        self.dispatchers = {
            "health": HealthDispatcher(HealthReporter(repositories.store)),
            "login": AuthDispatcher(repositories.users),
            "deleteAll": patients,
            "patients": patients,
            "doctors": DoctorDispatcher(repositories.doctors),
            "appointments": AppointmentDispatcher(
                repositories.appointments, repositories.patients, repositories.doctors
            ),
            "bills": BillDispatcher(repositories.bills),
            "users": UserDispatcher(repositories.users),
        }

    def handle(self, method: str, path: str, body: bytes = b"", query: Optional[Mapping[str, str]] = None) -> EncodedResponse:
        if method.upper() == "OPTIONS" and self.router.allows(path):
            return preflight()
        try:
            match = self.router.resolve(method, path)
            request = ApiRequest(match, body, query or {})
            return encode_result(self.dispatchers[match.resource].handle(request))
        except ApiError as e:
            if e.status >= 500:
                logger.error(f"{method} {path} failed: {e.message}")
            return encode_exception(e)
        except Exception:
            logger.exception(f"Unexpected error handling {method} {path}")
            return encode_error(500, "Internal server error")
