"""JSON wire format: request decoding, response bodies and the error envelope."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from pydantic import BaseModel

from errors import ApiError, BadRequest

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@dataclass
class Result:
    status: int
    payload: Any


@dataclass
class EncodedResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


def _default(obj):
    if isinstance(obj, BaseModel):
        return obj.model_dump(by_alias=True, mode="json")
    raise TypeError(f"{type(obj).__name__} is not JSON serializable")


def _headers() -> Dict[str, str]:
    return {"Content-Type": "application/json", **CORS_HEADERS}


def _reject_constant(name: str):
    raise ValueError(f"{name} is not a valid JSON number")


def decode_body(raw: bytes) -> Dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant) if raw else None
    except (ValueError, RecursionError) as e:
        raise BadRequest(f"Invalid request: {e}")
    if not isinstance(data, dict):
        raise BadRequest("Invalid request: body must be a JSON object")
    return data


def encode(status: int, payload: Any) -> EncodedResponse:
    try:
        body = json.dumps(payload, default=_default, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        logger.error(f"Could not serialize response: {e}")
        return encode_error(500, "Internal server error")
    return EncodedResponse(status, body, _headers())


def encode_result(result: Result) -> EncodedResponse:
    return encode(result.status, result.payload)


def encode_error(status: int, message: str) -> EncodedResponse:
    body = json.dumps({"error": message, "status": str(status)}).encode("utf-8")
    return EncodedResponse(status, body, _headers())


def encode_exception(exc: ApiError) -> EncodedResponse:
    return encode_error(exc.status, exc.message)


def preflight() -> EncodedResponse:
    return EncodedResponse(204, b"", dict(CORS_HEADERS))
