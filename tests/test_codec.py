import json

import pytest

from codec import CORS_HEADERS, Result, decode_body, encode, encode_error, encode_exception, encode_result, preflight
from errors import BadRequest, NotFound
from schemas import Doctor


def test_success_carries_json_and_cors_headers():
    doctor = Doctor(doctor_id="DOC1", name="Dr. Who", specialization="General", availability="Always")
    encoded = encode_result(Result(201, doctor))

    assert encoded.status == 201
    assert json.loads(encoded.body) == {
        "doctorId": "DOC1",
        "name": "Dr. Who",
        "specialization": "General",
        "availability": "Always",
    }
    assert encoded.headers["Content-Type"] == "application/json"
    for name, value in CORS_HEADERS.items():
        assert encoded.headers[name] == value


def test_error_envelope_uses_string_status():
    encoded = encode_exception(NotFound("Patient not found"))
    assert encoded.status == 404
    assert json.loads(encoded.body) == {"error": "Patient not found", "status": "404"}
    assert encoded.headers["Access-Control-Allow-Origin"] == "*"


def test_unserializable_payload_degrades_to_500():
    encoded = encode(200, {"when": object()})
    assert encoded.status == 500
    assert json.loads(encoded.body) == {"error": "Internal server error", "status": "500"}


def test_encode_error_directly():
    assert json.loads(encode_error(405, "Method not allowed").body)["status"] == "405"


def test_preflight_has_no_body():
    encoded = preflight()
    assert encoded.status == 204
    assert encoded.body == b""
    assert "Access-Control-Allow-Methods" in encoded.headers


class TestDecodeBody:
    def test_object(self):
        assert decode_body(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("raw", [b"", b"{not json", b"[1, 2]", b'"text"', b"\xff\xfe"])
    def test_rejects_non_objects(self, raw):
        with pytest.raises(BadRequest) as exc:
            decode_body(raw)
        assert exc.value.message.startswith("Invalid request")

    @pytest.mark.parametrize("raw", [b'{"amount": Infinity}', b'{"amount": -Infinity}', b'{"amount": NaN}'])
    def test_rejects_non_finite_constants(self, raw):
        with pytest.raises(BadRequest) as exc:
            decode_body(raw)
        assert "is not a valid JSON number" in exc.value.message

    def test_deep_nesting_is_a_bad_request(self):
        depth = 100000
        with pytest.raises(BadRequest):
            decode_body(b'{"a":' * depth + b"1" + b"}" * depth)


@pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
def test_non_finite_payload_degrades_to_500(value):
    encoded = encode(200, {"amount": value})
    assert encoded.status == 500
    assert json.loads(encoded.body) == {"error": "Internal server error", "status": "500"}
