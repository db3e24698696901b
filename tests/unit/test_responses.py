# tests/unit/test_responses.py

import json

import pytest

from sales_ingestor import responses
from sales_ingestor.summary import ProcessingSummary


def _body(response: dict) -> dict:
    return json.loads(response["body"])


def test_success_envelope():
    response = responses.success({"answer": 42})

    assert response["statusCode"] == 200
    assert response["headers"] == {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
    }
    body = _body(response)
    assert body["success"] is True
    assert body["data"] == {"answer": 42}
    assert "timestamp" in body


def test_error_envelope_without_stack():
    response = responses.error("Boom", 503, details={"retry": True})

    assert response["statusCode"] == 503
    error = _body(response)["error"]
    assert error == {"message": "Boom", "code": "SERVICE_UNAVAILABLE", "details": {"retry": True}}


def test_error_stack_only_when_requested():
    try:
        raise RuntimeError("kaboom")
    except RuntimeError as e:
        exc = e

    hidden = _body(responses.error("x", exc=exc))["error"]
    shown = _body(responses.error("x", exc=exc, include_stack=True))["error"]

    assert "stack" not in hidden
    assert "RuntimeError: kaboom" in shown["stack"]


@pytest.mark.parametrize(
    "status_code, code",
    [(400, "BAD_REQUEST"), (404, "NOT_FOUND"), (500, "INTERNAL_SERVER_ERROR"), (418, "UNKNOWN_ERROR")],
)
def test_error_code_for(status_code, code):
    assert responses.error_code_for(status_code) == code


class TestBatchProcessing:
    def test_all_succeeded(self):
        response = responses.batch_processing(ProcessingSummary(processed=3, failed=0), "CSV processing")

        assert response["statusCode"] == 200
        data = _body(response)["data"]
        assert data["message"] == "CSV processing completed successfully"
        assert data["summary"] == {"processed": 3, "failed": 0, "total": 3, "errors": []}

    def test_empty_batch_is_success(self):
        response = responses.batch_processing(ProcessingSummary(processed=0, failed=0))
        assert response["statusCode"] == 200

    def test_all_failed(self):
        errors = ({"record": {"key": "k"}, "error": "e", "type": "T"},)

        response = responses.batch_processing(
            ProcessingSummary(processed=0, failed=1, errors=errors), "CSV processing"
        )

        assert response["statusCode"] == 500
        error = _body(response)["error"]
        assert error["message"] == "CSV processing failed completely"
        assert error["details"]["summary"]["errors"] == list(errors)

    def test_partial_failure(self):
        response = responses.batch_processing(
            ProcessingSummary(processed=2, failed=1), "Sales processing"
        )

        assert response["statusCode"] == 207
        error = _body(response)["error"]
        assert error["message"] == "Sales processing completed with errors"
        assert error["code"] == "PARTIAL_SUCCESS"
        assert error["details"]["summary"]["total"] == 3
