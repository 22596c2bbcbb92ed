import pytest
from sqlalchemy.exc import IntegrityError

from order_api import main
from order_api.core.config import EnvironmentMode
from order_api.core.errors import (
    DuplicateEntry,
    ProcessingFailure,
    RelatedRecordMissing,
    Unauthenticated,
    ValidationFailed,
    translate_integrity_error,
)


class FakeDriverError(Exception):
    def __init__(self, message: str, sqlstate: str = None):
        super().__init__(message)
        self.sqlstate = sqlstate


def integrity_error(message: str, sqlstate: str = None) -> IntegrityError:
    return IntegrityError("INSERT INTO orders ...", {}, FakeDriverError(message, sqlstate))


@pytest.mark.parametrize(
    "error, expected",
    [
        (integrity_error("duplicate key value violates unique constraint", "23505"), DuplicateEntry),
        (integrity_error("UNIQUE constraint failed: users.email"), DuplicateEntry),
        (integrity_error("insert or update violates foreign key constraint", "23503"), RelatedRecordMissing),
        (integrity_error("FOREIGN KEY constraint failed"), RelatedRecordMissing),
        (integrity_error("NOT NULL constraint failed: orders.total"), ProcessingFailure),
    ],
)
def test_integrity_errors_map_onto_taxonomy(error, expected):
    translated = translate_integrity_error(error)

    assert type(translated) is expected
    assert translated.details["message"] == str(error.orig)


def test_duplicate_and_related_errors_are_client_errors():
    assert DuplicateEntry().status_code == 400
    assert DuplicateEntry().message == "Duplicate entry found"
    assert RelatedRecordMissing().status_code == 400
    assert RelatedRecordMissing().message == "Related record not found"


def test_error_body():
    error = ValidationFailed("Missing required fields", details={"missing": ["total"]})

    assert error.to_dict() == {"error": "Missing required fields", "details": {"missing": ["total"]}}
    assert Unauthenticated().to_dict() == {"error": "Unauthorized", "details": None}


@pytest.mark.asyncio
async def test_processing_failure_carries_stack_outside_production(
    client, auth_headers, failing_database
):
    r = await client.get("/order", headers=auth_headers("customer"))

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to fetch orders"
    assert "OperationalError" in body["stack"]


@pytest.mark.asyncio
async def test_processing_failure_hides_stack_in_production(
    client, auth_headers, failing_database, monkeypatch
):
    monkeypatch.setattr(main.settings, "env_mode", EnvironmentMode.PRODUCTION)

    r = await client.get("/order", headers=auth_headers("customer"))

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to fetch orders"
    assert "stack" not in body
