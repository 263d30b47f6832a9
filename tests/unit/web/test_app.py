"""Unit tests for the API application, authentication and error mapping."""

import datetime as dt

import pytest
from fastapi import HTTPException

from agency_billing import __version__
from agency_billing.errors import (
    AgencyBillingError,
    ConflictError,
    EmailDeliveryError,
    InvalidStateError,
    InvoiceValidationError,
    NotFoundError,
    PermissionDeniedError,
)
from agency_billing.models.enums import AgencyRole
from agency_billing.web.app import status_for
from agency_billing.web.auth import (
    context_from_payload,
    create_access_token,
    decode_access_token,
)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": __version__}


class TestAuthentication:
    """Test bearer token handling."""

    def test_missing_token(self, client):
        response = client.get("/api/invoices")

        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_garbage_token(self, client):
        response = client.get("/api/invoices", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_expired_token(self, client, test_settings, owner_ctx):
        token = create_access_token(
            test_settings,
            user_id=owner_ctx.user_id,
            agency_id=owner_ctx.agency_id,
            expires_in=dt.timedelta(seconds=-1),
        )

        response = client.get(
            "/api/invoices", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    def test_token_round_trip(self, test_settings):
        token = create_access_token(
            test_settings, "user-1", agency_id="agency-1", role=AgencyRole.ADMIN
        )

        ctx = context_from_payload(decode_access_token(test_settings, token))

        assert ctx.user_id == "user-1"
        assert ctx.agency_id == "agency-1"
        assert ctx.role == AgencyRole.ADMIN
        assert ctx.is_super_admin is False

    def test_token_signed_with_other_secret(self, test_settings):
        other = test_settings.model_copy(update={"jwt_secret": "another-secret"})
        token = create_access_token(other, "user-1")

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(test_settings, token)

        assert exc_info.value.status_code == 401

    def test_unknown_role_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            context_from_payload({"sub": "user-1", "role": "intern"})

        assert exc_info.value.status_code == 401

    def test_missing_subject_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            context_from_payload({"role": "owner"})

        assert exc_info.value.status_code == 401


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error,status",
        [
            (NotFoundError("x"), 404),
            (PermissionDeniedError("x"), 403),
            (ConflictError("x"), 409),
            (InvalidStateError("x"), 400),
            (InvoiceValidationError("x"), 422),
            (EmailDeliveryError("x"), 502),
            (AgencyBillingError("x"), 500),
        ],
    )
    def test_status_for(self, error, status):
        assert status_for(error) == status

    def test_domain_error_body(self, client, auth_headers, owner_ctx):
        response = client.get("/api/invoices/missing", headers=auth_headers(owner_ctx))

        assert response.status_code == 404
        assert response.json() == {"error": "Invoice not found"}

    def test_invalid_query_returns_details(self, client, auth_headers, owner_ctx):
        response = client.get(
            "/api/invoices",
            params={"from_date": "2025-02-01", "to_date": "2025-01-01"},
            headers=auth_headers(owner_ctx),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Invalid request"
        assert body["details"]
