"""HTTP API for agency billing."""

from agency_billing.web.app import create_app

__all__ = ["create_app"]
