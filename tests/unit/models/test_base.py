"""Unit tests for base model functionality."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from agency_billing.models.base import BaseDataModel, to_decimal


class Reason(BaseDataModel):
    reason: str
    amount: Decimal = Decimal("0")


class TestBaseDataModel:
    """Test shared payload model behaviour."""

    def test_model_round_trips_through_dict(self):
        model = Reason(reason="Client request", amount=Decimal("10.00"))

        assert Reason(**model.model_dump()) == model

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Reason(reason="x", amont="10")

        assert "amont" in str(exc_info.value)

    def test_assignment_is_validated(self):
        model = Reason(reason="x")

        with pytest.raises(ValidationError):
            model.reason = None

    def test_changed_fields_only_includes_provided_values(self):
        assert Reason(reason="x").changed_fields() == {"reason": "x"}


class TestToDecimal:
    """Test numeric input conversion."""

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_passthrough_values(self):
        value = Decimal("5.50")
        assert to_decimal(value) is value
        assert to_decimal(None) is None

    def test_invalid_value_raises(self):
        with pytest.raises(ValueError, match="Cannot convert abc to Decimal"):
            to_decimal("abc")
