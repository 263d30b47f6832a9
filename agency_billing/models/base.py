"""Base model for request/command payloads.

All inputs accepted by services (invoice payloads, schedule definitions,
template edits) derive from ``BaseDataModel`` so they share validation
behaviour. Persistence lives in ``agency_billing.db``; these models never
touch the database.
"""

from decimal import Decimal
from typing import Any, Union

from pydantic import BaseModel, ConfigDict

CENT = Decimal("0.01")


def to_decimal(v: Union[str, int, float, Decimal, None]) -> Any:
    """Convert numeric input to Decimal via ``str`` to avoid float artefacts.

    Raises:
        ValueError: If the value cannot be converted
    """
    if v is None or isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except (ValueError, TypeError, ArithmeticError) as e:
        raise ValueError(f"Cannot convert {v} to Decimal: {e}")


class BaseDataModel(BaseModel):
    """Base class for all payload models.

    Example:
        >>> class Reason(BaseDataModel):
        ...     reason: str
        >>> Reason(reason="Client request").model_dump()
        {'reason': 'Client request'}
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True,
        strict=False,
        # Unknown keys are rejected so typos in API payloads surface as 422s
        extra="forbid",
        frozen=False,
        use_enum_values=False,
    )

    def changed_fields(self) -> dict:
        """Fields explicitly provided by the caller (partial updates)."""
        return self.model_dump(exclude_unset=True)
