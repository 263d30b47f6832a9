"""Form template (super admin) and agency form payloads."""

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from agency_billing.models.base import BaseDataModel
from agency_billing.models.enums import FormType, TemplateCategory


class FormTemplateCreate(BaseDataModel):
    """A new platform-wide form template.

    When ``slug`` is omitted it is generated from ``name``; either way it is
    made unique by appending ``-1``, ``-2``, ...
    """

    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.GENERAL
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    ui_config: Dict[str, Any] = Field(default_factory=dict)
    preview_image_url: Optional[str] = None
    is_featured: bool = False
    display_order: int = 0
    new_until: Optional[dt.datetime] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()


class FormTemplateUpdate(BaseDataModel):
    """Partial update of a form template."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[TemplateCategory] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    ui_config: Optional[Dict[str, Any]] = None
    preview_image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    display_order: Optional[int] = None
    new_until: Optional[dt.datetime] = None

    model_config = ConfigDict(populate_by_name=True)


class TemplateOrder(BaseDataModel):
    id: str
    display_order: int


class TemplateReorder(BaseDataModel):
    items: List[TemplateOrder] = Field(..., min_length=1)


class AgencyFormFromTemplate(BaseDataModel):
    """Request to copy a template into an agency's forms."""

    template_id: str
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    form_type: Optional[FormType] = None


class AgencyFormUpdate(BaseDataModel):
    """Partial update of an agency form.

    Editing ``schema`` marks a template-derived form as customized, after
    which template pushes no longer overwrite it.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
    ui_config: Optional[Dict[str, Any]] = None
    branding: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    requires_auth: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)
