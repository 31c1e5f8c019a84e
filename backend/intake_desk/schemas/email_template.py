"""Email template schemas."""

from typing import Dict, List, Optional

from pydantic import Field

from ..models.email_template import EmailTemplateType
from .base import CamelModel, CamelRequest, UtcDatetime


class EmailTemplateRecord(CamelModel):
    id: str
    name: str
    type: EmailTemplateType
    subject: str
    body: str
    is_active: bool = True
    is_default: bool = False
    created_at: UtcDatetime
    updated_at: UtcDatetime
    updated_by: Optional[str] = None


class EmailTemplateCreate(CamelRequest):
    name: str = Field(..., min_length=1, max_length=255)
    type: EmailTemplateType
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)
    is_active: bool = True
    is_default: bool = False


class EmailTemplateUpdate(CamelRequest):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[EmailTemplateType] = None
    subject: Optional[str] = Field(default=None, min_length=1, max_length=500)
    body: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class TemplateValidation(CamelModel):
    is_valid: bool
    missing_required: List[str] = Field(default_factory=list)
    unrecognized: List[str] = Field(default_factory=list)
    unsupported: List[str] = Field(default_factory=list)
    used: List[str] = Field(default_factory=list)
    syntax_error: Optional[str] = None


class TemplatePreviewRequest(CamelRequest):
    """Render either a stored template or ad-hoc subject/body."""

    template_id: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    client_id: Optional[str] = None
    variables: Dict[str, str] = Field(default_factory=dict)


class TemplatePreviewResponse(CamelModel):
    subject: str
    body: str
    validation: TemplateValidation
