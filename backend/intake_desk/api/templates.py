"""
Email template API endpoints.

Templates use ``{{variable}}`` placeholders from the template variable
registry. Templates that fail to parse or use expressions beyond bare
placeholders are rejected; missing or unknown placeholders are reported
by the preview endpoint.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..core.auth import Actor, get_current_user
from ..core.errors import NotFoundError, ValidationFailed
from ..models.audit_log import AuditAction, AuditEntityType
from ..models.email_template import EmailTemplateType
from ..repositories import Repositories, get_repositories
from ..schemas.common import DeleteResponse
from ..schemas.email_template import (
    EmailTemplateCreate,
    EmailTemplateRecord,
    EmailTemplateUpdate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateValidation,
)
from ..services.audit import AuditService, get_audit_service
from ..services.email_templates import (
    build_sample_variables,
    build_variables,
    render_template,
    validate_template,
)
from .clients import load_client


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/templates", tags=["Email Templates"], dependencies=[Depends(get_current_user)])


def load_template(repos: Repositories, template_id: str) -> EmailTemplateRecord:
    template = repos.templates.get_by_id(template_id)
    if template is None:
        raise NotFoundError("Email template", template_id)
    return template


def ensure_placeholders_only(validation: TemplateValidation) -> None:
    if validation.unsupported:
        raise ValidationFailed(f"Unsupported template expression: {validation.unsupported[0]}", field="body")


def ensure_renderable(subject: str, body: str) -> None:
    validation = validate_template(subject, body)
    if validation.syntax_error:
        raise ValidationFailed(f"Template syntax error: {validation.syntax_error}", field="body")
    ensure_placeholders_only(validation)


# =============================================================================
# Template CRUD Endpoints
# =============================================================================

@router.get(
    "",
    response_model=List[EmailTemplateRecord],
    summary="List Templates",
    description="All templates, or the active templates of one type with the default first.",
)
async def list_templates(
    template_type: Optional[EmailTemplateType] = Query(default=None, alias="type"),
    repos: Repositories = Depends(get_repositories),
) -> List[EmailTemplateRecord]:
    if template_type:
        return repos.templates.get_by_type(template_type.value)
    return repos.templates.get_all()


@router.post(
    "",
    response_model=EmailTemplateRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Template",
)
async def create_template(
    payload: EmailTemplateCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_user),
) -> EmailTemplateRecord:
    ensure_renderable(payload.subject, payload.body)
    template = repos.templates.create({**payload.model_dump(), "updated_by": actor.email})
    audit.log_create(AuditEntityType.TEMPLATE, template.id, template)
    logger.info(f"Email template created: {template.name} ({template.type.value})")
    return template


@router.post(
    "/preview",
    response_model=TemplatePreviewResponse,
    summary="Preview Template",
    description="Render a stored template or ad-hoc subject/body against a client or sample data.",
)
async def preview_template(
    payload: TemplatePreviewRequest,
    repos: Repositories = Depends(get_repositories),
) -> TemplatePreviewResponse:
    """
    Render a preview.

    Variables come from the client when ``clientId`` is given, otherwise
    from registry sample values; explicit ``variables`` win over both.
    """
    if payload.template_id:
        template = load_template(repos, payload.template_id)
        subject = payload.subject if payload.subject is not None else template.subject
        body = payload.body if payload.body is not None else template.body
    elif payload.subject is not None and payload.body is not None:
        subject, body = payload.subject, payload.body
    else:
        raise ValidationFailed("Provide templateId or both subject and body")

    validation = validate_template(subject, body)
    if validation.syntax_error:
        return TemplatePreviewResponse(subject=subject, body=body, validation=validation)
    ensure_placeholders_only(validation)

    if payload.client_id:
        client = load_client(repos, payload.client_id)
        variables = build_variables(client, repos.settings.get_all())
    else:
        variables = build_sample_variables()
    variables.update(payload.variables)

    rendered_subject, rendered_body = render_template(subject, body, variables)
    return TemplatePreviewResponse(subject=rendered_subject, body=rendered_body, validation=validation)


@router.get(
    "/{template_id}",
    response_model=EmailTemplateRecord,
    summary="Get Template",
)
async def get_template(
    template_id: str,
    repos: Repositories = Depends(get_repositories),
) -> EmailTemplateRecord:
    return load_template(repos, template_id)


@router.patch(
    "/{template_id}",
    response_model=EmailTemplateRecord,
    summary="Update Template",
)
async def update_template(
    template_id: str,
    payload: EmailTemplateUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_user),
) -> EmailTemplateRecord:
    before = load_template(repos, template_id)
    changes = payload.changes()
    subject, body = changes.get("subject"), changes.get("body")
    ensure_renderable(
        before.subject if subject is None else subject,
        before.body if body is None else body,
    )
    updated = repos.templates.update(template_id, {**changes, "updated_by": actor.email})
    if updated is None:
        raise NotFoundError("Email template", template_id)
    audit.log_update(AuditEntityType.TEMPLATE, template_id, before, updated)
    return updated


@router.delete(
    "/{template_id}",
    response_model=DeleteResponse,
    summary="Delete Template",
)
async def delete_template(
    template_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> DeleteResponse:
    before = load_template(repos, template_id)
    if not repos.templates.delete(template_id):
        raise NotFoundError("Email template", template_id)
    audit.log_delete(AuditEntityType.TEMPLATE, template_id, before)
    return DeleteResponse()


@router.post(
    "/{template_id}/set-default",
    response_model=EmailTemplateRecord,
    summary="Set Default Template",
    description="Make this the default template of its type; other defaults of the type are cleared.",
)
async def set_default_template(
    template_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> EmailTemplateRecord:
    before = load_template(repos, template_id)
    updated = repos.templates.set_default(template_id)
    if updated is None:
        raise NotFoundError("Email template", template_id)
    audit.log(AuditAction.SET_DEFAULT, AuditEntityType.TEMPLATE, template_id, previous=before, new=updated)
    return updated
