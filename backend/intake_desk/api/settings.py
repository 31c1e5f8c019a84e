"""
Runtime settings API endpoints.

Settings are string key/value pairs (e.g. ``outreachAttemptCount``,
``practiceName``). Sending an empty value removes a key.
"""

import logging

from fastapi import APIRouter, Depends

from ..core.auth import Actor, get_current_user
from ..models.audit_log import AuditEntityType
from ..repositories import Repositories, get_repositories
from ..schemas.settings import SettingsResponse, SettingsUpdateRequest
from ..services.audit import AuditService, get_audit_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/settings", tags=["Settings"], dependencies=[Depends(get_current_user)])

SETTINGS_ENTITY_ID = "settings"


@router.get(
    "",
    response_model=SettingsResponse,
    summary="Get Settings",
)
async def get_settings(repos: Repositories = Depends(get_repositories)) -> SettingsResponse:
    return SettingsResponse(settings=repos.settings.get_all())


@router.patch(
    "",
    response_model=SettingsResponse,
    summary="Update Settings",
    description="Set the given keys; an empty string deletes the key. Other keys are untouched.",
)
async def update_settings(
    payload: SettingsUpdateRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
    actor: Actor = Depends(get_current_user),
) -> SettingsResponse:
    before = repos.settings.get_all()
    for key, value in payload.settings.items():
        if value == "":
            repos.settings.delete(key)
        else:
            repos.settings.set(key, value, updated_by=actor.email)

    after = repos.settings.get_all()
    audit.log_update(
        AuditEntityType.SETTINGS,
        SETTINGS_ENTITY_ID,
        {key: before.get(key) for key in payload.settings},
        {key: after.get(key) for key in payload.settings},
    )
    logger.info(f"Settings updated by {actor.email}: {', '.join(sorted(payload.settings))}")
    return SettingsResponse(settings=after)
