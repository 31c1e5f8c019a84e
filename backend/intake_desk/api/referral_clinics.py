"""
Referral clinic API endpoints.

Clinics carry practice-defined custom fields; the set of allowed custom
fields is the single ReferralClinicsConfig record.
"""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status

from ..core.auth import get_current_user
from ..core.errors import NotFoundError, ValidationFailed
from ..models.audit_log import AuditEntityType
from ..repositories import Repositories, get_repositories
from ..schemas.common import DeleteResponse
from ..schemas.referral_clinic import (
    ReferralClinicCreate,
    ReferralClinicRecord,
    ReferralClinicsConfigRecord,
    ReferralClinicUpdate,
    SaveCustomFieldsRequest,
)
from ..services.audit import AuditService, get_audit_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/referral-clinics", tags=["Referral Clinics"], dependencies=[Depends(get_current_user)])

CONFIG_ENTITY_ID = "config"


def check_custom_fields(repos: Repositories, custom_fields: Dict[str, str]) -> None:
    """Reject custom field keys the practice has not configured."""
    if not custom_fields:
        return
    allowed = {field.name for field in repos.clinics_config.get_config().custom_fields}
    unknown = sorted(key for key in custom_fields if key not in allowed)
    if unknown:
        raise ValidationFailed(f"Unknown custom fields: {', '.join(unknown)}", field="customFields")


# =============================================================================
# Custom Field Configuration
# =============================================================================

@router.get(
    "/config",
    response_model=ReferralClinicsConfigRecord,
    summary="Get Custom Field Configuration",
)
async def get_config(repos: Repositories = Depends(get_repositories)) -> ReferralClinicsConfigRecord:
    return repos.clinics_config.get_config()


@router.put(
    "/config",
    response_model=ReferralClinicsConfigRecord,
    summary="Save Custom Field Configuration",
    description="Replace the custom field definitions shared by all clinics.",
)
async def save_config(
    payload: SaveCustomFieldsRequest,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ReferralClinicsConfigRecord:
    before = repos.clinics_config.get_config()
    saved = repos.clinics_config.save_custom_fields(payload.custom_fields)
    audit.log_update(AuditEntityType.REFERRAL_CLINIC, CONFIG_ENTITY_ID, before, saved)
    return saved


# =============================================================================
# Clinic CRUD Endpoints
# =============================================================================

@router.get(
    "",
    response_model=List[ReferralClinicRecord],
    summary="List Referral Clinics",
    description="Clinics ordered by practice name; activeOnly limits to active ones.",
)
async def list_clinics(
    active_only: bool = Query(default=False, alias="activeOnly"),
    repos: Repositories = Depends(get_repositories),
) -> List[ReferralClinicRecord]:
    if active_only:
        return repos.clinics.get_active()
    return repos.clinics.get_all()


@router.post(
    "",
    response_model=ReferralClinicRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create Referral Clinic",
)
async def create_clinic(
    payload: ReferralClinicCreate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ReferralClinicRecord:
    check_custom_fields(repos, payload.custom_fields)
    clinic = repos.clinics.create(payload.model_dump())
    audit.log_create(AuditEntityType.REFERRAL_CLINIC, clinic.id, clinic)
    logger.info(f"Referral clinic created: {clinic.practice_name}")
    return clinic


@router.get(
    "/{clinic_id}",
    response_model=ReferralClinicRecord,
    summary="Get Referral Clinic",
)
async def get_clinic(
    clinic_id: str,
    repos: Repositories = Depends(get_repositories),
) -> ReferralClinicRecord:
    clinic = repos.clinics.get_by_id(clinic_id)
    if clinic is None:
        raise NotFoundError("Referral clinic", clinic_id)
    return clinic


@router.patch(
    "/{clinic_id}",
    response_model=ReferralClinicRecord,
    summary="Update Referral Clinic",
)
async def update_clinic(
    clinic_id: str,
    payload: ReferralClinicUpdate,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> ReferralClinicRecord:
    before = repos.clinics.get_by_id(clinic_id)
    if before is None:
        raise NotFoundError("Referral clinic", clinic_id)
    changes = payload.changes()
    check_custom_fields(repos, changes.get("custom_fields") or {})
    updated = repos.clinics.update(clinic_id, changes)
    if updated is None:
        raise NotFoundError("Referral clinic", clinic_id)
    audit.log_update(AuditEntityType.REFERRAL_CLINIC, clinic_id, before, updated)
    return updated


@router.delete(
    "/{clinic_id}",
    response_model=DeleteResponse,
    summary="Delete Referral Clinic",
)
async def delete_clinic(
    clinic_id: str,
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> DeleteResponse:
    before = repos.clinics.get_by_id(clinic_id)
    if before is None or not repos.clinics.delete(clinic_id):
        raise NotFoundError("Referral clinic", clinic_id)
    audit.log_delete(AuditEntityType.REFERRAL_CLINIC, clinic_id, before)
    return DeleteResponse()
