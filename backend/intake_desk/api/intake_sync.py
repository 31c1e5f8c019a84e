"""
Intake form sync API endpoints.

Reads the Google Form responses tab (``FORM_RESPONSES_SHEET``) of the
configured spreadsheet, whichever storage backend holds the clients.
"""

import logging
from typing import Generator, List

from fastapi import APIRouter, Depends

from ..core.auth import get_current_user
from ..core.config import settings
from ..core.errors import ConfigurationError, NotFoundError, SheetNotFoundError
from ..repositories import Repositories, SheetsClient, get_repositories
from ..schemas.form_sync import FormSyncResult, FormSyncStatus
from ..services.audit import AuditService, get_audit_service
from ..services.form_sync import sync_form_responses, sync_status


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sync", tags=["Intake Sync"], dependencies=[Depends(get_current_user)])


def get_form_sheets_client() -> Generator[SheetsClient, None, None]:
    """FastAPI dependency yielding a client for the spreadsheet holding form responses."""
    if not settings.google_sheets_spreadsheet_id:
        raise ConfigurationError("Form sync needs GOOGLE_SHEETS_SPREADSHEET_ID to be set")
    client = SheetsClient.from_settings(settings)
    try:
        yield client
    finally:
        client.close()


def read_form_rows(client: SheetsClient) -> List[List[str]]:
    try:
        return client.read_rows(settings.form_responses_sheet)
    except SheetNotFoundError:
        raise NotFoundError("Form responses sheet", settings.form_responses_sheet) from None


@router.get(
    "/form-responses",
    response_model=FormSyncStatus,
    summary="Form Sync Status",
    description="How many form responses exist and how many are not yet clients.",
)
async def get_sync_status(
    sheets: SheetsClient = Depends(get_form_sheets_client),
    repos: Repositories = Depends(get_repositories),
) -> FormSyncStatus:
    try:
        rows = read_form_rows(sheets)
    except NotFoundError:
        logger.warning(f"Form responses sheet '{settings.form_responses_sheet}' not found; reporting no responses")
        rows = []
    return sync_status(rows, repos.clients.get_all())


@router.post(
    "/form-responses",
    response_model=FormSyncResult,
    summary="Sync Form Responses",
    description=(
        "Create a client for every form response whose timestamp is not yet "
        "on a client. Bad rows are listed in errors; the rest still sync."
    ),
)
async def run_sync(
    sheets: SheetsClient = Depends(get_form_sheets_client),
    repos: Repositories = Depends(get_repositories),
    audit: AuditService = Depends(get_audit_service),
) -> FormSyncResult:
    rows = read_form_rows(sheets)
    if len(rows) < 2:
        return FormSyncResult(message="No form responses to sync")
    return sync_form_responses(rows, repos, audit)
