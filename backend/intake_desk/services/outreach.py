"""
Outreach planning.

The number of outreach attempts per client is the runtime setting
``outreachAttemptCount``; the deployment default applies when the setting
is absent or unusable.
"""

import logging
from typing import List

from ..core.config import settings
from ..models.setting import OUTREACH_ATTEMPT_COUNT
from ..repositories.base import OutreachAttemptRepository, SettingsRepository
from ..schemas.outreach import OutreachAttemptRecord
from ..schemas.settings import parse_attempt_count

logger = logging.getLogger(__name__)


def get_attempt_count(settings_repo: SettingsRepository) -> int:
    """Configured attempts per client."""
    raw = settings_repo.get(OUTREACH_ATTEMPT_COUNT)
    if raw:
        try:
            return parse_attempt_count(raw)
        except ValueError as e:
            logger.warning(f"Ignoring stored {OUTREACH_ATTEMPT_COUNT}: {e}")
    return parse_attempt_count(settings.default_outreach_attempt_count)


def initialize_attempts(
    outreach_repo: OutreachAttemptRepository,
    settings_repo: SettingsRepository,
    client_id: str,
) -> List[OutreachAttemptRecord]:
    """Create the pending attempts a client is missing and return all of them."""
    count = get_attempt_count(settings_repo)
    attempts = outreach_repo.initialize_for_client(client_id, count)
    logger.info(f"Outreach for client {client_id}: {len(attempts)} attempt(s), {count} configured")
    return attempts
