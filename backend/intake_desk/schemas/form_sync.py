"""
Google Form intake sync schemas.
"""

from typing import List

from pydantic import Field

from .base import CamelModel, UtcDatetime


class FormSyncStatus(CamelModel):
    form_responses_count: int
    clients_count: int
    # Form responses already present as clients.
    synced_count: int
    pending_sync: int
    last_sync_check: UtcDatetime


class FormSyncResult(CamelModel):
    new_clients: int = 0
    duplicates: int = 0
    errors: List[str] = Field(default_factory=list)
    # Ids of the clients created by this run.
    synced_ids: List[str] = Field(default_factory=list)
    message: str = ""
