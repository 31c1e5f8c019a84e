"""
Audit logging service.

Every mutating operation records exactly one entry: who acted, what kind
of action, which entity, and JSON snapshots of the entity before and
after. Creations carry no previous value; deletions carry no new value.
"""

import json
import logging
from typing import Optional, Union

from fastapi import Depends, Request
from pydantic import BaseModel

from ..core.auth import Actor, get_current_user
from ..models.audit_log import AuditAction, AuditEntityType
from ..repositories import Repositories, get_repositories
from ..repositories.base import AuditLogRepository
from ..schemas.audit import AuditLogCreate, AuditLogRecord


logger = logging.getLogger(__name__)

Snapshot = Union[BaseModel, dict, list, None]


def serialize_snapshot(value: Snapshot) -> Optional[str]:
    """Snapshot as a JSON string, camelCase for records."""
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True)
    return json.dumps(value, default=str)


class AuditService:
    """
    Writes audit entries for one actor.

    Example usage:
        audit = AuditService(repos.audit_log, actor, ip_address)
        audit.log_create(AuditEntityType.CLIENT, client.id, client)
        audit.log_update(AuditEntityType.CLIENT, client.id, before, after)
    """

    def __init__(self, repository: AuditLogRepository, actor: Actor, ip_address: Optional[str] = None):
        self.repository = repository
        self.actor = actor
        self.ip_address = ip_address

    def log(
        self,
        action: Union[AuditAction, str],
        entity_type: AuditEntityType,
        entity_id: Optional[str],
        previous: Snapshot = None,
        new: Snapshot = None,
    ) -> AuditLogRecord:
        """
        Append one entry.

        Args:
            action: kind of mutation
            entity_type: what kind of entity changed
            entity_id: id (or key) of the entity
            previous: state before the change, omitted for creations
            new: state after the change, omitted for deletions
        """
        action_value = action.value if isinstance(action, AuditAction) else action
        entry = AuditLogCreate(
            user_id=self.actor.user_id,
            user_email=self.actor.email,
            action=action_value,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_value=serialize_snapshot(previous),
            new_value=serialize_snapshot(new),
            ip_address=self.ip_address,
        )
        record = self.repository.log(entry)
        logger.info(
            f"Audit: {self.actor.email} {action_value} {entity_type.value}:{entity_id}"
        )
        return record

    def log_create(self, entity_type: AuditEntityType, entity_id: str, new: Snapshot) -> AuditLogRecord:
        return self.log(AuditAction.CREATE, entity_type, entity_id, new=new)

    def log_update(
        self,
        entity_type: AuditEntityType,
        entity_id: str,
        previous: Snapshot,
        new: Snapshot,
    ) -> AuditLogRecord:
        return self.log(AuditAction.UPDATE, entity_type, entity_id, previous=previous, new=new)

    def log_delete(self, entity_type: AuditEntityType, entity_id: str, previous: Snapshot) -> AuditLogRecord:
        return self.log(AuditAction.DELETE, entity_type, entity_id, previous=previous)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def get_audit_service(
    request: Request,
    repos: Repositories = Depends(get_repositories),
    actor: Actor = Depends(get_current_user),
) -> AuditService:
    """FastAPI dependency: an AuditService bound to the caller."""
    return AuditService(repos.audit_log, actor, get_client_ip(request))
