"""
Audit Log Service

Append-only record of who did what to which resource. Entries are added to
the caller's session and committed with the change they describe, so a
rolled-back change leaves no entry behind.
"""
from uuid import uuid4
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ..models.db_models import AuditLogDB, AuditAction, AuditResource, UserDB


def client_ip(request: Optional[Request]) -> Optional[str]:
    """Remote address of the request, if known."""
    if request is None or request.client is None:
        return None
    return request.client.host


class AuditLogService:
    """
    Writes audit_logs rows. Never updates or deletes them.

    Usage:
        AuditLogService(db).record(user, AuditAction.CREATE, AuditResource.PROJECT, project.id)
        db.commit()
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        user: Optional[UserDB],
        action: AuditAction,
        resource_type: AuditResource,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> AuditLogDB:
        """
        Add one entry to the session. Caller commits.

        Args:
            user: Acting user (None for system actions)
            action: What was done
            resource_type: Kind of resource acted on
            resource_id: Id of that resource
            details: Small JSON-serializable context, never document content
            ip_address: Client address
            created_at: When it happened (default: now)

        Returns:
            The created entry
        """
        entry = AuditLogDB(
            id=str(uuid4()),
            user_id=user.id if user is not None else None,
            action=action.value,
            resource_type=resource_type.value,
            resource_id=resource_id,
            details=details,
            ip_address=ip_address,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry
