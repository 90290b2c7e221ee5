from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from schooldesk.core.logging import get_logger
from schooldesk.models.auth import AuditLog, User

logger = get_logger(__name__)


def record(
    db: Session,
    user: User,
    action: str,
    resource: str,
    resource_id: Optional[Any] = None,
    description: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Add an audit row to the caller's transaction; the caller commits."""
    entry = AuditLog(
        school_id=user.school_id,
        user_id=user.id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        description=description,
        details=details,
    )
    db.add(entry)
    logger.info("audit_recorded", action=action, resource=resource, resource_id=entry.resource_id, user_id=str(user.id))
    return entry
