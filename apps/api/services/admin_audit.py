from __future__ import annotations

from typing import Any, Dict, Optional

import logging
from fastapi import Request
from sqlalchemy.orm import Session

from models import AdminAuditEvent, GymTenant

logger = logging.getLogger(__name__)


def record_admin_audit_event(
    db: Session,
    *,
    request: Optional[Request] = None,
    actor: GymTenant,
    action: str,
    target_gym_id: Optional[str] = None,
    target_id: Optional[str] = None,
    reason: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AdminAuditEvent:
    """
    Append an audit event for an admin action.

    The event is added to the caller's session and is committed (or rolled
    back) together with the action it describes.
    Payload must be bounded and must not contain secrets.
    """
    ip_address = None
    user_agent = None
    if request is not None:
        ip_address = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent")

    ev = AdminAuditEvent(
        actor_gym_id=actor.id,
        action=action,
        target_gym_id=target_gym_id,
        target_id=target_id,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        payload=payload or {},
    )
    db.add(ev)
    logger.info(
        f"Admin audit: {action}",
        extra={"extra_fields": {"actor_gym_id": actor.id, "action": action, "target_id": target_id}},
    )
    return ev
