"""
Tenant resolution: PIN login and gym listing.

A PIN resolves exactly one active gym. The resolved gym becomes the explicit
tenant for every later call (see core.tenancy.TenantScope).
"""
from typing import List
import logging

from sqlalchemy.orm import Session

from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from core.security import create_access_token
from models import GymTenant
from services.results import ServiceResult, run_service

logger = logging.getLogger(__name__)


def _resolve_gym_by_pin(db: Session, pin_code: str) -> GymTenant:
    pin = (pin_code or "").strip()
    if not pin:
        raise ValidationError("PIN code is required", field="pin_code")

    matches = (
        db.query(GymTenant)
        .filter(GymTenant.pin_code == pin, GymTenant.active.is_(True))
        .limit(2)
        .all()
    )
    if not matches:
        logger.info("PIN login failed: no active gym for PIN")
        raise NotFoundError("Gym", "login failed")
    if len(matches) > 1:
        # Two active gyms sharing a PIN would let one sign in as the other.
        logger.error(
            "PIN login refused: PIN shared by multiple active gyms",
            extra={"extra_fields": {"gym_ids": [g.id for g in matches]}},
        )
        raise AuthorizationError("Login failed")
    return matches[0]


def login_with_pin(db: Session, pin_code: str) -> ServiceResult[GymTenant]:
    """Resolve the active gym for a PIN, or fail with NotFoundError."""
    return run_service(_resolve_gym_by_pin, db, pin_code)


def issue_session_token(gym: GymTenant) -> str:
    """Bearer token for a resolved gym; role is carried for clients, re-checked server side."""
    return create_access_token(gym.id, gym.role)


def list_active_gyms(db: Session) -> List[GymTenant]:
    return (
        db.query(GymTenant)
        .filter(GymTenant.active.is_(True))
        .order_by(GymTenant.gym_name, GymTenant.id)
        .all()
    )
