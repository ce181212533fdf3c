"""
Authentication and authorization dependencies.

Provides FastAPI dependencies for:
- Getting the current authenticated gym
- Admin role checks
- A tenant scope bound to the current gym
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.security import decode_access_token
from core.tenancy import TenantScope, with_tenant
from models import GymTenant

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_gym(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> GymTenant:
    """
    Get the current authenticated gym from JWT token.

    Raises HTTPException if token is invalid or gym not found / inactive.
    """
    # Check if credentials are missing (return 401, not 403)
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    gym_id = payload.get("sub")
    if not gym_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    gym = db.query(GymTenant).filter(GymTenant.id == gym_id).first()
    if not gym:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Gym not found",
        )

    # Deactivated gyms lose access immediately, even with an unexpired token.
    if not gym.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Gym account is inactive",
        )

    return gym


def require_admin(
    current_gym: GymTenant = Depends(get_current_gym)
) -> GymTenant:
    """Require the admin role (resolved from the gym record, not the token)."""
    if not current_gym.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_gym


def get_tenant_scope(
    current_gym: GymTenant = Depends(get_current_gym),
    db: Session = Depends(get_db)
) -> TenantScope:
    """Tenant scope for the authenticated gym."""
    return with_tenant(db, current_gym)


def get_admin_scope(
    current_gym: GymTenant = Depends(require_admin),
    db: Session = Depends(get_db)
) -> TenantScope:
    """Tenant scope for an authenticated admin gym (sees all tenants)."""
    return with_tenant(db, current_gym)
