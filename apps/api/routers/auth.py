"""
Authentication API endpoints.

Provides:
- PIN login (JWT token generation)
- Current gym profile
- Active gym list for the admin gym picker
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from core.auth import get_current_gym, require_admin
from core.database import get_db
from models import GymTenant
from schemas import GymResponse, GymSummary, PinLoginRequest, TokenResponse
from services.tenant_context import issue_session_token, list_active_gyms, login_with_pin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post("/pin-login", response_model=TokenResponse)
def pin_login(body: PinLoginRequest, db: Session = Depends(get_db)):
    """
    Sign in as a gym with its PIN code.

    Unknown PINs return 404 "login failed"; the response never says whether
    a gym exists.
    """
    gym = login_with_pin(db, body.pin_code).unwrap()
    logger.info("Gym signed in", extra={"extra_fields": {"gym_id": gym.id, "role": gym.role}})
    return TokenResponse(
        access_token=issue_session_token(gym),
        gym=GymResponse.model_validate(gym),
    )


@router.get("/me", response_model=GymResponse)
def get_me(current_gym: GymTenant = Depends(get_current_gym)):
    return current_gym


@router.get("/gyms", response_model=List[GymSummary])
def get_gyms(
    current_gym: GymTenant = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_active_gyms(db)
