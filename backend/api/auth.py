"""Session API endpoints for the authenticated caller."""

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from api.helpers import bearer_token, get_current_user
from database import get_db
from models import User
from schemas import UserResponse
from services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(get_current_user)):
    """Return the user the bearer token belongs to."""
    return user


@router.delete("/session", status_code=204)
def logout(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Revoke the bearer token used for this request."""
    AuthService.revoke(db, bearer_token(authorization))
    db.commit()
