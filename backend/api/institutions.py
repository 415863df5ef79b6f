"""Institutions API endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_current_user
from database import get_db
from models import User
from schemas import InstitutionCreate, InstitutionResponse
from services.portfolio_service import PortfolioService

router = APIRouter(prefix="/api/institutions", tags=["institutions"])


@router.get("", response_model=list[InstitutionResponse])
def list_institutions(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """List all institutions."""
    return PortfolioService.list_institutions(db)


@router.post("", response_model=InstitutionResponse, status_code=201)
def create_institution(
    data: InstitutionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create an institution, or return the existing one with the same name."""
    try:
        institution, _ = PortfolioService.get_or_create_institution(
            db, data.name, website=data.website, api_url=data.api_url, is_default=data.is_default
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(institution)
    return institution
