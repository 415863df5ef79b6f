"""Data import API endpoint."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.helpers import get_current_user
from database import get_db
from models import User
from schemas import GhostfolioExport, ImportResponse
from services.import_service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])


@router.post("", response_model=ImportResponse)
def import_ghostfolio(
    payload: GhostfolioExport,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Import a Ghostfolio export.

    Platforms become institutions, accounts become portfolios and
    activities become transactions. Rows that fail are skipped and
    reported in ``errors``; everything else is committed.
    """
    result = ImportService.import_ghostfolio(db, user.id, payload)
    db.commit()

    message = (
        f"Imported {result.portfolios} portfolios and {result.transactions} transactions"
    )
    if result.errors:
        message += f" with {len(result.errors)} errors"
    return ImportResponse(
        success=not result.errors,
        message=message,
        portfolios=result.portfolios,
        institutions=result.institutions,
        transactions=result.transactions,
        assets=result.assets,
        errors=result.errors,
    )
