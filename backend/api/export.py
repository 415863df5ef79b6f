"""Data export API endpoint."""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from api.helpers import get_current_user, portfolio_response_dict
from database import get_db
from models import User
from schemas import ExportResponse
from services.export_service import CSV_FILENAME, EXPORT_FILENAME, ExportService

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("", response_model=ExportResponse)
def export_data(
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Download the user's portfolios, transactions and institutions as JSON."""
    data = ExportService.collect(db, user.id)
    response.headers["Content-Disposition"] = f'attachment; filename="{EXPORT_FILENAME}"'
    return {
        "portfolios": [portfolio_response_dict(p) for p in data["portfolios"]],
        "transactions": data["transactions"],
        "institutions": data["institutions"],
    }


@router.get("/transactions.csv", response_class=Response)
def export_transactions_csv(
    portfolio_id: int | None = Query(None, description="Limit to one portfolio"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Download the user's transactions as CSV."""
    try:
        content = ExportService.transactions_csv(db, user.id, portfolio_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
    )
