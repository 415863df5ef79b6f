"""Transactions API endpoints, including recurring templates."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from api.helpers import get_current_user
from database import get_db
from models import Transaction, User
from schemas import (
    DuplicateRequest,
    OccurrenceResponse,
    RecurrenceBuildRequest,
    RecurrenceDescription,
    RecurrenceRunResponse,
    RecurringTemplateResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from services.recurrence_service import describe_recurrence, recurrence_to_cron, validate_recurrence
from services.transaction_service import MAX_SCHEDULE_OCCURRENCES, TransactionService
from utils.query_params import parse_transaction_types

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _get_owned(db: Session, user: User, transaction_id: int) -> Transaction:
    transaction = TransactionService.get_transaction(db, user.id, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


def _get_template(db: Session, user: User, transaction_id: int) -> Transaction:
    transaction = _get_owned(db, user, transaction_id)
    if not transaction.is_template:
        raise HTTPException(status_code=400, detail="Transaction is not recurring")
    return transaction


def _template_response_dict(template: Transaction) -> dict:
    result = TransactionResponse.model_validate(template).model_dump()
    result["description"] = describe_recurrence(template.recurrence)
    result["next_occurrence"] = TransactionService.next_occurrence(template)
    return result


@router.get("", response_model=list[TransactionResponse])
def list_transactions(
    portfolio_id: int | None = Query(None, description="Restrict to one portfolio (-1 = all)"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    types: str | None = Query(None, description="Comma-separated transaction types"),
    include_housekeeping: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List stored transactions (templates included), ordered by date."""
    return TransactionService.list_transactions(
        db,
        user.id,
        portfolio_id=portfolio_id,
        start=start,
        end=end,
        types=parse_transaction_types(types),
        include_housekeeping=include_housekeeping,
    )


@router.post("", response_model=TransactionResponse, status_code=201)
def create_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a transaction, or a recurring template when ``recurrence`` is set."""
    try:
        transaction = TransactionService.create_transaction(db, user.id, data.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(transaction)
    return transaction


@router.get("/recurring", response_model=list[RecurringTemplateResponse])
def list_recurring(
    portfolio_id: int | None = Query(None, description="Restrict to one portfolio (-1 = all)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List recurring templates with their next occurrence."""
    templates = TransactionService.list_recurring(db, user.id, portfolio_id)
    return [_template_response_dict(t) for t in templates]


@router.get("/recurrence/describe", response_model=RecurrenceDescription)
def describe(
    spec: str = Query(..., description="Shorthand (daily, weekly, ...) or a 5-field cron"),
    user: User = Depends(get_current_user),
):
    """Validate a recurrence and describe it in words."""
    cron = validate_recurrence(spec)
    return RecurrenceDescription(cron=cron, description=describe_recurrence(cron))


@router.post("/recurrence/build", response_model=RecurrenceDescription)
def build_recurrence(
    data: RecurrenceBuildRequest,
    user: User = Depends(get_current_user),
):
    """Turn recurrence picker settings into a cron expression."""
    cron = recurrence_to_cron(
        data.period,
        data.hour,
        data.minute,
        day_of_week=data.day_of_week,
        day_of_month=data.day_of_month,
    )
    return RecurrenceDescription(cron=cron, description=describe_recurrence(cron))


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get a transaction by id."""
    return _get_owned(db, user, transaction_id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update a transaction; its cash leg is rebuilt."""
    transaction = _get_owned(db, user, transaction_id)
    try:
        TransactionService.update_transaction(db, user.id, transaction, data.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(transaction)
    return transaction


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a transaction together with its cash leg."""
    transaction = _get_owned(db, user, transaction_id)
    try:
        TransactionService.delete_transaction(db, transaction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return Response(status_code=204)


@router.post("/{transaction_id}/duplicate", response_model=TransactionResponse, status_code=201)
def duplicate_transaction(
    transaction_id: int,
    data: DuplicateRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Copy a transaction as a one-off, optionally at another date."""
    source = _get_owned(db, user, transaction_id)
    try:
        copy = TransactionService.duplicate_transaction(
            db, user.id, source, date=data.date if data else None
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    db.refresh(copy)
    return copy


@router.get("/{transaction_id}/schedule", response_model=list[OccurrenceResponse])
def get_schedule(
    transaction_id: int,
    start: datetime | None = Query(None, description="Window start (default: now)"),
    end: datetime | None = Query(None, description="Window end (default: start + 90 days)"),
    limit: int = Query(default=100, ge=1, le=MAX_SCHEDULE_OCCURRENCES),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Upcoming virtual occurrences of a recurring template."""
    template = _get_template(db, user, transaction_id)
    try:
        return TransactionService.schedule(db, template, start, end, limit)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{transaction_id}/materialize", response_model=list[RecurrenceRunResponse])
def materialize(
    transaction_id: int,
    until: datetime | None = Query(None, description="Materialize occurrences up to here (default: now)"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Persist a template's pending occurrences as stored transactions."""
    template = _get_template(db, user, transaction_id)
    runs = TransactionService.materialize(db, user.id, template, until)
    db.commit()
    return runs


@router.get("/{transaction_id}/runs", response_model=list[RecurrenceRunResponse])
def list_runs(
    transaction_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Materialization log of a recurring template."""
    template = _get_template(db, user, transaction_id)
    return TransactionService.list_runs(db, template)
