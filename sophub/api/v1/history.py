# sophub/api/v1/history.py
from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.models.user import User
from sophub.schemas.history import HistoryFilters, HistoryRecord, Receipt
from sophub.services import history as history_service

router = APIRouter(prefix="/me/history", tags=["history"])


def history_filters(
    date_range: str = Query("all", pattern="^(all|30days|6months|1year)$"),
    document_type: str = Query("all"),
    department: str = Query("all"),
    status: str = Query("all", pattern="^(all|acknowledged|expired|superseded)$"),
    search: str = Query(""),
) -> HistoryFilters:
    return HistoryFilters(
        date_range=date_range,
        document_type=document_type,
        department=department,
        status=status,
        search=search,
    )


@router.get("", response_model=List[HistoryRecord])
def my_history(
    filters: HistoryFilters = Depends(history_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return history_service.list_history(db, current_user.id, filters)


@router.get("/stats")
def my_history_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, int]:
    return history_service.get_history_stats(db, current_user.id)


@router.get("/departments", response_model=List[str])
def my_history_departments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return history_service.get_history_departments(db, current_user.id)


@router.get("/{ack_id}/receipt", response_model=Receipt)
def my_receipt(
    ack_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    receipt = history_service.generate_receipt(db, current_user.id, ack_id)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Acknowledgment not found")
    return receipt
