# sophub/api/v1/notifications.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import is_super, require_admin
from sophub.crud import notification as crud_notification
from sophub.crud.user import get_user
from sophub.models.notification import Notification
from sophub.models.user import User
from sophub.schemas.notification import NotificationCreate, NotificationOut, NotificationStats
from sophub.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _get_notification_or_404(db: Session, notification_id: int, current_user: User) -> Notification:
    n = crud_notification.get_notification(db, notification_id, current_user.id)
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    return n


# -----------------------------
# LIST / COUNTS
# -----------------------------
@router.get("", response_model=List[NotificationOut])
def list_notifications(
    type: Optional[str] = Query(None, description="Filter by notification type"),
    status_: Optional[str] = Query(None, alias="status", pattern="^(all|read|unread)$"),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high|urgent)$"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The caller's own notifications, newest first. Expired ones are never listed."""
    return crud_notification.list_notifications(
        db,
        current_user.id,
        type=type,
        status=status_,
        priority=priority,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=NotificationStats)
def notification_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notification_service.stats_for_user(db, current_user.id)


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, int]:
    return {"count": crud_notification.unread_count(db, current_user.id)}


# -----------------------------
# CREATE (admin)
# -----------------------------
@router.post("", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    company_id = None if is_super(current_user) else current_user.company_id
    target = get_user(db, payload.user_id, company_id=company_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    return crud_notification.create_notification(
        db,
        user_id=target.id,
        company_id=target.company_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        data=payload.data,
        priority=payload.priority,
        expires_at=payload.expires_at,
    )


# -----------------------------
# READ STATE / DELETE
# -----------------------------
@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return {"updated": crud_notification.mark_all_read(db, current_user.id)}


@router.delete("/read")
def delete_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return {"deleted": crud_notification.delete_all_read(db, current_user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    n = _get_notification_or_404(db, notification_id, current_user)
    return crud_notification.set_read(db, n, True)


@router.post("/{notification_id}/unread", response_model=NotificationOut)
def mark_unread(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    n = _get_notification_or_404(db, notification_id, current_user)
    return crud_notification.set_read(db, n, False)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    n = _get_notification_or_404(db, notification_id, current_user)
    crud_notification.delete_notification(db, n)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
