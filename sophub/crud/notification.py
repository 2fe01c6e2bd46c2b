# sophub/crud/notification.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, Query

from sophub.core.timeutils import utcnow
from sophub.models.notification import Notification
from sophub.services.events import change_feed, row_dict

TABLE = "notifications"


def _publish(obj: Notification, type_: str) -> None:
    change_feed.publish(TABLE, type_, row_dict(obj), user_id=obj.user_id)


def _live(db: Session, user_id: int, now: datetime) -> Query:
    """Notifications of a user that have not expired."""
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        or_(Notification.expires_at.is_(None), Notification.expires_at >= now),
    )


def get_notification(db: Session, notification_id: int, user_id: int) -> Optional[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )


def list_notifications(
    db: Session,
    user_id: int,
    type: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> List[Notification]:
    q = _live(db, user_id, now or utcnow())
    if type:
        q = q.filter(Notification.type == type)
    if status == "read":
        q = q.filter(Notification.read.is_(True))
    elif status == "unread":
        q = q.filter(Notification.read.is_(False))
    if priority:
        q = q.filter(Notification.priority == priority)
    return (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def all_live_notifications(db: Session, user_id: int, now: Optional[datetime] = None) -> List[Notification]:
    return _live(db, user_id, now or utcnow()).all()


def unread_count(db: Session, user_id: int, now: Optional[datetime] = None) -> int:
    return _live(db, user_id, now or utcnow()).filter(Notification.read.is_(False)).count()


def create_notification(
    db: Session,
    *,
    user_id: int,
    type: str,
    title: str,
    message: Optional[str] = None,
    data: Optional[dict] = None,
    priority: str = "medium",
    company_id: Optional[int] = None,
    expires_at: Optional[datetime] = None,
) -> Notification:
    obj = Notification(
        user_id=user_id,
        company_id=company_id,
        type=type,
        title=title,
        message=message,
        data=data,
        priority=priority or "medium",
        expires_at=expires_at,
        read=False,
        created_at=utcnow(),
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    _publish(obj, "INSERT")
    return obj


def set_read(db: Session, obj: Notification, read: bool = True) -> Notification:
    obj.read = read
    db.add(obj)
    db.commit()
    db.refresh(obj)
    _publish(obj, "UPDATE")
    return obj


def mark_all_read(db: Session, user_id: int) -> int:
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .all()
    )
    for n in rows:
        n.read = True
    db.commit()
    for n in rows:
        _publish(n, "UPDATE")
    return len(rows)


def delete_notification(db: Session, obj: Notification) -> None:
    snapshot = row_dict(obj)
    db.delete(obj)
    db.commit()
    change_feed.publish(TABLE, "DELETE", snapshot, user_id=snapshot["user_id"])


def delete_all_read(db: Session, user_id: int) -> int:
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(True))
        .all()
    )
    snapshots = [row_dict(n) for n in rows]
    for n in rows:
        db.delete(n)
    db.commit()
    for snap in snapshots:
        change_feed.publish(TABLE, "DELETE", snap, user_id=snap["user_id"])
    return len(snapshots)


def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    count = (
        db.query(Notification)
        .filter(Notification.expires_at.isnot(None), Notification.expires_at < now)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(count or 0)


def notification_exists_since(
    db: Session,
    user_id: int,
    type: str,
    assignment_id: int,
    since: datetime,
) -> bool:
    """Dedupe helper for the daily reminder job (one reminder per assignment per day)."""
    rows = (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.type == type,
            Notification.created_at >= since,
        )
        .all()
    )
    return any((n.data or {}).get("assignment_id") == assignment_id for n in rows)
