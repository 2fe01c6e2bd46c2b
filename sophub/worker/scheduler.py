# sophub/worker/scheduler.py
from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.exc import SQLAlchemyError

from sophub.crud.notification import purge_expired
from sophub.db.session import SessionLocal
from sophub.services.notifications import (
    generate_due_soon_reminders,
    generate_overdue_reminders,
)

log = logging.getLogger("sophub.worker")


def _with_db(fn, **kwargs) -> int:
    """Run one job step with a fresh session; a database failure counts as 0 and is logged."""
    db = SessionLocal()
    try:
        return int(fn(db, **kwargs) or 0)
    except SQLAlchemyError:
        db.rollback()
        log.exception("scheduled step %s failed", getattr(fn, "__name__", fn))
        return 0
    finally:
        db.close()


def _company_scope() -> Optional[int]:
    raw = os.getenv("NOTIFY_COMPANY_ID")
    return int(raw) if raw and raw.isdigit() else None


def run_daily_notifications() -> Dict[str, int]:
    """
    Daily pipeline:
      - overdue reminders (open assignments past their due date)
      - due-soon reminders (due within REMINDER_DUE_SOON_DAYS)
      - purge of expired notifications
    Each assignment gets at most one reminder of each kind per day.
    NOTIFY_COMPANY_ID limits the reminders to one company.
    """
    company_id = _company_scope()
    result = {
        "overdue": _with_db(generate_overdue_reminders, for_company_id=company_id),
        "due_soon": _with_db(generate_due_soon_reminders, for_company_id=company_id),
        "purged": _with_db(purge_expired),
    }
    log.info("daily notifications %s", result)
    return result


def make_scheduler() -> BackgroundScheduler:
    """
    BackgroundScheduler configured from env:
      - APP_TIMEZONE           (default: UTC)
      - APP_SCHEDULER_HOUR     (default: 6)
      - APP_SCHEDULER_MINUTE   (default: 0)
    """
    tzname = os.getenv("APP_TIMEZONE", "UTC")
    hour = int(os.getenv("APP_SCHEDULER_HOUR", "6"))
    minute = int(os.getenv("APP_SCHEDULER_MINUTE", "0"))

    sched = BackgroundScheduler(timezone=tzname)
    sched.add_job(
        run_daily_notifications,
        CronTrigger(hour=hour, minute=minute),
        id="daily_notifications",
        replace_existing=True,
    )
    return sched
