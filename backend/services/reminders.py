"""Expiration reminder scheduler.

Each tick looks at every PENDING/APPROVED COI that has not expired yet,
works out which threshold window (D30, D15, D7 by default) it is in and
fires at most one reminder per (coi, kind, tag). The NotificationLog unique
constraint is the only guard against duplicates: a tick claims the ledger
row with an insert, delivers the event, and commits the claim only once
delivery is confirmed. A concurrent tick that tries the same insert fails
on the constraint (or, on SQLite, times out on the write lock the first
tick holds while delivering) and skips; a tick whose delivery keeps failing
rolls its claim back so the next tick tries again.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

import config
from errors import DeliveryError, DuplicateReminder, LedgerBusy
from models import COI, NotificationLog
from schemas.common import owner_from_columns
from services.lifecycle import EXPIRABLE_STATUSES
from services.notifications import LogNotifier, Notifier, ReminderEvent

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    emitted: list[ReminderEvent] = field(default_factory=list)
    skipped: int = 0
    failed: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "emitted": [event.to_dict() for event in self.emitted],
            "skipped": self.skipped,
            "failed": self.failed,
        }


def threshold_tag(days: int) -> str:
    return f"D{days}"


def days_until(expiration_date: datetime, now: datetime) -> int:
    """Whole days left, floored"""
    return (expiration_date - now) // timedelta(days=1)


def select_threshold(days_left: int, thresholds=None) -> Optional[int]:
    """Return the tightest threshold window `days_left` falls in, or None.

    With thresholds (30, 15, 7): 20 days left -> 30, 10 -> 15, 3 -> 7,
    45 -> None. A COI that skipped earlier windows only gets the current one.
    """
    thresholds = thresholds or config.REMINDER_THRESHOLDS
    matching = [t for t in thresholds if days_left <= t]
    return min(matching) if matching else None


def already_sent(db: Session, coi_id: int, kind: str, tag: str) -> bool:
    return db.query(NotificationLog.id).filter(
        NotificationLog.coi_id == coi_id,
        NotificationLog.kind == kind,
        NotificationLog.tag == tag,
    ).first() is not None


def claim(db: Session, coi_id: int, kind: str, tag: str, now: datetime) -> NotificationLog:
    """Insert the ledger row inside the open transaction.

    Raises DuplicateReminder when another tick already holds the row, and
    LedgerBusy when another tick's open claim keeps the store write-locked
    past the busy timeout (SQLite).
    """
    entry = NotificationLog(coi_id=coi_id, kind=kind, tag=tag, sent_at=now)
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateReminder(coi_id, kind, tag)
    except OperationalError as e:
        db.rollback()
        if not is_lock_contention(e):
            raise
        raise LedgerBusy(coi_id, kind, tag) from e
    return entry


def is_lock_contention(error: OperationalError) -> bool:
    return "locked" in str(error.orig).lower()


def deliver(notifier: Notifier, event: ReminderEvent, max_attempts: int, retry_backoff: float) -> None:
    """Send with bounded retry; re-raises the last DeliveryError"""
    for attempt in range(1, max_attempts + 1):
        try:
            notifier.send(event)
            return
        except DeliveryError as e:
            logger.warning("Delivery of %s/%s for COI %s failed (attempt %d/%d): %s",
                           event.kind, event.tag, event.coi_id, attempt, max_attempts, e)
            if attempt == max_attempts:
                raise
            if retry_backoff:
                time.sleep(retry_backoff * attempt)


def due_reminders(db: Session, now: datetime, kind: str, thresholds=None) -> list[ReminderEvent]:
    """Reminders that should exist as of `now`, whether or not already sent"""
    rows = db.query(COI.id, COI.building_id, COI.owner_type, COI.owner_id, COI.expiration_date).filter(
        COI.status.in_(EXPIRABLE_STATUSES),
        COI.expiration_date > now,
    ).order_by(COI.expiration_date, COI.id).all()

    events = []
    for coi_id, building_id, owner_type, owner_id, expiration_date in rows:
        days_left = days_until(expiration_date, now)
        threshold = select_threshold(days_left, thresholds)
        if threshold is None:
            continue
        events.append(ReminderEvent(
            coi_id=coi_id,
            building_id=building_id,
            owner=owner_from_columns(owner_type, owner_id),
            kind=kind,
            tag=threshold_tag(threshold),
            days_left=days_left,
            expiration_date=expiration_date,
        ))
    return events


def tick(db: Session, now: datetime, notifier: Optional[Notifier] = None, thresholds=None,
         kind: Optional[str] = None, max_attempts: Optional[int] = None,
         retry_backoff: Optional[float] = None) -> TickResult:
    notifier = notifier or LogNotifier()
    kind = kind or config.REMINDER_KIND
    max_attempts = max_attempts or config.DELIVERY_MAX_ATTEMPTS
    if retry_backoff is None:
        retry_backoff = config.DELIVERY_RETRY_BACKOFF_SECONDS

    result = TickResult()
    events = due_reminders(db, now, kind, thresholds)
    # The candidate read holds no locks past this point
    db.commit()

    for event in events:
        if already_sent(db, event.coi_id, event.kind, event.tag):
            result.skipped += 1
            continue
        try:
            claim(db, event.coi_id, event.kind, event.tag, now)
        except DuplicateReminder:
            logger.debug("Reminder %s/%s for COI %s claimed by another tick", event.kind, event.tag, event.coi_id)
            result.skipped += 1
            continue
        except LedgerBusy:
            logger.warning("Reminder ledger locked by another tick; %s/%s for COI %s left for the next tick",
                           event.kind, event.tag, event.coi_id)
            result.skipped += 1
            continue

        try:
            deliver(notifier, event, max_attempts, retry_backoff)
        except DeliveryError:
            db.rollback()
            logger.error("Giving up on %s/%s for COI %s this tick; will retry next tick",
                         event.kind, event.tag, event.coi_id)
            result.failed.append(event.coi_id)
            continue
        except Exception:
            db.rollback()
            raise

        db.commit()
        result.emitted.append(event)
        logger.info("Sent %s/%s for COI %s (%d day(s) left)", event.kind, event.tag, event.coi_id, event.days_left)

    return result
