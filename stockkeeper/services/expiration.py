from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from stockkeeper.errors import (
    AlreadyProcessedError,
    ConcurrencyError,
    NotFoundError,
    NotYetExpiredError,
)
from stockkeeper.extensions import db
from stockkeeper.models import ExpiredRecord, StockLot
from stockkeeper.services import require_admin
from stockkeeper.timeutils import end_of_day, expiry_instant, isoformat, start_of_day, utcnow
from stockkeeper.utils import create_activity_log

SEVERITY_URGENT = 'urgent'
SEVERITY_ADVISORY = 'advisory'

DEFAULT_WINDOW_DAYS = 30
DEFAULT_URGENT_DAYS = 7


def is_expired(expiration_date, now: datetime) -> bool:
    """True when the expiry instant lies strictly before ``now``.

    A lot without an expiration date never expires.
    """
    expires = expiry_instant(expiration_date)
    if expires is None:
        return False
    return expires < now


def migrate_to_expired(lot_id, actor, now=None) -> ExpiredRecord:
    """Move an expired lot into the expired ledger.

    Writes the snapshot record and flips the lot to ``expired`` in a single
    transaction, so neither half can persist without the other.
    """
    require_admin(actor, "move stock to expired")
    now = now or utcnow()

    lot = db.session.get(StockLot, lot_id, with_for_update=True)
    if lot is None:
        db.session.rollback()
        raise NotFoundError("Stock lot not found.")
    if lot.status == StockLot.STATUS_EXPIRED:
        db.session.rollback()
        raise AlreadyProcessedError(f"Lot {lot.label} has already been moved to expired.")
    if not is_expired(lot.expiration_date, now):
        db.session.rollback()
        raise NotYetExpiredError(f"Lot {lot.label} is not yet expired.")

    record = ExpiredRecord.from_lot(lot, moved_by=actor, expired_at=now)
    try:
        db.session.add(record)
        lot.status = StockLot.STATUS_EXPIRED
        create_activity_log(
            actor,
            'expire',
            lot=lot,
            quantity=0,
            notes=f"Moved {lot.quantity} units of {lot.name} to expired",
            timestamp=now,
        )
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrencyError("Lot was modified by another user. Please try again.")
    except IntegrityError:
        # unique lot_id: another admin migrated the same lot first
        db.session.rollback()
        raise AlreadyProcessedError("This lot has already been moved to expired.")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"DB error while expiring lot {lot_id}")
        raise

    current_app.logger.info(
        f"User {actor.username} moved lot {record.label} ({record.quantity} units) to expired"
    )
    return record


@dataclass
class ExpiryOverview:
    upcoming: list
    awaiting_migration: list
    expired: list

    def to_dict(self) -> dict[str, list]:
        return {
            'upcoming': [lot.to_dict() for lot in self.upcoming],
            'awaiting_migration': [lot.to_dict() for lot in self.awaiting_migration],
            'expired': [record.to_dict() for record in self.expired],
        }


def classify_lots(lots, now):
    """Split active lots that carry an expiry into (not yet past, already past).

    Both lists are sorted soonest expiry first.
    """
    upcoming, past = [], []
    for lot in lots:
        if lot.status != StockLot.STATUS_ACTIVE or lot.quantity <= 0:
            continue
        if lot.expiration_date is None:
            continue
        if is_expired(lot.expiration_date, now):
            past.append(lot)
        else:
            upcoming.append(lot)
    upcoming.sort(key=lambda lot: expiry_instant(lot.expiration_date))
    past.sort(key=lambda lot: expiry_instant(lot.expiration_date))
    return upcoming, past


def expiry_overview(now=None) -> ExpiryOverview:
    now = now or utcnow()
    lots = (
        StockLot.query
        .filter(
            StockLot.status == StockLot.STATUS_ACTIVE,
            StockLot.quantity > 0,
            StockLot.expiration_date.isnot(None),
        )
        .all()
    )
    upcoming, past = classify_lots(lots, now)
    expired = (
        ExpiredRecord.query
        .order_by(ExpiredRecord.expired_at.desc(), ExpiredRecord.id.desc())
        .all()
    )
    return ExpiryOverview(upcoming=upcoming, awaiting_migration=past, expired=expired)


@dataclass(frozen=True)
class ExpiryNotice:
    lot_id: int
    name: str
    label: str
    expiration_date: object
    days_remaining: int
    severity: str

    def to_dict(self) -> dict[str, object]:
        return {
            'lot_id': self.lot_id,
            'name': self.name,
            'label': self.label,
            'expiration_date': isoformat(self.expiration_date),
            'days_remaining': self.days_remaining,
            'severity': self.severity,
        }


def expiry_notices(lots, now, window_days=DEFAULT_WINDOW_DAYS,
                   urgent_days=DEFAULT_URGENT_DAYS) -> list[ExpiryNotice]:
    """Active lots expiring within ``window_days`` of ``now``, soonest first."""
    limit = now + timedelta(days=window_days)
    notices = []
    for lot in lots:
        if lot.status != StockLot.STATUS_ACTIVE:
            continue
        expires = expiry_instant(lot.expiration_date)
        if expires is None or expires < now or expires > limit:
            continue
        days = math.ceil((expires - now) / timedelta(days=1))
        notices.append(ExpiryNotice(
            lot_id=lot.id,
            name=lot.name,
            label=lot.label,
            expiration_date=lot.expiration_date,
            days_remaining=days,
            severity=SEVERITY_URGENT if days <= urgent_days else SEVERITY_ADVISORY,
        ))
    notices.sort(key=lambda notice: (notice.days_remaining, notice.name))
    return notices


def current_expiry_notices(now=None) -> list[ExpiryNotice]:
    """Notices for the lots currently in the database, windows from config."""
    now = now or utcnow()
    window_days = current_app.config.get('EXPIRY_WARNING_DAYS', DEFAULT_WINDOW_DAYS)
    urgent_days = current_app.config.get('EXPIRY_URGENT_DAYS', DEFAULT_URGENT_DAYS)
    limit = now + timedelta(days=window_days)
    lots = (
        StockLot.query
        .filter(
            StockLot.status == StockLot.STATUS_ACTIVE,
            StockLot.expiration_date.isnot(None),
            StockLot.expiration_date <= limit.date(),
        )
        .all()
    )
    return expiry_notices(lots, now, window_days=window_days, urgent_days=urgent_days)


def list_expired_records(start=None, end=None) -> list[ExpiredRecord]:
    """Expired ledger, most recent first, optionally within a migration date range."""
    query = ExpiredRecord.query
    if start is not None:
        query = query.filter(ExpiredRecord.expired_at >= start_of_day(start))
    if end is not None:
        query = query.filter(ExpiredRecord.expired_at <= end_of_day(end))
    return query.order_by(ExpiredRecord.expired_at.desc(), ExpiredRecord.id.desc()).all()
