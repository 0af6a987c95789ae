from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from stockkeeper.errors import (
    ConcurrencyError,
    InsufficientStockError,
    NoStockError,
    StockExpiredError,
)
from stockkeeper.extensions import db
from stockkeeper.models import Allocation, StockLot
from stockkeeper.services import require_positive_int, require_text
from stockkeeper.timeutils import end_of_day, expiry_instant, start_of_day, utcnow
from stockkeeper.utils import create_activity_log

# Lots without an expiration date sort after every real date
NEVER_EXPIRES = datetime.max

METHOD_PURE_FIFO = 'pure_fifo'
METHOD_DEGENERATE_FEFO = 'degenerate_fefo'
METHOD_FEFO_TO_FIFO = 'fefo_to_fifo'
METHOD_FEFO = 'fefo'

METHOD_DESCRIPTIONS = {
    METHOD_PURE_FIFO: "FIFO (no stock with an expiration date was found)",
    METHOD_DEGENERATE_FEFO: "FEFO (only one lot has an expiration date)",
    METHOD_FEFO_TO_FIFO: (
        "FEFO -> FIFO (expiration dates are equal, ordered by date received)"
    ),
    METHOD_FEFO: "FEFO (the lot expiring soonest is taken first)",
}


@dataclass(frozen=True)
class Draw:
    lot: object
    quantity: int


@dataclass(frozen=True)
class AllocationPlan:
    item_name: str
    requested_quantity: int
    draws: list[Draw]
    method: str

    @property
    def method_description(self) -> str:
        return METHOD_DESCRIPTIONS[self.method]

    @property
    def total(self) -> int:
        return sum(draw.quantity for draw in self.draws)


@dataclass
class AllocationResult:
    plan: AllocationPlan
    allocations: list[Allocation] = field(default_factory=list)

    @property
    def summary(self) -> str:
        used = ", ".join(
            f"{draw.lot.label} ({draw.quantity})" for draw in self.plan.draws
        )
        return (
            f"Took {self.plan.requested_quantity} {self.plan.item_name} "
            f"from lots {used} using {self.plan.method_description}."
        )

    def to_dict(self) -> dict[str, object]:
        return {
            'item_name': self.plan.item_name,
            'requested_quantity': self.plan.requested_quantity,
            'method': self.plan.method,
            'method_description': self.plan.method_description,
            'summary': self.summary,
            'allocations': [allocation.to_dict() for allocation in self.allocations],
        }


def is_valid_on(lot, now: datetime) -> bool:
    """A lot is drawable unless its expiry instant is strictly before ``now``."""
    expires = expiry_instant(lot.expiration_date)
    return expires is None or expires >= now


def draw_order_key(lot):
    """FEFO, with ties (including two lots that never expire) broken FIFO.

    Lots received on the same day fall back to insertion order.
    """
    expires = expiry_instant(lot.expiration_date)
    return (
        expires if expires is not None else NEVER_EXPIRES,
        start_of_day(lot.received_date),
        lot.id,
    )


def classify_method(candidates) -> str:
    """Describe which tie-break the draw order ended up using.

    Purely informational: the ordering is the same in every case.
    """
    expiries = [
        expiry_instant(lot.expiration_date)
        for lot in candidates
        if lot.expiration_date is not None
    ]
    if not expiries:
        return METHOD_PURE_FIFO
    if len(expiries) == 1:
        return METHOD_DEGENERATE_FEFO
    if len(set(expiries)) == 1:
        return METHOD_FEFO_TO_FIFO
    return METHOD_FEFO


def plan_allocation(item_name, requested_quantity, lots, now) -> AllocationPlan:
    """Choose which lots a dispense request draws from, without touching them.

    Args:
        item_name: Item to dispense, matched exactly against lot names
        requested_quantity: Positive number of units wanted
        lots: Every known lot; non-matching, inactive and empty lots are ignored
        now: Reference time for expiry checks

    Returns:
        AllocationPlan: Ordered draws summing to ``requested_quantity``

    Raises:
        ValidationError: Empty item name or non-positive quantity
        NoStockError: No active stock of that item at all
        StockExpiredError: Every matching lot has expired
        InsufficientStockError: Valid stock does not cover the request
    """
    item_name = require_text(item_name, "Select an item to take.")
    requested_quantity = require_positive_int(
        requested_quantity, "Quantity must be a positive whole number."
    )

    candidates = [
        lot for lot in lots
        if lot.name == item_name
        and lot.status == StockLot.STATUS_ACTIVE
        and lot.quantity > 0
    ]
    if not candidates:
        raise NoStockError(f"No stock available for {item_name}.")

    valid = [lot for lot in candidates if is_valid_on(lot, now)]
    if not valid:
        raise StockExpiredError("All matching stock has expired.")

    available = sum(lot.quantity for lot in valid)
    if available < requested_quantity:
        raise InsufficientStockError(available, requested_quantity)

    valid.sort(key=draw_order_key)

    draws = []
    remaining = requested_quantity
    for lot in valid:
        if remaining <= 0:
            break
        take = min(remaining, lot.quantity)
        if take > 0:
            draws.append(Draw(lot=lot, quantity=take))
            remaining -= take

    return AllocationPlan(
        item_name=item_name,
        requested_quantity=requested_quantity,
        draws=draws,
        method=classify_method(valid),
    )


def record_allocation(plan: AllocationPlan, actor, now: datetime) -> AllocationResult:
    """Persist a plan: decrement every drawn lot and write its allocation rows.

    Everything is committed at once or rolled back together. Lot updates are
    versioned, so a lot changed by someone else since it was read raises
    ConcurrencyError instead of overcommitting.
    """
    result = AllocationResult(plan=plan)
    try:
        for draw in plan.draws:
            draw.lot.quantity = draw.lot.quantity - draw.quantity
            allocation = Allocation(
                lot=draw.lot,
                quantity=draw.quantity,
                taken_at=now,
                user_id=actor.id,
            )
            db.session.add(allocation)
            result.allocations.append(allocation)

        db.session.flush()
        for draw in plan.draws:
            create_activity_log(
                actor,
                'take',
                lot=draw.lot,
                quantity=-draw.quantity,
                notes=plan.method_description,
                timestamp=now,
            )
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning(
            f"Concurrent update while taking {plan.item_name}; nothing was taken"
        )
        raise ConcurrencyError(
            "Stock was modified by another user. Please try again."
        )
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"DB error while taking {plan.item_name}")
        raise

    current_app.logger.info(
        f"User {actor.username} took {plan.requested_quantity} {plan.item_name} "
        f"from {len(plan.draws)} lot(s) using {plan.method}"
    )
    return result


def allocate(item_name, requested_quantity, actor, now=None) -> AllocationResult:
    """Dispense ``requested_quantity`` units of ``item_name`` on behalf of ``actor``."""
    now = now or utcnow()
    name = require_text(item_name, "Select an item to take.")
    lots = (
        StockLot.query
        .filter(
            StockLot.name == name,
            StockLot.status == StockLot.STATUS_ACTIVE,
            StockLot.quantity > 0,
        )
        .with_for_update()
        .all()
    )
    try:
        plan = plan_allocation(name, requested_quantity, lots, now)
    except Exception:
        # release the row locks taken above
        db.session.rollback()
        raise
    return record_allocation(plan, actor, now)


def available_stock(lots, now) -> list[dict[str, object]]:
    """Allocatable quantity per item name, for the take-item picker."""
    totals: dict[str, dict[str, object]] = {}
    for lot in lots:
        if lot.status != StockLot.STATUS_ACTIVE or lot.quantity <= 0:
            continue
        if not is_valid_on(lot, now):
            continue
        entry = totals.setdefault(lot.name, {'name': lot.name, 'available': 0, 'lots': 0})
        entry['available'] += lot.quantity
        entry['lots'] += 1
    return sorted(totals.values(), key=lambda entry: entry['name'])


def list_allocations(start=None, end=None) -> list[Allocation]:
    """Outgoing records, newest first, optionally within an inclusive date range."""
    query = Allocation.query
    if start is not None:
        query = query.filter(Allocation.taken_at >= start_of_day(start))
    if end is not None:
        query = query.filter(Allocation.taken_at <= end_of_day(end))
    return query.order_by(Allocation.taken_at.desc(), Allocation.id.desc()).all()
