from __future__ import annotations

import random

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stockkeeper.errors import LabelExhaustedError, NotFoundError, ValidationError
from stockkeeper.extensions import db
from stockkeeper.models import Category, Period, StockLot, Storage, Unit
from stockkeeper.services import require_positive_int, require_text
from stockkeeper.timeutils import utcnow
from stockkeeper.utils import create_activity_log

LABEL_DIGITS = 4
DEFAULT_LABEL_ATTEMPTS = 10


def storage_initials(storage_name):
    """Initials of a storage location name: "Cold Room 2" -> "CR2"."""
    return ''.join(word[0].upper() for word in storage_name.split())


def generate_label(storage_name, rng=None):
    """Storage initials followed by a random four-digit number."""
    rng = rng or random
    low = 10 ** (LABEL_DIGITS - 1)
    high = 10 ** LABEL_DIGITS - 1
    return f"{storage_initials(storage_name)}{rng.randint(low, high)}"


def unique_label(storage_name, attempts=DEFAULT_LABEL_ATTEMPTS, rng=None):
    """Generate a label no existing lot uses yet."""
    for _ in range(attempts):
        label = generate_label(storage_name, rng=rng)
        exists = db.session.query(
            StockLot.query.filter_by(label=label).exists()
        ).scalar()
        if not exists:
            return label
    raise LabelExhaustedError(
        f"Could not generate a unique lot label for {storage_name} "
        f"after {attempts} attempts."
    )


def _is_label_conflict(error):
    # SQLite: "UNIQUE constraint failed: stock_lot.label"
    # PostgreSQL: 'violates unique constraint "stock_lot_label_key"'
    # MySQL: "Duplicate entry ... for key 'label'"
    message = str(error.orig).lower()
    return 'label' in message and ('unique' in message or 'duplicate' in message)


def _lookup(model, ident, label):
    if ident is None or ident == '':
        raise ValidationError(f"{label} is required.")
    row = db.session.get(model, ident)
    if row is None:
        raise NotFoundError(f"{label} not found.")
    return row


def receive_lot(name, quantity, category_id, unit_id, period_id, storage_id,
                received_date, actor, expiration_date=None, now=None, rng=None):
    """Record a new lot entering stock.

    Every field except ``expiration_date`` is required. The lot gets a fresh
    label derived from its storage location.
    """
    name = require_text(name, "All fields are required except the expiration date.")
    quantity = require_positive_int(quantity, "Quantity must be a positive whole number.")
    if received_date is None:
        raise ValidationError("All fields are required except the expiration date.")

    _lookup(Category, category_id, "Category")
    _lookup(Unit, unit_id, "Unit")
    _lookup(Period, period_id, "Period")
    storage = _lookup(Storage, storage_id, "Storage")
    now = now or utcnow()

    attempts = current_app.config.get('LOT_LABEL_ATTEMPTS', DEFAULT_LABEL_ATTEMPTS)
    lot = StockLot(
        name=name,
        quantity_received=quantity,
        quantity=quantity,
        category_id=category_id,
        unit_id=unit_id,
        period_id=period_id,
        storage_id=storage.id,
        received_date=received_date,
        expiration_date=expiration_date,
        status=StockLot.STATUS_ACTIVE,
        label=unique_label(storage.name, attempts=attempts, rng=rng),
        created_at=now,
    )
    try:
        db.session.add(lot)
        db.session.flush()
        create_activity_log(
            actor,
            'receive',
            lot=lot,
            quantity=quantity,
            notes=f"Received {quantity} {name} into {storage.name}",
            timestamp=now,
        )
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _is_label_conflict(e):
            # label taken between the uniqueness check and the insert
            raise LabelExhaustedError("Lot label collision, please try again.")
        current_app.logger.exception(f"Integrity error while receiving {name}")
        raise
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"DB error while receiving {name}")
        raise

    current_app.logger.info(
        f"User {actor.username} received {quantity} {name} as lot {lot.label}"
    )
    return lot
