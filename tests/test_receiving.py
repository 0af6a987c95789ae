import random
from datetime import date
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from stockkeeper.errors import LabelExhaustedError, NotFoundError, ValidationError
from stockkeeper.models import ActivityLog, StockLot
from stockkeeper.services.receiving import (
    generate_label,
    receive_lot,
    storage_initials,
    unique_label,
)

from conftest import NOW, add_lot, get_user


class FixedRandom:
    """Returns the queued numbers in order, then repeats the last one."""

    def __init__(self, *values):
        self.values = list(values)

    def randint(self, low, high):
        value = self.values.pop(0) if len(self.values) > 1 else self.values[0]
        assert low <= value <= high
        return value


def _receive(app_user, **overrides):
    fields = dict(
        name='Nitrile gloves',
        quantity=50,
        category_id=1,
        unit_id=1,
        period_id=1,
        storage_id=1,
        received_date=date(2024, 1, 2),
        expiration_date=date(2025, 1, 2),
        now=NOW,
    )
    fields.update(overrides)
    return receive_lot(actor=app_user, **fields)


def test_storage_initials():
    assert storage_initials('Main Warehouse') == 'MW'
    assert storage_initials('cold room 2') == 'CR2'
    assert storage_initials('Freezer') == 'F'


def test_generate_label_format():
    for seed in range(20):
        label = generate_label('Main Warehouse', rng=random.Random(seed))
        assert label.startswith('MW')
        assert len(label) == 6
        assert 1000 <= int(label[2:]) <= 9999


def test_unique_label_retries_on_collision(app):
    with app.app_context():
        taken = add_lot('Gloves', 1)

        label = unique_label(
            'Main Warehouse', rng=FixedRandom(int(taken.label[2:]), 4321)
        )

        assert label == 'MW4321'


def test_unique_label_gives_up(app):
    with app.app_context():
        taken = add_lot('Gloves', 1)
        with pytest.raises(LabelExhaustedError):
            unique_label('Main Warehouse', attempts=3,
                         rng=FixedRandom(int(taken.label[2:])))


def test_receive_lot(app):
    with app.app_context():
        admin = get_user('admin')
        lot = _receive(admin, rng=FixedRandom(2468))

        assert lot.label == 'MW2468'
        assert lot.quantity == 50
        assert lot.quantity_received == 50
        assert lot.status == StockLot.STATUS_ACTIVE
        assert lot.expiration_date == date(2025, 1, 2)

        log = ActivityLog.query.filter_by(action_type='receive').one()
        assert log.lot_id == lot.id
        assert log.quantity == 50


def test_receive_lot_without_expiry(app):
    with app.app_context():
        lot = _receive(get_user('user'), expiration_date=None)
        assert lot.expiration_date is None


@pytest.mark.parametrize('overrides', [
    {'name': ''},
    {'quantity': 0},
    {'quantity': -5},
    {'received_date': None},
    {'category_id': None},
])
def test_receive_lot_requires_fields(app, overrides):
    with app.app_context():
        with pytest.raises(ValidationError):
            _receive(get_user('user'), **overrides)
        assert StockLot.query.count() == 0


def test_receive_lot_unknown_storage(app):
    with app.app_context():
        with pytest.raises(NotFoundError):
            _receive(get_user('user'), storage_id=42)


def test_receive_lot_label_race_is_reported_as_collision(app, monkeypatch):
    with app.app_context():
        taken = add_lot('Gloves', 1)
        monkeypatch.setattr(
            'stockkeeper.services.receiving.unique_label',
            lambda *args, **kwargs: taken.label,
        )

        with pytest.raises(LabelExhaustedError):
            _receive(get_user('user'))

        assert StockLot.query.count() == 1


def test_receive_lot_other_integrity_errors_propagate(app):
    with app.app_context():
        ghost = SimpleNamespace(id=None, username='ghost')

        with pytest.raises(IntegrityError):
            _receive(ghost)

        assert StockLot.query.count() == 0
        assert ActivityLog.query.count() == 0
