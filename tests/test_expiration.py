from datetime import date, datetime
from types import SimpleNamespace

import pytest

from stockkeeper.errors import (
    AlreadyProcessedError,
    AuthorizationError,
    NotFoundError,
    NotYetExpiredError,
)
from stockkeeper.extensions import db
from stockkeeper.models import ActivityLog, ExpiredRecord, StockLot
from stockkeeper.services.expiration import (
    SEVERITY_ADVISORY,
    SEVERITY_URGENT,
    current_expiry_notices,
    expiry_notices,
    expiry_overview,
    is_expired,
    list_expired_records,
    migrate_to_expired,
)

from conftest import NOW, add_lot, get_user


def lot(expiration_date, name='Ethanol', status='active', quantity=5, ident=1):
    return SimpleNamespace(
        id=ident,
        name=name,
        label=f"MW{ident}",
        expiration_date=expiration_date,
        status=status,
        quantity=quantity,
    )


def test_is_expired_uses_start_of_expiration_day():
    assert is_expired(date(2024, 1, 1), NOW)
    assert is_expired(date(2024, 1, 2), NOW)
    assert not is_expired(date(2024, 1, 2), datetime(2024, 1, 2))
    assert not is_expired(date(2024, 1, 3), NOW)
    assert not is_expired(None, NOW)


def test_notices_cover_thirty_day_window():
    lots = [
        lot(date(2024, 1, 1), ident=1),    # already past
        lot(date(2024, 1, 5), ident=2),
        lot(date(2024, 1, 25), ident=3),
        lot(date(2024, 2, 1), ident=4),    # exactly 30 days from midnight
        lot(date(2024, 3, 1), ident=5),    # outside window
        lot(None, ident=6),
    ]

    notices = expiry_notices(lots, datetime(2024, 1, 2))

    assert [notice.lot_id for notice in notices] == [2, 3, 4]
    assert [notice.days_remaining for notice in notices] == [3, 23, 30]


def test_notice_severity_threshold():
    now = datetime(2024, 1, 1)
    notices = expiry_notices(
        [lot(date(2024, 1, 8), ident=1), lot(date(2024, 1, 9), ident=2)], now
    )

    assert [(n.days_remaining, n.severity) for n in notices] == [
        (7, SEVERITY_URGENT),
        (8, SEVERITY_ADVISORY),
    ]


def test_days_remaining_rounds_partial_days_up():
    notices = expiry_notices([lot(date(2024, 1, 5))], NOW)
    # 2024-01-02 09:00 -> 2024-01-05 00:00 is 2.6 days
    assert notices[0].days_remaining == 3


def test_notices_skip_inactive_lots_but_not_empty_ones():
    notices = expiry_notices([
        lot(date(2024, 1, 10), status='expired', ident=1),
        lot(date(2024, 1, 10), quantity=0, ident=2),
    ], NOW)
    assert [notice.lot_id for notice in notices] == [2]


def test_notices_sorted_by_days_then_name():
    notices = expiry_notices([
        lot(date(2024, 1, 20), name='Buffer', ident=1),
        lot(date(2024, 1, 10), name='Zinc', ident=2),
        lot(date(2024, 1, 10), name='Agar', ident=3),
    ], NOW)
    assert [notice.name for notice in notices] == ['Agar', 'Zinc', 'Buffer']


def test_notice_to_dict():
    notice = expiry_notices([lot(date(2024, 1, 5), ident=7)], NOW)[0]
    assert notice.to_dict() == {
        'lot_id': 7,
        'name': 'Ethanol',
        'label': 'MW7',
        'expiration_date': '2024-01-05',
        'days_remaining': 3,
        'severity': SEVERITY_URGENT,
    }


def test_migrate_to_expired_moves_lot(app):
    with app.app_context():
        stale = add_lot('Ethanol', 4, date(2024, 1, 1), quantity_received=10)
        admin = get_user('admin')

        record = migrate_to_expired(stale.id, admin, now=NOW)

        assert record.lot_id == stale.id
        assert record.quantity == 4
        assert record.label == stale.label
        assert record.expired_at == NOW
        assert record.moved_by_id == admin.id

        db.session.expire_all()
        assert db.session.get(StockLot, stale.id).status == StockLot.STATUS_EXPIRED
        assert ExpiredRecord.query.count() == 1
        assert ActivityLog.query.filter_by(action_type='expire').count() == 1


def test_migrate_twice_is_rejected(app):
    with app.app_context():
        stale = add_lot('Ethanol', 4, date(2024, 1, 1))
        admin = get_user('admin')
        migrate_to_expired(stale.id, admin, now=NOW)

        with pytest.raises(AlreadyProcessedError):
            migrate_to_expired(stale.id, admin, now=NOW)

        assert ExpiredRecord.query.count() == 1


def test_migrate_unexpired_lot_is_rejected(app):
    with app.app_context():
        fresh = add_lot('Ethanol', 4, date(2024, 2, 1))
        undated = add_lot('Ethanol', 4)
        admin = get_user('admin')

        with pytest.raises(NotYetExpiredError):
            migrate_to_expired(fresh.id, admin, now=NOW)
        with pytest.raises(NotYetExpiredError):
            migrate_to_expired(undated.id, admin, now=NOW)

        assert ExpiredRecord.query.count() == 0


def test_migrate_requires_admin(app):
    with app.app_context():
        stale = add_lot('Ethanol', 4, date(2024, 1, 1))

        with pytest.raises(AuthorizationError):
            migrate_to_expired(stale.id, get_user('user'), now=NOW)

        db.session.expire_all()
        assert db.session.get(StockLot, stale.id).status == StockLot.STATUS_ACTIVE


def test_migrate_unknown_lot(app):
    with app.app_context():
        with pytest.raises(NotFoundError):
            migrate_to_expired(999, get_user('admin'), now=NOW)

        assert not db.session.in_transaction()


def test_expiry_overview_sets_are_disjoint(app):
    with app.app_context():
        soon = add_lot('Ethanol', 3, date(2024, 1, 20))
        past = add_lot('Ethanol', 3, date(2023, 12, 30))
        moved = add_lot('Agar', 2, date(2023, 12, 1))
        add_lot('Agar', 5)
        add_lot('Agar', 0, date(2023, 12, 1), quantity_received=4)
        migrate_to_expired(moved.id, get_user('admin'), now=NOW)

        overview = expiry_overview(now=NOW)

        assert [item.id for item in overview.upcoming] == [soon.id]
        assert [item.id for item in overview.awaiting_migration] == [past.id]
        assert [record.lot_id for record in overview.expired] == [moved.id]

        data = overview.to_dict()
        assert set(data) == {'upcoming', 'awaiting_migration', 'expired'}


def test_current_expiry_notices_reads_database(app):
    with app.app_context():
        add_lot('Ethanol', 3, date(2024, 1, 6))
        add_lot('Agar', 3, date(2024, 1, 25))
        add_lot('Agar', 3, date(2024, 6, 1))
        add_lot('Agar', 3, date(2024, 1, 8), status='expired')

        notices = current_expiry_notices(now=NOW)

        assert [(n.name, n.severity) for n in notices] == [
            ('Ethanol', SEVERITY_URGENT),
            ('Agar', SEVERITY_ADVISORY),
        ]


def test_list_expired_records_by_date(app):
    with app.app_context():
        admin = get_user('admin')
        first = add_lot('Ethanol', 1, date(2023, 12, 1))
        second = add_lot('Ethanol', 1, date(2023, 12, 1))
        migrate_to_expired(first.id, admin, now=datetime(2024, 1, 2, 10))
        migrate_to_expired(second.id, admin, now=datetime(2024, 1, 4, 10))

        records = list_expired_records(start=date(2024, 1, 1), end=date(2024, 1, 2))
        assert [record.lot_id for record in records] == [first.id]
        assert [record.lot_id for record in list_expired_records()] == [second.id, first.id]
