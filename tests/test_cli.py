from datetime import timedelta

from stockkeeper.models import Category, Storage, Unit, User
from stockkeeper.timeutils import utcnow

from conftest import add_lot


def test_seed_reference(runner, app):
    result = runner.invoke(args=['seed-reference'])
    assert 'seeded successfully' in result.output
    # rows from the test fixture are not duplicated
    assert 'Main Warehouse' not in result.output
    assert 'Added storage: Cold Room' in result.output

    with app.app_context():
        assert Storage.query.count() == 2
        assert Unit.query.filter_by(name='Box').count() == 1
        assert Category.query.count() == 3

    # second run adds nothing
    result = runner.invoke(args=['seed-reference'])
    assert 'Added' not in result.output


def test_create_admin(runner, app):
    result = runner.invoke(args=['create-admin', '--username', 'boss',
                                 '--email', 'boss@test.com', '--password', 'secret'])
    assert "Admin 'boss' has been created" in result.output

    with app.app_context():
        boss = User.query.filter_by(username='boss').first()
        assert boss.is_admin()
        assert boss.check_password('secret')

    result = runner.invoke(args=['create-admin', '--username', 'boss', '--password', 'x'])
    assert 'already exists' in result.output


def test_expiry_scan_empty(runner):
    result = runner.invoke(args=['expiry-scan'])
    assert 'No lots expiring soon.' in result.output


def test_expiry_scan_reports_lots(runner, app):
    today = utcnow().date()
    with app.app_context():
        add_lot('Agar', 3, today + timedelta(days=2))
        add_lot('Gloves', 3, today + timedelta(days=15))

    result = runner.invoke(args=['expiry-scan'])

    assert '[URGENT] Agar' in result.output
    assert '[ADVISORY] Gloves' in result.output
    assert result.output.index('Agar') < result.output.index('Gloves')
    assert '2 lot(s) expiring soon.' in result.output
