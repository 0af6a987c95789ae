import itertools
import os
import tempfile
from datetime import date, datetime

import pytest
from stockkeeper import create_app
from stockkeeper.extensions import db
from stockkeeper.models import User, Category, Unit, Period, Storage, StockLot

NOW = datetime(2024, 1, 2, 9, 0)

_labels = itertools.count(1000)


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    yield from _make_app(csrf=False)


@pytest.fixture
def csrf_app():
    """Same as ``app`` but with CSRF protection left on."""
    yield from _make_app(csrf=True)


def _make_app(csrf):
    # Create a temporary file to isolate the database for each test
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'WTF_CSRF_ENABLED': csrf,
        'RATELIMIT_ENABLED': False,
        'SESSION_COOKIE_SECURE': False,
        'REMEMBER_COOKIE_SECURE': False,
        'ADMIN_PASSWORD': None,
    })

    # Create the database and load test data
    with app.app_context():
        db.create_all()
        init_test_data()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()

    # Close and remove the temporary database
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def _login(client, username, password):
    response = client.post('/auth/login', json={
        'username': username,
        'password': password
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(app):
    """A test client that is authenticated as admin."""
    return _login(app.test_client(), 'admin', 'admin')


@pytest.fixture
def user_client(app):
    """A test client that is authenticated as a regular user."""
    return _login(app.test_client(), 'user', 'user')


def init_test_data():
    """Initialize test data."""
    admin = User(
        username='admin',
        email='admin@test.com',
        role='admin'
    )
    admin.set_password('admin')
    db.session.add(admin)

    user = User(
        username='user',
        email='user@test.com',
        role='user'
    )
    user.set_password('user')
    db.session.add(user)

    db.session.add_all([
        Category(name='Reagents'),
        Unit(name='Box'),
        Period(name='Semester 1'),
        Storage(name='Main Warehouse'),
    ])

    db.session.commit()


def get_user(username):
    return User.query.filter_by(username=username).first()


def add_lot(name, quantity, expiration_date=None, received_date=date(2024, 1, 1),
            status='active', quantity_received=None):
    """Insert a lot directly, bypassing receiving. Needs an app context."""
    lot = StockLot(
        name=name,
        quantity_received=quantity_received if quantity_received is not None else quantity,
        quantity=quantity,
        expiration_date=expiration_date,
        received_date=received_date,
        status=status,
        label=f"MW{next(_labels)}",
        category_id=1,
        unit_id=1,
        period_id=1,
        storage_id=1,
    )
    db.session.add(lot)
    db.session.commit()
    return lot
