"""
Pytest configuration and fixtures for testing the lending API.
"""

import os
import sys
import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from lendit import create_app, db
from lendit.models import Item, ItemStatus, PremiumStatus, User
from lendit.services.payment_gateway import PaymentGateway, TransferResult

fake = Faker()


def make_username():
    """Faker user name trimmed to what registration accepts."""
    base = ''.join(c for c in fake.user_name() if c.isalnum() or c == '_')[:20]
    return base + fake.pystr(min_chars=4, max_chars=6)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


def _create_user(password='testpassword123', **overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'username': make_username(),
        'email': fake.unique.email(),
        'first_name': fake.first_name(),
        'last_name': fake.last_name(),
    }
    data.update(overrides)
    user = User(**data)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'password': password,
    }


def _create_item(owner_id, **overrides):
    data = {
        'title': fake.sentence(nb_words=3),
        'description': fake.paragraph(),
        'category': 'tools',
        'price': 10.0,
        'owner_id': owner_id,
        'status': ItemStatus.AVAILABLE,
        'latitude': 56.9496,
        'longitude': 24.1052,
    }
    data.update(overrides)
    item = Item(**data)
    db.session.add(item)
    db.session.commit()
    return {'id': item.id, 'title': item.title, 'owner_id': item.owner_id, 'price': item.price}


@pytest.fixture
def create_user(app, db_session):
    """Factory for extra users."""
    def factory(**overrides):
        with app.app_context():
            return _create_user(**overrides)
    return factory


@pytest.fixture
def create_item(app, db_session):
    """Factory for extra items."""
    def factory(owner_id, **overrides):
        with app.app_context():
            return _create_item(owner_id, **overrides)
    return factory


@pytest.fixture
def test_user(app, db_session):
    """Create a test user (lender in transaction tests)."""
    with app.app_context():
        return _create_user()


@pytest.fixture
def second_user(app, db_session):
    """Create a second test user (borrower in transaction tests)."""
    with app.app_context():
        return _create_user(password='testpassword456')


@pytest.fixture
def premium_user(app, db_session):
    """Create a user with an active premium subscription."""
    with app.app_context():
        return _create_user(password='testpassword789', premium_status=PremiumStatus.ACTIVE)


def _get_token(client, email, password):
    """Login and return JWT token."""
    resp = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    data = resp.get_json()
    if data is None:
        raise RuntimeError(
            f"Login failed: status={resp.status_code}, data={resp.data[:200]}"
        )
    token = data.get('token')
    if not token:
        raise RuntimeError(
            f"Login returned no token: status={resp.status_code}, body={data}"
        )
    return token


@pytest.fixture
def get_headers(client):
    """Authentication headers for any created user."""
    def factory(user):
        token = _get_token(client, user['email'], user['password'])
        return {'Authorization': f'Bearer {token}'}
    return factory


@pytest.fixture
def auth_headers(get_headers, test_user):
    """Get authentication headers for test user."""
    return get_headers(test_user)


@pytest.fixture
def second_auth_headers(get_headers, second_user):
    """Get authentication headers for second user."""
    return get_headers(second_user)


@pytest.fixture
def test_item(app, db_session, test_user):
    """An available item owned by test_user, 10.00 per week."""
    with app.app_context():
        return _create_item(test_user['id'])


class RecordingGateway(PaymentGateway):
    """Gateway double that records transfers and can be told to fail.

    ``fail_for`` holds destination accounts whose transfers fail.
    ``on_transfer`` is called before each transfer returns.
    """

    name = 'recording'

    def __init__(self):
        self.transfers = []
        self.fail_for = set()
        self.raise_error = None
        self.on_transfer = None

    def transfer(self, from_account, to_account, amount_cents, description):
        if self.on_transfer:
            self.on_transfer(to_account, amount_cents)
        if self.raise_error:
            raise self.raise_error
        if to_account in self.fail_for:
            return TransferResult(success=False, error='card_declined')
        transfer_id = f'tr_{len(self.transfers) + 1}'
        self.transfers.append({
            'from': from_account,
            'to': to_account,
            'amount': amount_cents,
            'description': description,
            'id': transfer_id,
        })
        return TransferResult(success=True, transfer_id=transfer_id)


@pytest.fixture
def gateway(app):
    """Swap the app's payment gateway for a RecordingGateway."""
    original = app.extensions['payment_gateway']
    recording = RecordingGateway()
    app.extensions['payment_gateway'] = recording
    yield recording
    app.extensions['payment_gateway'] = original


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    """A separate app on a file-backed SQLite database.

    In-memory SQLite gives every connection its own database, so tests
    that run requests from several threads need a file.
    """
    from lendit.config import TestingConfig, config_by_name

    class FileTestingConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'lendit.db'}"

    monkeypatch.setitem(config_by_name, 'file_testing', FileTestingConfig)
    file_app = create_app('file_testing')
    file_app.extensions['payment_gateway'] = RecordingGateway()

    with file_app.app_context():
        db.create_all()

    yield file_app

    with file_app.app_context():
        db.drop_all()
        db.engine.dispose()
