import os
import tempfile

# Configure the app for tests before it is imported
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['RATELIMIT_ENABLED'] = 'false'
os.environ['FIELD_ENCRYPTION_KEY'] = 'test-field-encryption-key'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-that-is-long-enough'
os.environ['AUDIT_LOG_DIR'] = tempfile.mkdtemp(prefix='hubrecords-audit-')

import pytest
from argon2 import PasswordHasher

from hubrecords import app as flask_app, db
from hubrecords import routes
from hubrecords.authentication.rbac import Identity


@pytest.fixture(scope='session', autouse=True)
def fast_password_hashing():
    """Cheap Argon2 parameters so the suite does not spend seconds hashing."""
    original = routes.password_service.hasher
    routes.password_service.hasher = PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)
    yield
    routes.password_service.hasher = original


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def credential_store(app):
    return routes.credential_store


@pytest.fixture
def record_service(app):
    return routes.record_service


@pytest.fixture
def make_user(credential_store):
    """Register a user and return its summary plus an Identity and bearer token."""
    def _make_user(email, password='pw1', role='user', name=None):
        user = credential_store.register(email, password, name=name)
        if role != 'user':
            credential_store.set_user_role(user['userId'], role)
        user['identity'] = Identity(user['userId'], role)
        user['token'] = credential_store.issue_token(user['userId'])
        user['headers'] = {'Authorization': f"Bearer {user['token']}"}
        return user
    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user('alice@example.com', name='Alice')


@pytest.fixture
def bob(make_user):
    return make_user('bob@example.com', name='Bob')


@pytest.fixture
def admin(make_user):
    return make_user('admin@example.com', password='admin-pw', role='admin')
