"""
Pytest configuration and shared fixtures for the link dashboard tests
"""
import pytest
import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path

import redis

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['TESTING'] = 'true'
os.environ.pop('REDIS_URL', None)
os.environ.pop('SENDGRID_API_KEY', None)
os.environ.pop('SYSTEM_ADMIN_EMAIL_DOMAIN', None)

# The engine is bound when server.py calls db.init_app, so the test database
# must be chosen before the first import of the app.
_DB_FD, _DB_PATH = tempfile.mkstemp(suffix='.db')
os.environ['DATABASE_URL'] = f'sqlite:///{_DB_PATH}'


# ---------------------------------------------------------------------------
# Redis doubles
# ---------------------------------------------------------------------------

class InMemoryRedis:
    """Dictionary-backed stand-in for the redis.Redis calls the counter store makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = str(value)
        if ex:
            self.ttls[key] = ex
        else:
            self.ttls.pop(key, None)
        return True

    def incrby(self, key, amount=1):
        value = int(self.data.get(key, 0)) + amount
        self.data[key] = str(value)
        return value

    def decrby(self, key, amount=1):
        return self.incrby(key, -amount)

    def expire(self, key, seconds):
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def eval(self, script, numkeys, *keys_and_args):
        """Run one of the counter store's Lua scripts, atomically like Redis would."""
        from core.usage import counter_store

        keys, args = keys_and_args[:numkeys], keys_and_args[numkeys:]

        if script == counter_store._LUA_DECREMENT_CLAMPED:
            key = keys[0]
            if key not in self.data:
                return -1
            value = max(int(self.data[key]) - int(args[0]), 0)
            self.data[key] = str(value)
            return value

        if script == counter_store._LUA_RELEASE_LOCK:
            if self.data.get(keys[0]) == str(args[0]):
                return self.delete(keys[0])
            return 0

        raise NotImplementedError('InMemoryRedis does not know this script')

    def value(self, key):
        """Test helper: the stored integer or None."""
        raw = self.data.get(key)
        return int(raw) if raw is not None else None


class BrokenRedis:
    """Every call fails the way a dropped Redis connection does."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.exceptions.ConnectionError('Connection refused')
        return fail


# ---------------------------------------------------------------------------
# App and database
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask application instance"""
    from server import app as flask_app
    from models import db
    from rate_limiter import limiter

    flask_app.config.update({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
    })

    # Disable rate limiting for tests (must be done after init_limiter ran)
    limiter.enabled = False

    # Create tables inside a persistent app context
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()

    os.close(_DB_FD)
    os.unlink(_DB_PATH)


@pytest.fixture(autouse=True)
def _clean_db(app):
    """Clean up data between tests to avoid UNIQUE constraint violations."""
    from models import db
    yield
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()


@pytest.fixture(autouse=True)
def _reset_counter_store(app):
    """Every test starts in database-only mode unless it installs a Redis double."""
    from core.usage import init_counter_store
    init_counter_store(app)
    yield
    init_counter_store(app)


@pytest.fixture
def fake_redis(app):
    from core.usage import init_counter_store
    client = InMemoryRedis()
    init_counter_store(app, client=client)
    return client


@pytest.fixture
def broken_redis(app):
    from core.usage import init_counter_store
    client = BrokenRedis()
    init_counter_store(app, client=client)
    return client


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


# ---------------------------------------------------------------------------
# Users and workspaces
# ---------------------------------------------------------------------------

@pytest.fixture
def user(app):
    """Create a test user (owner of the default workspace)"""
    from models import User, db

    user = User(email='owner@example.com', name='Olive Owner', created_at=datetime.utcnow())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(app):
    """Create a system administrator"""
    from models import User, db

    user = User(email='admin@example.com', name='Site Admin', is_admin=True,
                created_at=datetime.utcnow())
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def make_workspace(app):
    """Factory: workspace with an owner membership."""
    from models import Workspace, WorkspaceMembership, db

    counter = {'n': 0}

    def _make(owner, plan='free', **columns):
        counter['n'] += 1
        ws = Workspace(name=f'Workspace {counter["n"]}', slug=f'ws-{counter["n"]}',
                       plan=plan, **columns)
        db.session.add(ws)
        db.session.flush()
        db.session.add(WorkspaceMembership(workspace_id=ws.id, user_id=owner.id, role='owner'))
        db.session.commit()
        return ws

    return _make


@pytest.fixture
def workspace(make_workspace, user):
    """Free-plan workspace owned by user"""
    return make_workspace(user)


@pytest.fixture
def add_links(app):
    """Factory: create n links in a workspace."""
    from models import Link, db

    def _add(workspace, n):
        start = Link.query.count()
        for i in range(n):
            db.session.add(Link(workspace_id=workspace.id, slug=f'l{workspace.id}-{start + i}',
                                destination_url='https://example.com'))
        db.session.commit()

    return _add


@pytest.fixture
def add_clicks(app):
    """Factory: create n click events on a new link in the workspace."""
    from models import Link, ClickEvent, db

    def _add(workspace, n, timestamp=None):
        link = Link(workspace_id=workspace.id, slug=f'c{workspace.id}-{Link.query.count()}',
                    destination_url='https://example.com')
        db.session.add(link)
        db.session.flush()
        for _ in range(n):
            db.session.add(ClickEvent(link_id=link.id, timestamp=timestamp or datetime.utcnow()))
        db.session.commit()
        return link

    return _add


@pytest.fixture
def authenticated_client(client, user, app):
    """Create a test client with an authenticated session"""
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
        sess['user_email'] = user.email
    return client


@pytest.fixture
def admin_client(app, admin_user):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess['user_id'] = admin_user.id
        sess['user_email'] = admin_user.email
    return c
