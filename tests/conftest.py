"""
Shared pytest fixtures for the BANTAL Back-Office test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - identity / company / division / customer: pre-created master data
"""

import pytest

from bantal import create_app
from bantal.models import db as _db
from bantal.services.document_factory import factory
from bantal.services.document_type_service import seed_default_types


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: seed document types, rollback after test, recreate tables."""
    with app.app_context():
        seed_default_types()
        _db.session.commit()
        factory.load()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Master data ──────────────────────────────────────────────────────────


def _make_identity(email="rina@bantal.co.id", name="Rina Wibowo", **kwargs):
    from bantal.models.identity import Identity

    identity = Identity(
        external_id=kwargs.pop("external_id", f"dir-{email}"),
        email=email,
        name=name,
        **kwargs,
    )
    _db.session.add(identity)
    _db.session.commit()
    return identity


@pytest.fixture()
def identity():
    return _make_identity()


@pytest.fixture()
def company():
    from bantal.models.organization import Company

    c = Company(code="BTL", name="PT Bantal Nusantara")
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def division():
    from bantal.models.organization import Division

    d = Division(code="OPS", name="Operations")
    _db.session.add(d)
    _db.session.commit()
    return d


@pytest.fixture()
def customer():
    from bantal.models.organization import Client

    c = Client(name="PT Sinar Jaya", contact_email="finance@sinarjaya.co.id")
    _db.session.add(c)
    _db.session.commit()
    return c

