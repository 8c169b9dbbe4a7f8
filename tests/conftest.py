# tests/conftest.py
import os, sys

# project root (the folder holding "powerquote") first on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FINANCE_MARGIN_LIMIT", "25")
os.environ.setdefault("LOG_DIR", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from powerquote.core.roles import ADMIN, FINANCE, MASTER, SALES, RequestContext
from powerquote.server.db.session import get_session, init_db
from powerquote.services.catalog_seed import load_catalog, seed_catalog


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def catalog(session):
    """Demo catalog from powerquote/knowledge/catalog: four profiles, QTMS chassis and cards."""
    seed_catalog(session, load_catalog())
    return session


@pytest.fixture
def sales():
    return RequestContext("u-sales", SALES, "sam.sales@example.com", "Sam Sales")


@pytest.fixture
def admin():
    return RequestContext("u-admin", ADMIN, "ada.admin@example.com", "Ada Admin")


@pytest.fixture
def finance():
    return RequestContext("u-finance", FINANCE, "fin.ops@example.com", "Fin Ops")


@pytest.fixture
def master():
    return RequestContext("u-master", MASTER, "max.master@example.com", "Max Master")


@pytest.fixture
def client(catalog):
    from powerquote.server.main import app

    def _session_override():
        yield catalog

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()
