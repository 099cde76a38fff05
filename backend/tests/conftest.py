import os

# must be set before db/dependencies are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["TIMELINE_TZ"] = "UTC"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base, enable_sqlite_foreign_keys, get_db
import models  # noqa: F401  register tables
from dependencies import create_jwt_token
from main import app
from services import lifecycle, records

OWNER = "owner-1"
OTHER_OWNER = "owner-2"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def make(owner_id=OWNER):
        return {"Authorization": f"Bearer {create_jwt_token(owner_id)}"}
    return make


@pytest.fixture
def company(db):
    return records.create_company(db, OWNER, "Acme")


@pytest.fixture
def make_app(db, company):
    """Create an application for OWNER at Acme; keyword args become attributes."""
    def make(job_title="Backend Engineer", initial_state=None, now=None, company_id=None, **attrs):
        data = dict(attrs, job_title=job_title)
        return lifecycle.create_application(
            db, OWNER, company_id or company.id, data, initial_state=initial_state, now=now,
        )
    return make
