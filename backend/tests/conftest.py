from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from flow.db.session import build_engine, get_session_factory, init_db, make_sessionmaker
from flow.main import create_application
from flow.models.brainstorm import ROLE_ADMIN, ROLE_MEMBER, ROLE_VISITOR, User


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield make_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def users(session_factory):
    people = {
        "member": User(id="u-member", name="Mina", email="mina@example.com", role=ROLE_MEMBER),
        "other": User(id="u-other", name="Oskar", email="oskar@example.com", role=ROLE_MEMBER),
        "admin": User(id="u-admin", name="Ada", email="ada@example.com", role=ROLE_ADMIN),
        "visitor": User(id="u-visitor", name=None, email="vis@example.com", role=ROLE_VISITOR),
    }
    with session_factory() as db:
        db.add_all(people.values())
        db.commit()
    return {key: user.id for key, user in people.items()}


@pytest.fixture
def app(session_factory):
    application = create_application()
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def headers(users):
    return {key: {"X-User-Id": user_id} for key, user_id in users.items()}
