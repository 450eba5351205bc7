import itertools
import os
import sys

# Raíz del repo en sys.path para importar main, models, etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

import database
from auth import create_access_token, hash_password
from models import Challenge, User
from seed import seed_all


@pytest.fixture(scope="session")
def password_hash():
    return hash_password("secret123")


@pytest.fixture
def engine():
    """BD SQLite en memoria nueva para cada test, con catálogos insertados"""
    engine = database.configure_engine("sqlite://", poolclass=StaticPool)
    database.init_db()
    session = database.SessionLocal()
    try:
        seed_all(session)
    finally:
        session.close()
    yield engine
    database.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    from main import app
    return TestClient(app)


@pytest.fixture
def make_user(db, password_hash):
    counter = itertools.count(1)

    def _make(username=None):
        username = username or f"user{next(counter)}"
        user = User(
            email=f"{username}@gmail.com",
            password_hash=password_hash,
            username=username,
            full_name=username.title(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
    return _headers


@pytest.fixture
def fitness_30(db):
    return db.query(Challenge).filter(
        Challenge.category == "Fitness",
        Challenge.duration_days == 30,
    ).one()


@pytest.fixture
def mindfulness_60(db):
    return db.query(Challenge).filter(
        Challenge.category == "Mindfulness",
        Challenge.duration_days == 60,
    ).one()
