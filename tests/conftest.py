import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.booking import Booking  # noqa: E402
from backend.models.user import ROLE_HOD, ROLE_USER, User  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Booking.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Booking.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(username: str, role: str = ROLE_USER) -> User:
        user = User(username=username, hashed_password='unused', role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def alice(make_user) -> User:
    return make_user('alice@example.edu')


@pytest.fixture
def bob(make_user) -> User:
    return make_user('bob@example.edu')


@pytest.fixture
def hod(make_user) -> User:
    return make_user('hod@example.edu', role=ROLE_HOD)
