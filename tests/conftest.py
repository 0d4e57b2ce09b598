import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from scholarship_portal.auth import jwt_handler  # noqa: E402
from scholarship_portal.database import Base  # noqa: E402
from scholarship_portal.models.application import Application  # noqa: E402,F401
from scholarship_portal.models.review import Review  # noqa: E402,F401
from scholarship_portal.models.scholarship import Scholarship  # noqa: E402
from scholarship_portal.models.user import Role, User  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
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
    def _make_user(email: str, role: Role = Role.APPLICANT) -> User:
        user = User(email=email, role=role.value, name=email.split('@')[0])
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_scholarship(db):
    def _make_scholarship(name: str = 'Global Merit', **overrides) -> Scholarship:
        values = {
            'scholarship_name': name,
            'university_name': 'Oxford',
            'degree': 'Masters',
            'application_fees': 25.0,
            'rating_sum': 0.0,
            'review_count': 0,
            'rating': 0.0,
        }
        values.update(overrides)
        scholarship = Scholarship(**values)
        db.add(scholarship)
        db.commit()
        db.refresh(scholarship)
        return scholarship

    return _make_scholarship


@pytest.fixture
def token_for():
    def _token_for(email: str, **claims) -> str:
        return jwt_handler.create_access_token({'email': email, **claims})

    return _token_for

