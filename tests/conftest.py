import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

SECRET_KEY = os.getenv("SECRET_KEY", "ci-test-secret-with-enough-length-for-hs512")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS512")

TESTS_DIR = Path(__file__).resolve().parent

# app and tests must share the same secret/algorithm
os.environ.setdefault("SECRET_KEY", SECRET_KEY)
os.environ.setdefault("JWT_ALGORITHM", ALGORITHM)

os.environ.setdefault("MARKETPLACE_DATABASE_URL", f"sqlite:///{TESTS_DIR / 'test_marketplace.db'}")
os.environ["REDIS_URL"] = ""  # no event publishing in tests

from marketplace.core.database import Base, SessionLocal, engine  # noqa: E402
from marketplace.core.security import create_access_token  # noqa: E402
from marketplace.main import app  # noqa: E402
from marketplace.models import (  # noqa: E402
    Company,
    CompanyContainerAssignment,
    Container,
    User,
    UserPermission,
)


def make_auth_headers(user) -> dict:
    token = create_access_token(user.id, user.company_id, user.role)
    return {"Authorization": f"Bearer {token}"}


def add_company(db, name="Acme", email=None, max_users=10) -> Company:
    company = Company(name=name, email=email, max_users=max_users)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def add_user(
    db,
    company=None,
    role="viewer",
    email=None,
    apps=True,
    voices=True,
    workflows=True,
    with_permission=True,
) -> User:
    user = User(
        email=email,
        first_name="Test",
        last_name="User",
        role=role,
        company_id=company.id if company else None,
    )
    if with_permission:
        user.permission = UserPermission(
            can_access_apps=apps,
            can_access_voices=voices,
            can_access_workflows=workflows,
        )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_container(
    db,
    creator=None,
    title="Container",
    type="app",
    visibility="public",
    is_marketplace=True,
    views=0,
    **extra,
) -> Container:
    container = Container(
        title=title,
        type=type,
        visibility=visibility,
        is_marketplace=is_marketplace,
        views=views,
        tags=extra.pop("tags", []),
        created_by=creator.id if creator else None,
        **extra,
    )
    db.add(container)
    db.commit()
    db.refresh(container)
    return container


def add_assignment(db, company, container) -> CompanyContainerAssignment:
    assignment = CompanyContainerAssignment(company_id=company.id, container_id=container.id)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
