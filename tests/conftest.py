from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import siteops.persistence.pg as pg
from siteops.core.config import get_settings
from siteops.core.security import Actor, create_session_token
from siteops.domain.projects import create_project
from siteops.domain.users import create_user
from siteops.persistence.models import Base


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    settings = get_settings()
    settings.auth_enabled = True
    settings.otp_mode = "fixed"
    settings.otp_fixed_code = "1234"
    settings.otp_echo = True
    settings.report_timezone = "UTC"

    engine = pg.create_engine_from_url(f"sqlite+pysqlite:///{test_db_path}")
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    pg.engine = engine
    pg.SessionLocal = TestSessionLocal

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables(configure_test_engine):
    yield
    with pg.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def client(configure_test_engine):
    from siteops.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(configure_test_engine):
    with pg.session_scope() as s:
        yield s


@pytest.fixture()
def users(configure_test_engine):
    with pg.session_scope() as s:
        admin = create_user(s, "site-admin", "admin-pass", "9000000001", role="admin")
        worker = create_user(s, "site-worker", "worker-pass", "9000000002", role="user")
        return {
            "admin": Actor(id=admin.id, role="admin", username=admin.username),
            "user": Actor(id=worker.id, role="user", username=worker.username),
        }


@pytest.fixture()
def auth_headers(users):
    return {
        role: {"Authorization": f"Bearer {create_session_token(actor.id, actor.role, actor.username)}"}
        for role, actor in users.items()
    }


@pytest.fixture()
def project_id(users) -> str:
    with pg.session_scope() as s:
        project = create_project(
            s,
            users["admin"],
            "Riverside Tower",
            description="Twelve storey residential block",
            date=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        return project.id
