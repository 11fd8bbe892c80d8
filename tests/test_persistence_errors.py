from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

import siteops.persistence.pg as pg
from siteops.core.errors import PersistenceError
from siteops.persistence.models import UserModel


def test_failed_flush_raises_persistence_error_and_rolls_back(users):
    with pytest.raises(PersistenceError, match="database write failed"):
        with pg.session_scope() as session:
            session.add(UserModel(username="clone", password_hash="x", phone="9000000001", role="user"))
            pg.flush(session)

    with pg.session_scope() as session:
        assert session.scalar(select(func.count()).select_from(UserModel)) == 2


def test_persistence_error_renders_as_500(client, auth_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise PersistenceError("database write failed: IntegrityError")

    monkeypatch.setattr("siteops.api.routes_materials.list_batches", broken)

    response = client.get("/api/materials", headers=auth_headers["user"])
    assert response.status_code == 500
    assert response.json() == {"error": "persistence_error", "detail": "database write failed: IntegrityError"}


def test_raw_database_error_renders_without_leaking_details(client, auth_headers, monkeypatch):
    def locked(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr("siteops.api.routes_materials.list_batches", locked)

    response = client.get("/api/materials", headers=auth_headers["user"])
    assert response.status_code == 500
    assert response.json() == {"error": "persistence_error", "detail": "database operation failed"}
