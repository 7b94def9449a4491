from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.core import startup_checks
from app.core.logging_setup import JsonFormatter
from app.middleware.observability import _extract_tenant_slug


def _build_request(
    path: str = "/orders",
    query_string: str = "",
    headers: list[tuple[bytes, bytes]] | None = None,
    path_params: dict | None = None,
) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": query_string.encode(),
        "headers": headers or [],
        "path_params": path_params or {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_request_id_is_returned_in_response_header(monkeypatch):
    from app import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/health")
        echoed = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    request_id = response.headers.get("X-Request-ID")
    assert request_id
    UUID(request_id)
    assert echoed.headers.get("X-Request-ID") == "req-123"


def test_cors_allows_known_origin_and_blocks_unknown_origin(monkeypatch):
    from app import main
    from app.core.config import CORS_ORIGINS

    if not CORS_ORIGINS:
        pytest.skip("CORS_ORIGINS vazio neste ambiente")
    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    allowed_origin = CORS_ORIGINS[0]
    blocked_origin = "https://blocked-origin.example"

    with TestClient(main.app) as client:
        allowed_response = client.options(
            "/health",
            headers={"origin": allowed_origin, "access-control-request-method": "GET"},
        )
        blocked_response = client.options(
            "/health",
            headers={"origin": blocked_origin, "access-control-request-method": "GET"},
        )

    assert allowed_response.status_code == 200
    assert allowed_response.headers.get("access-control-allow-origin") == allowed_origin

    assert blocked_response.status_code == 400
    assert blocked_response.headers.get("access-control-allow-origin") is None


def test_production_environment_rejects_sqlite(monkeypatch):
    monkeypatch.setattr(startup_checks, "IS_PROD", True)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./forbidden.db")

    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_database_environment()


def test_migration_check_fails_when_pending_migration(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "pending.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('000000000000')")
    conn.commit()
    conn.close()

    from sqlalchemy import create_engine

    monkeypatch.setattr(startup_checks, "IS_TEST", False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "postgresql://pedezap@db/pedezap")
    engine = create_engine(f"sqlite:///{db_path}")

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(
            engine=engine,
            alembic_config_path=Path(__file__).resolve().parents[1] / "alembic.ini",
        )


def test_tenant_slug_is_extracted_from_path_query_or_header():
    assert _extract_tenant_slug(_build_request(path_params={"slug": "acme"})) == "acme"
    assert _extract_tenant_slug(_build_request(query_string="slug=bella")) == "bella"
    assert _extract_tenant_slug(_build_request(headers=[(b"x-tenant-slug", b"kento")])) == "kento"
    assert _extract_tenant_slug(_build_request()) is None


def test_json_logs_mask_gateway_secrets():
    formatter = JsonFormatter("%(message)s")
    record = logging.LogRecord(
        name="app.services.billing_gateway",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Chamando Stripe com sk_test_abc123 e whsec_xyz789",
        args=(),
        exc_info=None,
    )
    record.external_id = "plan_acme_1"
    record.tenant = "acme"

    payload = json.loads(formatter.format(record))

    assert "abc123" not in payload["message"]
    assert "xyz789" not in payload["message"]
    assert payload["external_id"] == "plan_acme_1"
    assert payload["tenant"] == "acme"
    assert payload["level"] == "WARNING"


def test_migration_check_requires_document_table(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "head.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES ('0001_create_store_documents')")
    conn.commit()
    conn.close()

    from sqlalchemy import create_engine

    monkeypatch.setattr(startup_checks, "IS_TEST", False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "postgresql://pedezap@db/pedezap")

    with pytest.raises(RuntimeError, match="Document table missing"):
        startup_checks.ensure_migrations_applied(
            engine=create_engine(f"sqlite:///{db_path}"),
            alembic_config_path=Path(__file__).resolve().parents[1] / "alembic.ini",
        )
