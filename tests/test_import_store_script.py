import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.models.store_document import StoreDocument
from app.services.document_store import SqlDocumentStore
from scripts import import_store
from tests.fixtures_data import build_document


@pytest.fixture
def sqlite_target(monkeypatch):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine, tables=[StoreDocument.__table__])
    session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    monkeypatch.setattr(import_store, "engine", engine)
    monkeypatch.setattr(import_store, "SessionLocal", session_factory)
    return session_factory


def _write_store(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(json.dumps(build_document().to_payload()), encoding="utf-8")
    return path


def test_import_writes_document(tmp_path, sqlite_target):
    import_store.import_store(str(_write_store(tmp_path)), key="importado")

    document = SqlDocumentStore(sqlite_target, key="importado").read()
    assert document.revision == 1
    assert document.restaurants[0].slug == "acme"


def test_import_refuses_to_overwrite_without_force(tmp_path, sqlite_target):
    path = _write_store(tmp_path)
    import_store.import_store(str(path), key="importado")

    with pytest.raises(SystemExit):
        import_store.import_store(str(path), key="importado")

    import_store.import_store(str(path), key="importado", force=True)
    assert SqlDocumentStore(sqlite_target, key="importado").read().revision == 2


def test_dry_run_does_not_write(tmp_path, sqlite_target, capsys):
    import_store.import_store(str(_write_store(tmp_path)), key="importado", dry_run=True)

    assert "Dry-run" in capsys.readouterr().out
    assert SqlDocumentStore(sqlite_target, key="importado").read().revision == 0
