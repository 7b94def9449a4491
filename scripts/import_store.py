from __future__ import annotations

import argparse

from app.core.config import STORE_DOCUMENT_KEY
from app.core.database import Base, SessionLocal, engine
from app.services.document_store import SqlDocumentStore, load_document_file
import app.models  # noqa: F401


def import_store(path: str, *, key: str = STORE_DOCUMENT_KEY, force: bool = False, dry_run: bool = False) -> None:
    document = load_document_file(path)
    print(
        f"restaurantes={len(document.restaurants)} planos={len(document.plans)} "
        f"faturas={len(document.invoices)} pedidos={len(document.orders)} clientes={len(document.customers)}"
    )
    if dry_run:
        print("Dry-run: nada foi gravado.")
        return

    Base.metadata.create_all(bind=engine, tables=[app.models.StoreDocument.__table__])
    store = SqlDocumentStore(SessionLocal, key=key)
    current = store.read()
    if current.revision and not force:
        raise SystemExit(f"Documento '{key}' já existe (revision={current.revision}). Use --force para sobrescrever.")

    document.revision = current.revision
    store.write(document)
    print(f"Documento '{key}' gravado com revision={document.revision}.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Importa um store.json para o armazenamento configurado.")
    parser.add_argument("path", help="Arquivo JSON no formato do store.json")
    parser.add_argument("--key", default=STORE_DOCUMENT_KEY)
    parser.add_argument("--force", action="store_true", help="Sobrescreve um documento existente")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    import_store(args.path, key=args.key, force=args.force, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
