"""Armazenamento do documento único da plataforma.

Toda leitura devolve o documento inteiro e toda escrita o substitui por
completo. A escrita é condicionada à ``revision`` lida (compare-and-swap);
``mutate`` relê e reaplica a alteração quando outra requisição escreveu no
meio do caminho, evitando que uma atualização sobrescreva a outra.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from threading import Lock
from typing import Callable, TypeVar

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.clock import utcnow
from app.core.config import STORE_DOCUMENT_KEY, STORE_SEED_PATH, STORE_WRITE_RETRIES
from app.core.errors import StaleDocumentError, StoreUnavailable
from app.models.store_document import StoreDocument
from app.schemas.store import Plan, StoreData

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PLANS = (
    {
        "id": "plan_local",
        "name": "Plano Local",
        "price": Decimal("149.90"),
        "color": "#6366f1",
        "description": "Ideal para pequenos comercios que vendem apenas no bairro.",
        "features": ["Cardapio Digital", "Recebimento via WhatsApp", "Ate 500 pedidos/mes", "Suporte por Email"],
    },
    {
        "id": "plan_local_online",
        "name": "Plano Local + Online",
        "price": Decimal("299.90"),
        "color": "#10b981",
        "description": "Para quem quer escalar e vender online com pagamento automatico.",
        "features": [
            "Tudo do Plano Local",
            "Pagamento Online (Pix/Cartao)",
            "Pedidos Ilimitados",
            "Gestor de Entregas",
            "Ferramenta de Cupons",
        ],
    },
)


def default_document() -> StoreData:
    now = utcnow()
    plans = [Plan(**data, created_at=now, updated_at=now) for data in DEFAULT_PLANS]
    return StoreData(plans=plans)


def parse_document(payload: dict, *, revision: int = 0) -> StoreData:
    try:
        document = StoreData.model_validate(payload)
    except PydanticValidationError as exc:
        logger.error("Documento inválido no armazenamento errors=%s", exc.error_count())
        raise StoreUnavailable("Documento armazenado está inválido.") from exc
    document.revision = revision
    return document


def load_document_file(path: str | Path) -> StoreData:
    """Lê um ``store.json`` no formato legado."""
    file_path = Path(path)
    try:
        raw = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StoreUnavailable(f"Não foi possível ler {file_path}.") from exc
    if not isinstance(raw, dict):
        raise StoreUnavailable(f"Arquivo {file_path} não contém um documento.")
    return parse_document(raw)


def initial_document() -> StoreData:
    if STORE_SEED_PATH and Path(STORE_SEED_PATH).exists():
        logger.info("Carregando documento inicial de %s", STORE_SEED_PATH)
        return load_document_file(STORE_SEED_PATH)
    return default_document()


class DocumentStore(ABC):
    def __init__(self, *, max_attempts: int = STORE_WRITE_RETRIES) -> None:
        self.max_attempts = max(max_attempts, 1)

    @abstractmethod
    def read(self) -> StoreData:
        """Retorna o documento completo com a revisão atual."""

    @abstractmethod
    def write(self, document: StoreData) -> StoreData:
        """Persiste o documento se a revisão não mudou; levanta StaleDocumentError caso contrário."""

    def mutate(self, fn: Callable[[StoreData], T]) -> T:
        """Aplica ``fn`` sobre a versão mais recente e persiste o resultado.

        Erros de domínio levantados por ``fn`` interrompem a operação sem
        escrita. Se ``fn`` não alterar o documento, nada é gravado.
        """
        for attempt in range(1, self.max_attempts + 1):
            document = self.read()
            before = document.to_payload()
            result = fn(document)
            if document.to_payload() == before:
                return result
            try:
                self.write(document)
            except StaleDocumentError:
                logger.warning(
                    "Conflito de revisão ao gravar documento attempt=%s revision=%s",
                    attempt,
                    document.revision,
                )
                continue
            return result
        raise StaleDocumentError()


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, document: StoreData | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        seed = document if document is not None else default_document()
        self._payload = seed.to_payload()
        self._revision = 0
        self._lock = Lock()
        self.writes = 0

    def read(self) -> StoreData:
        with self._lock:
            payload = json.loads(json.dumps(self._payload))
            revision = self._revision
        return parse_document(payload, revision=revision)

    def write(self, document: StoreData) -> StoreData:
        with self._lock:
            if document.revision != self._revision:
                raise StaleDocumentError()
            self._payload = document.to_payload()
            self._revision += 1
            self.writes += 1
            document.revision = self._revision
        return document


class SqlDocumentStore(DocumentStore):
    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session],
        *,
        key: str = STORE_DOCUMENT_KEY,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._session_factory = session_factory
        self.key = key

    def read(self) -> StoreData:
        db = self._session_factory()
        try:
            row = db.execute(select(StoreDocument).where(StoreDocument.key == self.key)).scalar_one_or_none()
            if row is None:
                logger.info("Documento %s inexistente; usando documento inicial", self.key)
                return initial_document()
            return parse_document(row.payload, revision=row.revision)
        except SQLAlchemyError as exc:
            logger.exception("Falha ao ler documento key=%s", self.key)
            raise StoreUnavailable() from exc
        finally:
            db.close()

    def write(self, document: StoreData) -> StoreData:
        payload = document.to_payload()
        expected = document.revision
        db = self._session_factory()
        try:
            if expected == 0:
                db.add(StoreDocument(key=self.key, revision=1, payload=payload))
                db.commit()
            else:
                result = db.execute(
                    update(StoreDocument)
                    .where(StoreDocument.key == self.key, StoreDocument.revision == expected)
                    .values(payload=payload, revision=expected + 1, updated_at=utcnow())
                )
                if result.rowcount != 1:
                    db.rollback()
                    raise StaleDocumentError()
                db.commit()
        except IntegrityError as exc:
            # Outra requisição criou o documento primeiro
            db.rollback()
            raise StaleDocumentError() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Falha ao gravar documento key=%s", self.key)
            raise StoreUnavailable() from exc
        finally:
            db.close()

        document.revision = expected + 1
        logger.debug("Documento gravado key=%s revision=%s", self.key, document.revision)
        return document
