from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from app.core.database import Base


class StoreDocument(Base):
    __tablename__ = "store_documents"

    id = Column(Integer, primary_key=True)
    key = Column(String(80), unique=True, index=True, nullable=False)
    # Incrementada a cada escrita; usada no compare-and-swap.
    revision = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
