from app.models.store_document import StoreDocument
