"""Document model backing the shared document store."""
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from urlcoin.core.database import Base, kst_now


class Document(Base):
    """One JSON document addressed by (collection, doc_id).

    Holds the shared system documents (market, news, ranking), user
    accounts and identity credentials. ``version`` increases on every
    write and backs conditional (compare-and-swap) updates.
    """
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Collection name (e.g., "system", "users", "accounts")
    collection = Column(String(64), nullable=False, index=True)

    # Document key within the collection (e.g., "market", a user id)
    doc_id = Column(String(255), nullable=False)

    # Full field set of the document
    data = Column(JSON, nullable=False, default=dict)

    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime, default=kst_now)
    updated_at = Column(DateTime, default=kst_now, onupdate=kst_now)

    def __repr__(self):
        return f"<Document(collection='{self.collection}', doc_id='{self.doc_id}', version={self.version})>"
