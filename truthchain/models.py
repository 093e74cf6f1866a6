import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AttestationRecord(Base):
    """A verified claim. Rows are append-only: never updated, never deleted."""

    __tablename__ = "attestation_records"

    # Insertion order; `id` is random so it cannot order records.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=_new_id)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    content_id: Mapped[str] = mapped_column(Text, nullable=False)
    hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    transaction_reference: Mapped[str | None] = mapped_column(String(66), unique=True, nullable=True, index=True)
    file_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[str] = mapped_column(String(40), nullable=False)
    submitter_identity: Mapped[str | None] = mapped_column(String(42), nullable=True)
    verification_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def created_at_utc(self) -> datetime:
        # SQLite drops the offset on reload; stored values are always UTC
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "contentId": self.content_id,
            "hash": self.hash,
            "transactionReference": self.transaction_reference,
            "fileName": self.file_name,
            "fileType": self.file_type,
            "timestamp": self.timestamp,
            "submitterIdentity": self.submitter_identity,
            "verificationMode": self.verification_mode,
            "createdAt": self.created_at_utc.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AttestationRecord {self.id} hash={self.hash[:8]}...>"
