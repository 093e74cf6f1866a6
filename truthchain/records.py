"""
Append-only persistence for verified attestation records.

Both stores reject a second record with an existing hash or transaction
reference at insert time, so the verifier's duplicate pre-check is a fast
path rather than the only guard.
"""
import logging
import threading

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings
from .errors import DuplicateAttestation
from .models import AttestationRecord, Base, _new_id, _utcnow

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"


class RecordStore:
    def get_all(self) -> list[AttestationRecord]:
        raise NotImplementedError

    def get(self, record_id: str) -> AttestationRecord | None:
        raise NotImplementedError

    def find_by_hash(self, hash_hex: str) -> AttestationRecord | None:
        raise NotImplementedError

    def find_by_transaction(self, reference: str) -> AttestationRecord | None:
        raise NotImplementedError

    def create(self, **fields) -> AttestationRecord:
        raise NotImplementedError


def _new_record(fields: dict) -> AttestationRecord:
    return AttestationRecord(id=_new_id(), created_at=_utcnow(), **fields)


class MemoryRecordStore(RecordStore):
    """Process-local store for tests and throwaway runs."""

    def __init__(self):
        self._records: list[AttestationRecord] = []
        self._by_hash: dict[str, AttestationRecord] = {}
        self._by_tx: dict[str, AttestationRecord] = {}
        self._lock = threading.Lock()

    def get_all(self):
        with self._lock:
            return list(self._records)

    def get(self, record_id):
        with self._lock:
            return next((r for r in self._records if r.id == record_id), None)

    def find_by_hash(self, hash_hex):
        with self._lock:
            return self._by_hash.get(hash_hex)

    def find_by_transaction(self, reference):
        with self._lock:
            return self._by_tx.get(reference)

    def create(self, **fields):
        record = _new_record(fields)
        with self._lock:
            if record.hash in self._by_hash:
                raise DuplicateAttestation()
            if record.transaction_reference and record.transaction_reference in self._by_tx:
                raise DuplicateAttestation()
            self._records.append(record)
            self._by_hash[record.hash] = record
            if record.transaction_reference:
                self._by_tx[record.transaction_reference] = record
        logger.info("[RECORDS] Saved %s", record.id)
        return record


class SqlRecordStore(RecordStore):
    def __init__(self, engine):
        self.engine = engine
        Base.metadata.create_all(engine)
        self._session = sessionmaker(bind=engine, expire_on_commit=False)

    def get_all(self):
        with self._session() as session:
            return list(session.scalars(select(AttestationRecord).order_by(AttestationRecord.seq)))

    def get(self, record_id):
        return self._one(AttestationRecord.id == record_id)

    def find_by_hash(self, hash_hex):
        return self._one(AttestationRecord.hash == hash_hex)

    def find_by_transaction(self, reference):
        return self._one(AttestationRecord.transaction_reference == reference)

    def _one(self, clause) -> AttestationRecord | None:
        with self._session() as session:
            return session.scalars(select(AttestationRecord).where(clause)).first()

    def create(self, **fields):
        record = _new_record(fields)
        with self._session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                # UNIQUE(hash) / UNIQUE(transaction_reference) lost a race
                raise DuplicateAttestation() from e
        logger.info("[RECORDS] Saved %s", record.id)
        return record


def build_record_store(settings: Settings) -> RecordStore:
    url = settings.database_url
    if url == MEMORY_URL:
        return MemoryRecordStore()
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return SqlRecordStore(create_engine(url, **kwargs))
    return SqlRecordStore(create_engine(url, pool_pre_ping=True))
