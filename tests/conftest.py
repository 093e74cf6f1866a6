import os
import tempfile
from pathlib import Path

# Isolate the app from any local .env / contract-config.json before it is imported
_TMP = Path(tempfile.mkdtemp(prefix="truthchain-tests-"))
os.environ["DATABASE_URL"] = "memory://"
os.environ["UPLOAD_DIR"] = str(_TMP / "uploads")
os.environ["CONTRACT_CONFIG_PATH"] = str(_TMP / "contract-config.json")
for _name in ("CONTRACT_ADDRESS", "PINATA_JWT", "CLOUDINARY_URL", "POLYGON_PRIVATE_KEY"):
    os.environ[_name] = ""

import pytest
from fastapi.testclient import TestClient

from truthchain.config import Settings
from truthchain.content_store import ContentStore, LocalBackend
from truthchain.hashing import fingerprint, normalize_hex
from truthchain.ledger import EventLog, Receipt
from truthchain.records import MemoryRecordStore
from truthchain.verifier import RECORD_STORED_TOPIC, Submission

CONTRACT = "0x" + "ab" * 20
WALLET = "0x" + "12" * 20
TX = "0x" + "cd" * 32

TEXT = "Breaking news"
CID = "bafy123"
TIMESTAMP = "2024-01-01T00:00:00.000Z"


class FakeLedger:
    """Receipts keyed by transaction reference; records every lookup."""

    def __init__(self, receipts=None, error=None):
        self.receipts = dict(receipts or {})
        self.error = error
        self.calls = []

    def add(self, receipt):
        self.receipts[receipt.transaction_reference] = receipt

    def get_receipt(self, transaction_reference):
        self.calls.append(transaction_reference)
        if self.error is not None:
            raise self.error
        return self.receipts.get(transaction_reference)


def record_stored_log(hash_hex, emitter=CONTRACT, submitter=WALLET, topic0=RECORD_STORED_TOPIC):
    return EventLog(
        address=emitter,
        topics=(topic0, "0x" + normalize_hex(hash_hex), "0x" + "0" * 24 + submitter[2:]),
        data="0x",
    )


def make_receipt(hash_hex, tx=TX, to=CONTRACT, succeeded=True, logs=None):
    if logs is None:
        logs = (record_stored_log(hash_hex),)
    return Receipt(transaction_reference=tx, succeeded=succeeded, to=to, logs=tuple(logs))


def make_submission(text=TEXT, cid=CID, timestamp=TIMESTAMP, **overrides):
    fields = {
        "text": text,
        "content_id": cid,
        "claimed_hash": fingerprint(text, cid, timestamp),
        "timestamp": timestamp,
        "transaction_reference": TX,
        "submitter_identity": WALLET,
    }
    fields.update(overrides)
    return Submission(**fields)


@pytest.fixture
def records():
    return MemoryRecordStore()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def content_store(tmp_path):
    return ContentStore(LocalBackend(tmp_path / "uploads"), max_bytes=1024)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        contract_address=CONTRACT,
        contract_config_path=tmp_path / "contract-config.json",
        upload_dir=tmp_path / "uploads",
        database_url="memory://",
    )


@pytest.fixture
def make_client(records, ledger, content_store, settings):
    """Build a TestClient with the app's collaborators swapped for fakes."""
    from truthchain import main

    def _make(app_settings=None, **client_kwargs):
        overrides = main.app.dependency_overrides
        overrides[main.get_settings] = lambda: app_settings or settings
        overrides[main.get_record_store] = lambda: records
        overrides[main.get_ledger_client] = lambda: ledger
        overrides[main.get_content_store] = lambda: content_store
        return TestClient(main.app, **client_kwargs)

    yield _make
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()
