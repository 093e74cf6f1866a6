import pytest

from truthchain.config import Settings
from truthchain.errors import DuplicateAttestation
from truthchain.records import MemoryRecordStore, SqlRecordStore, build_record_store


def fields(n, tx=True):
    return {
        "text": f"claim {n}",
        "content_id": f"bafy{n}",
        "hash": f"{n:064x}",
        "transaction_reference": f"0x{n:064x}" if tx else None,
        "file_name": "photo.jpg",
        "file_type": "image/jpeg",
        "timestamp": "2024-01-01T00:00:00.000Z",
        "submitter_identity": None,
        "verification_mode": "trusted",
    }


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryRecordStore()
    return build_record_store(Settings(database_url=f"sqlite:///{tmp_path / 'records.db'}"))


def test_create_assigns_id_and_created_at(store):
    record = store.create(**fields(1))
    assert len(record.id) == 36
    assert record.created_at is not None
    assert record.to_dict()["contentId"] == "bafy1"


def test_ids_are_unique(store):
    ids = {store.create(**fields(n)).id for n in range(1, 6)}
    assert len(ids) == 5


def test_get_all_in_creation_order(store):
    for n in (3, 1, 2):
        store.create(**fields(n))
    assert [r.text for r in store.get_all()] == ["claim 3", "claim 1", "claim 2"]


def test_lookups(store):
    record = store.create(**fields(7))
    assert store.get(record.id).hash == record.hash
    assert store.find_by_hash(f"{7:064x}").id == record.id
    assert store.find_by_transaction(f"0x{7:064x}").id == record.id
    assert store.get("missing") is None
    assert store.find_by_hash("0" * 64) is None
    assert store.find_by_transaction("0x" + "0" * 64) is None


def test_insert_rejects_duplicate_hash(store):
    store.create(**fields(1))
    dup = dict(fields(2), hash=f"{1:064x}")
    with pytest.raises(DuplicateAttestation):
        store.create(**dup)
    assert len(store.get_all()) == 1


def test_insert_rejects_duplicate_transaction(store):
    store.create(**fields(1))
    dup = dict(fields(2), transaction_reference=f"0x{1:064x}")
    with pytest.raises(DuplicateAttestation):
        store.create(**dup)
    assert len(store.get_all()) == 1


def test_records_without_transaction_do_not_collide(store):
    store.create(**fields(1, tx=False))
    store.create(**fields(2, tx=False))
    assert len(store.get_all()) == 2


def test_sqlite_store_persists_across_instances(tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'records.db'}")
    build_record_store(settings).create(**fields(1))
    reopened = build_record_store(settings)
    assert isinstance(reopened, SqlRecordStore)
    assert [r.hash for r in reopened.get_all()] == [f"{1:064x}"]


def test_memory_url_selects_memory_store():
    assert isinstance(build_record_store(Settings(database_url="memory://")), MemoryRecordStore)


def test_created_at_serializes_the_same_after_reload(store):
    created = store.create(**fields(1)).to_dict()["createdAt"]
    reloaded = store.get_all()[0].to_dict()["createdAt"]
    assert created == reloaded
    assert reloaded.endswith("+00:00")
