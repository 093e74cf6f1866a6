import logging
import os
from functools import lru_cache

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .content_store import ContentStore, build_content_store
from .errors import AttestationError, RecordNotFound, UnknownFailure, ValidationError
from .hashing import fingerprint, normalize_hex, utc_timestamp
from .ledger import LedgerClient
from .records import RecordStore, build_record_store
from .schemas import SaveRecordRequest
from .verifier import AttestationVerifier, Submission


# ── Wiring (overridable via app.dependency_overrides) ────────────────────────
@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_content_store() -> ContentStore:
    return build_content_store(get_settings())


@lru_cache
def get_record_store() -> RecordStore:
    return build_record_store(get_settings())


@lru_cache
def get_ledger_client() -> LedgerClient:
    settings = get_settings()
    return LedgerClient(settings.rpc_url, timeout=settings.ledger_timeout)


def get_verifier(
    settings: Settings = Depends(get_settings),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> AttestationVerifier:
    # Resolved per request so a newly written contract-config.json applies at once
    return AttestationVerifier(ledger, settings.resolve_contract_address())


settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger("truthchain")

app = FastAPI(title="TruthChain Attestation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Files kept by the local storage fallback are served back to clients
if get_content_store().is_local:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


# ── Error mapping ─────────────────────────────────────────────────────────────
@app.exception_handler(AttestationError)
async def attestation_error_handler(_request, exc: AttestationError):
    logger.info("[API] Rejected (%s): %s", exc.kind, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err.get("loc", ())[1:]) or "body"
        problems.append(f"{where}: {err.get('msg')}")
    error = ValidationError("; ".join(problems) or None)
    return JSONResponse(error.to_dict(), status_code=error.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(_request, exc: Exception):
    logger.exception("[API] Unhandled error: %s", exc)
    error = UnknownFailure()
    return JSONResponse(error.to_dict(), status_code=error.status_code)


# ── All routes are under the /api prefix ─────────────────────────────────────
router = APIRouter(prefix="/api")


@router.get("/contract-address")
def contract_address(settings: Settings = Depends(get_settings)):
    """Deployed contract address, or null when running without on-chain verification."""
    return {"address": settings.resolve_contract_address()}


@router.get("/status")
def status(
    settings: Settings = Depends(get_settings),
    store: ContentStore = Depends(get_content_store),
    verifier: AttestationVerifier = Depends(get_verifier),
):
    return {
        "storageMode": store.mode.value if store.mode else None,
        "verificationMode": verifier.mode.value,
        "hasPinataJwt": bool(settings.pinata_jwt),
        "hasCloudinaryUrl": bool(settings.cloudinary_url),
        "hasPolygonKey": bool(settings.polygon_private_key),
        "hasContractAddress": verifier.contract_address is not None,
    }


@router.get("/records")
def list_records(
    hash_hex: str | None = Query(None, alias="hash"),
    transaction_reference: str | None = Query(None, alias="transactionReference"),
    records: RecordStore = Depends(get_record_store),
):
    """All verified records in creation order, optionally narrowed to one hash or transaction."""
    if hash_hex is None and transaction_reference is None:
        return [r.to_dict() for r in records.get_all()]

    found = []
    if hash_hex is not None:
        found.append(records.find_by_hash(normalize_hex(hash_hex)))
    if transaction_reference is not None:
        found.append(records.find_by_transaction(transaction_reference.strip().lower()))
    # both filters given: the record must satisfy both
    if any(r is None for r in found) or len({r.id for r in found}) > 1:
        return []
    return [found[0].to_dict()]


@router.get("/records/{record_id}")
def get_record(record_id: str, records: RecordStore = Depends(get_record_store)):
    record = records.get(record_id)
    if record is None:
        raise RecordNotFound()
    return record.to_dict()


@router.post("/prepare-upload")
async def prepare_upload(
    text: str = Form(""),
    file: UploadFile | None = File(None),
    store: ContentStore = Depends(get_content_store),
):
    """
    STEP 1 for the client: store the file and fingerprint the claim.
    Nothing is persisted; the client signs storeRecord(hash, contentId) with
    its own wallet and comes back to /save-record with the transaction hash.
    """
    if not text or file is None:
        raise ValidationError("Both text and file are required")

    # one byte past the limit is enough for the store to reject it
    data = await file.read(store.max_bytes + 1 if store.max_bytes is not None else -1)
    file_name = file.filename or "unknown"
    content_id = await run_in_threadpool(store.store, data, file_name)

    timestamp = utc_timestamp()
    hash_hex = fingerprint(text, content_id, timestamp)
    logger.info("[HASH] Hash generated: %s...", hash_hex[:16])

    return {
        "success": True,
        "contentId": content_id,
        "hash": hash_hex,
        "timestamp": timestamp,
        "fileName": file_name,
        "fileType": file.content_type or "application/octet-stream",
        "storageMode": store.mode.value,
    }


@router.post("/save-record")
def save_record(
    body: SaveRecordRequest,
    verifier: AttestationVerifier = Depends(get_verifier),
    records: RecordStore = Depends(get_record_store),
):
    """
    STEP 2: verify the client's attestation against the ledger and persist it.
    Any failed check rejects the request with nothing written.
    """
    submission = Submission(
        text=body.text,
        content_id=body.content_id,
        claimed_hash=body.hash,
        timestamp=body.timestamp,
        transaction_reference=body.transaction_reference,
        submitter_identity=body.submitter_identity,
    )
    verdict = verifier.verify(submission, records)
    reference = body.transaction_reference.lower() if body.transaction_reference else None

    record = records.create(
        text=body.text,
        content_id=body.content_id,
        hash=normalize_hex(body.hash),
        # only a matched ledger event may claim a transaction reference
        transaction_reference=reference if verdict.trusted else None,
        file_name=body.file_name or "unknown",
        file_type=body.file_type or "application/octet-stream",
        timestamp=body.timestamp,
        submitter_identity=body.submitter_identity.lower() if body.submitter_identity else None,
        verification_mode=verdict.mode.value,
    )
    return {"success": True, "record": record.to_dict()}


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "TruthChain Attestation API is running",
        "endpoints": [
            "/api/prepare-upload", "/api/save-record", "/api/records",
            "/api/contract-address", "/api/status",
        ],
    }


app.include_router(router)


def run() -> None:
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
