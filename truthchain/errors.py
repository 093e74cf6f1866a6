"""
Failure taxonomy for the attestation flow.

Every error carries a stable ``kind`` (surfaced to clients as ``error``) and
the HTTP status the API answers with.
"""


class AttestationError(Exception):
    kind = "UnknownFailure"
    status_code = 500
    default_message = "Something went wrong while processing the attestation"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(AttestationError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Missing or malformed required fields"


class HashMismatch(AttestationError):
    kind = "HashMismatch"
    status_code = 400
    default_message = "The provided hash does not match the content"


class DuplicateAttestation(AttestationError):
    kind = "DuplicateAttestation"
    status_code = 409
    default_message = "This content has already been verified"


class TransactionNotFound(AttestationError):
    kind = "TransactionNotFound"
    status_code = 400
    default_message = "Transaction not found on the ledger"


class TransactionFailed(AttestationError):
    kind = "TransactionFailed"
    status_code = 400
    default_message = "Transaction failed on the ledger"


class WrongContract(AttestationError):
    kind = "WrongContract"
    status_code = 400
    default_message = "Transaction was not sent to the attestation contract"


class EventNotFound(AttestationError):
    kind = "EventNotFound"
    status_code = 400
    default_message = "RecordStored event not found in transaction"


class EventHashMismatch(AttestationError):
    kind = "EventHashMismatch"
    status_code = 400
    default_message = "The hash in the ledger event does not match"


class SubmitterMismatch(AttestationError):
    kind = "SubmitterMismatch"
    status_code = 400
    default_message = "The transaction was not submitted by the provided wallet"


class UploadRejected(AttestationError):
    kind = "UploadRejected"
    status_code = 413
    default_message = "The storage backend rejected the upload"


class RecordNotFound(AttestationError):
    kind = "RecordNotFound"
    status_code = 404
    default_message = "Record not found"


class StorageUnavailable(AttestationError):
    kind = "StorageUnavailable"
    status_code = 503
    default_message = "Content storage is not available"


class LedgerUnreachable(AttestationError):
    kind = "LedgerUnreachable"
    status_code = 502
    default_message = "Could not reach the ledger RPC endpoint"


class UnknownFailure(AttestationError):
    pass
