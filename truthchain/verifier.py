"""
Server-side verification of a client-submitted attestation.

Nothing the client sends is trusted: the hash is recomputed from the claimed
inputs, and the transaction reference is checked against a receipt fetched
independently from the ledger. Gates run in a fixed order and the first
failure ends the attempt.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from .errors import (
    DuplicateAttestation,
    EventHashMismatch,
    EventNotFound,
    HashMismatch,
    SubmitterMismatch,
    TransactionFailed,
    TransactionNotFound,
    ValidationError,
    WrongContract,
)
from .hashing import fingerprint, hashes_match, normalize_hex
from .ledger import EventLog, LedgerClient, event_topic, topic_to_address
from .records import RecordStore

logger = logging.getLogger(__name__)

# emitted by storeRecord(bytes32 hash, string cid); hash and submitter are indexed
RECORD_STORED_EVENT = "RecordStored(bytes32,string,address,uint256)"
RECORD_STORED_TOPIC = event_topic(RECORD_STORED_EVENT)


class VerificationMode(str, Enum):
    TRUSTED = "trusted"     # ledger event matched
    DEGRADED = "degraded"   # no contract configured, hash recomputation only


@dataclass(frozen=True)
class Submission:
    text: str
    content_id: str
    claimed_hash: str
    timestamp: str
    transaction_reference: str | None = None
    submitter_identity: str | None = None


@dataclass(frozen=True)
class Verdict:
    mode: VerificationMode
    event: EventLog | None = None

    @property
    def trusted(self) -> bool:
        return self.mode is VerificationMode.TRUSTED


def _same_address(a: str | None, b: str | None) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class AttestationVerifier:
    def __init__(self, ledger: LedgerClient | None, contract_address: str | None = None):
        self.ledger = ledger
        self.contract_address = contract_address or None

    @property
    def mode(self) -> VerificationMode:
        return VerificationMode.TRUSTED if self.contract_address else VerificationMode.DEGRADED

    def verify(self, submission: Submission, records: RecordStore) -> Verdict:
        if self.mode is VerificationMode.TRUSTED and not submission.transaction_reference:
            raise ValidationError("A transaction reference is required to verify on-chain")

        self.check_fingerprint(submission)
        self.check_unique(submission, records)

        if self.mode is VerificationMode.DEGRADED:
            logger.warning(
                "[VERIFY] No contract address configured; accepting %s... unverified",
                submission.claimed_hash[:16],
            )
            return Verdict(VerificationMode.DEGRADED)

        event = self.check_ledger(submission)
        logger.info("[VERIFY] Transaction and event verified on-chain: %s", submission.transaction_reference)
        return Verdict(VerificationMode.TRUSTED, event)

    @staticmethod
    def check_fingerprint(submission: Submission) -> None:
        expected = fingerprint(submission.text, submission.content_id, submission.timestamp)
        if not hashes_match(expected, submission.claimed_hash):
            logger.info("[VERIFY] Hash mismatch: claimed %s... expected %s...",
                        submission.claimed_hash[:16], expected[:16])
            raise HashMismatch()

    @staticmethod
    def check_unique(submission: Submission, records: RecordStore) -> None:
        if records.find_by_hash(normalize_hex(submission.claimed_hash)) is not None:
            raise DuplicateAttestation()
        reference = submission.transaction_reference
        if reference and records.find_by_transaction(reference.lower()) is not None:
            raise DuplicateAttestation("This transaction has already been used for a record")

    def check_ledger(self, submission: Submission) -> EventLog:
        receipt = self.ledger.get_receipt(submission.transaction_reference)
        if receipt is None:
            raise TransactionNotFound()
        if not receipt.succeeded:
            raise TransactionFailed()
        if not _same_address(receipt.to, self.contract_address):
            raise WrongContract()

        event = self.find_event(receipt.logs)
        if event is None:
            raise EventNotFound()

        if len(event.topics) < 2 or normalize_hex(event.topics[1]) != normalize_hex(submission.claimed_hash):
            raise EventHashMismatch()

        if submission.submitter_identity:
            if len(event.topics) < 3 or not _same_address(topic_to_address(event.topics[2]),
                                                            submission.submitter_identity):
                raise SubmitterMismatch()
        return event

    def find_event(self, logs) -> EventLog | None:
        """First RecordStored log emitted by the configured contract itself."""
        for log in logs:
            if (log.topics and log.topics[0].lower() == RECORD_STORED_TOPIC
                    and _same_address(log.address, self.contract_address)):
                return log
        return None
