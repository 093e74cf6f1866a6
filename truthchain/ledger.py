"""
Read-only access to an EVM ledger over JSON-RPC.

Only transaction receipts are fetched; nothing is signed or broadcast here.
Failures are not retried, the caller decides on retry policy.
"""
import itertools
import logging
from dataclasses import dataclass, field

import requests
from Cryptodome.Hash import keccak

from .errors import LedgerUnreachable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventLog:
    address: str
    topics: tuple[str, ...] = ()
    data: str = "0x"


@dataclass(frozen=True)
class Receipt:
    transaction_reference: str
    succeeded: bool
    to: str | None
    logs: tuple[EventLog, ...] = field(default_factory=tuple)


def event_topic(signature: str) -> str:
    """Topic-0 identifier of an event: keccak-256 of its canonical signature."""
    digest = keccak.new(digest_bits=256)
    digest.update(signature.encode("ascii"))
    return "0x" + digest.hexdigest()


def topic_to_address(topic: str) -> str:
    """An indexed address is right-aligned in its 32-byte topic."""
    cleaned = topic[2:] if topic[:2].lower() == "0x" else topic
    return "0x" + cleaned.lower().rjust(40, "0")[-40:]


def _parse_status(raw) -> bool:
    # Pre-Byzantium receipts carry no status; only an explicit 0 is a failure.
    if raw is None:
        return True
    if isinstance(raw, str):
        return int(raw, 16) != 0
    return int(raw) != 0


def parse_receipt(transaction_reference: str, payload: dict) -> Receipt:
    logs = tuple(
        EventLog(
            address=entry.get("address") or "",
            topics=tuple(entry.get("topics") or ()),
            data=entry.get("data") or "0x",
        )
        for entry in payload.get("logs") or ()
    )
    return Receipt(
        transaction_reference=transaction_reference,
        succeeded=_parse_status(payload.get("status")),
        to=payload.get("to"),
        logs=logs,
    )


class LedgerClient:
    def __init__(self, rpc_url: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def _call(self, method: str, params: list):
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = self._session.post(self.rpc_url, json=body, timeout=self.timeout)
            resp.raise_for_status()
            reply = resp.json()
        except requests.RequestException as e:
            raise LedgerUnreachable(f"Ledger RPC request failed: {e}") from e
        except ValueError as e:
            raise LedgerUnreachable("Ledger RPC returned a non-JSON response") from e

        if not isinstance(reply, dict):
            raise LedgerUnreachable("Ledger RPC returned an unexpected payload")
        err = reply.get("error")
        if isinstance(err, dict):
            raise LedgerUnreachable(f"Ledger RPC error {err.get('code')}: {err.get('message')}")
        if err:
            raise LedgerUnreachable(f"Ledger RPC error: {err}")
        return reply.get("result")

    def get_receipt(self, transaction_reference: str) -> Receipt | None:
        """Receipt for a transaction, or None when the node does not know it."""
        result = self._call("eth_getTransactionReceipt", [transaction_reference])
        if result is None:
            logger.info("[CHAIN] No receipt for %s", transaction_reference)
            return None
        try:
            receipt = parse_receipt(transaction_reference, result)
        except (ValueError, TypeError, AttributeError) as e:
            raise LedgerUnreachable("Ledger RPC returned a malformed receipt") from e
        logger.info(
            "[CHAIN] Receipt %s... status=%s to=%s logs=%d",
            transaction_reference[:12], "ok" if receipt.succeeded else "failed", receipt.to, len(receipt.logs),
        )
        return receipt
