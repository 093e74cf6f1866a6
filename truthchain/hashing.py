import hashlib
import json
import re
from datetime import datetime, timezone

DIGEST_HEX_LEN = 64   # 32-byte SHA-256 digest
_HEX_RE = re.compile(r"^[0-9a-f]*$")


def fingerprint(text: str, content_id: str, timestamp: str) -> str:
    """
    SHA-256 fingerprint binding a claim to its stored file and the moment it
    was prepared. Inputs are framed as canonical JSON so the triple cannot be
    shifted across field boundaries.
    """
    payload = json.dumps(
        {"text": text, "cid": content_id, "timestamp": timestamp},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def strip_hex_prefix(value: str) -> str:
    value = value.strip()
    if value[:2].lower() == "0x":
        return value[2:]
    return value


def normalize_hex(value: str, width: int = DIGEST_HEX_LEN) -> str:
    """Lowercase, drop any 0x prefix and left-zero-pad to `width` hex chars."""
    return strip_hex_prefix(value).lower().rjust(width, "0")


def is_hex_digest(value: str) -> bool:
    """True for a 32-byte hex digest, with or without a 0x prefix."""
    cleaned = strip_hex_prefix(value).lower()
    return len(cleaned) == DIGEST_HEX_LEN and bool(_HEX_RE.match(cleaned))


def hashes_match(a: str, b: str) -> bool:
    return normalize_hex(a) == normalize_hex(b)


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
