import re

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .hashing import is_hex_digest

_TX_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class SaveRecordRequest(BaseModel):
    """
    Body of POST /api/save-record. The short names used by older clients
    (cid, tx, walletAddress) are accepted alongside the current ones.
    """
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    content_id: str = Field(min_length=1, validation_alias=AliasChoices("contentId", "cid", "content_id"))
    hash: str
    timestamp: str = Field(min_length=1)
    transaction_reference: str | None = Field(
        default=None, validation_alias=AliasChoices("transactionReference", "tx", "transaction_reference"),
    )
    file_name: str | None = Field(default=None, validation_alias=AliasChoices("fileName", "file_name"))
    file_type: str | None = Field(default=None, validation_alias=AliasChoices("fileType", "file_type"))
    submitter_identity: str | None = Field(
        default=None, validation_alias=AliasChoices("submitterIdentity", "walletAddress", "submitter_identity"),
    )

    @field_validator("transaction_reference", "file_name", "file_type", "submitter_identity", mode="before")
    @classmethod
    def _blank_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("hash")
    @classmethod
    def _hash_is_digest(cls, value: str) -> str:
        if not is_hex_digest(value):
            raise ValueError("must be a 32-byte hex digest")
        return value

    @field_validator("transaction_reference")
    @classmethod
    def _tx_shape(cls, value: str | None) -> str | None:
        if value is not None and not _TX_RE.match(value.strip()):
            raise ValueError("must be a 0x-prefixed 32-byte transaction hash")
        return value.strip() if value is not None else None

    @field_validator("submitter_identity")
    @classmethod
    def _address_shape(cls, value: str | None) -> str | None:
        if value is not None and not _ADDRESS_RE.match(value.strip()):
            raise ValueError("must be a 0x-prefixed 20-byte account address")
        return value.strip() if value is not None else None
