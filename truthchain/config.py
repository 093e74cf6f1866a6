import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the working directory, regardless of where the package lives
load_dotenv(Path.cwd() / ".env")

logger = logging.getLogger(__name__)

# ── Defaults ──────────────────────────────────────────────────────────────────
POLYGON_RPC_URL      = "https://polygon-rpc.com/"
CONTRACT_CONFIG_PATH = "contract-config.json"
DATABASE_URL         = "sqlite:///truthchain.db"
UPLOAD_DIR           = "uploads"
MAX_UPLOAD_BYTES     = 50 * 1024 * 1024   # 50MB
LEDGER_TIMEOUT       = 10.0
STORAGE_TIMEOUT      = 30.0


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    contract_address: str | None = None
    contract_config_path: Path = Path(CONTRACT_CONFIG_PATH)
    rpc_url: str = POLYGON_RPC_URL
    polygon_private_key: str | None = None
    pinata_jwt: str | None = None
    cloudinary_url: str | None = None
    allow_local_storage: bool = True
    upload_dir: Path = Path(UPLOAD_DIR)
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    database_url: str = DATABASE_URL
    ledger_timeout: float = LEDGER_TIMEOUT
    storage_timeout: float = STORAGE_TIMEOUT
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            contract_address=_optional("CONTRACT_ADDRESS"),
            contract_config_path=Path(os.getenv("CONTRACT_CONFIG_PATH", CONTRACT_CONFIG_PATH)),
            rpc_url=os.getenv("POLYGON_RPC_URL", POLYGON_RPC_URL),
            polygon_private_key=_optional("POLYGON_PRIVATE_KEY"),
            pinata_jwt=_optional("PINATA_JWT"),
            cloudinary_url=_optional("CLOUDINARY_URL"),
            allow_local_storage=_flag("ALLOW_LOCAL_STORAGE", True),
            upload_dir=Path(os.getenv("UPLOAD_DIR", UPLOAD_DIR)),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES)),
            database_url=os.getenv("DATABASE_URL", DATABASE_URL),
            ledger_timeout=float(os.getenv("LEDGER_TIMEOUT", LEDGER_TIMEOUT)),
            storage_timeout=float(os.getenv("STORAGE_TIMEOUT", STORAGE_TIMEOUT)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    def resolve_contract_address(self) -> str | None:
        """
        Contract address from CONTRACT_ADDRESS, else from the JSON config file
        written at deploy time ({"address": "0x..."}). The environment wins.
        Re-read on every call so a fresh deployment needs no restart.
        """
        if self.contract_address:
            return self.contract_address
        try:
            if self.contract_config_path.is_file():
                config = json.loads(self.contract_config_path.read_text())
                address = (config.get("address") or "").strip()
                return address or None
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("[CONFIG] Could not read %s: %s", self.contract_config_path, e)
        return None
