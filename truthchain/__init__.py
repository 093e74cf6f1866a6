"""TruthChain: content attestation API backed by IPFS storage and an EVM ledger."""

__version__ = "0.1.0"
