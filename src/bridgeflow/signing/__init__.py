"""Chain signers and auth challenge signing.

Provides:
- ChainSigner: per-chain signing and sending capability
- evm.EVMSigner, solana.SolanaSigner, aptos.AptosSigner: one per execution family
- SignerTable: capability table keyed by execution family
- AuthSigner: signs the quote's auth challenge
"""

from bridgeflow.signing.auth import AuthSigner
from bridgeflow.signing.base import ChainSigner
from bridgeflow.signing.factory import SignerTable, default_builders

__all__ = [
    "AuthSigner",
    "ChainSigner",
    "SignerTable",
    "default_builders",
]
