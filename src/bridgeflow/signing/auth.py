"""Auth challenge signing for status queries."""

import logging
from typing import Optional

from bridgeflow.contracts import AuthProof
from bridgeflow.errors import MissingAuthChallenge
from bridgeflow.signing.factory import SignerTable

logger = logging.getLogger(__name__)


class AuthSigner:
    """Signs the server-issued challenge with the source chain's scheme.

    - EVM: recoverable personal-message signature, no public key
    - Solana: Ed25519 over the UTF-8 challenge, base58
    - Aptos: Ed25519 signature plus the public key
    """

    def __init__(self, signers: SignerTable):
        self.signers = signers

    def sign(self, chain_id: int, challenge: Optional[str]) -> AuthProof:
        """Sign `challenge` with the key for `chain_id`.

        Raises:
            MissingAuthChallenge: The quote carried no auth message
            ConfigurationError: Chain unsupported or key material missing
        """
        if not challenge:
            raise MissingAuthChallenge("Auth message not found in quote data")

        signer = self.signers.get(chain_id)
        proof = signer.sign_message(challenge)
        if not signer.requires_public_key and proof.public_key is not None:
            proof = AuthProof(signature=proof.signature)

        logger.info(f"Auth signature generated for {signer.chain.name}")
        return proof
