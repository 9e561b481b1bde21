"""
Knowledge proofs attached to ballots.

Protocol code only talks to the ProofSystem interface, so the proof
system can be swapped without touching ballot handling. The shipped
implementation is a Fiat-Shamir Schnorr proof that the prover knows the
encryption randomness r behind c1 = g^r, bound to a context string (the
voter id) so a proof cannot be lifted onto another voter's submission.
"""
import hashlib
import json
import logging
from abc import ABC, abstractmethod

from verivote.crypto.homomorphic.cgs_protocol import CGSProtocol


logger = logging.getLogger(__name__)


class ProofSystem(ABC):
    """Prove/verify oracle over ballot ciphertexts."""

    name: str = "abstract"

    @abstractmethod
    def prove(self, ciphertext: str, randomness: int, public_key: str, context: str) -> str:
        """Produce a serialized proof for ciphertext."""

    @abstractmethod
    def verify(self, ciphertext: str, proof: str, public_key: str, context: str) -> bool:
        """Check a serialized proof. Malformed proofs verify as False."""


class SchnorrProofSystem(ProofSystem):
    """Proof of knowledge of the ElGamal randomness."""

    name = "schnorr-randomness"

    def __init__(self):
        self.cgs = CGSProtocol()

    def _challenge(self, public_key, c1: int, c2: int, commitment: int, context: str) -> int:
        data = f"{public_key.g}:{public_key.h}:{c1}:{c2}:{commitment}:{context}"
        return int(hashlib.sha256(data.encode()).hexdigest(), 16) % public_key.q

    def prove(self, ciphertext: str, randomness: int, public_key: str, context: str) -> str:
        pk = self.cgs.deserialize_public_key(public_key)
        ct = self.cgs.deserialize_ciphertext(ciphertext)

        k = self.cgs.random_exponent()
        commitment = pow(pk.g, k, pk.p)
        challenge = self._challenge(pk, ct.c1, ct.c2, commitment, context)
        response = (k + challenge * randomness) % pk.q

        return json.dumps({
            "system": self.name,
            "commitment": str(commitment),
            "response": str(response),
        }, separators=(",", ":"), sort_keys=True)

    def verify(self, ciphertext: str, proof: str, public_key: str, context: str) -> bool:
        try:
            pk = self.cgs.deserialize_public_key(public_key)
            ct = self.cgs.deserialize_ciphertext(ciphertext)
            data = json.loads(proof)
            if data.get("system") != self.name:
                return False
            commitment = int(data["commitment"])
            response = int(data["response"])
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.info("Malformed ballot proof")
            return False

        if not (0 < commitment < pk.p and 0 <= response < pk.q):
            return False

        challenge = self._challenge(pk, ct.c1, ct.c2, commitment, context)

        # g^s == a * c1^e
        left = pow(pk.g, response, pk.p)
        right = (commitment * pow(ct.c1, challenge, pk.p)) % pk.p
        return left == right


def get_proof_system() -> ProofSystem:
    return SchnorrProofSystem()
