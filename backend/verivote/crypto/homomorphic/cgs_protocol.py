"""
CGS (Cramer-Gennaro-Schoenmakers) style exponential ElGamal encryption.

The election key encrypts a voter's choice as g^m. Encryption with
explicit randomness is deterministic, which is what lets a voter's
verification code (identifier, randomness) recompute the exact stored
ciphertext. Ciphertexts travel as canonical JSON so that recomputation
can be compared byte for byte.
"""
import json
import math
import secrets
from dataclasses import dataclass
from typing import Tuple


@dataclass
class PublicKey:
    """CGS public key."""
    p: int  # Large prime
    q: int  # Prime order of subgroup
    g: int  # Generator
    h: int  # h = g^x where x is the private key


@dataclass
class PrivateKey:
    """CGS private key."""
    x: int  # Private exponent


@dataclass
class Ciphertext:
    """CGS ciphertext (c1, c2)."""
    c1: int  # g^r
    c2: int  # h^r * g^m


class CGSProtocol:
    """
    Exponential ElGamal over the 2048-bit MODP safe-prime group.

    g = 2 generates the subgroup of order q = (p - 1) / 2.
    """

    # RFC 3526 group 14
    DEFAULT_P = int(
        "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
        "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
        "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
        "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
        "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3D"
        "C2007CB8A163BF0598DA48361C55D39A69163FA8FD24CF5F"
        "83655D23DCA3AD961C62F356208552BB9ED529077096966D"
        "670C354E4ABC9804F1746C08CA237327FFFFFFFFFFFFFFFF",
        16
    )

    DEFAULT_G = 2

    def __init__(self):
        self.p = self.DEFAULT_P
        self.q = (self.p - 1) // 2
        self.g = self.DEFAULT_G

    def random_exponent(self) -> int:
        """Uniform exponent in [2, q)."""
        return secrets.randbelow(self.q - 2) + 2

    def generate_keypair(self) -> Tuple[PublicKey, PrivateKey]:
        """
        Generate a new CGS keypair.

        Returns:
            Tuple of (public_key, private_key)
        """
        x = self.random_exponent()

        # h = g^x mod p
        h = pow(self.g, x, self.p)

        return PublicKey(p=self.p, q=self.q, g=self.g, h=h), PrivateKey(x=x)

    def encrypt(self, public_key: PublicKey, message: int, randomness: int) -> Ciphertext:
        """
        Encrypt message as (g^r, h^r * g^m).

        Args:
            public_key: The election public key
            message: The candidate number
            randomness: The encryption randomness r

        Returns:
            Ciphertext (c1, c2)
        """
        if not 0 < randomness < public_key.q:
            raise ValueError("Randomness out of range")

        c1 = pow(public_key.g, randomness, public_key.p)
        h_r = pow(public_key.h, randomness, public_key.p)
        g_m = pow(public_key.g, message, public_key.p)
        c2 = (h_r * g_m) % public_key.p

        return Ciphertext(c1=c1, c2=c2)

    def decrypt(self, ciphertext: Ciphertext, private_key: PrivateKey, public_key: PublicKey) -> int:
        """
        Decrypt a ciphertext.

        Only feasible for small messages, which candidate numbers are.
        """
        c1_x = pow(ciphertext.c1, private_key.x, public_key.p)
        c1_x_inv = pow(c1_x, -1, public_key.p)

        # g^m = c2 * c1^(-x) mod p
        g_m = (ciphertext.c2 * c1_x_inv) % public_key.p

        return self._discrete_log(g_m, public_key)

    def _discrete_log(self, g_m: int, public_key: PublicKey, max_value: int = 1000000) -> int:
        """Solve discrete log for small values using baby-step giant-step."""
        m = int(math.ceil(math.sqrt(max_value)))

        # Baby step: g^j for j = 0, 1, ..., m-1
        baby_steps = {}
        g_j = 1
        for j in range(m):
            baby_steps[g_j] = j
            g_j = (g_j * public_key.g) % public_key.p

        # Giant step factor: g^(-m)
        g_m_inv = pow(public_key.g, -m, public_key.p)

        gamma = g_m
        for i in range(m):
            if gamma in baby_steps:
                return i * m + baby_steps[gamma]
            gamma = (gamma * g_m_inv) % public_key.p

        raise ValueError("Discrete log not found in range")

    def serialize_ciphertext(self, ct: Ciphertext) -> str:
        """Canonical JSON form of a ciphertext."""
        return json.dumps({"c1": str(ct.c1), "c2": str(ct.c2)}, separators=(",", ":"), sort_keys=True)

    def deserialize_ciphertext(self, s: str) -> Ciphertext:
        data = json.loads(s)
        return Ciphertext(c1=int(data["c1"]), c2=int(data["c2"]))

    def serialize_public_key(self, pk: PublicKey) -> str:
        """Serialize a public key to JSON string."""
        return json.dumps({
            "p": str(pk.p),
            "q": str(pk.q),
            "g": str(pk.g),
            "h": str(pk.h)
        }, separators=(",", ":"), sort_keys=True)

    def deserialize_public_key(self, s: str) -> PublicKey:
        """Deserialize a public key from JSON string."""
        data = json.loads(s)
        return PublicKey(
            p=int(data["p"]),
            q=int(data["q"]),
            g=int(data["g"]),
            h=int(data["h"])
        )

    def serialize_private_key(self, sk: PrivateKey) -> str:
        return json.dumps({"x": str(sk.x)})

    def deserialize_private_key(self, s: str) -> PrivateKey:
        return PrivateKey(x=int(json.loads(s)["x"]))


def encrypt_vote(choice: int, public_key_str: str, randomness: int) -> str:
    """
    Encrypt a candidate choice under a serialized election key.

    Returns the canonical ciphertext string; the same inputs always give
    the same bytes.
    """
    cgs = CGSProtocol()
    public_key = cgs.deserialize_public_key(public_key_str)
    return cgs.serialize_ciphertext(cgs.encrypt(public_key, choice, randomness))
