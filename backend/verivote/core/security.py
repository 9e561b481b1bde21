"""
Signing, hashing and session-token utilities.

Every signed message is the canonical JSON encoding of a domain tag
followed by its fields, so a signature produced under one tag never
verifies under another.
"""
import base64
import hashlib
import json
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from jose import jwt, JWTError

from verivote.core.config import settings


# Domain separation tags
AUTH_TAG = "auth"
VOTE_TAG = "vote"
REGISTRATION_TAG = "registration"
RECEIPT_TAG = "receipt"
BALLOT_TAG = "ballot"


def canonical_encode(*fields: Any) -> bytes:
    """Encode fields as compact, key-sorted JSON."""
    return json.dumps(list(fields), separators=(",", ":"), sort_keys=True).encode()


def digest(*fields: Any) -> str:
    """SHA-256 hex digest of the canonical encoding of fields."""
    return hashlib.sha256(canonical_encode(*fields)).hexdigest()


def hash_ciphertext(ciphertext: str) -> str:
    """Hash used for ciphertext weeding."""
    return hashlib.sha256(ciphertext.encode()).hexdigest()


def compute_ballot_hash(
    ciphertext: str,
    signature: str,
    knowledge_proof: Optional[str] = None
) -> str:
    """hash(ballot) as carried in registration requests."""
    return digest(BALLOT_TAG, ciphertext, signature, knowledge_proof)


def registration_digest(identifier: str, ballot_hash: str) -> str:
    """hash(identifier, ballot-hash), the value a receipt signs."""
    return digest(RECEIPT_TAG, identifier, ballot_hash)


def generate_signing_keypair() -> Tuple[str, str]:
    """Generate an Ed25519 key pair as (private_pem, public_pem)."""
    private_key = Ed25519PrivateKey.generate()

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )

    return private_pem.decode(), public_pem.decode()


def load_private_key(private_pem: str) -> Ed25519PrivateKey:
    key = serialization.load_pem_private_key(private_pem.encode(), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError("Expected an Ed25519 private key")
    return key


def load_public_key(public_pem: str) -> Ed25519PublicKey:
    key = serialization.load_pem_public_key(public_pem.encode())
    if not isinstance(key, Ed25519PublicKey):
        raise ValueError("Expected an Ed25519 public key")
    return key


def public_key_pem(private_pem: str) -> str:
    """Derive the public PEM belonging to a private PEM."""
    return load_private_key(private_pem).public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()


def sign_message(private_pem: str, tag: str, *fields: Any) -> str:
    """Sign (tag, *fields) and return the base64 signature."""
    signature = load_private_key(private_pem).sign(canonical_encode(tag, *fields))
    return base64.b64encode(signature).decode()


def verify_signature(public_pem: str, signature: str, tag: str, *fields: Any) -> bool:
    """Check a base64 signature over (tag, *fields). Malformed input is a failure."""
    try:
        raw = base64.b64decode(signature, validate=True)
        load_public_key(public_pem).verify(raw, canonical_encode(tag, *fields))
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False


def generate_challenge_token() -> str:
    """Generate a fresh single-use session challenge."""
    return secrets.token_urlsafe(32)


def generate_identifier() -> str:
    """Generate a ballot identifier (vid)."""
    return secrets.token_hex(16)


def create_session_token(
    voter_id: str,
    session_token: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create the bearer token handed out once a ballot session authenticates."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.SESSION_TOKEN_EXPIRE_MINUTES))

    to_encode = {
        "sub": voter_id,
        "sid": session_token,
        "exp": expire,
        "iat": now,
        "type": "ballot_session",
    }

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a bearer token."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None

    if payload.get("type") != "ballot_session":
        return None
    return payload
