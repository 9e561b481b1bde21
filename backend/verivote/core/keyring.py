"""
Signing keys of the protocol's service roles.

The identity issuer's root certifies the vote collector and the
registration service the same way it certifies voters.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from verivote.core.config import settings
from verivote.core.security import generate_signing_keypair, public_key_pem
from verivote.crypto.certificates import (
    certificate_public_key,
    create_root_certificate,
    issue_certificate,
)


logger = logging.getLogger(__name__)

COLLECTOR_IDENTITY = "vote-collector"
REGISTRATION_IDENTITY = "registration-service"

_PEM_FILES = {
    "issuer_private_pem": "issuer.key.pem",
    "issuer_certificate_pem": "issuer.cert.pem",
    "collector_private_pem": "collector.key.pem",
    "collector_certificate_pem": "collector.cert.pem",
    "registration_private_pem": "registration.key.pem",
    "registration_certificate_pem": "registration.cert.pem",
}


@dataclass(frozen=True)
class ServiceKeyring:
    """Private keys and certificates of the issuer, collector and registration service."""
    issuer_private_pem: str
    issuer_certificate_pem: str
    collector_private_pem: str
    collector_certificate_pem: str
    registration_private_pem: str
    registration_certificate_pem: str

    @property
    def collector_public_pem(self) -> str:
        return certificate_public_key(self.collector_certificate_pem)

    @property
    def registration_public_pem(self) -> str:
        return certificate_public_key(self.registration_certificate_pem)


def generate_keyring() -> ServiceKeyring:
    """Create fresh keys and certificates for every service role."""
    issuer_private, _ = generate_signing_keypair()
    issuer_cert = create_root_certificate(issuer_private)

    collector_private, collector_public = generate_signing_keypair()
    registration_private, registration_public = generate_signing_keypair()

    return ServiceKeyring(
        issuer_private_pem=issuer_private,
        issuer_certificate_pem=issuer_cert,
        collector_private_pem=collector_private,
        collector_certificate_pem=issue_certificate(
            issuer_private, issuer_cert, COLLECTOR_IDENTITY, collector_public
        ),
        registration_private_pem=registration_private,
        registration_certificate_pem=issue_certificate(
            issuer_private, issuer_cert, REGISTRATION_IDENTITY, registration_public
        ),
    )


def load_or_create_keyring(directory: str) -> ServiceKeyring:
    """Load PEM files from directory, generating and saving them on first use."""
    path = Path(directory)
    files = {field: path / name for field, name in _PEM_FILES.items()}

    if all(f.exists() for f in files.values()):
        keyring = ServiceKeyring(**{field: f.read_text() for field, f in files.items()})
        # The private keys must belong to the certified public keys
        if public_key_pem(keyring.collector_private_pem).strip() != keyring.collector_public_pem.strip():
            raise ValueError("Collector key does not match its certificate")
        if public_key_pem(keyring.registration_private_pem).strip() != keyring.registration_public_pem.strip():
            raise ValueError("Registration key does not match its certificate")
        logger.info("Loaded service keyring from %s", path)
        return keyring

    keyring = generate_keyring()
    path.mkdir(parents=True, exist_ok=True)
    for field, f in files.items():
        f.write_text(getattr(keyring, field))
    logger.info("Generated service keyring in %s", path)
    return keyring


@lru_cache()
def get_keyring(directory: Optional[str] = None) -> ServiceKeyring:
    """Process-wide keyring; ephemeral unless KEYRING_DIR is configured."""
    directory = directory or settings.KEYRING_DIR
    if directory:
        return load_or_create_keyring(directory)

    logger.warning("KEYRING_DIR not set, using ephemeral service keys")
    return generate_keyring()
