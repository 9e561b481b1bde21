"""
Identity issuer and credential store.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.exceptions import IdentityAlreadyIssued
from verivote.core.keyring import COLLECTOR_IDENTITY, REGISTRATION_IDENTITY, ServiceKeyring
from verivote.core.security import generate_signing_keypair, load_public_key
from verivote.crypto.certificates import issue_certificate, verify_certificate
from verivote.models.identity import Identity
from verivote.schemas.identity import IdentityCredential


logger = logging.getLogger(__name__)

RESERVED_IDENTITIES = {COLLECTOR_IDENTITY, REGISTRATION_IDENTITY}


class IdentityIssuer:
    """Issues one signing key pair and certificate per identity."""

    def __init__(self, db: AsyncSession, keyring: ServiceKeyring):
        self.db = db
        self.keyring = keyring

    async def issue(
        self,
        identity: str,
        public_key_pem: Optional[str] = None
    ) -> IdentityCredential:
        """
        Issue a credential for identity.

        When public_key_pem is None a key pair is generated and the
        private key is returned once in the credential; otherwise the
        supplied device key is certified.

        Raises:
            IdentityAlreadyIssued: the identity already holds a certificate
        """
        if identity in RESERVED_IDENTITIES:
            raise IdentityAlreadyIssued(f"Identity {identity!r} is reserved for a service role")

        existing = await self.db.get(Identity, identity)
        if existing is not None:
            raise IdentityAlreadyIssued(f"Identity {identity!r} already has a certificate")

        private_key_pem = None
        if public_key_pem is None:
            private_key_pem, public_key_pem = generate_signing_keypair()
        else:
            # Rejects anything that is not an Ed25519 public key
            load_public_key(public_key_pem)

        certificate_pem = issue_certificate(
            self.keyring.issuer_private_pem,
            self.keyring.issuer_certificate_pem,
            identity,
            public_key_pem,
        )

        self.db.add(Identity(
            id=identity,
            public_key_pem=public_key_pem,
            certificate_pem=certificate_pem,
        ))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise IdentityAlreadyIssued(f"Identity {identity!r} already has a certificate")

        logger.info("Issued certificate for identity %s", identity)

        return IdentityCredential(
            identity=identity,
            public_key_pem=public_key_pem,
            certificate_pem=certificate_pem,
            private_key_pem=private_key_pem,
        )


class CredentialStore:
    """Read side of issued identities."""

    def __init__(self, db: AsyncSession, keyring: ServiceKeyring):
        self.db = db
        self.keyring = keyring

    async def lookup(self, identity: str) -> Optional[Identity]:
        return await self.db.get(Identity, identity)

    async def certified_key(self, identity: str) -> Optional[str]:
        """
        Public key of identity, only if its certificate chains to the
        issuer and certifies that exact key.
        """
        record = await self.lookup(identity)
        if record is None:
            return None

        if not verify_certificate(
            record.certificate_pem,
            self.keyring.issuer_certificate_pem,
            identity,
            record.public_key_pem,
        ):
            logger.warning("Certificate of identity %s does not verify", identity)
            return None

        return record.public_key_pem
