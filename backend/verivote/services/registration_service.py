"""
Registration service: the independent auditor that counter-signs every
ballot the collector wants to store.

A denied request produces nothing at all; the collector cannot tell a
refusal from a lost message, and neither is retried.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.capabilities import RegistrationCapabilities
from verivote.core.exceptions import RegistrationDenied
from verivote.core.keyring import ServiceKeyring
from verivote.core.security import (
    RECEIPT_TAG,
    REGISTRATION_TAG,
    registration_digest,
    sign_message,
    verify_signature,
)
from verivote.models.registration import RegistrationEntry
from verivote.schemas.ballot import RegistrationReceipt, RegistrationRequest
from verivote.services.time_oracle import TimeOracle


logger = logging.getLogger(__name__)


def sign_registration_request(collector_private_pem: str, identifier: str, ballot_hash: str) -> str:
    """Collector signature over (identifier, ballot_hash)."""
    return sign_message(collector_private_pem, REGISTRATION_TAG, identifier, ballot_hash)


def verify_registration_request(
    collector_public_pem: str,
    identifier: str,
    ballot_hash: str,
    collector_signature: str
) -> bool:
    return verify_signature(
        collector_public_pem, collector_signature, REGISTRATION_TAG, identifier, ballot_hash
    )


def verify_receipt(
    registration_public_pem: str,
    identifier: str,
    ballot_hash: str,
    receipt: str
) -> bool:
    """A receipt only verifies for the exact (identifier, ballot_hash) it was issued for."""
    return verify_signature(
        registration_public_pem,
        receipt,
        RECEIPT_TAG,
        registration_digest(identifier, ballot_hash),
    )


class RegistrationService:
    """Counter-signs registration requests and keeps its own log of receipts."""

    def __init__(
        self,
        db: AsyncSession,
        keyring: ServiceKeyring,
        clock: TimeOracle,
        capabilities: Optional[RegistrationCapabilities] = None
    ):
        self.db = db
        self.keyring = keyring
        self.clock = clock
        self.capabilities = capabilities or RegistrationCapabilities()

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        """
        Verify the collector's signature and return a receipt, or None.
        """
        try:
            return await self.countersign(request)
        except RegistrationDenied as e:
            logger.warning("Registration denied for %s: %s", request.identifier, e.reason)
            return None

    async def countersign(self, request: RegistrationRequest) -> RegistrationReceipt:
        """
        Issue the receipt for (identifier, ballot_hash).

        Raises:
            RegistrationDenied: bad collector signature, or the identifier
                or the ballot hash is already bound to something else
        """
        if self.capabilities.check_collector_signature and not verify_registration_request(
            self.keyring.collector_public_pem,
            request.identifier,
            request.ballot_hash,
            request.collector_signature,
        ):
            raise RegistrationDenied("Bad collector signature")

        existing = await self.db.get(RegistrationEntry, request.identifier)
        if existing is not None:
            if existing.ballot_hash == request.ballot_hash:
                return RegistrationReceipt(
                    identifier=existing.identifier,
                    ballot_hash=existing.ballot_hash,
                    signature=existing.receipt,
                )
            if self.capabilities.check_identifier_binding:
                raise RegistrationDenied("Identifier already bound to another ballot")

        if self.capabilities.check_hash_binding:
            bound_to = await self.db.scalar(
                select(RegistrationEntry.identifier).where(
                    RegistrationEntry.ballot_hash == request.ballot_hash,
                    RegistrationEntry.identifier != request.identifier,
                )
            )
            if bound_to is not None:
                raise RegistrationDenied("Ballot already registered under another identifier")

        signature = sign_message(
            self.keyring.registration_private_pem,
            RECEIPT_TAG,
            registration_digest(request.identifier, request.ballot_hash),
        )

        if existing is None:
            self.db.add(RegistrationEntry(
                identifier=request.identifier,
                ballot_hash=request.ballot_hash,
                receipt=signature,
                registered_tick=self.clock.current_tick(),
            ))
        else:
            existing.ballot_hash = request.ballot_hash
            existing.receipt = signature
            existing.registered_tick = self.clock.current_tick()
        await self.db.commit()

        logger.info("Registered ballot %s", request.identifier)
        return RegistrationReceipt(
            identifier=request.identifier,
            ballot_hash=request.ballot_hash,
            signature=signature,
        )


class RegistrationGateway(ABC):
    """How the collector reaches the registration service."""

    @abstractmethod
    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        """Synchronous round trip; None when denied or lost."""


class LocalRegistrationGateway(RegistrationGateway):
    """Registration service running in the same process."""

    def __init__(self, service: RegistrationService):
        self.service = service

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        return await self.service.register(request)


class HttpRegistrationGateway(RegistrationGateway):
    """Registration service behind its HTTP endpoint."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    "/registration/register",
                    json=request.model_dump(),
                )
        except httpx.RequestError as e:
            logger.warning("Registration round trip for %s lost: %s", request.identifier, e)
            return None

        if response.status_code != 200:
            logger.warning(
                "Registration for %s refused with HTTP %d",
                request.identifier, response.status_code
            )
            return None

        try:
            return RegistrationReceipt.model_validate(response.json())
        except ValueError:
            logger.warning("Malformed registration response for %s", request.identifier)
            return None
