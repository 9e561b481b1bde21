"""
Tests for the registration service and its gateways.
"""
import json
from dataclasses import replace

import httpx
import pytest
from sqlalchemy import select

from verivote.core.capabilities import RegistrationCapabilities
from verivote.core.exceptions import RegistrationDenied, StorageAborted
from verivote.core.security import compute_ballot_hash, generate_identifier, generate_signing_keypair
from verivote.models.ballot import StoredBallotRecord
from verivote.models.registration import RegistrationEntry
from verivote.schemas.ballot import RegistrationRequest
from verivote.services.registration_service import (
    HttpRegistrationGateway,
    LocalRegistrationGateway,
    RegistrationService,
    sign_registration_request,
    verify_receipt,
)
from verivote.services.vote_collector import VoteCollector


def signed_request(collector_private_pem: str, ballot_hash: str = None) -> RegistrationRequest:
    identifier = generate_identifier()
    ballot_hash = ballot_hash or compute_ballot_hash("ct", "sig")
    return RegistrationRequest(
        identifier=identifier,
        ballot_hash=ballot_hash,
        collector_signature=sign_registration_request(collector_private_pem, identifier, ballot_hash),
    )


class TestRegistrationService:
    """Test cases for counter-signing registration requests."""

    @pytest.mark.asyncio
    async def test_receipt_binds_pair(self, registration_service, keyring):
        request = signed_request(keyring.collector_private_pem)

        receipt = await registration_service.register(request)

        assert receipt.identifier == request.identifier
        assert verify_receipt(keyring.registration_public_pem, request.identifier, request.ballot_hash, receipt.signature)
        assert not verify_receipt(
            keyring.registration_public_pem, request.identifier, compute_ballot_hash("other", "sig"), receipt.signature
        )
        assert not verify_receipt(
            keyring.registration_public_pem, generate_identifier(), request.ballot_hash, receipt.signature
        )

    @pytest.mark.asyncio
    async def test_bad_collector_signature_is_silent(self, registration_service, test_db):
        impostor_private, _ = generate_signing_keypair()
        request = signed_request(impostor_private)

        assert await registration_service.register(request) is None
        assert await test_db.get(RegistrationEntry, request.identifier) is None

    @pytest.mark.asyncio
    async def test_same_request_is_idempotent(self, registration_service, keyring):
        request = signed_request(keyring.collector_private_pem)

        first = await registration_service.register(request)
        second = await registration_service.register(request)

        assert first == second

    @pytest.mark.asyncio
    async def test_identifier_cannot_be_rebound(self, registration_service, keyring):
        request = signed_request(keyring.collector_private_pem)
        await registration_service.register(request)

        other_hash = compute_ballot_hash("other", "sig")
        rebind = RegistrationRequest(
            identifier=request.identifier,
            ballot_hash=other_hash,
            collector_signature=sign_registration_request(
                keyring.collector_private_pem, request.identifier, other_hash
            ),
        )

        assert await registration_service.register(rebind) is None

    @pytest.mark.asyncio
    async def test_corrupted_service_signs_anything(self, test_db, keyring, clock):
        service = RegistrationService(
            test_db, keyring, clock, RegistrationCapabilities.without(["check_collector_signature"])
        )
        impostor_private, _ = generate_signing_keypair()

        assert await service.register(signed_request(impostor_private)) is not None

    @pytest.mark.asyncio
    async def test_ballot_hash_cannot_be_registered_twice(self, registration_service, keyring):
        request = signed_request(keyring.collector_private_pem)
        await registration_service.register(request)

        replay = signed_request(keyring.collector_private_pem, ballot_hash=request.ballot_hash)

        assert await registration_service.register(replay) is None
        with pytest.raises(RegistrationDenied, match="another identifier"):
            await registration_service.countersign(replay)

    @pytest.mark.asyncio
    async def test_corrupted_service_reuses_ballot_hash(self, test_db, keyring, clock):
        service = RegistrationService(
            test_db, keyring, clock, RegistrationCapabilities.without(["check_hash_binding"])
        )
        request = signed_request(keyring.collector_private_pem)
        await service.register(request)

        replay = signed_request(keyring.collector_private_pem, ballot_hash=request.ballot_hash)

        assert await service.register(replay) is not None

    @pytest.mark.asyncio
    async def test_countersign_names_the_refusal(self, registration_service):
        impostor_private, _ = generate_signing_keypair()

        with pytest.raises(RegistrationDenied, match="collector signature"):
            await registration_service.countersign(signed_request(impostor_private))


class TestBadCollectorSignature:
    """A collector that cannot produce a valid request signature stores nothing."""

    @pytest.mark.asyncio
    async def test_no_receipt_no_storage(
        self, test_db, keyring, clock, registration_service, make_voter, cast_ballot
    ):
        impostor_private, _ = generate_signing_keypair()
        # Same collector, wrong signing key
        forged_keyring = replace(keyring, collector_private_pem=impostor_private)
        collector = VoteCollector(
            test_db,
            forged_keyring,
            clock,
            LocalRegistrationGateway(registration_service),
            challenge_mode="token",
        )
        voter = await make_voter("voter-1")

        with pytest.raises(StorageAborted):
            await cast_ballot(voter, 1, via=collector)

        result = await test_db.execute(select(StoredBallotRecord))
        assert result.scalars().all() == []
        result = await test_db.execute(select(RegistrationEntry))
        assert result.scalars().all() == []


class TestHttpRegistrationGateway:
    """Test cases for the HTTP round trip to a remote registration service."""

    @pytest.mark.asyncio
    async def test_receipt_over_http(self, registration_service, keyring):
        async def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/registration/register"
            payload = RegistrationRequest(**json.loads(request.content))
            receipt = await registration_service.register(payload)
            if receipt is None:
                return httpx.Response(403)
            return httpx.Response(200, json=receipt.model_dump())

        gateway = HttpRegistrationGateway("http://registration.test/", transport=httpx.MockTransport(handler))
        request = signed_request(keyring.collector_private_pem)

        receipt = await gateway.register(request)

        assert receipt.identifier == request.identifier
        assert verify_receipt(keyring.registration_public_pem, request.identifier, request.ballot_hash, receipt.signature)

    @pytest.mark.asyncio
    async def test_refusal_is_none(self, keyring):
        gateway = HttpRegistrationGateway(
            "http://registration.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(403)),
        )

        assert await gateway.register(signed_request(keyring.collector_private_pem)) is None

    @pytest.mark.asyncio
    async def test_lost_connection_is_none(self, keyring):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = HttpRegistrationGateway("http://registration.test", transport=httpx.MockTransport(handler))

        assert await gateway.register(signed_request(keyring.collector_private_pem)) is None

    @pytest.mark.asyncio
    async def test_malformed_response_is_none(self, keyring):
        gateway = HttpRegistrationGateway(
            "http://registration.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"unexpected": True})),
        )

        assert await gateway.register(signed_request(keyring.collector_private_pem)) is None
