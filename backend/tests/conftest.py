"""
Pytest configuration and fixtures for backend tests.
"""
import pytest
import pytest_asyncio
from typing import AsyncGenerator, Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from verivote.main import app
from verivote.core.database import Base, get_db
from verivote.core.keyring import ServiceKeyring, generate_keyring
from verivote.client.voter_app import VoterApp
from verivote.api.v1.deps import get_clock, get_keyring_dep
from verivote.schemas.ballot import StorageConfirmation
from verivote.schemas.election import CandidateCreate
from verivote.schemas.verification import VerificationCode
from verivote.services.election_service import ElectionService
from verivote.services.identity_service import IdentityIssuer
from verivote.services.registration_service import LocalRegistrationGateway, RegistrationService
from verivote.services.tally_service import TallyProcessor
from verivote.services.time_oracle import TimeOracle
from verivote.services.verification_service import VerificationClient, VerificationService
from verivote.services.vote_collector import VoteCollector


# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="session")
def keyring() -> ServiceKeyring:
    """Issuer, collector and registration keys shared by all tests."""
    return generate_keyring()


@pytest.fixture
def clock() -> TimeOracle:
    """A frozen clock the tests advance by hand."""
    oracle = TimeOracle()
    oracle.freeze()
    return oracle


@pytest.fixture
def issuer(test_db: AsyncSession, keyring: ServiceKeyring) -> IdentityIssuer:
    return IdentityIssuer(test_db, keyring)


@pytest.fixture
def elections(test_db: AsyncSession, clock: TimeOracle) -> ElectionService:
    return ElectionService(test_db, clock)


@pytest.fixture
def registration_service(test_db: AsyncSession, keyring: ServiceKeyring, clock: TimeOracle) -> RegistrationService:
    return RegistrationService(test_db, keyring, clock)


@pytest.fixture
def collector(
    test_db: AsyncSession,
    keyring: ServiceKeyring,
    clock: TimeOracle,
    registration_service: RegistrationService
) -> VoteCollector:
    return VoteCollector(
        test_db,
        keyring,
        clock,
        LocalRegistrationGateway(registration_service),
        challenge_mode="token",
        session_ttl_ticks=10,
        freshness_ticks=2,
        require_proof=False,
    )


@pytest.fixture
def verification_service(test_db: AsyncSession, keyring: ServiceKeyring, clock: TimeOracle) -> VerificationService:
    return VerificationService(
        test_db,
        keyring,
        clock,
        window_ticks=30,
        max_redemptions=3,
        requires_final=True,
    )


@pytest.fixture
def tally(test_db: AsyncSession, keyring: ServiceKeyring, clock: TimeOracle) -> TallyProcessor:
    return TallyProcessor(test_db, keyring, clock)


@pytest_asyncio.fixture
async def test_election(elections: ElectionService) -> Tuple[object, str]:
    """An active election with three candidates; returns (election, private key)."""
    return await elections.setup_election(
        "Test Election 2026",
        [
            CandidateCreate(name="Candidate A", party="Party Alpha", symbol_number=1),
            CandidateCreate(name="Candidate B", party="Party Beta", symbol_number=2),
            CandidateCreate(name="Candidate C", party="Party Gamma", symbol_number=3),
        ],
    )


@pytest.fixture
def make_voter(
    issuer: IdentityIssuer,
    elections: ElectionService,
    keyring: ServiceKeyring,
    test_election
) -> Callable:
    """Issue an identity, register it and return its voter app."""
    election, _ = test_election

    async def factory(identity: str, attach_proof: bool = False) -> VoterApp:
        credential = await issuer.issue(identity)
        await elections.register_voter(identity)
        return VoterApp(
            identity,
            credential.private_key_pem,
            election.election_public_key,
            keyring.registration_public_pem,
            attach_proof=attach_proof,
        )

    return factory


@pytest.fixture
def cast_ballot(collector: VoteCollector) -> Callable:
    """Run one full ballot session through the collector."""

    async def cast(
        voter: VoterApp,
        vote: int,
        randomness: Optional[int] = None,
        via: Optional[VoteCollector] = None
    ) -> Tuple[StorageConfirmation, VerificationCode]:
        target = via or collector
        challenge = await target.issue_challenge(voter.identity)
        await target.authenticate(voter.answer_challenge(challenge))
        confirmation = await target.submit_ballot(voter.cast(vote, challenge, randomness))
        return confirmation, voter.accept_confirmation(confirmation)

    return cast


@pytest.fixture
def verification_client(
    verification_service: VerificationService,
    keyring: ServiceKeyring,
    test_election
) -> VerificationClient:
    election, _ = test_election
    return VerificationClient(
        verification_service,
        keyring.issuer_certificate_pem,
        keyring.registration_public_pem,
        election.election_public_key,
    )


@pytest_asyncio.fixture(scope="function")
async def client(
    test_db: AsyncSession,
    keyring: ServiceKeyring,
    clock: TimeOracle
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the test database, keys and clock."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_keyring_dep] = lambda: keyring
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
