"""
API dependencies: services wired from settings, admin guard and the
ballot-session bearer token.
"""
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.capabilities import (
    collector_capabilities_from_settings,
    registration_capabilities_from_settings,
)
from verivote.core.config import settings
from verivote.core.database import get_db
from verivote.core.exceptions import (
    AuthenticationFailure,
    BallotRejected,
    ElectionAlreadySetUp,
    ElectionNotReady,
    IdentityAlreadyIssued,
    ProtocolError,
    StorageAborted,
    TallyFault,
    UnknownIdentity,
    VerificationDenied,
)
from verivote.core.keyring import ServiceKeyring, get_keyring
from verivote.core.security import decode_token
from verivote.models.ballot import BallotSession
from verivote.services.election_service import ElectionService
from verivote.services.identity_service import CredentialStore, IdentityIssuer
from verivote.services.notifier import LoggingNotifier, VoterNotifier, WebhookNotifier
from verivote.services.registration_service import (
    HttpRegistrationGateway,
    LocalRegistrationGateway,
    RegistrationGateway,
    RegistrationService,
)
from verivote.services.tally_service import TallyProcessor
from verivote.services.time_oracle import TimeOracle, get_time_oracle
from verivote.services.verification_service import VerificationService
from verivote.services.vote_collector import VoteCollector


security = HTTPBearer(auto_error=False)
admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)

_STATUS_BY_ERROR = [
    (AuthenticationFailure, status.HTTP_401_UNAUTHORIZED),
    (VerificationDenied, status.HTTP_403_FORBIDDEN),
    (UnknownIdentity, status.HTTP_404_NOT_FOUND),
    (IdentityAlreadyIssued, status.HTTP_409_CONFLICT),
    (ElectionAlreadySetUp, status.HTTP_409_CONFLICT),
    (ElectionNotReady, status.HTTP_409_CONFLICT),
    (StorageAborted, status.HTTP_409_CONFLICT),
    (TallyFault, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (BallotRejected, status.HTTP_400_BAD_REQUEST),
]


def http_error(error: ProtocolError) -> HTTPException:
    """Translate a protocol error into the HTTP error the API returns."""
    for kind, code in _STATUS_BY_ERROR:
        if isinstance(error, kind):
            break
    else:
        code = status.HTTP_400_BAD_REQUEST

    headers = None
    if code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=code, detail=error.reason, headers=headers)


def get_keyring_dep() -> ServiceKeyring:
    return get_keyring()


def get_clock() -> TimeOracle:
    return get_time_oracle()


async def require_admin(api_key: Optional[str] = Depends(admin_key_header)) -> None:
    """Guard for election-official endpoints."""
    if not api_key or not secrets.compare_digest(api_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key required"
        )


def get_identity_issuer(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep)
) -> IdentityIssuer:
    return IdentityIssuer(db, keyring)


def get_credential_store(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep)
) -> CredentialStore:
    return CredentialStore(db, keyring)


def get_election_service(
    db: AsyncSession = Depends(get_db),
    clock: TimeOracle = Depends(get_clock)
) -> ElectionService:
    return ElectionService(db, clock)


def get_registration_service(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep),
    clock: TimeOracle = Depends(get_clock)
) -> RegistrationService:
    return RegistrationService(db, keyring, clock, registration_capabilities_from_settings())


def get_registration_gateway(
    service: RegistrationService = Depends(get_registration_service)
) -> RegistrationGateway:
    """Remote registration service when configured, in-process otherwise."""
    if settings.REGISTRATION_SERVICE_URL:
        return HttpRegistrationGateway(
            settings.REGISTRATION_SERVICE_URL,
            timeout=settings.REGISTRATION_TIMEOUT_SECONDS,
        )
    return LocalRegistrationGateway(service)


def get_notifier() -> VoterNotifier:
    if settings.VOTER_NOTIFICATION_URL:
        return WebhookNotifier(settings.VOTER_NOTIFICATION_URL)
    return LoggingNotifier()


def get_vote_collector(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep),
    clock: TimeOracle = Depends(get_clock),
    registration: RegistrationGateway = Depends(get_registration_gateway),
    notifier: VoterNotifier = Depends(get_notifier)
) -> VoteCollector:
    return VoteCollector(
        db,
        keyring,
        clock,
        registration,
        capabilities=collector_capabilities_from_settings(),
        notifier=notifier,
    )


def get_verification_service(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep),
    clock: TimeOracle = Depends(get_clock)
) -> VerificationService:
    return VerificationService(db, keyring, clock, collector_capabilities_from_settings())


def get_tally_processor(
    db: AsyncSession = Depends(get_db),
    keyring: ServiceKeyring = Depends(get_keyring_dep),
    clock: TimeOracle = Depends(get_clock)
) -> TallyProcessor:
    return TallyProcessor(db, keyring, clock)


async def get_ballot_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    collector: VoteCollector = Depends(get_vote_collector)
) -> BallotSession:
    """
    Authenticated ballot session named by the bearer token.
    Raises 401 if the token is missing, invalid or its session is gone.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub") or not payload.get("sid"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = await collector.get_authenticated_session(payload["sub"], payload["sid"])
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Ballot session is not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
