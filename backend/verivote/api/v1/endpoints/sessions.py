"""
Ballot session authentication API endpoints.
"""
from fastapi import APIRouter, Depends

from verivote.core.config import settings
from verivote.core.exceptions import ProtocolError
from verivote.core.security import create_session_token
from verivote.services.vote_collector import VoteCollector
from verivote.schemas.session import AuthChallenge, AuthResponse, ChallengeRequest, SessionGrant
from verivote.api.v1.deps import get_vote_collector, http_error


router = APIRouter()


@router.post("/challenge", response_model=AuthChallenge)
async def request_challenge(
    request: ChallengeRequest,
    collector: VoteCollector = Depends(get_vote_collector)
) -> AuthChallenge:
    """
    Open a ballot session.

    Any unfinished session of the voter is abandoned.
    """
    try:
        return await collector.issue_challenge(request.voter_id)
    except ProtocolError as e:
        raise http_error(e)


@router.post("/authenticate", response_model=SessionGrant)
async def authenticate(
    response: AuthResponse,
    collector: VoteCollector = Depends(get_vote_collector)
) -> SessionGrant:
    """Answer the challenge; returns a bearer token for ballot submission."""
    try:
        session = await collector.authenticate(response)
    except ProtocolError as e:
        raise http_error(e)

    return SessionGrant(
        access_token=create_session_token(session.voter_id, session.session_token),
        session_token=session.session_token,
        expires_in=settings.SESSION_TOKEN_EXPIRE_MINUTES * 60,
    )
