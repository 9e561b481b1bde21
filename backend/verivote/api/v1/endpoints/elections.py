"""
Election setup API endpoints.
"""
from fastapi import APIRouter, Depends, status

from verivote.core.exceptions import ProtocolError
from verivote.models.election import Election
from verivote.services.election_service import ElectionService
from verivote.schemas.election import (
    CandidateResponse,
    ElectionCloseResponse,
    ElectionKeyResponse,
    ElectionSetupRequest,
    ElectionSetupResponse,
    VoterRegistrationRequest,
    VoterRegistrationResponse,
)
from verivote.api.v1.deps import get_election_service, http_error, require_admin


router = APIRouter()


def _key_fields(election: Election) -> dict:
    return dict(
        election_id=election.id,
        title=election.title,
        status=election.status.value,
        election_public_key=election.election_public_key,
        candidates=[
            CandidateResponse(name=c.name, party=c.party, symbol_number=c.symbol_number)
            for c in election.candidates
        ],
    )


@router.post(
    "/setup",
    response_model=ElectionSetupResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def setup_election(
    request: ElectionSetupRequest,
    elections: ElectionService = Depends(get_election_service)
) -> ElectionSetupResponse:
    """
    Generate and publish the election key pair.

    The private key is returned once for the decryption collaborator.
    """
    try:
        election, private_key = await elections.setup_election(request.title, request.candidates)
    except ProtocolError as e:
        raise http_error(e)

    return ElectionSetupResponse(**_key_fields(election), election_private_key=private_key)


@router.get("/key", response_model=ElectionKeyResponse)
async def get_election_key(
    elections: ElectionService = Depends(get_election_service)
) -> ElectionKeyResponse:
    """Published election key and candidate list."""
    try:
        election = await elections.require_election()
    except ProtocolError as e:
        raise http_error(e)

    return ElectionKeyResponse(**_key_fields(election))


@router.post(
    "/voters",
    response_model=VoterRegistrationResponse,
    dependencies=[Depends(require_admin)]
)
async def register_voters(
    request: VoterRegistrationRequest,
    elections: ElectionService = Depends(get_election_service)
) -> VoterRegistrationResponse:
    """Add issued identities to the eligible voter list."""
    try:
        registered, already = await elections.register_voters(request.identities)
    except ProtocolError as e:
        raise http_error(e)

    return VoterRegistrationResponse(registered=registered, already_registered=already)


@router.post(
    "/close",
    response_model=ElectionCloseResponse,
    dependencies=[Depends(require_admin)]
)
async def close_election(
    elections: ElectionService = Depends(get_election_service)
) -> ElectionCloseResponse:
    """Stop accepting ballots."""
    try:
        election = await elections.close_election()
    except ProtocolError as e:
        raise http_error(e)

    return ElectionCloseResponse(
        election_id=election.id,
        status=election.status.value,
        closed_tick=election.closed_tick,
    )
