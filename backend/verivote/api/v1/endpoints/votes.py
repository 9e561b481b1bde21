"""
Ballot submission API endpoint.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from verivote.core.exceptions import ProtocolError
from verivote.models.ballot import BallotSession
from verivote.services.vote_collector import VoteCollector
from verivote.schemas.ballot import BallotSubmission, StorageConfirmation
from verivote.api.v1.deps import get_ballot_session, get_vote_collector, http_error


router = APIRouter()


@router.post("/submit", response_model=StorageConfirmation)
async def submit_ballot(
    submission: BallotSubmission,
    session: BallotSession = Depends(get_ballot_session),
    collector: VoteCollector = Depends(get_vote_collector)
) -> StorageConfirmation:
    """
    Submit a signed ballot in the authenticated session.

    The collector weeds duplicates, checks the vote signature, obtains a
    registration receipt and stores the ballot as the voter's final one.
    A confirmation is returned only once the ballot is stored.
    """
    if submission.voter_id != session.voter_id or submission.session_token != session.session_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Submission does not match the ballot session"
        )

    try:
        return await collector.submit_ballot(submission)
    except ProtocolError as e:
        raise http_error(e)
