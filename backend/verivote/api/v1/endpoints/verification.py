"""
Individual verification API endpoint.
"""
from fastapi import APIRouter, Depends

from verivote.core.exceptions import ProtocolError
from verivote.services.verification_service import VerificationService
from verivote.schemas.verification import VerificationRecord
from verivote.api.v1.deps import get_verification_service, http_error


router = APIRouter()


@router.get("/{identifier}", response_model=VerificationRecord)
async def query_ballot(
    identifier: str,
    service: VerificationService = Depends(get_verification_service)
) -> VerificationRecord:
    """
    Redeem a ballot identifier.

    Each identifier can be redeemed a limited number of times, and only
    within the verification window after the ballot was stored. The
    verification app checks the returned record against the vote and
    randomness it holds.
    """
    try:
        return await service.query(identifier)
    except ProtocolError as e:
        raise http_error(e)
