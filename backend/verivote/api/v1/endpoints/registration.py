"""
Registration service API endpoint.

A refused request gets an empty 403; the caller learns nothing more.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from verivote.services.registration_service import RegistrationService
from verivote.schemas.ballot import RegistrationReceipt, RegistrationRequest
from verivote.api.v1.deps import get_registration_service


router = APIRouter()


@router.post("/register", response_model=RegistrationReceipt)
async def register_ballot(
    request: RegistrationRequest,
    service: RegistrationService = Depends(get_registration_service)
) -> RegistrationReceipt:
    receipt = await service.register(request)
    if receipt is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return receipt
