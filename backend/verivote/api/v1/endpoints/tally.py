"""
Tally API endpoint.
"""
from fastapi import APIRouter, Depends

from verivote.core.exceptions import ProtocolError
from verivote.services.tally_service import TallyProcessor
from verivote.schemas.tally import TallyReport
from verivote.api.v1.deps import get_tally_processor, http_error, require_admin


router = APIRouter()


@router.post("/run", response_model=TallyReport, dependencies=[Depends(require_admin)])
async def run_tally(
    processor: TallyProcessor = Depends(get_tally_processor)
) -> TallyReport:
    """
    Select one ciphertext per voter after the election has closed.

    Decryption is left to the holder of the election private key.
    """
    try:
        return await processor.select_final_ballots()
    except ProtocolError as e:
        raise http_error(e)
