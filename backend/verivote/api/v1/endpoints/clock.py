"""
Time oracle API endpoints.
"""
from fastapi import APIRouter, Depends

from verivote.services.time_oracle import TimeOracle
from verivote.schemas.clock import ClockAdvanceRequest, ClockResponse
from verivote.api.v1.deps import get_clock, require_admin


router = APIRouter()


@router.get("", response_model=ClockResponse)
async def current_tick(clock: TimeOracle = Depends(get_clock)) -> ClockResponse:
    return ClockResponse(tick=clock.current_tick())


@router.post("/advance", response_model=ClockResponse, dependencies=[Depends(require_admin)])
async def advance_clock(
    request: ClockAdvanceRequest,
    clock: TimeOracle = Depends(get_clock)
) -> ClockResponse:
    """Announce ticks from an external ticking process."""
    return ClockResponse(tick=clock.advance(request.ticks))
