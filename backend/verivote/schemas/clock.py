"""
Time oracle schemas.
"""
from pydantic import BaseModel, Field


class ClockResponse(BaseModel):
    tick: int


class ClockAdvanceRequest(BaseModel):
    ticks: int = Field(1, ge=1, le=1000)
