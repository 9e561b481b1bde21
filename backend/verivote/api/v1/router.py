"""
API v1 router configuration.
"""
from fastapi import APIRouter

from verivote.api.v1.endpoints import (
    clock,
    elections,
    identities,
    registration,
    sessions,
    tally,
    verification,
    votes,
)


api_router = APIRouter()

api_router.include_router(
    identities.router,
    prefix="/identities",
    tags=["Identities"]
)

api_router.include_router(
    elections.router,
    prefix="/elections",
    tags=["Elections"]
)

api_router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["Ballot sessions"]
)

api_router.include_router(
    votes.router,
    prefix="/votes",
    tags=["Voting"]
)

api_router.include_router(
    registration.router,
    prefix="/registration",
    tags=["Registration"]
)

api_router.include_router(
    verification.router,
    prefix="/verification",
    tags=["Verification"]
)

api_router.include_router(
    tally.router,
    prefix="/tally",
    tags=["Tally"]
)

api_router.include_router(
    clock.router,
    prefix="/clock",
    tags=["Clock"]
)
