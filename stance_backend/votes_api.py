"""
API endpoints for votes.

Provides endpoints for:
- Recording an agree/disagree vote (returns the take's aggregate)
- Amending a vote with reason tags and an explanation
- Per-take aggregate stats
- Listing an anonymous session's votes
- Stitching a session's votes to a signed-in user
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from stance_backend.db_session import get_async_session
from stance_backend.dependencies import get_session_factory
from stance_backend.schemas import (
    AggregateResponse,
    AmendVoteRequest,
    StitchRequest,
    StitchResponse,
    VoteRequest,
    VoteResponse,
)
from stance_backend.services.errors import BackingStoreUnavailable, InvalidInput, call_with_timeout
from stance_backend.services.session_stitcher import stitch_session_to_user
from stance_backend.services.take_model import AGREE
from stance_backend.services.vote_aggregator import (
    amend_vote,
    get_take_stats,
    list_session_votes,
    record_vote_detached,
    serialize_vote,
    validate_vote_context,
    validate_vote_payload,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["votes"])


@router.get("/votes/health")
async def health_check():
    return {"status": "healthy", "service": "votes_api"}


@router.post("/vote", response_model=VoteResponse)
async def create_vote(
    request: VoteRequest,
    db: AsyncSession = Depends(get_async_session),
    session_factory=Depends(get_session_factory),
):
    """
    Record a vote and return the take's updated aggregate.

    The insert runs as a detached task: if this request times out or the
    client goes away the write still completes (or fails) exactly once on its
    own, and is never retried.

    Responses:
        200: vote stored, with the aggregate
        202: the write outlived the timeout and may still land; clients must
             not resubmit (``vote_id`` and ``aggregate`` are null)
        503: the write failed, nothing was stored
    """
    try:
        validate_vote_payload(request.take_id, request.stance, request.reason_tags, request.explanation)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    write = record_vote_detached(
        session_factory,
        take_id=request.take_id,
        stance=request.stance,
        reason_tags=request.reason_tags,
        explanation=request.explanation,
        session_id=request.session_id,
        user_id=request.user_id,
    )
    try:
        vote = await call_with_timeout(asyncio.shield(write), "record_vote")
    except BackingStoreUnavailable as e:
        if not write.done():
            # Still running: it may yet land, so the outcome is unknown
            logger.warning(f"Vote write for {request.take_id} still pending: {e}")
            return JSONResponse(
                status_code=202,
                content={"vote_id": None, "aggregate": None, "status": "pending",
                         "detail": "Vote pending; do not resubmit"},
            )
        if write.cancelled() or write.exception() is not None:
            raise HTTPException(status_code=503, detail=f"Vote not recorded: {e}")
        # Landed just as the timeout fired
        vote = write.result()
    except Exception as e:
        logger.exception(f"Vote API error: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error")

    try:
        stats = await call_with_timeout(get_take_stats(db, request.take_id), "get_take_stats")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving default aggregate for {request.take_id}: {e}")
        stats = None

    if stats is None:
        # The vote itself is the only one we know about
        aggregate = AggregateResponse(
            total_votes=1,
            agree_percentage=100.0 if request.stance == AGREE else 0.0,
            top_reason=None,
        )
    else:
        aggregate = AggregateResponse(
            total_votes=stats.total_votes,
            agree_percentage=stats.agree_percentage,
            top_reason=stats.top_reason,
        )

    return VoteResponse(vote_id=vote.id, aggregate=aggregate)


@router.patch("/vote/{vote_id}")
async def update_vote(
    vote_id: int,
    request: AmendVoteRequest,
    db: AsyncSession = Depends(get_async_session),
):
    """Attach reason tags and an explanation to an existing vote."""
    try:
        validate_vote_context(request.reason_tags, request.explanation)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        found = await call_with_timeout(
            amend_vote(db, vote_id, reason_tags=request.reason_tags, explanation=request.explanation),
            "amend_vote",
        )
    except BackingStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Vote not amended: {e}")

    if not found:
        raise HTTPException(status_code=404, detail="Vote not found")
    return {"ok": True}


@router.get("/takes/{take_id}/stats", response_model=AggregateResponse)
async def take_stats(take_id: str, db: AsyncSession = Depends(get_async_session)):
    try:
        stats = await call_with_timeout(get_take_stats(db, take_id), "get_take_stats")
    except BackingStoreUnavailable as e:
        logger.warning(f"Stats unavailable for {take_id}: {e}")
        stats = None

    if stats is None:
        return AggregateResponse(total_votes=0, agree_percentage=0.0, top_reason=None)
    return AggregateResponse(
        total_votes=stats.total_votes,
        agree_percentage=stats.agree_percentage,
        top_reason=stats.top_reason,
    )


@router.get("/votes/session/{session_id}")
async def session_votes(session_id: str, db: AsyncSession = Depends(get_async_session)):
    try:
        votes = await call_with_timeout(list_session_votes(db, session_id), "list_session_votes")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving empty session votes for {session_id}: {e}")
        votes = []
    return {"votes": [serialize_vote(v) for v in votes], "count": len(votes)}


@router.post("/stitch", response_model=StitchResponse)
async def stitch(request: StitchRequest, db: AsyncSession = Depends(get_async_session)):
    """Link an anonymous session's votes to a signed-in user."""
    if not request.session_id or not request.user_id:
        raise HTTPException(status_code=400, detail="session_id and user_id are required")

    try:
        rows = await call_with_timeout(
            stitch_session_to_user(db, request.session_id, request.user_id), "stitch"
        )
    except BackingStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Session not stitched: {e}")

    return StitchResponse(ok=True, rows_updated=rows)
