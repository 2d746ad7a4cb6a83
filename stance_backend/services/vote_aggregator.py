"""
Vote persistence and per-take aggregate stats.

Service layer for votes, keeping the router free of inline DB logic.
Votes are append-only: stance and take_id never change after the insert,
only the reason tags and explanation can be amended.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Optional, Sequence, Set

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stance_backend.config import MAX_EXPLANATION_CHARS
from stance_backend.models import Vote
from stance_backend.services.errors import InvalidInput
from stance_backend.services.take_model import AGREE, STANCES

logger = logging.getLogger(__name__)

# Strong references to detached writes until they finish
_pending_writes: Set[asyncio.Task] = set()


@dataclass(frozen=True)
class TakeStats:
    take_id: str
    total_votes: int
    agree_percentage: float
    top_reason: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def validate_vote_payload(take_id: Optional[str], stance: Optional[str],
                          reason_tags: Optional[Sequence[str]] = None,
                          explanation: Optional[str] = None) -> None:
    """Reject malformed votes before they reach the store."""
    if not take_id or not stance:
        raise InvalidInput("take_id and stance are required")
    if stance not in STANCES:
        raise InvalidInput('stance must be "agree" or "disagree"')
    validate_vote_context(reason_tags, explanation)


def validate_vote_context(reason_tags: Optional[Sequence[str]] = None,
                          explanation: Optional[str] = None) -> None:
    """Checks shared by the initial vote and later amendments."""
    if reason_tags is not None and (
        isinstance(reason_tags, str) or not all(isinstance(tag, str) for tag in reason_tags)
    ):
        raise InvalidInput("reason_tags must be a list of strings")
    if explanation and len(explanation) > MAX_EXPLANATION_CHARS:
        raise InvalidInput(f"explanation must be <= {MAX_EXPLANATION_CHARS} characters")


def agree_percentage(agree_count: int, total: int) -> float:
    """100 * agree / total, rounded half-up to one decimal place."""
    ratio = Decimal(100 * agree_count) / Decimal(total)
    return float(ratio.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def serialize_vote(vote: Vote) -> dict:
    """Convert an ORM ``Vote`` to a response-compatible dict."""
    return {
        "id": vote.id,
        "take_id": vote.take_id,
        "stance": vote.stance,
        "reason_tags": list(vote.reason_tags) if vote.reason_tags else None,
        "explanation": vote.explanation,
        "session_id": vote.session_id,
        "user_id": vote.user_id,
        "created_at": vote.created_at,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def record_vote(db: AsyncSession, *, take_id: str, stance: str,
                      reason_tags: Optional[Sequence[str]] = None,
                      explanation: Optional[str] = None,
                      session_id: Optional[str] = None,
                      user_id: Optional[str] = None) -> Vote:
    """Insert a vote and return it with its assigned id."""
    vote = Vote(
        take_id=take_id,
        stance=stance,
        reason_tags=list(reason_tags) if reason_tags else None,
        explanation=explanation or None,
        session_id=session_id or None,
        user_id=user_id or None,
    )
    db.add(vote)
    await db.commit()
    await db.refresh(vote)
    logger.info("Vote %s recorded: take=%s stance=%s", vote.id, take_id, stance)
    return vote


def record_vote_detached(session_factory: Callable[[], AsyncSession], **fields) -> asyncio.Task:
    """Run ``record_vote`` as a background task in its own session.

    At most once, never retried. The caller may await the returned task or
    drop it; a failed write is logged and lost.
    """
    async def _write() -> Vote:
        async with session_factory() as db:
            return await record_vote(db, **fields)

    task = asyncio.ensure_future(_write())
    _pending_writes.add(task)
    task.add_done_callback(_finish_detached_write)
    return task


def _finish_detached_write(task: asyncio.Task) -> None:
    _pending_writes.discard(task)
    if task.cancelled():
        logger.warning("Detached vote write was cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Detached vote write failed and will not be retried: %s", exc)


async def amend_vote(db: AsyncSession, vote_id: int, *,
                     reason_tags: Optional[Sequence[str]] = None,
                     explanation: Optional[str] = None) -> bool:
    """Replace a vote's reason tags and explanation. False if the vote is unknown."""
    result = await db.execute(select(Vote).where(Vote.id == vote_id))
    vote = result.scalar_one_or_none()
    if vote is None:
        return False

    vote.reason_tags = list(reason_tags) if reason_tags else None
    vote.explanation = explanation or None
    await db.commit()
    logger.info("Vote %s amended", vote_id)
    return True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_take_stats(db: AsyncSession, take_id: str) -> Optional[TakeStats]:
    """Aggregate votes for one take. None when nobody has voted yet."""
    agree_count = func.sum(case((Vote.stance == AGREE, 1), else_=0))
    row = (
        await db.execute(
            select(func.count(Vote.id), agree_count).where(Vote.take_id == take_id)
        )
    ).one()
    total = int(row[0] or 0)
    if total == 0:
        return None

    tag_rows = await db.execute(
        select(Vote.reason_tags)
        .where(Vote.take_id == take_id)
        .where(Vote.reason_tags.isnot(None))
        .order_by(Vote.id)
    )
    counts: Counter = Counter()
    for tags in tag_rows.scalars().all():
        counts.update(tags or [])
    # most_common keeps first-seen order among equal counts
    top_reason = counts.most_common(1)[0][0] if counts else None

    return TakeStats(
        take_id=take_id,
        total_votes=total,
        agree_percentage=agree_percentage(int(row[1] or 0), total),
        top_reason=top_reason,
    )


async def list_session_votes(db: AsyncSession, session_id: str) -> list:
    """Votes cast under an anonymous session, newest first."""
    result = await db.execute(
        select(Vote).where(Vote.session_id == session_id).order_by(Vote.id.desc())
    )
    return list(result.scalars().all())
