"""Link anonymous session votes to a signed-in user, and saved stance cards."""

import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stance_backend.models import SavedStanceCard, Vote

logger = logging.getLogger(__name__)


async def stitch_session_to_user(db: AsyncSession, session_id: str, user_id: str) -> int:
    """Assign ``user_id`` to the session's unowned votes and return the row count.

    Votes that already belong to a user are never reassigned, so repeating
    the call is a no-op.
    """
    result = await db.execute(
        update(Vote)
        .where(Vote.session_id == session_id)
        .where(Vote.user_id.is_(None))
        .values(user_id=user_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    rows = result.rowcount or 0
    logger.info("Stitched %s votes from session %s to user %s", rows, session_id, user_id)
    return rows


async def save_stance_card(db: AsyncSession, user_id: str, stance_hash: str,
                           session_id: Optional[str] = None) -> bool:
    """Stitch the session (if given) and add the card to the user's collection.

    Returns False when the card was already saved.
    """
    if session_id:
        await stitch_session_to_user(db, session_id, user_id)

    existing = await db.execute(
        select(SavedStanceCard.id)
        .where(SavedStanceCard.user_id == user_id)
        .where(SavedStanceCard.stance_hash == stance_hash)
    )
    if existing.scalar_one_or_none() is not None:
        return False

    db.add(SavedStanceCard(user_id=user_id, stance_hash=stance_hash))
    try:
        await db.commit()
    except IntegrityError:
        # Saved concurrently by another request
        await db.rollback()
        return False
    logger.info("Saved stance card for user %s", user_id)
    return True


async def list_saved_stance_cards(db: AsyncSession, user_id: str) -> List[SavedStanceCard]:
    result = await db.execute(
        select(SavedStanceCard)
        .where(SavedStanceCard.user_id == user_id)
        .order_by(SavedStanceCard.saved_at.desc(), SavedStanceCard.id.desc())
    )
    return list(result.scalars().all())
