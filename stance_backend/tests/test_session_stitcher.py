"""
Tests for stitching anonymous session votes to users, and saved stance cards.
"""

import pytest
from sqlalchemy import select

from stance_backend.models import SavedStanceCard, Vote
from stance_backend.services.session_stitcher import (
    list_saved_stance_cards,
    save_stance_card,
    stitch_session_to_user,
)
from stance_backend.services.vote_aggregator import record_vote


async def _votes_by_owner(db):
    result = await db.execute(select(Vote.id, Vote.user_id).order_by(Vote.id))
    return dict(result.all())


@pytest.mark.asyncio
async def test_stitch_updates_unowned_votes_once(db_session):
    for take_id in ("abc123", "def456", "ghi789"):
        await record_vote(db_session, take_id=take_id, stance="agree", session_id="s1")
    await record_vote(db_session, take_id="abc123", stance="agree", session_id="s2")

    assert await stitch_session_to_user(db_session, "s1", "userA") == 3
    assert await stitch_session_to_user(db_session, "s1", "userA") == 0

    owners = await _votes_by_owner(db_session)
    assert list(owners.values()) == ["userA", "userA", "userA", None]


@pytest.mark.asyncio
async def test_stitch_never_reassigns_owned_votes(db_session):
    owned = await record_vote(db_session, take_id="abc123", stance="agree",
                              session_id="s1", user_id="userA")
    await record_vote(db_session, take_id="def456", stance="disagree", session_id="s1")

    assert await stitch_session_to_user(db_session, "s1", "userB") == 1

    owners = await _votes_by_owner(db_session)
    assert owners[owned.id] == "userA"
    assert sorted(owners.values()) == ["userA", "userB"]


@pytest.mark.asyncio
async def test_stitch_unknown_session_is_noop(db_session):
    assert await stitch_session_to_user(db_session, "nobody", "userA") == 0


@pytest.mark.asyncio
async def test_save_stance_card_is_idempotent(db_session):
    assert await save_stance_card(db_session, "userA", "TOKEN1") is True
    assert await save_stance_card(db_session, "userA", "TOKEN1") is False
    assert await save_stance_card(db_session, "userB", "TOKEN1") is True

    rows = (await db_session.execute(select(SavedStanceCard))).scalars().all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_save_stance_card_stitches_session(db_session):
    await record_vote(db_session, take_id="abc123", stance="agree", session_id="s1")

    await save_stance_card(db_session, "userA", "TOKEN1", session_id="s1")

    owners = await _votes_by_owner(db_session)
    assert list(owners.values()) == ["userA"]


@pytest.mark.asyncio
async def test_list_saved_stance_cards_only_returns_own_cards(db_session):
    await save_stance_card(db_session, "userA", "TOKEN1")
    await save_stance_card(db_session, "userA", "TOKEN2")
    await save_stance_card(db_session, "userB", "TOKEN3")

    cards = await list_saved_stance_cards(db_session, "userA")

    assert {c.stance_hash for c in cards} == {"TOKEN1", "TOKEN2"}
