"""
API endpoints for stance cards.

Provides endpoints for:
- Encoding a finished play-through into a shareable token
- Decoding a shared token back into its six (take, stance) entries
- Saving a token to a signed-in user's collection (stitches the session)
- Listing a user's saved tokens
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from stance_backend.db_session import get_async_session
from stance_backend.dependencies import get_take_selector
from stance_backend.schemas import (
    DecodeStanceCardResponse,
    EncodeStanceCardRequest,
    EncodeStanceCardResponse,
    SavedStanceCardResponse,
    SavedStanceCardsListResponse,
    SaveStanceCardRequest,
)
from stance_backend.services.errors import BackingStoreUnavailable, call_with_timeout
from stance_backend.services.session_stitcher import list_saved_stance_cards, save_stance_card
from stance_backend.services.stance_card import (
    CARD_SIZE,
    decode_stance_card,
    encode_stance_card,
    parse_token,
)
from stance_backend.services.take_model import STANCES, StanceCardEntry
from stance_backend.services.take_selector import TakeSelector

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api", tags=["stance-cards"])


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id


@router.get("/stance-card/health")
async def health_check():
    return {"status": "healthy", "service": "stance_card_api"}


@router.post("/stance-card/encode", response_model=EncodeStanceCardResponse)
async def encode_card(
    request: EncodeStanceCardRequest,
    selector: TakeSelector = Depends(get_take_selector),
):
    """
    Encode six stance selections into a shareable token.

    Args:
        request: Ordered (take_id, stance) selections, one per category

    Returns:
        EncodeStanceCardResponse with the URL-safe token
    """
    if len(request.entries) != CARD_SIZE:
        raise HTTPException(status_code=400, detail=f"A stance card needs exactly {CARD_SIZE} entries")

    entries = []
    try:
        for selection in request.entries:
            if selection.stance not in STANCES:
                raise HTTPException(status_code=400, detail=f"Unknown stance: {selection.stance}")
            take = await call_with_timeout(selector.resolve_take(selection.take_id), "resolve_take")
            if take is None:
                raise HTTPException(status_code=400, detail=f"Unknown take: {selection.take_id}")
            entries.append(StanceCardEntry(take=take, stance=selection.stance))
    except BackingStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Hot takes unavailable: {e}")

    try:
        token = encode_stance_card(entries)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Encoded stance card {token}")
    return EncodeStanceCardResponse(token=token)


@router.get("/stance-card/{token}", response_model=DecodeStanceCardResponse)
async def decode_card(
    token: str,
    selector: TakeSelector = Depends(get_take_selector),
):
    """Resolve a shared token; 404 for anything that does not decode in full."""
    try:
        entries = await call_with_timeout(
            decode_stance_card(token, selector.resolve_take), "decode_stance_card"
        )
    except BackingStoreUnavailable as e:
        logger.warning(f"Stance card decode degraded to invalid: {e}")
        entries = None

    if entries is None:
        raise HTTPException(status_code=404, detail="Invalid stance card")

    return DecodeStanceCardResponse(
        token=token,
        entries=[{"take": e.take.to_dict(), "stance": e.stance} for e in entries],
    )


@router.post("/save-stance-card")
async def save_card(
    request: SaveStanceCardRequest,
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_async_session),
):
    """Stitch the anonymous session to the user and save the card to their collection."""
    user_id = _require_user(x_user_id)

    if not request.stance_hash:
        raise HTTPException(status_code=400, detail="stance_hash is required")
    if parse_token(request.stance_hash) is None:
        raise HTTPException(status_code=400, detail="stance_hash is not a valid stance card")

    try:
        created = await call_with_timeout(
            save_stance_card(db, user_id, request.stance_hash, session_id=request.session_id),
            "save_stance_card",
        )
    except BackingStoreUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Could not save stance card: {e}")

    return {"ok": True, "created": created}


@router.get("/saved-stance-cards", response_model=SavedStanceCardsListResponse)
async def get_saved_cards(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_async_session),
):
    user_id = _require_user(x_user_id)
    try:
        cards = await call_with_timeout(list_saved_stance_cards(db, user_id), "list_saved_stance_cards")
    except BackingStoreUnavailable as e:
        logger.warning(f"Serving empty saved card list: {e}")
        cards = []

    return SavedStanceCardsListResponse(
        cards=[SavedStanceCardResponse.model_validate(c) for c in cards],
        count=len(cards),
    )
