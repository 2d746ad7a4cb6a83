"""
Stance card token codec.

Token format: base64url (RFC 4648 section 5, padding stripped) of
``id1.c1|id2.c2|id3.c3|id4.c4|id5.c5|id6.c6`` where each ``c`` is ``a``
(agree) or ``d`` (disagree). Take ids never contain ``.`` or ``|``.
"""

import asyncio
import base64
import binascii
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from stance_backend.config import STRICT_STANCE_DECODE
from stance_backend.services.categories import CATEGORIES
from stance_backend.services.errors import BackingStoreUnavailable
from stance_backend.services.take_model import AGREE, DISAGREE, STANCES, StanceCardEntry, Take

logger = logging.getLogger(__name__)

CARD_SIZE = len(CATEGORIES)
PAIR_SEPARATOR = "|"
STANCE_SEPARATOR = "."

_STANCE_TO_CHAR = {AGREE: "a", DISAGREE: "d"}

TakeResolver = Callable[[str], Awaitable[Optional[Take]]]


def build_payload(pairs: Sequence[Tuple[str, str]]) -> str:
    """Join (take_id, stance) pairs into the pre-encoding payload string."""
    if len(pairs) != CARD_SIZE:
        raise ValueError(f"A stance card has exactly {CARD_SIZE} entries, got {len(pairs)}")

    parts = []
    for take_id, stance in pairs:
        if not take_id or PAIR_SEPARATOR in take_id or STANCE_SEPARATOR in take_id:
            raise ValueError(f"Take id cannot be encoded: {take_id!r}")
        if stance not in STANCES:
            raise ValueError(f"Unknown stance: {stance!r}")
        parts.append(f"{take_id}{STANCE_SEPARATOR}{_STANCE_TO_CHAR[stance]}")
    return PAIR_SEPARATOR.join(parts)


def encode_pairs(pairs: Sequence[Tuple[str, str]]) -> str:
    payload = build_payload(pairs).encode("utf-8")
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")


def encode_stance_card(entries: Sequence[StanceCardEntry]) -> str:
    """Encode 6 ordered (take, stance) entries into a URL-safe token."""
    return encode_pairs([(entry.take.id, entry.stance) for entry in entries])


def parse_token(token: str, strict: bool = STRICT_STANCE_DECODE) -> Optional[List[Tuple[str, str]]]:
    """Decode a token to (take_id, stance) pairs without resolving ids.

    Returns None for anything that is not a well-formed card token. Unless
    ``strict`` is set, any stance character other than ``a`` reads as
    disagree.
    """
    if not token:
        return None

    standard = token.replace("-", "+").replace("_", "/")
    standard += "=" * (-len(standard) % 4)
    try:
        payload = base64.b64decode(standard, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None

    parts = payload.split(PAIR_SEPARATOR)
    if len(parts) != CARD_SIZE:
        return None

    pairs = []
    for part in parts:
        take_id, sep, stance_char = part.rpartition(STANCE_SEPARATOR)
        if not sep or not take_id:
            return None
        if strict and stance_char not in ("a", "d"):
            return None
        pairs.append((take_id, AGREE if stance_char == "a" else DISAGREE))
    return pairs


async def decode_stance_card(
    token: str,
    resolve: TakeResolver,
    strict: bool = STRICT_STANCE_DECODE,
) -> Optional[List[StanceCardEntry]]:
    """Decode a token and resolve every take; None unless all six resolve."""
    pairs = parse_token(token, strict=strict)
    if pairs is None:
        logger.info("Rejected malformed stance card token")
        return None

    entries = []
    for take_id, stance in pairs:
        try:
            take = await resolve(take_id)
        except (BackingStoreUnavailable, SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Could not resolve take %s while decoding stance card: %s", take_id, exc)
            return None
        except Exception:
            logger.exception("Unexpected error resolving take %s while decoding stance card", take_id)
            return None
        if take is None:
            logger.info("Stance card references unknown take %s", take_id)
            return None
        entries.append(StanceCardEntry(take=take, stance=stance))
    return entries
