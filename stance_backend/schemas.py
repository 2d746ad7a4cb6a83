"""Shared Pydantic request/response models used across multiple routers."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class EnrichmentResponse(BaseModel):
    model: Optional[str] = None
    validation_passed: bool = False
    timestamp: Optional[str] = None


class IntensityMetadataResponse(BaseModel):
    ai_generated: Optional[int] = None
    last_updated: Optional[str] = None


class TakeResponse(BaseModel):
    id: str
    statement: str
    category: str
    slug: str
    tone: List[str]
    original_question: str
    agree_reasons: Optional[List[str]] = None
    disagree_reasons: Optional[List[str]] = None
    intensity: int
    intensity_metadata: IntensityMetadataResponse = IntensityMetadataResponse()
    enrichment: EnrichmentResponse


class CategoryResponse(BaseModel):
    name: str
    label: str
    color: str
    archetype: str
    icon: str
    roman_numeral: str
    symbol: str


class SpinResponse(BaseModel):
    hot_takes: Dict[str, TakeResponse]
    categories: List[CategoryResponse]


class TakesListResponse(BaseModel):
    takes: List[TakeResponse]
    count: int


# --- Stance cards ---

class StanceSelection(BaseModel):
    take_id: str
    stance: str  # 'agree', 'disagree'


class EncodeStanceCardRequest(BaseModel):
    entries: List[StanceSelection]


class EncodeStanceCardResponse(BaseModel):
    token: str


class StanceCardEntryResponse(BaseModel):
    take: TakeResponse
    stance: str


class DecodeStanceCardResponse(BaseModel):
    token: str
    entries: List[StanceCardEntryResponse]


class SaveStanceCardRequest(BaseModel):
    stance_hash: str
    session_id: Optional[str] = None


class SavedStanceCardResponse(BaseModel):
    stance_hash: str
    saved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SavedStanceCardsListResponse(BaseModel):
    cards: List[SavedStanceCardResponse]
    count: int


# --- Votes ---

class VoteRequest(BaseModel):
    take_id: Optional[str] = None
    stance: Optional[str] = None
    reason_tags: Optional[List[str]] = None
    explanation: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None


class AmendVoteRequest(BaseModel):
    reason_tags: Optional[List[str]] = None
    explanation: Optional[str] = None


class AggregateResponse(BaseModel):
    total_votes: int
    agree_percentage: float
    top_reason: Optional[str] = None


class VoteResponse(BaseModel):
    vote_id: int
    aggregate: AggregateResponse


class StitchRequest(BaseModel):
    session_id: str
    user_id: str


class StitchResponse(BaseModel):
    ok: bool
    rows_updated: int
