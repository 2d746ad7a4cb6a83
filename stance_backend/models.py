"""
SQLAlchemy models for the stance game.

Hot takes are written by the offline enrichment pipeline (see seed_takes.py)
and only read here. Votes and saved stance cards are written by the API.
"""

from sqlalchemy import (
    Column, String, Integer, SmallInteger, Boolean, Text, DateTime, JSON,
    Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class HotTake(Base):
    """A single debatable statement served to players"""
    __tablename__ = "hot_takes"

    # Identity
    id = Column(String(12), primary_key=True)
    slug = Column(String(80), nullable=False)

    # Content
    statement = Column(Text, nullable=False)
    category = Column(String(20), nullable=False)
    tone = Column(JSONList, nullable=False, default=list)
    original_question = Column(Text, nullable=False, default="")

    # Reason tags (NULL until enrichment has run)
    agree_reasons = Column(JSONList)
    disagree_reasons = Column(JSONList)

    # Intensity (1-5)
    intensity = Column(SmallInteger, default=3)
    intensity_ai_generated = Column(SmallInteger)
    intensity_last_updated = Column(DateTime(timezone=True))

    # Enrichment metadata
    enrichment_model = Column(String(50))
    enrichment_validated = Column(Boolean, default=False)
    enrichment_timestamp = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("intensity BETWEEN 1 AND 5", name="valid_intensity"),
        Index("idx_hot_takes_category", "category"),
        Index("idx_hot_takes_intensity", "category", "intensity"),
        Index("idx_hot_takes_slug", "slug"),
    )


class Vote(Base):
    """Append-only agree/disagree vote on a hot take"""
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    take_id = Column(String(12), nullable=False)
    stance = Column(String(10), nullable=False)  # 'agree', 'disagree'

    # Mutable context (amended after the initial write)
    reason_tags = Column(JSONList)
    explanation = Column(Text)

    # Identity
    session_id = Column(String(64))  # anonymous correlation key
    user_id = Column(Text)  # set at creation or by stitching

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("stance IN ('agree', 'disagree')", name="valid_stance"),
        Index("idx_take_stance", "take_id", "stance"),
        Index("idx_session_id", "session_id"),
    )


class SavedStanceCard(Base):
    """A stance card token saved to a signed-in user's collection"""
    __tablename__ = "saved_stance_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    stance_hash = Column(Text, nullable=False)
    saved_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "stance_hash", name="uq_saved_stance_card"),
        Index("idx_saved_stance_cards_user", "user_id"),
    )
