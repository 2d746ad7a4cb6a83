"""
Value types for hot takes and stance cards.

A ``Take`` is immutable. Optional persisted fields stay optional here and
serving eligibility is derived from their presence via ``is_eligible``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

DEFAULT_INTENSITY = 3
MIN_INTENSITY = 1
MAX_INTENSITY = 5

AGREE = "agree"
DISAGREE = "disagree"
STANCES = (AGREE, DISAGREE)


@dataclass(frozen=True)
class EnrichmentMetadata:
    model: Optional[str] = None
    validation_passed: bool = False
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class IntensityMetadata:
    ai_generated: Optional[int] = None
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class Take:
    id: str
    statement: str
    category: str
    slug: str
    tone: Tuple[str, ...] = ()
    original_question: str = ""
    agree_reasons: Optional[Tuple[str, ...]] = None
    disagree_reasons: Optional[Tuple[str, ...]] = None
    intensity: int = DEFAULT_INTENSITY
    intensity_metadata: IntensityMetadata = field(default_factory=IntensityMetadata)
    enrichment: EnrichmentMetadata = field(default_factory=EnrichmentMetadata)

    @property
    def is_eligible(self) -> bool:
        """Enrichment-complete: both reason lists present and non-empty."""
        return bool(self.agree_reasons) and bool(self.disagree_reasons)

    def reasons_for(self, stance: str) -> Tuple[str, ...]:
        reasons = self.agree_reasons if stance == AGREE else self.disagree_reasons
        return reasons or ()

    @classmethod
    def from_row(cls, row: Any) -> "Take":
        """Build a Take from a ``HotTake`` ORM row (or anything shaped like one)."""
        return cls(
            id=row.id,
            statement=row.statement,
            category=row.category,
            slug=row.slug,
            tone=tuple(row.tone or ()),
            original_question=row.original_question or "",
            agree_reasons=_optional_tuple(row.agree_reasons),
            disagree_reasons=_optional_tuple(row.disagree_reasons),
            intensity=normalize_intensity(row.intensity),
            intensity_metadata=IntensityMetadata(
                ai_generated=row.intensity_ai_generated,
                last_updated=row.intensity_last_updated,
            ),
            enrichment=EnrichmentMetadata(
                model=row.enrichment_model,
                validation_passed=bool(row.enrichment_validated),
                timestamp=row.enrichment_timestamp,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "statement": self.statement,
            "category": self.category,
            "slug": self.slug,
            "tone": list(self.tone),
            "original_question": self.original_question,
            "agree_reasons": list(self.agree_reasons) if self.agree_reasons is not None else None,
            "disagree_reasons": list(self.disagree_reasons) if self.disagree_reasons is not None else None,
            "intensity": self.intensity,
            "intensity_metadata": {
                "ai_generated": self.intensity_metadata.ai_generated,
                "last_updated": _isoformat(self.intensity_metadata.last_updated),
            },
            "enrichment": {
                "model": self.enrichment.model,
                "validation_passed": self.enrichment.validation_passed,
                "timestamp": _isoformat(self.enrichment.timestamp),
            },
        }


@dataclass(frozen=True)
class StanceCardEntry:
    take: Take
    stance: str


def normalize_intensity(value: Optional[int]) -> int:
    # 0 and NULL both mean "never rated"
    if not value:
        return DEFAULT_INTENSITY
    return int(value)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _optional_tuple(values) -> Optional[Tuple[str, ...]]:
    if values is None:
        return None
    return tuple(values)
