"""
Seed the hot_takes table from the enrichment pipeline's JSON export.

Usage:
    DATABASE_URL=postgresql://... python -m stance_backend.seed_takes data/hot-takes.json

Idempotent: existing rows are updated in place, so it can be re-run safely.
"""

import argparse
import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from stance_backend.db_session import get_async_session_context
from stance_backend.models import HotTake
from stance_backend.services.categories import is_known_category
from stance_backend.services.take_model import DEFAULT_INTENSITY

logger = logging.getLogger(__name__)

BATCH_SIZE = 25  # rows per commit


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def raw_take_to_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map one exported take (camelCase JSON) onto ``hot_takes`` columns."""
    take_id = raw["id"]
    if "." in take_id or "|" in take_id:
        raise ValueError(f"Take id {take_id!r} contains a reserved separator")
    if not is_known_category(raw["category"]):
        raise ValueError(f"Take {take_id} has unknown category {raw['category']!r}")

    intensity_meta = raw.get("intensityMetadata") or {}
    enrichment = raw.get("enrichmentMetadata") or {}
    return {
        "id": take_id,
        "statement": raw["statement"],
        "category": raw["category"],
        "slug": raw["slug"],
        "tone": list(raw.get("tone") or []),
        "original_question": raw.get("originalQuestion") or "",
        "agree_reasons": raw.get("agreeReasons") or None,
        "disagree_reasons": raw.get("disagreeReasons") or None,
        "intensity": raw.get("intensity") or DEFAULT_INTENSITY,
        "intensity_ai_generated": intensity_meta.get("aiGenerated"),
        "intensity_last_updated": _parse_timestamp(intensity_meta.get("lastUpdated")),
        "enrichment_model": enrichment.get("model"),
        "enrichment_validated": bool(enrichment.get("validationPassed", False)),
        "enrichment_timestamp": _parse_timestamp(enrichment.get("timestamp")),
    }


async def seed_takes(rows: List[Dict[str, Any]], session_factory=get_async_session_context) -> int:
    """Upsert rows in batches and return how many were written."""
    written = 0
    async with session_factory() as session:
        for start in range(0, len(rows), BATCH_SIZE):
            batch = rows[start:start + BATCH_SIZE]
            for row in batch:
                await session.merge(HotTake(**row))
            await session.commit()
            written += len(batch)
            logger.info("Seeded %s/%s hot takes", written, len(rows))
    return written


def load_rows(path: Path) -> List[Dict[str, Any]]:
    with open(path) as f:
        data = json.load(f)
    return [raw_take_to_row(raw) for raw in data]


def main():
    parser = argparse.ArgumentParser(description="Seed hot_takes from a JSON export")
    parser.add_argument("path", type=Path, help="Path to hot-takes.json")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    rows = load_rows(args.path)
    eligible = sum(1 for r in rows if r["agree_reasons"] and r["disagree_reasons"])
    written = asyncio.run(seed_takes(rows))
    print(f"✅ Seeded {written} hot takes ({eligible} enrichment-complete)")


if __name__ == "__main__":
    main()
