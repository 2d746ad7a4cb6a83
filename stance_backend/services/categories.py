"""Fixed category registry. Order defines spin and stance card ordering."""

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Category:
    name: str
    label: str
    color: str
    archetype: str
    icon: str
    roman_numeral: str
    symbol: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


CATEGORIES: tuple = (
    Category("philosophy", "Philosophy", "var(--cat-philosophy)", "The Thinker", "brain", "I", "◈"),
    Category("relationships", "Relationships", "var(--cat-relationships)", "The Heart", "heart", "II", "◎"),
    Category("work", "Work", "var(--cat-work)", "The Builder", "briefcase", "III", "▲"),
    Category("money", "Money", "var(--cat-money)", "The Merchant", "banknote", "IV", "☸"),
    Category("lifestyle", "Lifestyle", "var(--cat-lifestyle)", "The Seeker", "sun", "V", "✦"),
    Category("society", "Society", "var(--cat-society)", "The Citizen", "globe", "VI", "⚖"),
)

CATEGORY_NAMES: tuple = tuple(c.name for c in CATEGORIES)

_BY_NAME: Dict[str, Category] = {c.name: c for c in CATEGORIES}


def get_categories() -> List[Category]:
    return list(CATEGORIES)


def get_category(name: str) -> Optional[Category]:
    return _BY_NAME.get(name)


def is_known_category(name: str) -> bool:
    return name in _BY_NAME
