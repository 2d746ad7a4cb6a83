"""Services for the stance game backend."""

from .corpus_cache import CorpusCache
from .corpus_store import CorpusStore, SqlCorpusStore
from .take_selector import TakeSelector

__all__ = [
    'CorpusCache',
    'CorpusStore',
    'SqlCorpusStore',
    'TakeSelector',
]
