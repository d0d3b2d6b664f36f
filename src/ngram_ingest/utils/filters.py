# ngram_ingest/utils/filters.py
from __future__ import annotations

from typing import Callable, Iterable

__all__ = ["DEFAULT_TAGS", "make_token_validator"]

# Part-of-speech tags used by the 2020 Google Books export.
DEFAULT_TAGS: tuple[str, ...] = (
    "NOUN", ".", "VERB", "ADP", "DET", "ADJ",
    "PRON", "ADV", "NUM", "CONJ", "PRT", "X",
)


def make_token_validator(
    tags: Iterable[str] = DEFAULT_TAGS,
) -> Callable[[str], bool]:
    """
    Return predicate(token) -> bool that accepts plain words only.

    A token is rejected when it is empty, is a bare marker ('_NOUN_'),
    or ends with a tag suffix ('cat_NOUN').
        'cat'         -> valid
        '_NOUN_'      -> invalid (marker)
        'cat_VERB'    -> invalid (suffix)
        'cat_VERBOSE' -> valid (suffix must match a whole tag)
    """
    tags = tuple(tags)
    markers = frozenset(f"_{t}_" for t in tags)
    suffixes = tuple(f"_{t}" for t in tags)

    def is_valid(tok: str) -> bool:
        return bool(tok) and tok not in markers and not tok.endswith(suffixes)

    return is_valid
