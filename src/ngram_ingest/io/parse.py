"""Parser for Google Ngrams export lines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Tuple

from ngram_ingest.errors import (
    InvalidLine,
    InvalidSequenceLength,
    InvalidToken,
    InvalidYearRecord,
    MalformedLineError,
)
from ngram_ingest.utils.filters import DEFAULT_TAGS, make_token_validator

logger = logging.getLogger(__name__)

__all__ = ["Entry", "EntryParser", "parse_entry"]


@dataclass(frozen=True)
class Entry:
    """A validated n-gram with its score (match counts summed over years)."""
    tokens: Tuple[str, ...]
    score: int

    @property
    def text(self) -> str:
        return " ".join(self.tokens)


def parse_entry(
        line: str,
        order: int,
        *,
        is_valid_token: Callable[[str], bool],
) -> Entry:
    """
    Parse one "ngram\\tYEAR,MATCH,VOLUME\\t..." line into an Entry.

    Args:
        line: Decoded line, with or without its trailing newline
        order: Expected number of space-separated tokens
        is_valid_token: Token predicate (part-of-speech denylist)

    Returns:
        Entry with the token tuple and summed match counts

    Raises:
        InvalidLine: fewer than two tab-separated fields
        InvalidSequenceLength: token count differs from order
        InvalidToken: any token is a part-of-speech marker or tagged
        InvalidYearRecord: a year record is not three integers

    Examples:
        >>> parse_entry("hello world\\t2012,5,9\\t2013,7,10", 2,
        ...             is_valid_token=make_token_validator())
        Entry(tokens=('hello', 'world'), score=12)
    """
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < 2:
        raise InvalidLine(f"invalid line: {line!r}")

    tokens = tuple(fields[0].split(" "))
    if len(tokens) != order:
        raise InvalidSequenceLength(
            f"ngram length is {len(tokens)}, want {order}: {fields[0]!r}"
        )
    for tok in tokens:
        if not is_valid_token(tok):
            raise InvalidToken(f"invalid token {tok!r} in {fields[0]!r}")

    score = 0
    for record in fields[1:]:
        parts = record.split(",")
        if len(parts) != 3:
            raise InvalidYearRecord(f"invalid year record: {record!r}")
        try:
            _year, match_count, _volumes = (int(p) for p in parts)
        except ValueError:
            raise InvalidYearRecord(f"non-numeric year record: {record!r}") from None
        if match_count < 0:
            raise InvalidYearRecord(f"negative match count: {record!r}")
        score += match_count

    return Entry(tokens, score)


class EntryParser:
    """Parses lines of one n-gram order against a fixed tag denylist."""

    def __init__(self, order: int, tags: Iterable[str] = DEFAULT_TAGS):
        if order not in (1, 2, 3, 4, 5):
            raise ValueError("order must be an integer in 1..5")
        self.order = order
        self._is_valid_token = make_token_validator(tags)

    def parse(self, line: str) -> Entry:
        return parse_entry(line, self.order, is_valid_token=self._is_valid_token)

    def iter_entries(
            self,
            lines: Iterable[str],
            *,
            on_skip: Optional[Callable[[MalformedLineError], None]] = None,
    ) -> Iterator[Entry]:
        """Yield entries for valid lines; malformed lines are skipped."""
        for line in lines:
            if not line.strip():
                continue
            try:
                yield self.parse(line)
            except MalformedLineError as exc:
                if on_skip is not None:
                    on_skip(exc)
