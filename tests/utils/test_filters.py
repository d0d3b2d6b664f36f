# tests/utils/test_filters.py
import pytest

from ngram_ingest.utils.filters import DEFAULT_TAGS, make_token_validator


@pytest.fixture()
def is_valid():
    return make_token_validator()


def test_plain_words_accepted(is_valid):
    assert is_valid("cat")
    assert is_valid("New-York")
    assert is_valid("_")


@pytest.mark.parametrize("tag", DEFAULT_TAGS)
def test_every_marker_and_suffix_rejected(is_valid, tag):
    assert not is_valid(f"_{tag}_")
    assert not is_valid(f"word_{tag}")


def test_partial_tag_suffix_accepted(is_valid):
    assert is_valid("cat_VERBOSE")
    assert is_valid("cat_noun")      # tags are case-sensitive
    assert is_valid("_NOUN_x")


def test_empty_token_rejected(is_valid):
    assert not is_valid("")


def test_custom_tagset_supported():
    pred = make_token_validator(tags=("ZZZ",))
    assert not pred("foo_ZZZ")
    assert not pred("_ZZZ_")
    assert pred("foo_NOUN")
