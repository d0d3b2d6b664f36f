# tests/io/test_locations.py
import pytest

from ngram_ingest.errors import ConfigurationError
from ngram_ingest.io.locations import BASE_URL, ShardCatalog, WorkItem


def test_default_counts_for_english():
    cat = ShardCatalog()
    assert cat.languages == ["eng"]
    assert [cat.shard_count("eng", n) for n in range(1, 6)] == [24, 589, 6881, 6668, 19423]


def test_builds_zero_padded_url():
    cat = ShardCatalog()
    assert cat.shard_url("eng", 1, 3) == f"{BASE_URL}/eng/1-00003-of-00024.gz"
    assert cat.shard_url("eng", 5, 19422) == f"{BASE_URL}/eng/5-19422-of-19423.gz"


def test_custom_base_url_trailing_slash_stripped():
    cat = ShardCatalog({"eng": {1: 2}}, base_url="http://mirror.local/ngrams/")
    assert cat.url_for(WorkItem("eng", 1, 1)) == "http://mirror.local/ngrams/eng/1-00001-of-00002.gz"


def test_unknown_language_or_order_is_configuration_error():
    cat = ShardCatalog({"eng": {1: 2}})
    with pytest.raises(ConfigurationError):
        cat.shard_count("fre", 1)
    with pytest.raises(ConfigurationError):
        cat.shard_count("eng", 2)


def test_index_out_of_range():
    cat = ShardCatalog({"eng": {1: 2}})
    with pytest.raises(ConfigurationError):
        cat.shard_url("eng", 1, 2)
    with pytest.raises(ConfigurationError):
        cat.shard_url("eng", 1, -1)


def test_work_items_cover_every_index_in_order():
    cat = ShardCatalog({"eng": {2: 3}})
    items = cat.work_items("eng", 2)
    assert items == [WorkItem("eng", 2, 0), WorkItem("eng", 2, 1), WorkItem("eng", 2, 2)]


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        ShardCatalog().shard_count("xx", 1)
