# tests/utils/test_display.py
from ngram_ingest.utils.display import format_banner, format_bytes, format_count


def test_format_bytes_units():
    assert format_bytes(0) == "0.00 B"
    assert format_bytes(1024) == "1.00 KB"
    assert format_bytes(5 * 1024 ** 3) == "5.00 GB"


def test_format_count_groups_thousands():
    assert format_count(1234567) == "1,234,567"


def test_banner_has_rule_of_requested_width():
    title, rule = format_banner("Summary", width=10, style="-").split("\n")
    assert title == "Summary"
    assert rule == "-" * 10
