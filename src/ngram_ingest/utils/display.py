# ngram_ingest/utils/display.py
"""Console formatting helpers for run headers and summaries."""

__all__ = ["format_bytes", "format_count", "format_banner"]


def format_bytes(num_bytes: float) -> str:
    """Render a byte count with a binary unit, e.g. '1.46 MB'.

    Examples:
        >>> format_bytes(1024)
        '1.00 KB'
        >>> format_bytes(5368709120)
        '5.00 GB'
    """
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(num_bytes) < 1024.0:
            return f"{num_bytes:.2f} {unit}"
        num_bytes /= 1024.0
    return f"{num_bytes:.2f} PB"


def format_count(n: int) -> str:
    return f"{n:,}"


def format_banner(title: str, width: int = 100, style: str = "═") -> str:
    """Title on one line, a rule of `style` characters under it."""
    return f"{title}\n{style * width}"
