from datetime import datetime
from typing import Any, List, Literal, Optional


def format_currency(amount: float, symbol: str = "€") -> str:
    """
    German notation: thousands separated by ".", two decimals after ",".

    >>> format_currency(1234.5)
    '1.234,50 €'
    """
    text = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if round(amount, 2) < 0 else ""
    return f"{sign}{text} {symbol}".rstrip()


def format_datetime(value: Optional[datetime], fallback: str = "-") -> str:
    """``19.10.2026, 14:05``"""
    if value is None:
        return fallback
    return value.strftime("%d.%m.%Y, %H:%M")


def parse_expiry(text: str) -> Optional[datetime]:
    """
    ``DD.MM.YYYY`` or ISO date, blank for no expiry. The result is the last
    second of that day.
    """
    text = (text or "").strip()
    if not text:
        return None
    for fmt in ("%d.%m.%Y", "%Y-%m-%d"):
        try:
            day = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return day.replace(hour=23, minute=59, second=59)
    raise ValueError(f"Unknown date {text!r}, use DD.MM.YYYY.")


def display(value: Any, fallback: str = "-") -> str:
    """
    The one place where missing optional values turn into placeholder text.
    Blank strings count as missing.
    """
    if value is None:
        return fallback
    text = str(value).strip()
    return text if text else fallback


def stars(rating: Optional[float]) -> str:
    if rating is None:
        return "no reviews"
    full = int(round(rating))
    return "★" * full + "☆" * (5 - full) + f" {rating:.1f}"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of strings.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all left ('l').

    Returns:
        str: Markdown formatted table, "" when there is nothing to show.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    num_cols = len(headers)
    if aligns is None:
        aligns = ["l"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    def cell(value: Any) -> str:
        # a pipe would end the cell early
        return display(value).replace("|", "\\|")

    lines = [
        "| " + " | ".join(cell(h) for h in headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(cell(v) for v in row) + " |" for row in rows]
    return "\n".join(lines)
