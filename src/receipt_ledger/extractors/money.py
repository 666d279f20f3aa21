"""
Money-token grammar shared by every parse strategy.

Both strategies parse amounts through these helpers so that "1,234.50",
"$12.00" and "฿265" always become the same Decimal regardless of which
strategy saw the line.

Rules:
- Thousands separators and currency glyphs are stripped
- Amounts are rounded half-up to two places (never banker's rounding)
- Descriptions lose a trailing 1-3 (or 1-4) character OCR flag and
  internal whitespace runs are collapsed
"""

import re
from decimal import Decimal, InvalidOperation

from ..schemas.receipt import quantize_money

CURRENCY_GLYPHS = "$฿€£"

# Grouped thousands need at least one ",ddd" group so "1234" is never split
_DIGITS = r"(?:\d{1,3}(?:,\d{3})+|\d+)"

# Receipt amounts: decimals required ("12.50", "$1,299.00")
STRICT_MONEY = rf"\$?{_DIGITS}\.\d{{2,3}}"

# Invoice amounts: decimals optional, glyph before or after ("265", "฿ 80", "80€")
LENIENT_MONEY = rf"(?:[{CURRENCY_GLYPHS}]\s*)?{_DIGITS}(?:\.\d{{2,3}})?[{CURRENCY_GLYPHS}]?"

# Optional OCR flag after a price ("12.99 N", "4.50 X")
TRAIL_FLAG = r"(?:\s+[A-Z0-9§%]{1,3})?"

STRICT_MONEY_RE = re.compile(STRICT_MONEY)
LENIENT_MONEY_RE = re.compile(LENIENT_MONEY)

SUBTOTAL_RE = re.compile(r"\b(?:SUB\s*-?\s*TOTAL|SUBTOTAL)\b", re.IGNORECASE)

# First line of the summary block, with or without a SUBTOTAL row
SUMMARY_START_RE = re.compile(
    r"\b(?:SUB\s*-?\s*TOTAL|SUBTOTAL|TOTAL|TAX|VAT|GST)\b", re.IGNORECASE
)

# Lines that are summary/payment rows, never items
SUMMARY_KEYWORD_RE = re.compile(
    r"\b(SUB\s*-?\s*TOTAL|SUBTOTAL|TOTAL\s*TAX|TOTAL\s+PURCHASE|TOTAL|TAX"
    r"|CHANGE|BALANCE|AMOUNT|AUTH|APPROVED)\b",
    re.IGNORECASE,
)

_WHITESPACE_RUN = re.compile(r"\s{2,}")
_DASHES = re.compile("[–—]")
_STRIP_CHARS = re.compile(rf"[{CURRENCY_GLYPHS},\s]")


def split_lines(raw: str) -> list[str]:
    """Split OCR text into trimmed, non-empty lines with dashes normalized."""
    lines = (_DASHES.sub("-", line).strip() for line in raw.splitlines())
    return [line for line in lines if line]


def parse_money(token: str) -> Decimal:
    """Parse a money token into a two-place Decimal.

    Examples:
        >>> parse_money("$1,234.505")
        Decimal('1234.51')
        >>> parse_money("฿ 265")
        Decimal('265.00')
    """
    cleaned = _STRIP_CHARS.sub("", token)
    try:
        return quantize_money(Decimal(cleaned))
    except InvalidOperation as e:
        raise ValueError(f"Not a money token: {token!r}") from e


def clean_description(text: str, max_flag: int = 3) -> str:
    """Collapse whitespace and drop a trailing OCR flag of up to max_flag chars."""
    text = _WHITESPACE_RUN.sub(" ", text)
    text = re.sub(rf"\s+[A-Z0-9§%]{{1,{max_flag}}}$", "", text)
    return text.strip()


def money_tokens(line: str, pattern: re.Pattern[str]) -> list[re.Match[str]]:
    return list(pattern.finditer(line))


def last_money(line: str, pattern: re.Pattern[str]) -> re.Match[str] | None:
    """Return the right-most money token on a line."""
    matches = money_tokens(line, pattern)
    return matches[-1] if matches else None


def subtotal_amount(line: str, money: str) -> Decimal | None:
    """Money token adjacent to a SUBTOTAL / SUB-TOTAL keyword."""
    m = re.search(
        rf"\b(?:SUB\s*-?\s*TOTAL|SUBTOTAL)\b[\s:]+({money})",
        line,
        re.IGNORECASE,
    )
    return parse_money(m.group(1)) if m else None


def last_amount(line: str, pattern: re.Pattern[str]) -> Decimal | None:
    """Last money token on a line, parsed ("VAT 7% 12.34" -> 12.34)."""
    m = last_money(line, pattern)
    return parse_money(m.group(0)) if m else None
