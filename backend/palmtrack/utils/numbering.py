"""Receipt number generation.

Format:  {prefix}-{year}-{seq:6}   e.g. EDC-REC-2026-000042

The sequence restarts at 000001 every calendar year.  The latest-number
lookup is restricted to the current year's prefix, so last year's
numbers never leak into this year's sequence.  Voided receipts keep
their numbers; numbers are never reused.
"""

import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from palmtrack.config import settings
from palmtrack.models.order import Receipt

SEQ_WIDTH = 6


def format_receipt_number(year: int, seq: int, prefix: str | None = None) -> str:
    prefix = prefix or settings.receipt_prefix
    return f"{prefix}-{year}-{seq:0{SEQ_WIDTH}d}"


def parse_receipt_number(
    number: str | None, prefix: str | None = None
) -> tuple[int, int] | None:
    """Return (year, seq) for a well-formed number, else None."""
    if not number:
        return None
    prefix = prefix or settings.receipt_prefix
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d{{4}})-(\d+)", number.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def next_receipt_number(last: str | None, year: int, prefix: str | None = None) -> str:
    """Number that follows `last` within `year`.

    Restarts at 1 when there is no previous number, when it belongs to
    another year, or when it cannot be parsed.
    """
    parsed = parse_receipt_number(last, prefix)
    if parsed is None or parsed[0] != year:
        return format_receipt_number(year, 1, prefix)
    return format_receipt_number(year, parsed[1] + 1, prefix)


async def latest_receipt_number(db: AsyncSession, year: int) -> str | None:
    """Highest receipt number already issued in `year` (voided included).

    Longer numbers sort first so a sequence past the padding width
    (1000000 after 999999) still wins over the zero-padded ones.
    """
    year_prefix = f"{settings.receipt_prefix}-{year}-"
    result = await db.execute(
        select(Receipt.receipt_number)
        .where(Receipt.receipt_number.like(f"{year_prefix}%"))
        .order_by(func.length(Receipt.receipt_number).desc(), Receipt.receipt_number.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def generate_receipt_number(db: AsyncSession, year: int) -> str:
    """Allocate the next number for `year`.

    Two concurrent issuers can compute the same value; the unique
    constraint on receipts.receipt_number rejects the second insert.
    """
    return next_receipt_number(await latest_receipt_number(db, year), year)
