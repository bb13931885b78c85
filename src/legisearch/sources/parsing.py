"""Title parsing helpers for bill descriptors."""

from __future__ import annotations

import hashlib
import re
from datetime import datetime

_YEAR_RE = re.compile(r"(\d{4})")
_BILL_NUMBER_RE = re.compile(r"bill\s*(?:no\.?)?\s*(\d+)\s*of\s*(\d{4})", re.IGNORECASE)
_AMENDMENT_RE = re.compile(r"\(.*?(\d+)(?:st|nd|rd|th)\s+Amendment\)", re.IGNORECASE)

MIN_YEAR = 1990
MAX_YEAR = 2035


def extract_year(title: str, default: int | None = None) -> int:
    """Return the first plausible year in ``title`` ("The XYZ Bill, 2024")."""

    for match in _YEAR_RE.finditer(title):
        year = int(match.group(1))
        if MIN_YEAR <= year <= MAX_YEAR:
            return year
    return default if default is not None else datetime.now().year


def extract_external_number(title: str) -> str:
    """Derive the business key for a bill from its title.

    ``Bill No. 12 of 2024`` gives ``12/2024``, ``(5th Amendment)`` gives
    ``AMEND-5/<year>``; anything else gets a stable digest of the title.
    """

    match = _BILL_NUMBER_RE.search(title)
    if match:
        return f"{match.group(1)}/{match.group(2)}"

    year = extract_year(title)
    match = _AMENDMENT_RE.search(title)
    if match:
        return f"AMEND-{match.group(1)}/{year}"

    digest = hashlib.sha1(title.strip().encode("utf-8")).hexdigest()[:6].upper()
    return f"{digest}/{year}"
