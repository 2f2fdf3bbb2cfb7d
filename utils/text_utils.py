"""
Text utilities for transaction metadata.

Supplier-name canonicalization, VAT prefix → country extraction and
keyword product hints. Pure functions, no database access.
"""

import re
from typing import Optional


# Two-letter VAT prefixes recognized as country codes
VAT_COUNTRY_CODES = frozenset({
    "SE", "NO", "DK", "FI", "IS",
    "AT", "BE", "BG", "HR", "CY",
    "CZ", "DE", "EE", "GR", "ES",
    "FR", "HU", "IE", "IT", "LV",
    "LT", "LU", "MT", "NL", "PL",
    "PT", "RO", "SK", "SI", "GB",
    "CH", "US", "CA", "AU", "JP",
    "CN", "IN", "BR", "MX", "ZA",
    "KR", "TW", "ID", "TR", "RU",
})

LEGAL_SUFFIXES = (
    "ab", "oy", "as", "gmbh", "ltd", "llc", "inc", "corp",
    "sa", "srl", "bv", "ag", "nv", "bhd", "sdn", "pte",
)

_LEGAL_SUFFIX_RE = re.compile(
    r"\s+(?:" + "|".join(LEGAL_SUFFIXES) + r")\.?$",
    re.IGNORECASE
)

# (substrings, hint) in scan order: energy, transport, general
PRODUCT_HINT_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    # Energy
    (("electricity",), "electricity"),
    (("wind",), "wind"),
    (("solar",), "solar"),
    (("hydro",), "hydro"),
    (("nuclear",), "nuclear"),
    (("coal",), "coal"),
    (("gas",), "gas"),
    # Transport
    (("flight", "airline"), "air transport"),
    (("train", "railway"), "rail"),
    (("truck", "freight"), "freight"),
    # General
    (("biofuel", "renewable"), "renewable"),
    (("fossil",), "fossil"),
)


def country_from_vat(vat_number: Optional[str]) -> Optional[str]:
    """
    Guess the supplier country from a VAT number prefix.

    Syntactic only: "SE556036079301" → "SE". Identifiers that don't
    start with a known prefix give None.

    Args:
        vat_number: VAT-like identifier

    Returns:
        ISO2 country code, or None
    """
    if not vat_number or len(vat_number) < 2:
        return None

    prefix = vat_number[:2].upper()
    return prefix if prefix in VAT_COUNTRY_CODES else None


def normalize_supplier_name(name: Optional[str]) -> str:
    """
    Canonical supplier key for the learning system.

    Lowercases, trims and drops one trailing company-form suffix:
    - "Vattenfall AB" → "vattenfall"
    - "ACME GmbH" → "acme"
    - "  Shell Ltd.  " → "shell"

    Distinct entities sharing a short name collapse to the same key.

    Args:
        name: Supplier name as written on the transaction

    Returns:
        Normalized name ("" for empty input)
    """
    if not name:
        return ""

    lower = name.lower().strip()
    return _LEGAL_SUFFIX_RE.sub("", lower).strip()


def extract_product_hints(description: Optional[str]) -> list[str]:
    """
    Keyword hints for a more specific tier 1 match.

    "Monthly electricity - wind power" → ["electricity", "wind"]

    Args:
        description: Transaction free text

    Returns:
        Matched hints in scan order (empty if no description)
    """
    if not description:
        return []

    text = description.lower()
    return [
        hint
        for keywords, hint in PRODUCT_HINT_KEYWORDS
        if any(keyword in text for keyword in keywords)
    ]
