"""
Matching statistics.

Tier and method distribution over a batch of match results.
"""

from collections import Counter
from typing import Mapping

from models.matching import MatchingStatistics, MatchResult


def format_rate(count: int, total: int) -> str:
    """Percentage with one decimal, e.g. "60.0%"."""
    return f"{count / total * 100:.1f}%"


def get_matching_statistics(results: Mapping[str, MatchResult]) -> MatchingStatistics:
    """
    Summarize match results keyed by transaction id.

    Callers must not pass an empty mapping: the rates divide by the
    total and raise ZeroDivisionError.

    Args:
        results: transaction id → MatchResult

    Returns:
        MatchingStatistics with counts and formatted rates
    """
    total = len(results)
    tiers = Counter(result.tier for result in results.values())
    methods = Counter(result.method.value for result in results.values())
    unmatched = sum(1 for result in results.values() if result.tier is None)
    total_confidence = sum(result.confidence for result in results.values())

    return MatchingStatistics(
        total=total,
        matched=total - unmatched,
        unmatched=unmatched,
        tier1=tiers[1],
        tier2=tiers[2],
        tier3=tiers[3],
        tier4=tiers[4],
        match_rate=format_rate(total - unmatched, total),
        avg_confidence=f"{total_confidence / total:.2f}",
        tier1_rate=format_rate(tiers[1], total),
        tier2_rate=format_rate(tiers[2], total),
        tier3_rate=format_rate(tiers[3], total),
        tier4_rate=format_rate(tiers[4], total),
        methods=dict(methods),
    )
