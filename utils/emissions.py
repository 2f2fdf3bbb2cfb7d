"""
Confidence scoring and emissions arithmetic.
"""

from typing import Optional

from exceptions import ExchangeRateRequiredError
from models.matching import MatcherConfig, MatchMethod


def clamp01(value: float) -> float:
    """Clamp to [0, 1]."""
    return max(0.0, min(1.0, value))


def calculate_confidence(
    method: MatchMethod,
    tier: int,
    config: MatcherConfig
) -> float:
    """
    Final match confidence.

    confidence = clamp01(base[method] + penalty[tier]); tier 1 adds 0.
    Deterministic in (method, tier).

    Args:
        method: Strategy that found the NACE code
        tier: Tier the factor was resolved at (1-4)
        config: Matcher configuration

    Returns:
        Confidence in [0, 1]
    """
    return clamp01(config.base_confidence(method) + config.tier_penalty(tier))


def calculate_emissions(
    amount: float,
    emission_factor_kgco2e_per_eur: float,
    currency: str = "EUR",
    exchange_rate: Optional[float] = None,
    base_currency: str = "EUR"
) -> float:
    """
    kg CO2e for a spend amount.

    Converts to the base currency first when the transaction currency
    differs; the caller supplies the rate.

    Args:
        amount: Transaction amount
        emission_factor_kgco2e_per_eur: Intensity per unit of base currency
        currency: Transaction currency
        exchange_rate: Multiplier from currency to base_currency
        base_currency: Currency the intensity is expressed in

    Returns:
        Emissions in kg CO2e

    Raises:
        ExchangeRateRequiredError: Foreign currency without a rate
    """
    if currency.upper() == base_currency.upper():
        amount_in_base = amount
    elif exchange_rate is None:
        raise ExchangeRateRequiredError(currency, base_currency)
    else:
        amount_in_base = amount * exchange_rate

    return amount_in_base * emission_factor_kgco2e_per_eur
