"""Fundamental odds mathematics for weather lines.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or models.

The three pillars exposed are:

1. **Forecast probability** — normal-CDF probability that the observed
   value lands under a threshold, given a forecast mean and σ.
2. **Odds pricing** — probability → American odds with the house vig.
3. **Payout** — the profit the house owes on a winning stake at given odds.

Design decisions
----------------
* Money is ``Decimal`` everywhere.  Probabilities are floats; the
  conversion to ``Decimal`` happens exactly once, when odds are quantised
  to two places.  ``Decimal(float)`` is the exact binary value of the
  float, so HALF_UP rounding here matches a ``BigDecimal(double)`` price.
* :func:`normal_cdf` uses the same eight-term rational polynomial the
  pricing desk has always published lines with.  Its output is the
  reference for every line ever priced; swapping in ``math.erf`` would
  silently reprice the board.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Final

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Beyond |z| = 8 the approximation saturates to exactly 0 or 1.
_CDF_Z_LIMIT: Final[float] = 8.0

#: Abramowitz-Stegun style t-substitution constant.
_CDF_T_COEF: Final[float] = 0.2316419

#: Numerator polynomial coefficients, lowest order first.
_CDF_P: Final[tuple[float, ...]] = (
    0.2428, 0.5097, 0.3802, 0.0039, -0.2222, -0.0632, 0.0759, 0.0335,
)

_INV_SQRT_2PI: Final[float] = 1.0 / math.sqrt(2.0 * math.pi)

#: Two-place quantum for money and odds.
CENTS: Final[Decimal] = Decimal("0.01")

_HUNDRED: Final[Decimal] = Decimal("100")


# ---------------------------------------------------------------------------
# Forecast probability
# ---------------------------------------------------------------------------


def normal_cdf(z: float) -> float:
    """Approximate the standard normal CDF Φ(z).

    Returns exactly 0.0 for ``z < -8`` and 1.0 for ``z > 8``.
    """
    if z < -_CDF_Z_LIMIT:
        return 0.0
    if z > _CDF_Z_LIMIT:
        return 1.0

    p = _CDF_P
    t = 1.0 / (1.0 + _CDF_T_COEF * abs(z))
    density = _INV_SQRT_2PI * math.exp(-0.5 * z * z)

    # Horner evaluation, highest order first
    poly = (p[7] * t + p[6]) * t + p[5]
    poly = (poly * t + p[4]) * t + p[3]
    poly = (poly * t + p[2]) * t + p[1]
    poly = poly * t + p[0]

    cdf = 1.0 - density * poly
    return 1.0 - cdf if z < 0.0 else cdf


def under_probability(threshold: float, mean: float, sd: float) -> float:
    """Probability that the observed value falls under ``threshold``.

    Assumes the observation is Normal(mean, sd²) around the forecast.

    Args:
        threshold: The set line (e.g. 50.0 °F).
        mean: Forecast value (e.g. 52 °F).
        sd: Forecast error standard deviation; must be positive.

    Raises:
        ValueError: If ``sd <= 0``.

    Examples::

        under_probability(50, 52, 3.0) → 0.2749

    This is the published polynomial, not the textbook Φ(-0.667) ≈ 0.2525;
    every existing price depends on it.
    """
    if sd <= 0:
        raise ValueError(f"Standard deviation must be positive, got {sd!r}")
    return normal_cdf((threshold - mean) / sd)


# ---------------------------------------------------------------------------
# Odds pricing
# ---------------------------------------------------------------------------


def quantize_money(value: Decimal | int | float | str) -> Decimal:
    """Round to two places, HALF_UP."""
    if not isinstance(value, Decimal):
        value = Decimal(value)
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def apply_vig(
    probability: float,
    multiplier: float = 1.02,
    offset: float = 0.01,
    floor: float = 0.01,
    ceiling: float = 0.99,
) -> float:
    """Shade a fair probability by the house edge and clamp it.

    ``p' = clamp(floor, ceiling, p * multiplier - offset)``
    """
    return max(floor, min(ceiling, probability * multiplier - offset))


def probability_to_american_odds(
    probability: float,
    multiplier: float = 1.02,
    offset: float = 0.01,
    floor: float = 0.01,
    ceiling: float = 0.99,
) -> Decimal:
    """Convert a fair probability into vig-adjusted American odds.

    After :func:`apply_vig`, probabilities at or below 0.50 price as
    underdogs (``100/p' − 100``, positive) and everything above prices as
    a favourite (``−100·p'/(1 − p')``, negative).

    Returns:
        American odds as ``Decimal`` rounded to two places, HALF_UP.

    Examples::

        probability_to_american_odds(under_probability(50, 52, 3.0))
            → Decimal("269.83")
        probability_to_american_odds(0.75) → Decimal("-308.16")
    """
    vigged = apply_vig(probability, multiplier, offset, floor, ceiling)
    if vigged <= 0.50:
        odds = 100.0 / vigged - 100.0
    else:
        odds = -100.0 * (vigged / (1.0 - vigged))
    return quantize_money(Decimal(odds))


# ---------------------------------------------------------------------------
# Payout
# ---------------------------------------------------------------------------


def calculate_profit(amount: Decimal, odds: Decimal) -> Decimal:
    """Profit owed on a winning stake at American ``odds`` (stake excluded).

    No vig is applied here: this is what the house pays, not a probability
    estimate.

    Examples::

        calculate_profit(Decimal("50"),  Decimal("100"))  → Decimal("50.00")
        calculate_profit(Decimal("150"), Decimal("-150")) → Decimal("100.00")
    """
    if odds >= 0:
        profit = amount * odds / _HUNDRED
    else:
        profit = amount * _HUNDRED / abs(odds)
    return quantize_money(profit)


def round_line(value: float, step: int = 5) -> int:
    """Round ``value`` to the nearest multiple of ``step``, halves up.

    ``round_line(52) → 50``, ``round_line(53) → 55``.  Python's ``round``
    is banker's rounding, so halves are pushed up explicitly.
    """
    return int(math.floor(value / step + 0.5)) * step
