"""
Weighted response selection shared by every resolution tier.
"""

import math
import random
from typing import Optional, Sequence

from core.config import DEFAULT_FALLBACK_RESPONSE
from .engine import ResponseOption


def _weight(option: ResponseOption) -> float:
    """Usable weight of an option; negative or non-finite counts as zero."""
    try:
        weight = float(option.probability)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(weight):
        return 0.0
    return max(0.0, weight)


def select_response(
    pool: Optional[Sequence[ResponseOption]],
    rng: Optional[random.Random] = None
) -> str:
    """
    Pick one response from a weighted pool.

    Each option is chosen with probability ``weight / total``. Never
    raises and never returns None:
    - empty pool -> DEFAULT_FALLBACK_RESPONSE
    - all weights zero -> first option
    - weights summing past the float range -> rescaled by the largest
    - float drift past the last bucket -> last option

    Args:
        pool: Candidate responses
        rng: Random source (module-level random if omitted)

    Returns:
        Selected response text
    """
    if not pool:
        return DEFAULT_FALLBACK_RESPONSE

    weights = [_weight(option) for option in pool]
    total = sum(weights)
    if total <= 0:
        return pool[0].response

    # Huge finite weights can overflow the sum; rescale so it stays finite
    if not math.isfinite(total):
        largest = max(weights)
        weights = [weight / largest for weight in weights]
        total = sum(weights)

    draw = (rng or random).random() * total

    cumulative = 0.0
    for option, weight in zip(pool, weights):
        cumulative += weight
        if cumulative > draw:
            return option.response

    return pool[-1].response
