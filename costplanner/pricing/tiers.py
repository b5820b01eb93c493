"""
Marginal-bracket arithmetic for tiered rate schedules.
"""
from typing import Optional, Sequence, Tuple


def tiered_cost(quantity: float, tiers: Sequence[Tuple[Optional[float], float]], per: float = 1.0) -> float:
    """
    Price a quantity against cumulative breakpoints.

    Each tier is (up_to, rate) where up_to is the cumulative quantity at which
    the tier ends (None for the open-ended last tier). Every bracket is billed
    at its own rate; the top rate is never applied to the whole quantity.

    Args:
        quantity: Total quantity consumed
        tiers: Ascending (up_to, rate) pairs
        per: Number of units the rate is quoted for (e.g. 1000000 for per-million)

    Returns:
        Total cost across all brackets
    """
    if quantity <= 0:
        return 0.0

    cost = 0.0
    lower = 0.0
    for up_to, rate in tiers:
        upper = quantity if up_to is None else min(quantity, up_to)
        if upper > lower:
            cost += (upper - lower) * rate / per
        if up_to is None or quantity <= up_to:
            break
        lower = up_to
    return cost
