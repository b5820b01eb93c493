"""
Static USD-denominated currency conversion.
Rates are fixed approximations; no live FX lookups are made.
"""
import logging
from dataclasses import replace
from typing import Dict, List

from costplanner.domain.cost_models import CostResult, ServiceCost

logger = logging.getLogger(__name__)


# Units of each currency per 1 USD
CURRENCY_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "JPY": 110.0,
    "CAD": 1.25,
    "AUD": 1.35,
    "INR": 74.0,
    "BRL": 5.2,
}


def supported_currencies() -> List[str]:
    """Get list of supported currency codes."""
    return sorted(CURRENCY_RATES.keys())


def is_supported_currency(currency_code: str) -> bool:
    return currency_code.upper() in CURRENCY_RATES


def convert(amount: float, currency_code: str) -> float:
    """
    Convert a USD amount into another currency.

    Unknown currency codes fall back to USD.

    Args:
        amount: Amount in USD
        currency_code: ISO currency code (e.g., 'EUR')

    Returns:
        Converted amount
    """
    if not is_supported_currency(currency_code):
        logger.warning(f"Unsupported currency {currency_code}, amounts left in USD")
        return amount
    return amount * CURRENCY_RATES[currency_code.upper()]


def convert_result(result: CostResult, currency_code: str) -> CostResult:
    """
    Return a copy of a cost result with every amount converted.

    Args:
        result: Cost result in USD
        currency_code: Target currency code

    Returns:
        New CostResult; the input is not modified
    """
    if not is_supported_currency(currency_code):
        logger.warning(f"Unsupported currency {currency_code}, result left in USD")
        return result
    if result.currency != "USD":
        raise ValueError(f"Cost result is already in {result.currency}")
    code = currency_code.upper()

    def _service(service_cost: ServiceCost) -> ServiceCost:
        return replace(
            service_cost,
            monthly_cost=convert(service_cost.monthly_cost, code),
            free_tier_savings=convert(service_cost.free_tier_savings, code),
            components=[
                replace(component, cost=convert(component.cost, code))
                for component in service_cost.components
            ],
            assumptions=list(service_cost.assumptions),
        )

    return replace(
        result,
        service_costs=[_service(service_cost) for service_cost in result.service_costs],
        total_monthly_cost=convert(result.total_monthly_cost, code),
        free_tier_savings=convert(result.free_tier_savings, code),
        net_monthly_cost=convert(result.net_monthly_cost, code),
        breakdown_by_category={
            category: convert(cost, code) for category, cost in result.breakdown_by_category.items()
        },
        currency=code,
        diagnostics=list(result.diagnostics),
    )
