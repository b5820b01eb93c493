"""
Domain models for cost estimation.
Defines the structure of cost results and per-service breakdowns.
"""
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from costplanner.domain.architecture_models import UsageProfile
from costplanner.domain.diagnostics import Diagnostic


COVERAGE_FULL = "full"
COVERAGE_PARTIAL = "partial"
COVERAGE_NONE = "none"


@dataclass(frozen=True)
class MeteredComponent:
    """Quantity and cost of one billable dimension of a service."""
    name: str
    pricing_component: str
    quantity: float
    unit: str
    cost: float
    price_class: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "price_class": self.price_class,
            "monthly_cost_usd": round(self.cost, 2),
        }


@dataclass
class ServiceCost:
    """Priced result for a single service entry."""
    service_id: str
    purpose: str
    name: str
    category: str
    monthly_cost: float
    free_tier_savings: float = 0.0
    coverage: str = COVERAGE_NONE
    components: List[MeteredComponent] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    priced: bool = True

    @property
    def breakdown(self) -> Dict[str, float]:
        """Component name to monthly cost."""
        result: Dict[str, float] = {}
        for component in self.components:
            result[component.name] = result.get(component.name, 0.0) + component.cost
        return result

    @property
    def net_monthly_cost(self) -> float:
        return max(0.0, self.monthly_cost - self.free_tier_savings)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service_id": self.service_id,
            "purpose": self.purpose,
            "name": self.name,
            "category": self.category,
            "monthly_cost_usd": round(self.monthly_cost, 2),
            "free_tier_savings_usd": round(self.free_tier_savings, 2),
            "net_monthly_cost_usd": round(self.net_monthly_cost, 2),
            "coverage": self.coverage,
            "breakdown": {name: round(cost, 2) for name, cost in self.breakdown.items()},
            "components": [component.to_dict() for component in self.components],
            "assumptions": self.assumptions,
            "priced": self.priced,
        }


@dataclass
class CostResult:
    """Complete monthly cost of an architecture."""
    service_costs: List[ServiceCost]
    total_monthly_cost: float
    free_tier_savings: float
    net_monthly_cost: float
    breakdown_by_category: Dict[str, float]
    region: str
    region_multiplier: float
    free_tier_enabled: bool
    usage: UsageProfile
    pricing_version: str
    currency: str = "USD"
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def service(self, service_id: str, purpose: Optional[str] = None) -> Optional[ServiceCost]:
        for service_cost in self.service_costs:
            if service_cost.service_id == service_id and (purpose is None or service_cost.purpose == purpose):
                return service_cost
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        # Sort services by monthly cost descending for display
        sorted_costs = sorted(
            self.service_costs,
            key=lambda x: x.monthly_cost,
            reverse=True
        )

        return {
            "currency": self.currency,
            "region": self.region,
            "region_multiplier": self.region_multiplier,
            "pricing_version": self.pricing_version,
            "free_tier_enabled": self.free_tier_enabled,
            "total_monthly_cost": round(self.total_monthly_cost, 2),
            "free_tier_savings": round(self.free_tier_savings, 2),
            "net_monthly_cost": round(self.net_monthly_cost, 2),
            "breakdown_by_category": {
                category: round(cost, 2) for category, cost in self.breakdown_by_category.items()
            },
            "usage": self.usage.to_dict(),
            "service_costs": [service_cost.to_dict() for service_cost in sorted_costs],
            "diagnostics": [diagnostic.to_dict() for diagnostic in self.diagnostics],
        }


@dataclass
class RegionCostComparison:
    """Cost of the same architecture in one candidate region."""
    region: str
    region_name: str
    multiplier: float
    free_tier_eligible: bool
    result: CostResult
    savings_vs_most_expensive: float = 0.0
    savings_percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "region": self.region,
            "region_name": self.region_name,
            "multiplier": self.multiplier,
            "free_tier_eligible": self.free_tier_eligible,
            "total_monthly_cost": round(self.result.total_monthly_cost, 2),
            "net_monthly_cost": round(self.result.net_monthly_cost, 2),
            "savings_vs_most_expensive": round(self.savings_vs_most_expensive, 2),
            "savings_percent": round(self.savings_percent, 1),
        }


@dataclass(frozen=True)
class DataTransferCost:
    """Monthly cost of moving data out of a region."""
    source_region: str
    destination: str
    transfer_type: str  # same_region, cross_region, internet or cloudfront
    data_gb: float
    rate: float
    cost: float
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_region": self.source_region,
            "destination": self.destination,
            "transfer_type": self.transfer_type,
            "data_gb": self.data_gb,
            "rate": self.rate,
            "cost": round(self.cost, 2),
            "description": self.description,
        }
