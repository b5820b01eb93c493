"""
Domain models for growth scenarios and cost projections.
Defines growth inputs, per-month projection steps and alerts.
"""
import math
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from costplanner.domain.architecture_models import UsageProfile
from costplanner.domain.cost_models import CostResult


LINEAR = "linear"
EXPONENTIAL = "exponential"
SEASONAL = "seasonal"
CUSTOM = "custom"
GROWTH_PATTERNS = (LINEAR, EXPONENTIAL, SEASONAL, CUSTOM)


@dataclass(frozen=True)
class GrowthScenario:
    """Growth model applied to the baseline usage."""
    pattern: str
    monthly_growth_rate: float  # fraction per month, e.g. 0.15
    name: str = ""
    description: str = ""

    def __post_init__(self):
        if self.pattern not in GROWTH_PATTERNS:
            raise ValueError(f"Unknown growth pattern: {self.pattern}")
        if not math.isfinite(self.monthly_growth_rate):
            raise ValueError("monthly_growth_rate must be a finite number")
        if self.monthly_growth_rate <= -1:
            raise ValueError("monthly_growth_rate must be greater than -1")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "pattern": self.pattern,
            "monthly_growth_rate": self.monthly_growth_rate,
            "description": self.description,
        }


PREDEFINED_SCENARIOS: Dict[str, GrowthScenario] = {
    "conservative": GrowthScenario(LINEAR, 0.05, "conservative", "Steady 5% monthly growth"),
    "moderate": GrowthScenario(EXPONENTIAL, 0.15, "moderate", "Compounding 15% monthly growth"),
    "aggressive": GrowthScenario(EXPONENTIAL, 0.30, "aggressive", "Compounding 30% monthly growth"),
    "seasonal": GrowthScenario(SEASONAL, 0.10, "seasonal", "10% growth with a yearly traffic cycle"),
}


@dataclass(frozen=True)
class BaseConfig:
    """Baseline inputs a projection grows from."""
    usage: UsageProfile
    region: str = "us-east-1"
    free_tier_enabled: bool = True


@dataclass(frozen=True)
class AlertThresholds:
    """Caller-supplied limits that raise projection alerts."""
    monthly_cost: float = 100.0
    growth_rate_pct: float = 50.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"monthly_cost": self.monthly_cost, "growth_rate_pct": self.growth_rate_pct}


@dataclass(frozen=True)
class ProjectionAlert:
    """A threshold crossed during a projected month."""
    type: str  # "cost-threshold" | "growth-rate" | "free-tier-expiration"
    severity: str  # "low" | "medium" | "high"
    month: int
    message: str
    value: float
    threshold: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type,
            "severity": self.severity,
            "month": self.month,
            "message": self.message,
            "value": round(self.value, 2),
            "threshold": self.threshold,
        }


@dataclass
class ScenarioProjection:
    """Projected usage and cost for one month."""
    month: int
    usage: UsageProfile
    costs: CostResult
    growth_multiplier: float
    growth_rate_pct: float
    cost_change_pct: Optional[float] = None  # vs. previous month; None for month 1
    alerts: List[ProjectionAlert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "month": self.month,
            "growth_multiplier": round(self.growth_multiplier, 6),
            "growth_rate_pct": round(self.growth_rate_pct, 2),
            "cost_change_pct": round(self.cost_change_pct, 2) if self.cost_change_pct is not None else None,
            "usage": self.usage.to_dict(),
            "total_monthly_cost": round(self.costs.total_monthly_cost, 2),
            "free_tier_savings": round(self.costs.free_tier_savings, 2),
            "net_monthly_cost": round(self.costs.net_monthly_cost, 2),
            "free_tier_applied": self.costs.free_tier_enabled,
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


@dataclass(frozen=True)
class ProjectionSummary:
    """Totals across a projection horizon."""
    months: int
    total_cost: float
    average_monthly_cost: float
    final_monthly_cost: float
    usage_growth_pct: float
    cost_growth_pct: Optional[float]
    peak_month: int
    total_alerts: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "months": self.months,
            "total_cost": round(self.total_cost, 2),
            "average_monthly_cost": round(self.average_monthly_cost, 2),
            "final_monthly_cost": round(self.final_monthly_cost, 2),
            "usage_growth_pct": round(self.usage_growth_pct, 1),
            "cost_growth_pct": round(self.cost_growth_pct, 1) if self.cost_growth_pct is not None else None,
            "peak_month": self.peak_month,
            "total_alerts": self.total_alerts,
        }
