"""
Domain models for cost optimization recommendations.
"""
import math
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


# Recommendation types
RIGHTSIZING = "rightsizing"
RESERVED_INSTANCE = "reserved-instance"
SPOT_INSTANCE = "spot-instance"
STORAGE_LIFECYCLE = "storage-lifecycle"
CDN_INTRODUCTION = "cdn-introduction"
FREE_TIER_ENABLEMENT = "free-tier-enablement"
SERVERLESS_MIGRATION = "serverless-migration"
REGION_RELOCATION = "region-relocation"
AUTO_SCALING = "auto-scaling"
ARCHITECTURE_REVIEW = "architecture-review"
BUDGET_MONITORING = "budget-monitoring"

# Capacity commitments that replace one another for the same resource
CAPACITY_TYPES = frozenset({RESERVED_INSTANCE, SPOT_INSTANCE})

LEVEL_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class UsagePatternFlags:
    """Caller-declared workload traits; None means not stated."""
    fault_tolerant: Optional[bool] = None
    consistent: Optional[bool] = None
    predictable: Optional[bool] = None
    long_term: Optional[bool] = None
    has_capital: Optional[bool] = None
    batch_processing: Optional[bool] = None
    flexible: Optional[bool] = None
    stateless: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "UsagePatternFlags":
        if not data:
            return cls()
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown usage pattern flags: {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass(frozen=True)
class CommitmentOption:
    """Terms of a reserved or interruptible capacity purchase."""
    term_years: int
    payment_option: str  # "no-upfront" | "partial-upfront" | "all-upfront" | "none"
    discount: float
    upfront_cost: float
    monthly_savings: float
    term_savings: float
    suitability: str  # "low" | "medium" | "high"

    @property
    def annual_savings(self) -> float:
        return self.monthly_savings * 12

    @property
    def payback_months(self) -> Optional[float]:
        if self.monthly_savings <= 0:
            return None
        return self.upfront_cost / self.monthly_savings

    @property
    def roi(self) -> float:
        """Term savings per dollar paid upfront; infinite when nothing is paid upfront."""
        if self.upfront_cost == 0:
            return math.inf
        return self.term_savings / self.upfront_cost

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        roi = self.roi
        payback = self.payback_months
        return {
            "term_years": self.term_years,
            "payment_option": self.payment_option,
            "discount": self.discount,
            "upfront_cost": round(self.upfront_cost, 2),
            "monthly_savings": round(self.monthly_savings, 2),
            "annual_savings": round(self.annual_savings, 2),
            "term_savings": round(self.term_savings, 2),
            "payback_months": round(payback, 1) if payback is not None else None,
            "roi": None if math.isinf(roi) else round(roi, 2),
            "suitability": self.suitability,
        }


@dataclass
class Recommendation:
    """A single cost-saving action."""
    id: str
    type: str
    title: str
    description: str
    impact: str
    effort: str
    risk_level: str
    potential_savings: float
    preconditions: List[str] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    service_id: Optional[str] = None
    purpose: Optional[str] = None
    commitment: Optional[CommitmentOption] = None
    alternative_group: Optional[str] = None
    alternatives: List[str] = field(default_factory=list)

    @property
    def standalone(self) -> bool:
        """True when accepting this action does not rule out another recommendation."""
        return not self.alternatives

    @property
    def annual_savings(self) -> float:
        return self.potential_savings * 12

    def rank_key(self):
        return (
            -self.potential_savings,
            LEVEL_ORDER.get(self.risk_level, len(LEVEL_ORDER)),
            LEVEL_ORDER.get(self.effort, len(LEVEL_ORDER)),
            self.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "effort": self.effort,
            "risk_level": self.risk_level,
            "potential_savings": round(self.potential_savings, 2),
            "annual_savings": round(self.annual_savings, 2),
            "preconditions": self.preconditions,
            "steps": self.steps,
            "service_id": self.service_id,
            "purpose": self.purpose,
            "commitment": self.commitment.to_dict() if self.commitment else None,
            "alternative_group": self.alternative_group,
            "alternatives": self.alternatives,
            "standalone": self.standalone,
        }


def rank_recommendations(recommendations: List[Recommendation]) -> List[Recommendation]:
    """Sort by savings descending, then lower risk, then lower effort."""
    return sorted(recommendations, key=lambda recommendation: recommendation.rank_key())
