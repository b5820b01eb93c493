"""
Domain models for free-tier savings and utilization.
"""
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FreeTierDimension:
    """Free-tier accounting for one pricing component of a service."""
    component: str
    used: float
    limit: Optional[float]
    free_quantity: float
    savings: float
    eligible: bool
    within_limit: bool

    @property
    def utilization(self) -> Optional[float]:
        if not self.limit:
            return None
        return self.used / self.limit

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        utilization = self.utilization
        return {
            "component": self.component,
            "used": self.used,
            "limit": self.limit,
            "free_quantity": self.free_quantity,
            "savings": round(self.savings, 2),
            "eligible": self.eligible,
            "within_limit": self.within_limit,
            "utilization_percent": round(utilization * 100, 1) if utilization is not None else None,
        }


@dataclass(frozen=True)
class FreeTierResult:
    """Savings the free tier provides for a single service."""
    free_tier_savings: float
    coverage: str
    dimensions: List[FreeTierDimension] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "free_tier_savings": round(self.free_tier_savings, 2),
            "coverage": self.coverage,
            "dimensions": [dimension.to_dict() for dimension in self.dimensions],
        }


@dataclass(frozen=True)
class FreeTierUtilization:
    """How much of one free-tier allowance is consumed."""
    service_id: str
    component: str
    used: float
    limit: float
    percentage: float
    status: str  # "under-utilized" | "well-utilized" | "near-limit" | "exceeded"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service_id": self.service_id,
            "component": self.component,
            "used": self.used,
            "limit": self.limit,
            "percentage": round(self.percentage, 1),
            "status": self.status,
        }


@dataclass
class FreeTierReport:
    """Free-tier eligibility and utilization across an architecture."""
    total_savings: float
    eligible_services: List[str]
    ineligible_services: List[str]
    utilization: List[FreeTierUtilization]
    suggestions: List[str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_savings": round(self.total_savings, 2),
            "eligible_services": self.eligible_services,
            "ineligible_services": self.ineligible_services,
            "utilization": [item.to_dict() for item in self.utilization],
            "suggestions": self.suggestions,
        }
