"""
Domain models for ranking individual services against each other.
"""
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field


# Tier thresholds on the overall score, best first
TIERS = (
    (0.8, "recommended"),
    (0.6, "suitable"),
    (0.4, "acceptable"),
    (0.0, "not-recommended"),
)


def tier_for(score: float) -> str:
    for threshold, tier in TIERS:
        if score >= threshold:
            return tier
    return TIERS[-1][1]


@dataclass(frozen=True)
class ServiceProfile:
    """Operational traits of a service, each rated 1 (low) to 5 (high)."""
    complexity: int
    scalability: int
    pay_per_use: bool = False


@dataclass
class CriterionScore:
    """Score for one ranking criterion, between 0 and 1."""
    score: float
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "score": round(self.score, 3),
            "reasons": self.reasons,
            "warnings": self.warnings,
        }


@dataclass
class ServiceScore:
    """A ranked service with its per-criterion breakdown."""
    service_id: str
    purpose: str
    name: str
    category: Optional[str]
    overall: float
    breakdown: Dict[str, CriterionScore]
    estimated_cost: Optional[float] = None
    rank: Optional[int] = None

    @property
    def tier(self) -> str:
        return tier_for(self.overall)

    @property
    def reasons(self) -> List[str]:
        return [reason for criterion in self.breakdown.values() for reason in criterion.reasons]

    @property
    def warnings(self) -> List[str]:
        return [warning for criterion in self.breakdown.values() for warning in criterion.warnings]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service_id": self.service_id,
            "purpose": self.purpose,
            "name": self.name,
            "category": self.category,
            "overall": round(self.overall, 3),
            "tier": self.tier,
            "rank": self.rank,
            "estimated_cost": round(self.estimated_cost, 2) if self.estimated_cost is not None else None,
            "breakdown": {name: criterion.to_dict() for name, criterion in self.breakdown.items()},
            "reasons": self.reasons,
            "warnings": self.warnings,
        }


@dataclass
class CriterionComparison:
    """Which of two services wins on one criterion."""
    winner: str  # primary, alternative or tie
    difference: float

    def to_dict(self) -> Dict[str, Any]:
        return {"winner": self.winner, "difference": round(self.difference, 3)}


@dataclass
class ServiceAlternative:
    """A ranked alternative to a primary service, compared head to head."""
    score: ServiceScore
    comparison: Dict[str, CriterionComparison]
    overall_winner: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            **self.score.to_dict(),
            "comparison": {name: item.to_dict() for name, item in self.comparison.items()},
            "overall_winner": self.overall_winner,
        }
