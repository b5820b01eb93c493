"""
Domain models for architecture patterns and optimized variants.
"""
from typing import List, Dict, Any, Optional, Tuple
from dataclasses import dataclass, field, fields, replace

from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    TRAFFIC_PROFILES,
)
from costplanner.domain.cost_models import CostResult
from costplanner.domain.diagnostics import Diagnostic


APP_TYPES = ("web", "api", "static")

# Variant focus names
BASE = "base"
COST_OPTIMIZED = "cost-optimized"
PERFORMANCE_OPTIMIZED = "performance-optimized"
SIMPLICITY_OPTIMIZED = "simplicity-optimized"
SCALABILITY_OPTIMIZED = "scalability-optimized"


def _check_rating(owner: str, name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValueError(f"{owner}.{name} must be an integer between 1 and 5 (got: {value!r})")


# Older clients send performance_requirements
PREFERENCE_ALIASES = {"performance_requirements": "performance_priority"}


@dataclass(frozen=True)
class PreferenceWeights:
    """User weighting of optimization goals, each rated 1 (low) to 5 (high)."""
    cost_priority: int = 3
    performance_priority: int = 3
    complexity_tolerance: int = 3
    scalability_need: int = 3

    def __post_init__(self):
        for item in fields(self):
            _check_rating("PreferenceWeights", item.name, getattr(self, item.name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PreferenceWeights":
        if not data:
            return cls()
        data = {PREFERENCE_ALIASES.get(key, key): value for key, value in data.items()}
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown preference fields: {', '.join(sorted(unknown))}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class Requirements:
    """What the application needs, independent of any particular architecture."""
    app_type: str = "web"
    traffic: str = "low"
    database: bool = False
    auth: bool = False
    custom_domain: bool = False
    complex_queries: bool = False
    budget: Optional[float] = None
    region: str = "us-east-1"
    free_tier_enabled: bool = True
    usage: Optional[UsageProfile] = None  # overrides the traffic preset when set

    def __post_init__(self):
        if self.app_type not in APP_TYPES:
            raise ValueError(f"app_type must be one of {', '.join(APP_TYPES)} (got: {self.app_type})")
        if self.traffic not in TRAFFIC_PROFILES:
            raise ValueError(
                f"traffic must be one of {', '.join(TRAFFIC_PROFILES)} (got: {self.traffic})"
            )
        if self.budget is not None and self.budget < 0:
            raise ValueError("budget must not be negative")

    def usage_profile(self) -> UsageProfile:
        return self.usage if self.usage is not None else TRAFFIC_PROFILES[self.traffic]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "app_type": self.app_type,
            "traffic": self.traffic,
            "database": self.database,
            "auth": self.auth,
            "custom_domain": self.custom_domain,
            "complex_queries": self.complex_queries,
            "budget": self.budget,
            "region": self.region,
            "free_tier_enabled": self.free_tier_enabled,
            "usage": self.usage_profile().to_dict(),
        }


@dataclass(frozen=True)
class PatternCharacteristics:
    """Relative 1-5 ratings; higher cost means more expensive."""
    cost: int
    complexity: int
    scalability: int
    availability: int

    def __post_init__(self):
        for item in fields(self):
            _check_rating("PatternCharacteristics", item.name, getattr(self, item.name))

    def adjusted(self, **changes: int) -> "PatternCharacteristics":
        """Shift ratings by the given deltas, keeping each within 1-5."""
        return replace(
            self,
            **{name: max(1, min(5, getattr(self, name) + delta)) for name, delta in changes.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class ArchitecturePattern:
    """A reusable architecture template; optional services are picked by requirements."""
    id: str
    name: str
    description: str
    services: Tuple[ServiceUsage, ...]
    characteristics: PatternCharacteristics
    pros: Tuple[str, ...] = ()
    cons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "services": [usage.to_dict() for usage in self.services],
            "characteristics": self.characteristics.to_dict(),
            "pros": list(self.pros),
            "cons": list(self.cons),
        }


@dataclass(frozen=True)
class ValidationIssue:
    """A conflicting or incomplete service combination."""
    type: str  # "conflict" | "missing"
    severity: str  # "warning" | "error"
    message: str
    services: Tuple[str, ...]
    suggestion: str
    diagnostic: Diagnostic

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
            "services": list(self.services),
            "suggestion": self.suggestion,
            "diagnostic": self.diagnostic.to_dict(),
        }


@dataclass
class ValidationReport:
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """True when no issue is an error; warnings are allowed."""
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return [issue.diagnostic for issue in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "valid": self.valid,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class ArchitectureVariant:
    """An optimized version of a pattern, priced and scored."""
    id: str
    name: str
    description: str
    variant: str
    pattern_id: str
    architecture: Architecture
    characteristics: PatternCharacteristics
    cost: CostResult
    confidence: float
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    validation: ValidationReport = field(default_factory=ValidationReport)
    savings: Optional[float] = None  # monthly saving vs. the base variant
    suitability_score: float = 0.0
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "variant": self.variant,
            "pattern_id": self.pattern_id,
            "rank": self.rank,
            "suitability_score": round(self.suitability_score, 4),
            "confidence": self.confidence,
            "characteristics": self.characteristics.to_dict(),
            "architecture": self.architecture.to_dict(),
            "service_ids": self.architecture.service_ids(),
            "monthly_cost": round(self.cost.total_monthly_cost, 2),
            "net_monthly_cost": round(self.cost.net_monthly_cost, 2),
            "savings": round(self.savings, 2) if self.savings is not None else None,
            "pros": self.pros,
            "cons": self.cons,
            "validation": self.validation.to_dict(),
        }
