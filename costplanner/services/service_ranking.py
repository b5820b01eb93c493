"""
Service ranking.
Scores individual services on cost, complexity, scalability, reliability,
performance and maturity, and finds same-category alternatives.
"""
import logging
from typing import Dict, List, Optional, Sequence

from costplanner.domain.architecture_models import Architecture, ServiceUsage
from costplanner.domain.ranking_models import (
    CriterionComparison,
    CriterionScore,
    ServiceAlternative,
    ServiceProfile,
    ServiceScore,
)
from costplanner.domain.variant_models import PreferenceWeights, Requirements
from costplanner.pricing.catalog import ServiceDefinition
from costplanner.services.cost_engine import CostEngine


logger = logging.getLogger(__name__)

SERVICE_PROFILES: Dict[str, ServiceProfile] = {
    "ec2": ServiceProfile(complexity=3, scalability=5),
    "lambda": ServiceProfile(complexity=2, scalability=5, pay_per_use=True),
    "ecs": ServiceProfile(complexity=4, scalability=5),
    "s3": ServiceProfile(complexity=2, scalability=5, pay_per_use=True),
    "rds": ServiceProfile(complexity=3, scalability=4),
    "dynamodb": ServiceProfile(complexity=2, scalability=5),
    "elasticache": ServiceProfile(complexity=3, scalability=4),
    "cloudfront": ServiceProfile(complexity=2, scalability=5, pay_per_use=True),
    "alb": ServiceProfile(complexity=3, scalability=5),
    "api-gateway": ServiceProfile(complexity=3, scalability=5, pay_per_use=True),
    "route53": ServiceProfile(complexity=2, scalability=5, pay_per_use=True),
    "cognito": ServiceProfile(complexity=3, scalability=5, pay_per_use=True),
    "cloudwatch": ServiceProfile(complexity=2, scalability=5, pay_per_use=True),
}
DEFAULT_PROFILE = ServiceProfile(complexity=3, scalability=3)

RANKING_WEIGHTS: Dict[str, float] = {
    "cost": 0.25,
    "complexity": 0.20,
    "scalability": 0.20,
    "reliability": 0.15,
    "performance": 0.10,
    "maturity": 0.10,
}

# Upper monthly cost of each band with its score
COST_BANDS = (
    (10.0, 1.0, "Very cost-effective"),
    (50.0, 0.8, "Reasonably priced"),
    (100.0, 0.6, "Moderate cost"),
    (200.0, 0.4, "Higher cost service"),
)
BUDGET_HEADROOM = 0.8
HIGH_TRAFFIC_LEVELS = ("high", "enterprise")

MATURE_SERVICES = frozenset({"s3", "ec2", "rds", "cloudfront", "route53"})
STABLE_SERVICES = frozenset({"lambda", "dynamodb", "api-gateway", "ecs"})

PRIMARY = "primary"
ALTERNATIVE = "alternative"
TIE = "tie"


def _capped(score: float, reasons: List[str], warnings: Optional[List[str]] = None) -> CriterionScore:
    return CriterionScore(score=min(score, 1.0), reasons=reasons, warnings=warnings or [])


def _winner(primary: float, alternative: float, lower_is_better: bool = False) -> str:
    if primary == alternative:
        return TIE
    primary_wins = primary < alternative if lower_is_better else primary > alternative
    return PRIMARY if primary_wins else ALTERNATIVE


class ServiceRanker:
    """Ranks services for an application under the user's preferences."""

    def __init__(
        self,
        cost_engine: CostEngine,
        profiles: Optional[Dict[str, ServiceProfile]] = None,
        weights: Optional[Dict[str, float]] = None,
    ):
        """
        Initialize service ranker.

        Args:
            cost_engine: Engine used to price each service on its own
            profiles: Operational traits per service id (defaults to SERVICE_PROFILES)
            weights: Weight per criterion (defaults to RANKING_WEIGHTS)
        """
        self.cost_engine = cost_engine
        self.catalog = cost_engine.catalog
        self.profiles = profiles if profiles is not None else SERVICE_PROFILES
        self.weights = weights if weights is not None else RANKING_WEIGHTS

    def profile(self, service_id: str) -> ServiceProfile:
        return self.profiles.get(service_id, DEFAULT_PROFILE)

    def rank_services(
        self,
        services: Sequence[ServiceUsage],
        requirements: Requirements,
        preferences: Optional[PreferenceWeights] = None,
    ) -> List[ServiceScore]:
        """
        Score and rank services, best first.

        Ties are broken on service id then purpose so the order is stable.

        Args:
            services: Candidate services
            requirements: Application requirements (usage, region, budget)
            preferences: User preference weights (neutral if None)

        Returns:
            ServiceScores with rank set
        """
        preferences = preferences or PreferenceWeights()
        scores = [self.score_service(usage, requirements, preferences) for usage in services]
        ranked = sorted(scores, key=lambda score: (-score.overall, score.service_id, score.purpose))
        for position, score in enumerate(ranked, start=1):
            score.rank = position
        return ranked

    def score_service(
        self,
        usage: ServiceUsage,
        requirements: Requirements,
        preferences: PreferenceWeights,
    ) -> ServiceScore:
        """Score one service on every ranking criterion."""
        if not self.catalog.has_service(usage.service_id):
            neutral = {name: CriterionScore(score=0.5) for name in self.weights}
            neutral["cost"].warnings.append(f"{usage.service_id} is not in the pricing table")
            return ServiceScore(
                service_id=usage.service_id,
                purpose=usage.purpose,
                name=usage.service_id,
                category=None,
                overall=self._overall(neutral),
                breakdown=neutral,
            )

        definition = self.catalog.lookup(usage.service_id)
        profile = self.profile(usage.service_id)
        estimated_cost = self._estimate(usage, requirements)
        breakdown = {
            "cost": self._cost(definition, profile, estimated_cost, requirements),
            "complexity": self._complexity(definition, profile, preferences),
            "scalability": self._scalability(profile, usage, requirements, preferences),
            "reliability": self._reliability(definition, usage),
            "performance": self._performance(usage, preferences),
            "maturity": self._maturity(usage.service_id),
        }
        return ServiceScore(
            service_id=usage.service_id,
            purpose=usage.purpose,
            name=definition.name,
            category=definition.category,
            overall=self._overall(breakdown),
            breakdown=breakdown,
            estimated_cost=estimated_cost,
        )

    def _overall(self, breakdown: Dict[str, CriterionScore]) -> float:
        total = sum(weight * breakdown[name].score for name, weight in self.weights.items())
        return min(total, 1.0)

    def _estimate(self, usage: ServiceUsage, requirements: Requirements) -> Optional[float]:
        result = self.cost_engine.calculate(
            Architecture(services=(usage,)),
            requirements.usage_profile(),
            requirements.region,
            requirements.free_tier_enabled,
        )
        service_cost = result.service(usage.service_id, usage.purpose)
        if service_cost is None or not service_cost.priced:
            return None
        return service_cost.net_monthly_cost

    @staticmethod
    def _cost(
        definition: ServiceDefinition,
        profile: ServiceProfile,
        estimated_cost: Optional[float],
        requirements: Requirements,
    ) -> CriterionScore:
        if estimated_cost is None:
            return CriterionScore(score=0.5, warnings=["Could not be priced with this configuration"])

        reasons: List[str] = []
        warnings: List[str] = []
        score, label = 0.2, "Premium pricing"
        for ceiling, band_score, band_label in COST_BANDS:
            if estimated_cost <= ceiling:
                score, label = band_score, band_label
                break
        else:
            warnings.append("High monthly cost - consider alternatives")
        reasons.append(label)

        if definition.free_tier is not None:
            score += 0.1
            reasons.append("Free tier available")
        if requirements.budget is not None and estimated_cost > requirements.budget * BUDGET_HEADROOM:
            score *= 0.7
            warnings.append("May exceed budget constraints")
        if profile.pay_per_use and requirements.traffic not in HIGH_TRAFFIC_LEVELS:
            score += 0.1
            reasons.append("Pay-per-use pricing model")
        return _capped(score, reasons, warnings)

    @staticmethod
    def _complexity(
        definition: ServiceDefinition,
        profile: ServiceProfile,
        preferences: PreferenceWeights,
    ) -> CriterionScore:
        tolerance = preferences.complexity_tolerance
        if tolerance >= 4:
            score = 0.8
            reasons = ["Complexity acceptable for experienced users"]
        elif tolerance <= 2:
            score = (6 - profile.complexity) / 5
            reasons = ["Simple to set up and manage" if profile.complexity <= 2 else "May be complex for beginners"]
        else:
            score = 0.8 if profile.complexity <= 3 else 0.6
            reasons = ["Moderate complexity" if profile.complexity <= 3 else "Requires some expertise"]

        if tolerance <= 2 and definition.category != "compute":
            score += 0.1
            reasons.append("Fully managed service")
        return _capped(score, reasons)

    @staticmethod
    def _scalability(
        profile: ServiceProfile,
        usage: ServiceUsage,
        requirements: Requirements,
        preferences: PreferenceWeights,
    ) -> CriterionScore:
        scalability = profile.scalability
        score = scalability / 5
        reasons: List[str] = []
        if requirements.traffic == "low":
            if scalability >= 3:
                score = 1.0
                reasons.append("Excellent scalability for current needs")
        elif requirements.traffic == "medium":
            if scalability >= 4:
                score = 1.0
                reasons.append("Handles medium traffic well")
            elif scalability == 3:
                score = 0.7
                reasons.append("Adequate for medium traffic")
        elif scalability == 5:
            score = 1.0
            reasons.append("Excellent for high traffic scenarios")
        elif scalability == 4:
            score = 0.8
            reasons.append("Good scalability for high traffic")
        else:
            score = 0.4
            reasons.append("Limited scalability for high traffic")

        if preferences.scalability_need >= 4 and scalability >= 4:
            score += 0.1
            reasons.append("Supports rapid growth")
        if getattr(usage.configuration, "auto_scaling", False):
            score += 0.1
            reasons.append("Auto-scaling configured")
        return _capped(score, reasons)

    @staticmethod
    def _reliability(definition: ServiceDefinition, usage: ServiceUsage) -> CriterionScore:
        score = 0.7
        reasons: List[str] = []
        if definition.category != "compute" or usage.service_id == "lambda":
            score += 0.2
            reasons.append("AWS managed service with high availability")
        if getattr(usage.configuration, "multi_az", False):
            score += 0.1
            reasons.append("Multi-AZ deployment for high availability")
        if getattr(usage.configuration, "backup_retention_days", 0) > 0:
            score += 0.1
            reasons.append("Automated backup and recovery")
        return _capped(score, reasons)

    @staticmethod
    def _performance(usage: ServiceUsage, preferences: PreferenceWeights) -> CriterionScore:
        demanding = preferences.performance_priority >= 4
        score = 0.6
        reasons: List[str] = []
        if usage.service_id == "lambda":
            if preferences.performance_priority <= 3:
                score, reasons = 0.8, ["Good performance for most use cases"]
            else:
                score, reasons = 0.5, ["Cold starts may affect performance"]
        elif usage.service_id == "ec2":
            if demanding:
                score, reasons = 0.9, ["Dedicated resources for high performance"]
            else:
                score, reasons = 0.7, ["Consistent performance"]
        elif usage.service_id == "dynamodb":
            if demanding:
                score, reasons = 0.9, ["Single-digit millisecond latency"]
            else:
                score, reasons = 0.8, ["Fast NoSQL performance"]
        elif usage.service_id == "rds":
            score, reasons = 0.7, ["Reliable database performance"]
        elif usage.service_id == "cloudfront":
            score, reasons = 0.9, ["Global edge locations for fast content delivery"]

        configuration = usage.configuration
        if (
            getattr(configuration, "billing_mode", None) == "provisioned"
            or getattr(configuration, "provisioned_concurrency", 0) > 0
        ):
            score += 0.1
            reasons.append("Provisioned capacity for consistent performance")
        return _capped(score, reasons)

    @staticmethod
    def _maturity(service_id: str) -> CriterionScore:
        score = 0.7
        reasons: List[str] = []
        if service_id in MATURE_SERVICES:
            score = 0.9
            reasons.append("Mature and well-established service")
        elif service_id in STABLE_SERVICES:
            score = 0.8
            reasons.append("Stable service with good track record")
        score += 0.1
        reasons.append("Extensive documentation and community support")
        return _capped(score, reasons)

    def comparison_matrix(self, scores: Sequence[ServiceScore], criteria: Optional[Sequence[str]] = None) -> Dict:
        """
        Lay out ranked services against each criterion.

        Raises:
            ValueError: If a criterion is not one of the ranking criteria
        """
        used = list(criteria) if criteria else list(self.weights)
        unknown = [name for name in used if name not in self.weights]
        if unknown:
            raise ValueError(f"Unknown ranking criteria: {', '.join(unknown)}")
        return {
            "services": [
                {"service_id": score.service_id, "name": score.name, "overall": round(score.overall, 3)}
                for score in scores
            ],
            "criteria": used,
            "scores": {
                name: [
                    {
                        "service_id": score.service_id,
                        "score": round(score.breakdown[name].score, 3),
                        "reasons": score.breakdown[name].reasons,
                    }
                    for score in scores
                ]
                for name in used
            },
        }

    def find_alternatives(
        self,
        primary: ServiceUsage,
        candidates: Sequence[ServiceUsage],
        requirements: Requirements,
        preferences: Optional[PreferenceWeights] = None,
        limit: int = 3,
    ) -> List[ServiceAlternative]:
        """
        Rank same-category replacements for a service and compare each with it.

        Args:
            primary: Service to replace
            candidates: Services to consider; other categories are ignored
            requirements: Application requirements
            preferences: User preference weights (neutral if None)
            limit: Maximum number of alternatives returned

        Returns:
            Best alternatives first, each with a head-to-head comparison
        """
        preferences = preferences or PreferenceWeights()
        category = self.catalog.category_of(primary.service_id)
        if category is None:
            logger.info(f"No alternatives for {primary.service_id}: not in the pricing table")
            return []

        same_category = [
            usage for usage in candidates
            if usage.service_id != primary.service_id and self.catalog.category_of(usage.service_id) == category
        ]
        primary_score = self.score_service(primary, requirements, preferences)
        ranked = self.rank_services(same_category, requirements, preferences)[:limit]
        return [self._compare(primary_score, score) for score in ranked]

    def _compare(self, primary: ServiceScore, alternative: ServiceScore) -> ServiceAlternative:
        primary_profile = self.profile(primary.service_id)
        alternative_profile = self.profile(alternative.service_id)
        primary_cost = primary.estimated_cost or 0.0
        alternative_cost = alternative.estimated_cost or 0.0
        primary_performance = primary.breakdown["performance"].score
        alternative_performance = alternative.breakdown["performance"].score

        comparison = {
            "cost": CriterionComparison(
                winner=_winner(primary_cost, alternative_cost, lower_is_better=True),
                difference=abs(primary_cost - alternative_cost),
            ),
            "complexity": CriterionComparison(
                winner=_winner(primary_profile.complexity, alternative_profile.complexity, lower_is_better=True),
                difference=abs(primary_profile.complexity - alternative_profile.complexity),
            ),
            "scalability": CriterionComparison(
                winner=_winner(primary_profile.scalability, alternative_profile.scalability),
                difference=abs(primary_profile.scalability - alternative_profile.scalability),
            ),
            "performance": CriterionComparison(
                winner=_winner(primary_performance, alternative_performance),
                difference=abs(primary_performance - alternative_performance),
            ),
        }
        primary_wins = sum(1 for item in comparison.values() if item.winner == PRIMARY)
        alternative_wins = sum(1 for item in comparison.values() if item.winner == ALTERNATIVE)
        overall = TIE
        if primary_wins != alternative_wins:
            overall = PRIMARY if primary_wins > alternative_wins else ALTERNATIVE
        return ServiceAlternative(score=alternative, comparison=comparison, overall_winner=overall)
