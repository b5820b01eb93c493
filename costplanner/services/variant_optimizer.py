"""
Service variant optimizer.
Builds cost, performance, simplicity and scalability variants of an
architecture pattern, prices each one and ranks them by suitability.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    ComputeConfiguration,
    DatabaseConfiguration,
    NetworkingConfiguration,
)
from costplanner.domain.patterns import DEFAULT_OPTIONAL_SERVICES, select_services
from costplanner.domain.variant_models import (
    ArchitecturePattern,
    ArchitectureVariant,
    PatternCharacteristics,
    PreferenceWeights,
    Requirements,
    BASE,
    COST_OPTIMIZED,
    PERFORMANCE_OPTIMIZED,
    SIMPLICITY_OPTIMIZED,
    SCALABILITY_OPTIMIZED,
)
from costplanner.services.compatibility import ServiceCompatibilityValidator
from costplanner.services.cost_engine import CostEngine


logger = logging.getLogger(__name__)

PREFERENCE_MATCH_BONUS = 0.2
BUDGET_FIT_BONUS = 0.1
SCALABILITY_FIT_BONUS = 0.1
HIGH_TRAFFIC_LEVELS = ("high", "enterprise")

# Configuration changes applied per service id for each variant
COST_TUNING: Dict[str, Dict[str, Any]] = {
    "ec2": {"instance_type": "t3.micro", "auto_scaling": False},
    "rds": {"instance_type": "db.t3.micro", "multi_az": False},
    "lambda": {"memory_mb": 128},
    "dynamodb": {"billing_mode": "on-demand"},
    "elasticache": {"instance_type": "cache.t3.micro", "multi_az": False},
}

PERFORMANCE_TUNING: Dict[str, Dict[str, Any]] = {
    "ec2": {"instance_type": "t3.large", "auto_scaling": True, "multi_az": True},
    "rds": {"instance_type": "db.t3.small", "multi_az": True, "read_replicas": 1},
    "lambda": {"memory_mb": 1024, "provisioned_concurrency": 1},
    "ecs": {"vcpu": 1.0, "memory_gb": 2.0},
}

SIMPLICITY_TUNING: Dict[str, Dict[str, Any]] = {
    "ec2": {"fully_managed": True},
    "ecs": {"fully_managed": True},
    "rds": {"engine": "mysql", "fully_managed": True, "read_replicas": 0},
}

SCALABILITY_TUNING: Dict[str, Dict[str, Any]] = {
    "ec2": {"auto_scaling": True, "min_instances": 2, "max_instances": 10},
    "ecs": {"auto_scaling": True, "min_instances": 2, "max_instances": 10},
    "rds": {"read_replicas": 1},
    "dynamodb": {"auto_scaling": True},
}

LAMBDA_REPLACEMENT = ServiceUsage("lambda", "Serverless compute", ComputeConfiguration(memory_mb=512))

# (service replaced, condition on requirements, replacement)
COST_SUBSTITUTIONS: Tuple[Tuple[str, Callable[[Requirements], bool], ServiceUsage], ...] = (
    ("ec2", lambda requirements: requirements.app_type == "api", LAMBDA_REPLACEMENT),
    (
        "rds",
        lambda requirements: not requirements.complex_queries,
        ServiceUsage("dynamodb", "NoSQL database", DatabaseConfiguration(billing_mode="on-demand")),
    ),
    (
        "alb",
        lambda requirements: requirements.traffic == "low",
        ServiceUsage("api-gateway", "API management", NetworkingConfiguration()),
    ),
)

CACHE_SERVICE = ServiceUsage(
    "elasticache", "In-memory caching", DatabaseConfiguration(instance_type="cache.t3.micro"), required=False
)
CDN_SERVICE = ServiceUsage("cloudfront", "Content delivery network", NetworkingConfiguration(), required=False)
LOAD_BALANCER_SERVICE = ServiceUsage("alb", "Load balancing", NetworkingConfiguration())

VARIANT_PROFILES: Dict[str, Dict[str, Any]] = {
    BASE: {
        "suffix": "",
        "summary": "",
        "confidence": 0.9,
        "pros": [],
        "cons": [],
    },
    COST_OPTIMIZED: {
        "suffix": " (Cost Optimized)",
        "summary": "Optimized for minimal cost",
        "confidence": 0.85,
        "pros": ["Minimized monthly costs", "Pay-per-use pricing where possible", "Free tier eligible services"],
        "cons": ["May have performance limitations", "Potential cold start delays"],
    },
    PERFORMANCE_OPTIMIZED: {
        "suffix": " (Performance Optimized)",
        "summary": "Optimized for high performance",
        "confidence": 0.88,
        "pros": ["Optimized for low latency", "Caching and CDN layers", "Multi-AZ deployment"],
        "cons": ["Higher operational costs", "Over-provisioned for low traffic"],
    },
    SIMPLICITY_OPTIMIZED: {
        "suffix": " (Simplified)",
        "summary": "Optimized for ease of management",
        "confidence": 0.82,
        "pros": ["Minimal management overhead", "Fully managed services"],
        "cons": ["Less customization", "May be over-simplified for complex needs"],
    },
    SCALABILITY_OPTIMIZED: {
        "suffix": " (Scalability Optimized)",
        "summary": "Optimized for high scalability",
        "confidence": 0.87,
        "pros": ["Handles traffic spikes automatically", "Horizontal scaling"],
        "cons": ["Higher baseline costs", "Over-engineered for stable traffic"],
    },
}

# Preference that each focused variant answers; earns the preference-match bonus
PREFERENCE_GATES: Dict[str, Callable[[PreferenceWeights], bool]] = {
    COST_OPTIMIZED: lambda preferences: preferences.cost_priority >= 4,
    PERFORMANCE_OPTIMIZED: lambda preferences: preferences.performance_priority >= 4,
    SIMPLICITY_OPTIMIZED: lambda preferences: preferences.complexity_tolerance <= 2,
    SCALABILITY_OPTIMIZED: lambda preferences: preferences.scalability_need >= 4,
}

# Generated for comparison whatever the preferences
ALWAYS_GENERATED = frozenset({SCALABILITY_OPTIMIZED})


def _tune(architecture: Architecture, tuning: Dict[str, Dict[str, Any]]) -> Architecture:
    def _apply(usage: ServiceUsage) -> ServiceUsage:
        changes = tuning.get(usage.service_id)
        if not changes or usage.configuration is None:
            return usage
        return usage.with_configuration(**changes)

    return architecture.map_services(_apply)


def _with_missing(architecture: Architecture, *services: ServiceUsage) -> Architecture:
    for usage in services:
        if not architecture.has_service(usage.service_id):
            architecture = architecture.with_service(usage)
    return architecture


class ServiceVariantOptimizer:
    """Generates and ranks optimized variants of an architecture pattern."""

    def __init__(self, cost_engine: CostEngine, validator: Optional[ServiceCompatibilityValidator] = None):
        """
        Initialize variant optimizer.

        Args:
            cost_engine: Engine used to price every variant
            validator: Compatibility validator (creates one over the engine if None)
        """
        self.cost_engine = cost_engine
        self.validator = validator or ServiceCompatibilityValidator(cost_engine)

    def optimize(
        self,
        base_pattern: ArchitecturePattern,
        requirements: Requirements,
        preferences: Optional[PreferenceWeights] = None,
    ) -> List[ArchitectureVariant]:
        """
        Build, price and rank variants of a pattern.

        The base variant is always present. Focused variants are generated when
        the matching preference is strong, plus a scalability variant for
        comparison. A variant with the same services and monthly cost as the
        base is dropped.

        Args:
            base_pattern: Pattern to start from
            requirements: Application requirements
            preferences: User preference weights (neutral if None)

        Returns:
            Variants sorted by suitability score, best first, with rank set
        """
        preferences = preferences or PreferenceWeights()
        base_architecture = select_services(base_pattern, requirements)
        base = self._variant(
            base_pattern, BASE, base_architecture, base_pattern.characteristics, requirements, preferences
        )
        variants = [base]

        builders = (
            (COST_OPTIMIZED, self._cost_optimized),
            (PERFORMANCE_OPTIMIZED, self._performance_optimized),
            (SIMPLICITY_OPTIMIZED, self._simplicity_optimized),
            (SCALABILITY_OPTIMIZED, self._scalability_optimized),
        )
        for focus, builder in builders:
            gate = PREFERENCE_GATES.get(focus)
            if focus not in ALWAYS_GENERATED and gate is not None and not gate(preferences):
                continue
            architecture, characteristics = builder(base_architecture, base_pattern.characteristics, requirements)
            variant = self._variant(base_pattern, focus, architecture, characteristics, requirements, preferences)
            if self._same_as(variant, base):
                logger.debug(f"Dropping {variant.id}: identical to base")
                continue
            variant.savings = base.cost.net_monthly_cost - variant.cost.net_monthly_cost
            variants.append(variant)

        for variant in variants:
            variant.suitability_score = self.suitability(variant, requirements, preferences)
        ranked = sorted(variants, key=lambda variant: (-variant.suitability_score, variant.id))
        for position, variant in enumerate(ranked, start=1):
            variant.rank = position

        logger.info(f"Generated {len(ranked)} variants for pattern {base_pattern.id}")
        return ranked

    def _variant(
        self,
        pattern: ArchitecturePattern,
        focus: str,
        architecture: Architecture,
        characteristics: PatternCharacteristics,
        requirements: Requirements,
        preferences: PreferenceWeights,
    ) -> ArchitectureVariant:
        usage = requirements.usage_profile()
        if focus != BASE:
            architecture = self.validator.auto_resolve(
                architecture, preferences, usage, requirements.region, requirements.free_tier_enabled
            )
        profile = VARIANT_PROFILES[focus]
        cost = self.cost_engine.calculate(
            architecture, usage, requirements.region, requirements.free_tier_enabled
        )
        return ArchitectureVariant(
            id=f"{pattern.id}-{focus}",
            name=f"{pattern.name}{profile['suffix']}",
            description=f"{pattern.description} - {profile['summary']}" if profile["summary"] else pattern.description,
            variant=focus,
            pattern_id=pattern.id,
            architecture=architecture,
            characteristics=characteristics,
            cost=cost,
            confidence=profile["confidence"],
            pros=profile["pros"] + list(pattern.pros),
            cons=profile["cons"] + list(pattern.cons),
            validation=self.validator.validate(architecture),
        )

    @staticmethod
    def _same_as(variant: ArchitectureVariant, base: ArchitectureVariant) -> bool:
        return (
            variant.architecture.service_ids() == base.architecture.service_ids()
            and round(variant.cost.total_monthly_cost, 2) == round(base.cost.total_monthly_cost, 2)
        )

    @staticmethod
    def _cost_optimized(architecture, characteristics, requirements):
        architecture = _tune(architecture, COST_TUNING)
        for service_id, applies, replacement in COST_SUBSTITUTIONS:
            if architecture.has_service(service_id) and applies(requirements):
                architecture = architecture.replace_service(service_id, replacement)
        return architecture, characteristics.adjusted(cost=-2, complexity=1)

    @staticmethod
    def _performance_optimized(architecture, characteristics, requirements):
        architecture = _with_missing(_tune(architecture, PERFORMANCE_TUNING), CACHE_SERVICE, CDN_SERVICE)
        return architecture, characteristics.adjusted(scalability=1, availability=1, cost=1)

    def _simplicity_optimized(self, architecture, characteristics, requirements):
        if requirements.app_type == "api":
            for service_id in ("ec2", "ecs"):
                if architecture.has_service(service_id):
                    architecture = architecture.replace_service(service_id, LAMBDA_REPLACEMENT)
        architecture = _tune(architecture, SIMPLICITY_TUNING)
        for usage in architecture.services:
            if (
                not usage.required
                and usage.service_id in DEFAULT_OPTIONAL_SERVICES
                and not self.validator.is_required_companion(usage.service_id, architecture)
            ):
                architecture = architecture.without_service(usage.service_id)
        return architecture, characteristics.adjusted(complexity=-2, cost=1, scalability=-1)

    @staticmethod
    def _scalability_optimized(architecture, characteristics, requirements):
        architecture = _tune(architecture, SCALABILITY_TUNING)
        if architecture.has_service("ec2") or architecture.has_service("ecs"):
            architecture = _with_missing(architecture, LOAD_BALANCER_SERVICE)
        characteristics = characteristics.adjusted(scalability=5, availability=1, complexity=1, cost=1)
        return architecture, characteristics

    @staticmethod
    def suitability(
        variant: ArchitectureVariant,
        requirements: Requirements,
        preferences: PreferenceWeights,
    ) -> float:
        """
        Score a variant between 0 and 1.

        Starts from the variant's confidence and adds bonuses when it matches a
        strong preference, fits the budget, or scales for high traffic.
        """
        score = variant.confidence
        gate = PREFERENCE_GATES.get(variant.variant)
        if gate is not None and gate(preferences):
            score += PREFERENCE_MATCH_BONUS
        if requirements.budget is not None and variant.cost.net_monthly_cost <= requirements.budget:
            score += BUDGET_FIT_BONUS
        if requirements.traffic in HIGH_TRAFFIC_LEVELS and variant.characteristics.scalability >= 4:
            score += SCALABILITY_FIT_BONUS
        return max(0.0, min(1.0, score))
