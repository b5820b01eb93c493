"""
Service compatibility validation.
Flags overlapping services and missing companions, and resolves overlaps
according to user preferences.
"""
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from costplanner.domain.architecture_models import Architecture, UsageProfile
from costplanner.domain.diagnostics import ConfigurationConflictError
from costplanner.domain.variant_models import (
    PreferenceWeights,
    ValidationIssue,
    ValidationReport,
)


logger = logging.getLogger(__name__)

# Pairs that serve the same purpose; an architecture should use one of them
INCOMPATIBLE_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("lambda", "ec2"),
    ("rds", "dynamodb"),
    ("alb", "api-gateway"),
)

REQUIRED_COMPANIONS: Dict[str, Tuple[str, ...]] = {
    "ec2": ("alb", "cloudwatch"),
    "rds": ("cloudwatch",),
    "lambda": ("api-gateway", "cloudwatch"),
}

RESOLUTION_HINTS: Dict[FrozenSet[str], str] = {
    frozenset({"lambda", "ec2"}): "Use Lambda for APIs and event processing, EC2 for long-running applications",
    frozenset({"rds", "dynamodb"}): "Use RDS for relational data, DynamoDB for key-value and document data",
    frozenset({"alb", "api-gateway"}): "Use ALB for EC2/ECS, API Gateway for Lambda functions",
}

# Relative effort to operate a service; lower is simpler
OPERATIONAL_COMPLEXITY: Dict[str, int] = {
    "s3": 1,
    "cloudfront": 1,
    "route53": 1,
    "cognito": 1,
    "cloudwatch": 1,
    "lambda": 1,
    "api-gateway": 1,
    "dynamodb": 1,
    "ecs": 2,
    "alb": 2,
    "rds": 2,
    "elasticache": 2,
    "ec2": 3,
}


class ServiceCompatibilityValidator:
    """Checks service combinations; problems are reported, never raised."""

    def __init__(self, cost_engine=None):
        """
        Initialize compatibility validator.

        Args:
            cost_engine: CostEngine used to compare services when resolving by cost
        """
        self.cost_engine = cost_engine

    def validate(self, architecture: Architecture) -> ValidationReport:
        """
        Validate an architecture's service combination.

        Args:
            architecture: Architecture to check

        Returns:
            ValidationReport; overlaps are warnings, missing companions are errors
        """
        issues: List[ValidationIssue] = []

        for first, second in INCOMPATIBLE_PAIRS:
            if architecture.has_service(first) and architecture.has_service(second):
                message = f"{first} and {second} serve similar purposes. Consider using only one."
                issues.append(ValidationIssue(
                    type="conflict",
                    severity="warning",
                    message=message,
                    services=(first, second),
                    suggestion=RESOLUTION_HINTS[frozenset({first, second})],
                    diagnostic=ConfigurationConflictError(message, service_id=first).to_diagnostic(),
                ))

        for service_id, companions in REQUIRED_COMPANIONS.items():
            if not architecture.has_service(service_id):
                continue
            for companion in companions:
                if architecture.has_service(companion):
                    continue
                message = f"{service_id} requires {companion} for proper operation."
                issues.append(ValidationIssue(
                    type="missing",
                    severity="error",
                    message=message,
                    services=(service_id,),
                    suggestion=f"Add {companion} to the architecture",
                    diagnostic=ConfigurationConflictError(message, service_id=service_id).to_diagnostic(),
                ))

        return ValidationReport(issues=issues)

    def is_required_companion(self, service_id: str, architecture: Architecture) -> bool:
        """True when another service in the architecture depends on this one."""
        return any(
            service_id in companions and architecture.has_service(owner)
            for owner, companions in REQUIRED_COMPANIONS.items()
        )

    def auto_resolve(
        self,
        architecture: Architecture,
        preferences: PreferenceWeights,
        usage: Optional[UsageProfile] = None,
        region: Optional[str] = None,
        free_tier_enabled: bool = True,
    ) -> Architecture:
        """
        Drop one service of each overlapping pair when preferences force a choice.

        A high cost priority (4+) keeps the cheaper service; otherwise a low
        complexity tolerance (2 or less) keeps the simpler one. With neither,
        the architecture is returned unchanged.

        Args:
            architecture: Architecture to resolve
            preferences: User preference weights
            usage: Usage profile used to price services when resolving by cost
            region: Region used to price services when resolving by cost
            free_tier_enabled: Whether free tier applies when pricing

        Returns:
            Resolved Architecture

        Raises:
            ValueError: If resolution by cost is needed but no cost engine was given
        """
        by_cost = preferences.cost_priority >= 4
        by_complexity = preferences.complexity_tolerance <= 2
        if not by_cost and not by_complexity:
            return architecture

        resolved = architecture
        for first, second in INCOMPATIBLE_PAIRS:
            if not (resolved.has_service(first) and resolved.has_service(second)):
                continue
            if by_cost:
                drop = self._costlier(resolved, first, second, usage or UsageProfile(), region, free_tier_enabled)
            else:
                drop = second if OPERATIONAL_COMPLEXITY.get(second, 3) >= OPERATIONAL_COMPLEXITY.get(first, 3) else first
            logger.info(f"Resolved {first}/{second} overlap by removing {drop}")
            resolved = resolved.without_service(drop)
        return resolved

    def _costlier(
        self,
        architecture: Architecture,
        first: str,
        second: str,
        usage: UsageProfile,
        region: Optional[str],
        free_tier_enabled: bool,
    ) -> str:
        if self.cost_engine is None:
            raise ValueError("Resolving by cost requires a cost engine")

        def _cost(service_id: str) -> float:
            entries = tuple(entry for entry in architecture.services if entry.service_id == service_id)
            result = self.cost_engine.calculate(
                Architecture(services=entries), usage, region, free_tier_enabled
            )
            return result.net_monthly_cost

        first_cost, second_cost = _cost(first), _cost(second)
        if first_cost == second_cost:
            return second if OPERATIONAL_COMPLEXITY.get(second, 3) >= OPERATIONAL_COMPLEXITY.get(first, 3) else first
        return first if first_cost > second_cost else second
