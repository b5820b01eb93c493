"""
Optimization advisor.
Applies a rule catalog to a priced architecture and returns ranked savings recommendations.
"""
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from costplanner.domain.architecture_models import Architecture, ServiceUsage
from costplanner.domain.cost_models import CostResult, ServiceCost
from costplanner.domain.recommendation_models import (
    Recommendation,
    CommitmentOption,
    UsagePatternFlags,
    rank_recommendations,
    RIGHTSIZING,
    RESERVED_INSTANCE,
    SPOT_INSTANCE,
    STORAGE_LIFECYCLE,
    CDN_INTRODUCTION,
    FREE_TIER_ENABLEMENT,
    SERVERLESS_MIGRATION,
    REGION_RELOCATION,
)
from costplanner.pricing.catalog import PricingCatalog
from costplanner.services.free_tier import FreeTierCalculator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitmentTerm:
    """A purchasable reserved-capacity term."""
    term_years: int
    payment_option: str
    discount: float
    upfront_months: float  # Upfront payment expressed in months of current cost


# Approximate discounts off on-demand; calibrate per instance family when real quotes exist
EC2_RESERVED_TERMS: Tuple[CommitmentTerm, ...] = (
    CommitmentTerm(1, "no-upfront", 0.31, 0),
    CommitmentTerm(1, "partial-upfront", 0.35, 6),
    CommitmentTerm(1, "all-upfront", 0.40, 12 * 0.6),
    CommitmentTerm(3, "no-upfront", 0.49, 0),
    CommitmentTerm(3, "partial-upfront", 0.56, 18),
    CommitmentTerm(3, "all-upfront", 0.62, 36 * 0.38),
)

DATABASE_RESERVED_TERMS: Tuple[CommitmentTerm, ...] = (
    CommitmentTerm(1, "no-upfront", 0.28, 0),
    CommitmentTerm(3, "partial-upfront", 0.45, 18),
)

# Reserved capacity is offered above these monthly costs
RESERVED_COST_FLOORS: Dict[str, float] = {"ec2": 50.0, "rds": 30.0, "elasticache": 30.0}

# Rightsizing is considered above these monthly costs per category
RIGHTSIZING_THRESHOLDS: Dict[str, float] = {"compute": 50.0, "database": 30.0}

SPOT_DISCOUNT = 0.70
SPOT_COST_FLOOR = 10.0
SPOT_SERVICES = frozenset({"ec2", "ecs"})
CRITICAL_CATEGORIES = frozenset({"database"})

ALWAYS_ON_COMPUTE = frozenset({"ec2", "ecs"})
RIGHTSIZING_FALLBACK_SAVINGS = 0.30
LIFECYCLE_STORAGE_GB = 100.0
LIFECYCLE_SAVINGS = 0.25
CDN_TRANSFER_THRESHOLD = 10.0
CDN_SAVINGS = 0.40
SERVERLESS_PAGE_VIEW_LIMIT = 100000
SERVERLESS_SAVINGS = 0.70


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "default"


def _impact(savings: float, total: float) -> str:
    if total <= 0:
        return "low"
    share = savings / total
    if share >= 0.2:
        return "high"
    if share >= 0.05:
        return "medium"
    return "low"


def reserved_suitability(flags: UsagePatternFlags, term: CommitmentTerm) -> str:
    """Score how well a reserved term fits the declared workload."""
    score = 0
    if flags.consistent:
        score += 30
    if flags.predictable:
        score += 25
    if term.term_years == 3:
        score += 20 if flags.long_term else -10
    if term.upfront_months > 0:
        score += 15 if flags.has_capital else -20
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def spot_suitability(flags: UsagePatternFlags) -> str:
    """Score how well interruptible capacity fits the declared workload."""
    score = 0
    if flags.fault_tolerant:
        score += 40
    if flags.batch_processing:
        score += 30
    if flags.flexible:
        score += 20
    if flags.stateless:
        score += 10
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


class OptimizationAdvisor:
    """Generates ranked cost-saving recommendations for a priced architecture."""

    def __init__(
        self,
        catalog: PricingCatalog,
        free_tier_calculator: Optional[FreeTierCalculator] = None,
        ec2_reserved_terms: Sequence[CommitmentTerm] = EC2_RESERVED_TERMS,
        database_reserved_terms: Sequence[CommitmentTerm] = DATABASE_RESERVED_TERMS,
    ):
        """
        Initialize optimization advisor.

        Args:
            catalog: Pricing catalog
            free_tier_calculator: Used to price the free-tier enablement rule
            ec2_reserved_terms: Reserved instance terms offered for EC2
            database_reserved_terms: Reserved terms offered for RDS and ElastiCache
        """
        self.catalog = catalog
        self.free_tier = free_tier_calculator or FreeTierCalculator(catalog)
        self.reserved_terms: Dict[str, Sequence[CommitmentTerm]] = {
            "ec2": tuple(ec2_reserved_terms),
            "rds": tuple(database_reserved_terms),
            "elasticache": tuple(database_reserved_terms),
        }

    def generate(
        self,
        architecture: Architecture,
        cost_result: CostResult,
        usage_pattern_flags: Optional[UsagePatternFlags] = None,
    ) -> List[Recommendation]:
        """
        Generate ranked recommendations.

        Args:
            architecture: The priced architecture
            cost_result: Result of CostEngine.calculate for the architecture
            usage_pattern_flags: Declared workload traits

        Returns:
            New list of recommendations sorted by savings, then risk, then effort
        """
        flags = usage_pattern_flags or UsagePatternFlags()
        recommendations: List[Recommendation] = []

        for entry in architecture.services:
            service_cost = cost_result.service(entry.service_id, entry.purpose)
            if service_cost is None or not service_cost.priced:
                continue
            recommendations.extend(self._rightsizing(entry, service_cost, cost_result))
            recommendations.extend(self._capacity(entry, service_cost, flags, cost_result))
            recommendations.extend(self._storage_lifecycle(entry, service_cost, cost_result))

        recommendations.extend(self._cdn(architecture, cost_result))
        recommendations.extend(self._free_tier(cost_result))
        recommendations.extend(self._serverless_migration(architecture, cost_result))
        recommendations.extend(self._region(cost_result))

        ranked = rank_recommendations(recommendations)
        logger.info(
            f"Generated {len(ranked)} recommendations "
            f"(${sum(r.potential_savings for r in ranked if r.standalone):.2f}/month from standalone actions)"
        )
        return ranked

    def _rightsizing(self, entry: ServiceUsage, service_cost: ServiceCost, cost_result: CostResult) -> List[Recommendation]:
        threshold = RIGHTSIZING_THRESHOLDS.get(service_cost.category)
        if threshold is None or service_cost.net_monthly_cost <= threshold:
            return []
        compute = next((c for c in service_cost.components if c.name == "compute" and c.price_class), None)
        if compute is None or "large" not in compute.price_class.split(".")[-1]:
            return []

        target, ratio = self._smaller_class(entry.service_id, compute.price_class)
        if target is not None:
            savings = compute.cost * (1 - ratio)
            detail = f"Move from {compute.price_class} to {target}"
        else:
            savings = compute.cost * RIGHTSIZING_FALLBACK_SAVINGS
            detail = f"Review utilization of {compute.price_class} and move to a smaller class"

        return [Recommendation(
            id=f"{RIGHTSIZING}-{entry.service_id}-{_slug(entry.purpose)}",
            type=RIGHTSIZING,
            title=f"Right-size {service_cost.name}",
            description=f"{detail}; {compute.price_class} is often over-provisioned for this workload.",
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="low",
            risk_level="low",
            potential_savings=savings,
            preconditions=[
                "CPU and memory utilization below 40% over the last two weeks",
                "Performance testing on the smaller class",
            ],
            steps=[
                "Collect utilization metrics from CloudWatch",
                f"Resize to {target or 'a smaller class'} during a maintenance window",
                "Monitor latency after the change",
            ],
            service_id=entry.service_id,
            purpose=entry.purpose,
        )]

    def _smaller_class(self, service_id: str, price_class: str) -> Tuple[Optional[str], float]:
        """Find the largest cheaper class in the same family and its price ratio."""
        pricing = self.catalog.lookup(service_id).components.get("compute")
        if pricing is None or price_class not in pricing.rates:
            return None, 1.0
        family = price_class.rsplit(".", 1)[0]
        current = pricing.rates[price_class]
        cheaper = [
            (rate, name) for name, rate in pricing.rates.items()
            if name.rsplit(".", 1)[0] == family and rate < current
        ]
        if not cheaper:
            return None, 1.0
        rate, name = max(cheaper)
        return name, rate / current

    def _capacity(
        self,
        entry: ServiceUsage,
        service_cost: ServiceCost,
        flags: UsagePatternFlags,
        cost_result: CostResult,
    ) -> List[Recommendation]:
        billable = service_cost.net_monthly_cost
        options: List[Recommendation] = []

        floor = RESERVED_COST_FLOORS.get(entry.service_id)
        if floor is not None and billable >= floor:
            for term in self.reserved_terms[entry.service_id]:
                options.append(self._reserved(entry, service_cost, term, flags, cost_result))

        if entry.service_id in SPOT_SERVICES and billable >= SPOT_COST_FLOOR:
            allowed = flags.fault_tolerant
            if allowed is None:
                allowed = service_cost.category not in CRITICAL_CATEGORIES
            if allowed:
                options.append(self._spot(entry, service_cost, flags, cost_result))

        # Every capacity option for one resource replaces the others
        if len(options) > 1:
            group = f"capacity:{entry.service_id}:{entry.purpose}"
            ids = [option.id for option in options]
            for option in options:
                option.alternative_group = group
                option.alternatives = [other for other in ids if other != option.id]
        return options

    def _reserved(
        self,
        entry: ServiceUsage,
        service_cost: ServiceCost,
        term: CommitmentTerm,
        flags: UsagePatternFlags,
        cost_result: CostResult,
    ) -> Recommendation:
        billable = service_cost.net_monthly_cost
        monthly_savings = billable * term.discount
        commitment = CommitmentOption(
            term_years=term.term_years,
            payment_option=term.payment_option,
            discount=term.discount,
            upfront_cost=billable * term.upfront_months,
            monthly_savings=monthly_savings,
            term_savings=monthly_savings * 12 * term.term_years,
            suitability=reserved_suitability(flags, term),
        )
        return Recommendation(
            id=f"{RESERVED_INSTANCE}-{entry.service_id}-{_slug(entry.purpose)}-{term.term_years}yr-{term.payment_option}",
            type=RESERVED_INSTANCE,
            title=f"{term.term_years}-year {term.payment_option.replace('-', ' ')} reservation for {service_cost.name}",
            description=(
                f"Commit to {term.term_years} year(s) of capacity for a {term.discount:.0%} discount "
                f"off on-demand pricing."
            ),
            impact=_impact(monthly_savings, cost_result.total_monthly_cost),
            effort="low",
            risk_level="low" if term.term_years == 1 else "medium",
            potential_savings=monthly_savings,
            preconditions=[
                "Workload runs steadily for the whole term",
                "Instance family and region will not change during the term",
            ],
            steps=[
                "Confirm steady-state usage over the last 30 days",
                "Purchase the reservation in the billing console",
                "Track reservation utilization monthly",
            ],
            service_id=entry.service_id,
            purpose=entry.purpose,
            commitment=commitment,
        )

    def _spot(
        self,
        entry: ServiceUsage,
        service_cost: ServiceCost,
        flags: UsagePatternFlags,
        cost_result: CostResult,
    ) -> Recommendation:
        monthly_savings = service_cost.net_monthly_cost * SPOT_DISCOUNT
        commitment = CommitmentOption(
            term_years=0,
            payment_option="none",
            discount=SPOT_DISCOUNT,
            upfront_cost=0.0,
            monthly_savings=monthly_savings,
            term_savings=monthly_savings * 12,
            suitability=spot_suitability(flags),
        )
        return Recommendation(
            id=f"{SPOT_INSTANCE}-{entry.service_id}-{_slug(entry.purpose)}",
            type=SPOT_INSTANCE,
            title=f"Run {service_cost.name} on spot capacity",
            description="Interruptible capacity at up to a 70% discount for workloads that tolerate reclamation.",
            impact=_impact(monthly_savings, cost_result.total_monthly_cost),
            effort="medium",
            risk_level="high",
            potential_savings=monthly_savings,
            preconditions=[
                "Fault-tolerant application design",
                "State stored outside the instance",
                "Handling for two-minute interruption notices",
            ],
            steps=[
                "Move the workload behind an auto scaling group with mixed capacity",
                "Diversify across instance types and availability zones",
                "Test interruption handling",
            ],
            service_id=entry.service_id,
            purpose=entry.purpose,
            commitment=commitment,
        )

    def _storage_lifecycle(self, entry: ServiceUsage, service_cost: ServiceCost, cost_result: CostResult) -> List[Recommendation]:
        if entry.service_id != "s3":
            return []
        configuration = entry.configuration
        if configuration is not None and (configuration.lifecycle_policy or configuration.storage_class != "standard"):
            return []
        storage = next((c for c in service_cost.components if c.name == "storage"), None)
        if storage is None or storage.quantity <= LIFECYCLE_STORAGE_GB:
            return []

        savings = storage.cost * LIFECYCLE_SAVINGS
        return [Recommendation(
            id=f"{STORAGE_LIFECYCLE}-{entry.service_id}-{_slug(entry.purpose)}",
            type=STORAGE_LIFECYCLE,
            title="Add S3 lifecycle policies",
            description=(
                f"Transition objects in {storage.quantity:,.0f} GB of standard storage to "
                f"Infrequent Access and Glacier as they age."
            ),
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="low",
            risk_level="low",
            potential_savings=savings,
            preconditions=["Access patterns show objects cool down after 30 days"],
            steps=[
                "Enable S3 Storage Class Analysis",
                "Transition to Infrequent Access after 30 days",
                "Archive to Glacier after 90 days",
            ],
            service_id=entry.service_id,
            purpose=entry.purpose,
        )]

    def _cdn(self, architecture: Architecture, cost_result: CostResult) -> List[Recommendation]:
        if architecture.has_service("cloudfront"):
            return []
        transfer_cost = sum(
            component.cost
            for service_cost in cost_result.service_costs
            for component in service_cost.components
            if component.name == "data_transfer"
        )
        if transfer_cost <= CDN_TRANSFER_THRESHOLD:
            return []

        savings = transfer_cost * CDN_SAVINGS
        return [Recommendation(
            id=f"{CDN_INTRODUCTION}-cloudfront",
            type=CDN_INTRODUCTION,
            title="Serve content through CloudFront",
            description="Cache static and cacheable responses at the edge to cut origin data transfer.",
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="medium",
            risk_level="low",
            potential_savings=savings,
            preconditions=["A meaningful share of responses is cacheable"],
            steps=[
                "Create a CloudFront distribution in front of the origin",
                "Configure cache behaviors and TTLs",
                "Point DNS at the distribution",
            ],
            service_id="cloudfront",
        )]

    def _free_tier(self, cost_result: CostResult) -> List[Recommendation]:
        if cost_result.free_tier_enabled:
            return []
        region = self.free_tier.resolve_region(cost_result.region)
        savings = sum(
            self.free_tier.apply_savings(
                service_cost.service_id,
                service_cost.components,
                service_cost.monthly_cost,
                region,
                enabled=True,
            ).free_tier_savings
            for service_cost in cost_result.service_costs
            if service_cost.priced
        )
        if savings <= 0:
            return []

        return [Recommendation(
            id=f"{FREE_TIER_ENABLEMENT}-account",
            type=FREE_TIER_ENABLEMENT,
            title="Use the AWS free tier",
            description="Part of this usage fits within free-tier allowances that are not being applied.",
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="low",
            risk_level="low",
            potential_savings=savings,
            preconditions=["Account is within its first 12 months for time-limited offers"],
            steps=[
                "Confirm free-tier eligibility in the billing console",
                "Choose free-tier eligible instance classes",
                "Set a budget alert for free-tier usage",
            ],
        )]

    def _serverless_migration(self, architecture: Architecture, cost_result: CostResult) -> List[Recommendation]:
        if architecture.has_service("lambda"):
            return []
        if cost_result.usage.page_views >= SERVERLESS_PAGE_VIEW_LIMIT:
            return []
        always_on = [
            service_cost for service_cost in cost_result.service_costs
            if service_cost.service_id in ALWAYS_ON_COMPUTE and service_cost.priced
        ]
        billable = sum(service_cost.net_monthly_cost for service_cost in always_on)
        if billable <= 0:
            return []

        savings = billable * SERVERLESS_SAVINGS
        return [Recommendation(
            id=f"{SERVERLESS_MIGRATION}-lambda",
            type=SERVERLESS_MIGRATION,
            title="Move always-on compute to Lambda",
            description=(
                f"Traffic of {cost_result.usage.page_views:,.0f} page views/month leaves always-on "
                f"compute idle most of the time; pay-per-request compute fits better."
            ),
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="high",
            risk_level="medium",
            potential_savings=savings,
            preconditions=[
                "Requests complete within Lambda's 15-minute limit",
                "Application is stateless or keeps state in managed storage",
            ],
            steps=[
                "Split request handlers into functions",
                "Front the functions with API Gateway",
                "Shift traffic gradually and retire the instances",
            ],
            service_id="lambda",
        )]

    def _region(self, cost_result: CostResult) -> List[Recommendation]:
        cheapest = min(
            (region for region in self.catalog.regions() if region.free_tier_eligible),
            key=lambda region: (region.multiplier, region.code),
            default=None,
        )
        if cheapest is None or cost_result.region_multiplier <= cheapest.multiplier:
            return []
        savings = cost_result.net_monthly_cost * (1 - cheapest.multiplier / cost_result.region_multiplier)
        if savings <= 0:
            return []

        return [Recommendation(
            id=f"{REGION_RELOCATION}-{cheapest.code}",
            type=REGION_RELOCATION,
            title=f"Consider {cheapest.name}",
            description=(
                f"{cost_result.region} is priced {cost_result.region_multiplier:g}x base rates; "
                f"{cheapest.code} is priced {cheapest.multiplier:g}x."
            ),
            impact=_impact(savings, cost_result.total_monthly_cost),
            effort="high",
            risk_level="medium",
            potential_savings=savings,
            preconditions=[
                "No data residency requirement ties the workload to the current region",
                "Added latency for current users is acceptable",
            ],
            steps=[
                "Replicate data to the new region",
                "Deploy the stack and run it in parallel",
                "Cut DNS over and decommission the old region",
            ],
        )]
