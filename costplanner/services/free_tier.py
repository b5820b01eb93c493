"""
Free-tier savings calculator.
Prices the free allowance of each service against the same catalog rates the
cost engine used, so savings never exceed what was charged.
"""
import logging
from typing import Dict, List, Optional, Sequence

from costplanner.domain.cost_models import (
    CostResult,
    MeteredComponent,
    COVERAGE_FULL,
    COVERAGE_PARTIAL,
    COVERAGE_NONE,
)
from costplanner.domain.diagnostics import RegionNotFoundError
from costplanner.domain.free_tier_models import (
    FreeTierDimension,
    FreeTierResult,
    FreeTierUtilization,
    FreeTierReport,
)
from costplanner.pricing.catalog import PricingCatalog, Region, FreeTierLimit, ServiceDefinition


logger = logging.getLogger(__name__)

NO_SAVINGS = FreeTierResult(free_tier_savings=0.0, coverage=COVERAGE_NONE)


def utilization_status(ratio: float) -> str:
    """Classify how much of a free allowance is consumed."""
    if ratio > 1.0:
        return "exceeded"
    if ratio < 0.5:
        return "under-utilized"
    if ratio < 0.8:
        return "well-utilized"
    return "near-limit"


class FreeTierCalculator:
    """Computes free-tier savings for priced services."""

    def __init__(self, catalog: PricingCatalog):
        """
        Initialize free-tier calculator.

        Args:
            catalog: Pricing catalog holding free-tier limits
        """
        self.catalog = catalog

    def apply_savings(
        self,
        service_id: str,
        usage: Sequence[MeteredComponent],
        gross_cost: float,
        region: Region,
        enabled: bool,
        month: Optional[int] = None,
    ) -> FreeTierResult:
        """
        Compute the free-tier savings for one service.

        Args:
            service_id: Catalog service id
            usage: Metered components produced by the cost engine
            gross_cost: Service cost before free tier (region multiplier applied)
            region: Region the service runs in
            enabled: Whether the caller wants free tier applied
            month: Account age in months; limits with a duration expire after it

        Returns:
            FreeTierResult with savings capped at gross_cost
        """
        if not enabled or not region.free_tier_eligible:
            return NO_SAVINGS
        if not self.catalog.has_service(service_id):
            return NO_SAVINGS
        definition = self.catalog.lookup(service_id)
        policy = definition.free_tier
        if policy is None or not policy.active_in_month(month):
            return NO_SAVINGS

        metered = self._merge_components(usage)
        limited_components = {limit.component for limit in policy.limits}
        all_within = all(
            component.cost <= 0
            for name, component in metered.items()
            if name not in limited_components
        )

        dimensions = []
        for limit in policy.limits:
            component = metered.get(limit.component)
            dimension = self._dimension(definition, limit, component, region)
            if not dimension.within_limit:
                all_within = False
            dimensions.append(dimension)

        savings = min(gross_cost, sum(dimension.savings for dimension in dimensions))
        if all_within:
            coverage = COVERAGE_FULL
        elif savings > 0:
            coverage = COVERAGE_PARTIAL
        else:
            coverage = COVERAGE_NONE

        logger.debug(f"Free tier for {service_id}: savings={savings:.4f} coverage={coverage}")
        return FreeTierResult(free_tier_savings=savings, coverage=coverage, dimensions=dimensions)

    @staticmethod
    def _merge_components(usage: Sequence[MeteredComponent]) -> Dict[str, MeteredComponent]:
        # Keyed by pricing component, the name free-tier limits refer to
        merged: Dict[str, MeteredComponent] = {}
        for component in usage:
            existing = merged.get(component.pricing_component)
            if existing is None:
                merged[component.pricing_component] = component
            else:
                merged[component.pricing_component] = MeteredComponent(
                    name=existing.name,
                    pricing_component=existing.pricing_component,
                    quantity=existing.quantity + component.quantity,
                    unit=existing.unit,
                    cost=existing.cost + component.cost,
                    price_class=existing.price_class,
                )
        return merged

    @staticmethod
    def _dimension(
        definition: ServiceDefinition,
        limit: FreeTierLimit,
        component: Optional[MeteredComponent],
        region: Region,
    ) -> FreeTierDimension:
        if component is None or component.quantity <= 0:
            return FreeTierDimension(
                component=limit.component,
                used=0.0,
                limit=limit.quantity,
                free_quantity=0.0,
                savings=0.0,
                eligible=True,
                within_limit=True,
            )

        if not limit.covers_class(component.price_class):
            return FreeTierDimension(
                component=limit.component,
                used=component.quantity,
                limit=limit.quantity,
                free_quantity=0.0,
                savings=0.0,
                eligible=False,
                within_limit=component.cost <= 0,
            )

        if limit.is_flat:
            allotment = limit.allotment_usd * region.multiplier
            return FreeTierDimension(
                component=limit.component,
                used=component.quantity,
                limit=None,
                free_quantity=component.quantity if component.cost <= allotment else 0.0,
                savings=min(component.cost, allotment),
                eligible=True,
                within_limit=component.cost <= allotment,
            )

        free_quantity = min(component.quantity, limit.quantity)
        pricing = definition.component(component.pricing_component)
        free_value = pricing.price(free_quantity, component.price_class) * region.multiplier
        return FreeTierDimension(
            component=limit.component,
            used=component.quantity,
            limit=limit.quantity,
            free_quantity=free_quantity,
            savings=min(component.cost, free_value),
            eligible=True,
            within_limit=component.quantity <= limit.quantity,
        )

    def resolve_region(self, code: str) -> Region:
        try:
            return self.catalog.region(code)
        except RegionNotFoundError:
            return Region(code=code)

    def analyze(self, cost_result: CostResult, month: Optional[int] = None) -> FreeTierReport:
        """
        Report free-tier eligibility and utilization for a priced architecture.

        The report is computed as if free tier were enabled, so it also shows
        what a caller who disabled it is leaving unused.

        Args:
            cost_result: Result from CostEngine.calculate
            month: Account age in months

        Returns:
            FreeTierReport
        """
        region = self.resolve_region(cost_result.region)
        eligible: List[str] = []
        ineligible: List[str] = []
        utilization: List[FreeTierUtilization] = []
        suggestions: List[str] = []
        total_savings = 0.0

        for service_cost in cost_result.service_costs:
            if not service_cost.priced or not self.catalog.has_service(service_cost.service_id):
                continue
            definition = self.catalog.lookup(service_cost.service_id)
            if definition.free_tier is None:
                ineligible.append(service_cost.service_id)
                continue

            result = self.apply_savings(
                service_cost.service_id,
                service_cost.components,
                service_cost.monthly_cost,
                region,
                enabled=True,
                month=month,
            )
            total_savings += result.free_tier_savings
            if any(not dimension.eligible for dimension in result.dimensions) and result.free_tier_savings == 0:
                ineligible.append(service_cost.service_id)
            else:
                eligible.append(service_cost.service_id)

            for limit, dimension in zip(definition.free_tier.limits, result.dimensions):
                if not dimension.eligible:
                    suggestions.append(self._class_suggestion(service_cost.service_id, service_cost.components, limit))
                    continue
                ratio = dimension.utilization
                if ratio is None or dimension.used <= 0:
                    continue
                utilization.append(
                    FreeTierUtilization(
                        service_id=service_cost.service_id,
                        component=dimension.component,
                        used=dimension.used,
                        limit=dimension.limit,
                        percentage=ratio * 100,
                        status=utilization_status(ratio),
                    )
                )
                if ratio > 1.0:
                    suggestions.append(
                        f"{definition.name} {dimension.component} usage exceeds the free tier by "
                        f"{dimension.used - dimension.limit:,.0f}; the excess is billed at standard rates"
                    )

        if not eligible and not ineligible:
            suggestions.append("No services in this architecture offer a free tier")

        return FreeTierReport(
            total_savings=total_savings,
            eligible_services=eligible,
            ineligible_services=ineligible,
            utilization=utilization,
            suggestions=suggestions,
        )

    @staticmethod
    def _class_suggestion(service_id: str, components: Sequence[MeteredComponent], limit: FreeTierLimit) -> str:
        current = next(
            (component.price_class for component in components if component.name == limit.component),
            None,
        )
        target = limit.eligible_classes[-1] if limit.eligible_classes else None
        return (
            f"Switch {service_id} from {current} to {target} to qualify for the free tier"
        )
