"""
Cost engine.
Prices an architecture against the pricing catalog for a usage profile and region.
"""
import logging
import math
from typing import Dict, List, Optional, Any, Tuple, Iterable

from costplanner.core.config import config
from costplanner.domain.architecture_models import Architecture, ServiceUsage, UsageProfile, TRAFFIC_PROFILES
from costplanner.domain.cost_models import (
    CostResult,
    ServiceCost,
    MeteredComponent,
    RegionCostComparison,
    DataTransferCost,
    COVERAGE_NONE,
)
from costplanner.domain.diagnostics import (
    Diagnostic,
    EstimationIssue,
    UnknownServiceError,
    RegionNotFoundError,
    InvalidConfigurationError,
)
from costplanner.pricing.catalog import PricingCatalog, Region, CATEGORIES
from costplanner.services.calculators import ServiceCalculator, build_calculator_registry
from costplanner.services.free_tier import FreeTierCalculator


logger = logging.getLogger(__name__)

TRANSFER_DESCRIPTIONS: Dict[str, str] = {
    "same_region": "Data transfer within the same AWS region",
    "cross_region": "Data transfer between AWS regions",
    "internet": "Data transfer from AWS to the internet",
    "cloudfront": "Data transfer from AWS to CloudFront",
}


class CostEngine:
    """
    Deterministic cost calculator for architectures.

    Holds only read-only collaborators, so one instance can serve concurrent callers.
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        free_tier_calculator: Optional[FreeTierCalculator] = None,
        calculators: Optional[Dict[str, ServiceCalculator]] = None,
    ):
        """
        Initialize cost engine.

        Args:
            catalog: Pricing catalog
            free_tier_calculator: Free-tier calculator (creates one over the catalog if None)
            calculators: Service id to calculator registry (default registry if None)
        """
        self.catalog = catalog
        self.free_tier = free_tier_calculator or FreeTierCalculator(catalog)
        self.calculators = calculators if calculators is not None else build_calculator_registry()

    def resolve_region(self, region_code: str) -> Tuple[Region, Optional[Diagnostic]]:
        """
        Resolve a region code, falling back to a neutral region when unknown.

        Args:
            region_code: AWS region code

        Returns:
            Tuple of (region, diagnostic or None)
        """
        try:
            return self.catalog.region(region_code), None
        except RegionNotFoundError as issue:
            logger.warning(f"{issue.message}; using multiplier 1.0")
            return Region(code=region_code, name=region_code), issue.to_diagnostic()

    def calculate(
        self,
        architecture: Architecture,
        usage: UsageProfile,
        region: Optional[str] = None,
        free_tier_enabled: bool = True,
        month: Optional[int] = None,
    ) -> CostResult:
        """
        Price every service of an architecture for one month.

        A failure on one service degrades that service to zero cost with a
        diagnostic; the rest of the architecture is still priced.

        Args:
            architecture: Services to price
            usage: Monthly usage profile
            region: AWS region code (default from config)
            free_tier_enabled: Whether to apply free-tier savings
            month: Account age in months, used to expire time-limited free tiers

        Returns:
            CostResult
        """
        region_code = region or config.DEFAULT_REGION
        clean_usage, diagnostics = usage.sanitized()
        for diagnostic in diagnostics:
            logger.warning(diagnostic.message)

        resolved_region, region_diagnostic = self.resolve_region(region_code)
        if region_diagnostic is not None:
            diagnostics.append(region_diagnostic)

        service_costs: List[ServiceCost] = []
        for entry in architecture.services:
            try:
                service_cost = self._price_service(entry, clean_usage, resolved_region, free_tier_enabled, month)
            except EstimationIssue as issue:
                if issue.service_id is None:
                    issue.service_id = entry.service_id
                if issue.purpose is None:
                    issue.purpose = entry.purpose
                logger.warning(f"Could not price {entry.service_id} ({entry.purpose}): {issue.message}")
                diagnostics.append(issue.to_diagnostic())
                service_cost = self._unpriced(entry, issue.message)
            service_costs.append(service_cost)

        total_monthly_cost = sum(service_cost.monthly_cost for service_cost in service_costs)
        free_tier_savings = sum(service_cost.free_tier_savings for service_cost in service_costs)
        net_monthly_cost = max(0.0, total_monthly_cost - free_tier_savings)

        breakdown_by_category = {category: 0.0 for category in CATEGORIES}
        for service_cost in service_costs:
            if service_cost.category in breakdown_by_category:
                breakdown_by_category[service_cost.category] += service_cost.monthly_cost

        logger.debug(
            f"Priced {len(service_costs)} services in {region_code}: "
            f"total=${total_monthly_cost:.2f} net=${net_monthly_cost:.2f}"
        )

        return CostResult(
            service_costs=service_costs,
            total_monthly_cost=total_monthly_cost,
            free_tier_savings=free_tier_savings,
            net_monthly_cost=net_monthly_cost,
            breakdown_by_category=breakdown_by_category,
            region=region_code,
            region_multiplier=resolved_region.multiplier,
            free_tier_enabled=free_tier_enabled,
            usage=clean_usage,
            pricing_version=self.catalog.version,
            diagnostics=diagnostics,
        )

    def _price_service(
        self,
        entry: ServiceUsage,
        usage: UsageProfile,
        region: Region,
        free_tier_enabled: bool,
        month: Optional[int],
    ) -> ServiceCost:
        """
        Price a single service entry.

        Raises:
            EstimationIssue: If the service cannot be priced
        """
        definition = self.catalog.lookup(entry.service_id)
        calculator = self.calculators.get(entry.service_id)
        if calculator is None:
            raise UnknownServiceError(
                f"No calculator registered for '{entry.service_id}'",
                service_id=entry.service_id,
                purpose=entry.purpose,
            )

        configuration = calculator.resolve_configuration(entry.configuration)
        meters, assumptions = calculator.calculate(configuration, usage)

        components = []
        for meter in meters:
            pricing = definition.components.get(meter.component)
            if pricing is None:
                raise InvalidConfigurationError(
                    f"Pricing table has no '{meter.component}' component for {entry.service_id}"
                )
            base_cost = pricing.price(meter.quantity, meter.price_class)
            components.append(
                MeteredComponent(
                    name=meter.name,
                    pricing_component=meter.component,
                    quantity=meter.quantity,
                    unit=pricing.unit,
                    cost=base_cost * region.multiplier,
                    price_class=meter.price_class,
                )
            )

        monthly_cost = sum(component.cost for component in components)
        if region.multiplier != 1.0:
            assumptions.append(f"Region {region.code} priced at {region.multiplier:g}x base rates")

        free_tier = self.free_tier.apply_savings(
            entry.service_id,
            components,
            monthly_cost,
            region,
            free_tier_enabled,
            month=month,
        )

        return ServiceCost(
            service_id=entry.service_id,
            purpose=entry.purpose,
            name=definition.name,
            category=definition.category,
            monthly_cost=monthly_cost,
            free_tier_savings=free_tier.free_tier_savings,
            coverage=free_tier.coverage,
            components=components,
            assumptions=assumptions,
        )

    def _unpriced(self, entry: ServiceUsage, reason: str) -> ServiceCost:
        category = self.catalog.category_of(entry.service_id) or "unknown"
        return ServiceCost(
            service_id=entry.service_id,
            purpose=entry.purpose,
            name=entry.service_id,
            category=category,
            monthly_cost=0.0,
            free_tier_savings=0.0,
            coverage=COVERAGE_NONE,
            assumptions=[reason],
            priced=False,
        )

    def compare_regions(
        self,
        architecture: Architecture,
        usage: UsageProfile,
        regions: Optional[Iterable[str]] = None,
        free_tier_enabled: bool = True,
    ) -> List[RegionCostComparison]:
        """
        Price an architecture in several regions.

        Args:
            architecture: Services to price
            usage: Monthly usage profile
            regions: Region codes to compare (default: every catalog region)
            free_tier_enabled: Whether to apply free-tier savings

        Returns:
            Comparisons sorted by net monthly cost ascending, then region code
        """
        codes = list(regions) if regions is not None else [region.code for region in self.catalog.regions()]
        comparisons = []
        for code in codes:
            resolved, _ = self.resolve_region(code)
            result = self.calculate(architecture, usage, code, free_tier_enabled)
            comparisons.append(
                RegionCostComparison(
                    region=code,
                    region_name=resolved.name,
                    multiplier=resolved.multiplier,
                    free_tier_eligible=resolved.free_tier_eligible,
                    result=result,
                )
            )

        if not comparisons:
            return comparisons

        most_expensive = max(comparison.result.net_monthly_cost for comparison in comparisons)
        for comparison in comparisons:
            comparison.savings_vs_most_expensive = most_expensive - comparison.result.net_monthly_cost
            comparison.savings_percent = (
                comparison.savings_vs_most_expensive / most_expensive * 100 if most_expensive > 0 else 0.0
            )
        return sorted(comparisons, key=lambda item: (item.result.net_monthly_cost, item.region))

    def find_cost_effective_region(
        self,
        architecture: Architecture,
        usage: UsageProfile,
        constraints: Optional[Dict[str, Any]] = None,
        free_tier_enabled: bool = True,
    ) -> Optional[RegionCostComparison]:
        """
        Find the cheapest region that satisfies placement constraints.

        Args:
            architecture: Services to price
            usage: Monthly usage profile
            constraints: Optional keys allowed_regions (list), require_free_tier (bool),
                gdpr_compliance (bool, eu- regions only), data_residency ("US" for us- regions only)
            free_tier_enabled: Whether to apply free-tier savings

        Returns:
            Cheapest matching comparison, or None if no region qualifies
        """
        constraints = constraints or {}
        candidates = []
        for region in self.catalog.regions():
            allowed = constraints.get("allowed_regions")
            if allowed and region.code not in allowed:
                continue
            if constraints.get("require_free_tier") and not region.free_tier_eligible:
                continue
            if constraints.get("gdpr_compliance") and not region.code.startswith("eu-"):
                continue
            if constraints.get("data_residency") == "US" and not region.code.startswith("us-"):
                continue
            candidates.append(region.code)

        if not candidates:
            logger.info("No region satisfies the placement constraints")
            return None
        return self.compare_regions(architecture, usage, candidates, free_tier_enabled)[0]

    def compare_traffic_levels(
        self,
        architecture: Architecture,
        region: Optional[str] = None,
        free_tier_enabled: bool = True,
    ) -> Dict[str, CostResult]:
        """
        Price an architecture under each predefined traffic profile.

        Returns:
            Dict mapping traffic level (low, medium, high, enterprise) to CostResult
        """
        return {
            level: self.calculate(architecture, profile, region, free_tier_enabled)
            for level, profile in TRAFFIC_PROFILES.items()
        }

    def data_transfer_cost(self, source_region: str, destination: str, data_gb: float) -> DataTransferCost:
        """
        Price data moved out of a region in a month.

        The destination is another region code, "internet" or "cloudfront".
        Transfer within one region is free; between two catalog regions it is
        billed at the cross-region rate. A destination that is not a catalog
        region is treated as the internet.

        Args:
            source_region: Region the data leaves
            destination: Region code, "internet" or "cloudfront"
            data_gb: Gigabytes transferred per month

        Returns:
            DataTransferCost

        Raises:
            ValueError: If data_gb is negative or not finite, or the pricing table has no transfer rates
        """
        if not math.isfinite(data_gb) or data_gb < 0:
            raise ValueError(f"data_gb must be a non-negative number (got: {data_gb})")
        rates = self.catalog.transfer_rates
        if not rates:
            raise ValueError(f"Pricing table {self.catalog.version} has no data transfer rates")

        if destination in ("internet", "cloudfront"):
            transfer_type = destination
        elif destination == source_region:
            transfer_type = "same_region"
        elif self._known_region(source_region) and self._known_region(destination):
            transfer_type = "cross_region"
        else:
            logger.warning(f"Transfer {source_region} -> {destination} priced at the internet rate")
            transfer_type = "internet"

        rate = rates.get(transfer_type, 0.0)
        return DataTransferCost(
            source_region=source_region,
            destination=destination,
            transfer_type=transfer_type,
            data_gb=data_gb,
            rate=rate,
            cost=data_gb * rate,
            description=TRANSFER_DESCRIPTIONS[transfer_type],
        )

    def _known_region(self, code: str) -> bool:
        try:
            self.catalog.region(code)
        except RegionNotFoundError:
            return False
        return True
