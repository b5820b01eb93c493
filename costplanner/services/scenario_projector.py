"""
Scenario projector.
Projects monthly cost over a horizon by growing the baseline usage and
re-pricing every month through the cost engine.
"""
import logging
import math
from typing import List, Optional

from costplanner.core.config import config
from costplanner.domain.architecture_models import Architecture
from costplanner.domain.recommendation_models import (
    Recommendation,
    rank_recommendations,
    RESERVED_INSTANCE,
    AUTO_SCALING,
    ARCHITECTURE_REVIEW,
    BUDGET_MONITORING,
)
from costplanner.domain.scenario_models import (
    GrowthScenario,
    BaseConfig,
    AlertThresholds,
    ProjectionAlert,
    ScenarioProjection,
    ProjectionSummary,
    LINEAR,
    EXPONENTIAL,
    SEASONAL,
    CUSTOM,
)
from costplanner.services.cost_engine import CostEngine


logger = logging.getLogger(__name__)

SEASONAL_AMPLITUDE = 0.3
RESERVED_AVERAGE_COST = 100.0
RESERVED_SAVINGS = 0.4
AUTO_SCALING_GROWTH_RATE = 0.20
ARCHITECTURE_REVIEW_COST = 500.0


def growth_multiplier(scenario: GrowthScenario, month: int) -> float:
    """
    Usage multiplier for a 1-based month relative to the baseline.

    Args:
        scenario: Growth model and monthly rate
        month: Month index starting at 1

    Returns:
        Multiplier applied to every baseline usage metric; a declining
        linear or seasonal trend bottoms out at 0
    """
    rate = scenario.monthly_growth_rate
    if scenario.pattern == LINEAR:
        return max(0.0, 1 + rate * month)
    if scenario.pattern in (EXPONENTIAL, CUSTOM):
        return (1 + rate) ** month
    if scenario.pattern == SEASONAL:
        return max(0.0, (1 + rate * month) * (1 + SEASONAL_AMPLITUDE * math.sin((month - 1) * math.pi / 6)))
    raise ValueError(f"Unknown growth pattern: {scenario.pattern}")


class ScenarioProjector:
    """Builds month-by-month cost projections under a growth scenario."""

    def __init__(
        self,
        cost_engine: CostEngine,
        free_tier_window_months: int = config.FREE_TIER_WINDOW_MONTHS,
        max_horizon_months: int = config.MAX_PROJECTION_MONTHS,
    ):
        """
        Initialize scenario projector.

        Args:
            cost_engine: Engine used to price each month
            free_tier_window_months: Months after which free tier is no longer applied
            max_horizon_months: Longest horizon a caller may request
        """
        self.cost_engine = cost_engine
        self.free_tier_window_months = free_tier_window_months
        self.max_horizon_months = max_horizon_months

    def project_month(
        self,
        architecture: Architecture,
        base_config: BaseConfig,
        month: int,
        growth_scenario: GrowthScenario,
        thresholds: Optional[AlertThresholds] = None,
    ) -> ScenarioProjection:
        """
        Project a single month.

        Months do not depend on each other, so a host may compute them in any
        order. Month-over-month growth alerts need the previous month and are
        added by project().

        Args:
            architecture: Services to price
            base_config: Baseline usage, region and free-tier flag
            month: 1-based month index
            growth_scenario: Growth model
            thresholds: Alert limits (defaults from config)

        Returns:
            ScenarioProjection for the month
        """
        if month < 1:
            raise ValueError("month must be at least 1")
        thresholds = thresholds or self.default_thresholds()

        multiplier = growth_multiplier(growth_scenario, month)
        usage = base_config.usage.scaled(multiplier)
        free_tier_enabled = base_config.free_tier_enabled and month <= self.free_tier_window_months
        costs = self.cost_engine.calculate(
            architecture,
            usage,
            base_config.region,
            free_tier_enabled,
            month=month,
        )

        alerts = []
        net = costs.net_monthly_cost
        if net > thresholds.monthly_cost:
            alerts.append(ProjectionAlert(
                type="cost-threshold",
                severity="high" if net > thresholds.monthly_cost * 2 else "medium",
                month=month,
                message=f"Month {month} cost ${net:,.2f} exceeds the ${thresholds.monthly_cost:,.2f} threshold",
                value=net,
                threshold=thresholds.monthly_cost,
            ))
        if (
            base_config.free_tier_enabled
            and month == self.free_tier_window_months
            and costs.free_tier_savings > 0
        ):
            alerts.append(ProjectionAlert(
                type="free-tier-expiration",
                severity="medium",
                month=month,
                message=(
                    f"Free tier ends after month {month}; "
                    f"about ${costs.free_tier_savings:,.2f}/month of savings will stop"
                ),
                value=costs.free_tier_savings,
            ))

        return ScenarioProjection(
            month=month,
            usage=usage,
            costs=costs,
            growth_multiplier=multiplier,
            growth_rate_pct=(multiplier - 1) * 100,
            alerts=alerts,
        )

    def project(
        self,
        architecture: Architecture,
        base_config: BaseConfig,
        horizon_months: int,
        growth_scenario: GrowthScenario,
        thresholds: Optional[AlertThresholds] = None,
    ) -> List[ScenarioProjection]:
        """
        Project cost for every month of a horizon.

        Each call recomputes from the baseline; nothing is cached between calls.

        Args:
            architecture: Services to price
            base_config: Baseline usage, region and free-tier flag
            horizon_months: Number of months to project
            growth_scenario: Growth model
            thresholds: Alert limits (defaults from config)

        Returns:
            One ScenarioProjection per month, ordered by month

        Raises:
            ValueError: If horizon_months is outside 1..max_horizon_months
        """
        if not 1 <= horizon_months <= self.max_horizon_months:
            raise ValueError(
                f"horizon_months must be between 1 and {self.max_horizon_months} (got: {horizon_months})"
            )
        thresholds = thresholds or self.default_thresholds()

        projections = [
            self.project_month(architecture, base_config, month, growth_scenario, thresholds)
            for month in range(1, horizon_months + 1)
        ]

        for previous, current in zip(projections, projections[1:]):
            previous_cost = previous.costs.net_monthly_cost
            if previous_cost <= 0:
                continue
            change = (current.costs.net_monthly_cost - previous_cost) / previous_cost * 100
            current.cost_change_pct = change
            if change > thresholds.growth_rate_pct:
                current.alerts.append(ProjectionAlert(
                    type="growth-rate",
                    severity="medium",
                    month=current.month,
                    message=(
                        f"Cost grew {change:.1f}% in month {current.month}, above the "
                        f"{thresholds.growth_rate_pct:g}% threshold"
                    ),
                    value=change,
                    threshold=thresholds.growth_rate_pct,
                ))

        logger.info(
            f"Projected {horizon_months} months under {growth_scenario.pattern} growth "
            f"({growth_scenario.monthly_growth_rate:.0%}/month)"
        )
        return projections

    @staticmethod
    def default_thresholds() -> AlertThresholds:
        return AlertThresholds(
            monthly_cost=config.ALERT_MONTHLY_COST_THRESHOLD,
            growth_rate_pct=config.ALERT_GROWTH_RATE_THRESHOLD,
        )

    @staticmethod
    def summarize(projections: List[ScenarioProjection]) -> ProjectionSummary:
        """
        Summarize a projection.

        Raises:
            ValueError: If projections is empty
        """
        if not projections:
            raise ValueError("Cannot summarize an empty projection")

        costs = [projection.costs.net_monthly_cost for projection in projections]
        first, final = costs[0], costs[-1]
        peak_index = max(range(len(costs)), key=lambda index: (costs[index], -index))
        return ProjectionSummary(
            months=len(projections),
            total_cost=sum(costs),
            average_monthly_cost=sum(costs) / len(costs),
            final_monthly_cost=final,
            usage_growth_pct=(projections[-1].growth_multiplier - 1) * 100,
            cost_growth_pct=(final / first - 1) * 100 if first > 0 else None,
            peak_month=projections[peak_index].month,
            total_alerts=sum(len(projection.alerts) for projection in projections),
        )

    def recommend(self, projections: List[ScenarioProjection], growth_scenario: GrowthScenario) -> List[Recommendation]:
        """
        Planning recommendations for a projected trajectory.

        Args:
            projections: Output of project()
            growth_scenario: Scenario the projection used

        Returns:
            Ranked recommendations
        """
        summary = self.summarize(projections)
        recommendations = []

        if summary.average_monthly_cost > RESERVED_AVERAGE_COST:
            recommendations.append(Recommendation(
                id="scenario-reserved-capacity",
                type=RESERVED_INSTANCE,
                title="Plan reserved capacity for the steady baseline",
                description=(
                    f"Average projected cost of ${summary.average_monthly_cost:,.2f}/month justifies "
                    f"committing to reserved capacity for the baseline load."
                ),
                impact="high",
                effort="low",
                risk_level="low",
                potential_savings=summary.average_monthly_cost * RESERVED_SAVINGS,
                preconditions=["Baseline usage is stable across the horizon"],
            ))

        if growth_scenario.pattern == SEASONAL or growth_scenario.monthly_growth_rate > AUTO_SCALING_GROWTH_RATE:
            recommendations.append(Recommendation(
                id="scenario-auto-scaling",
                type=AUTO_SCALING,
                title="Scale capacity with demand",
                description="Projected usage swings enough that fixed capacity will be idle or saturated.",
                impact="medium",
                effort="medium",
                risk_level="low",
                potential_savings=0.0,
                preconditions=["Application can run multiple instances"],
            ))

        if summary.final_monthly_cost > ARCHITECTURE_REVIEW_COST:
            recommendations.append(Recommendation(
                id="scenario-architecture-review",
                type=ARCHITECTURE_REVIEW,
                title="Review the architecture before costs peak",
                description=(
                    f"Projected cost reaches ${summary.final_monthly_cost:,.2f}/month by month "
                    f"{summary.months}."
                ),
                impact="high",
                effort="high",
                risk_level="medium",
                potential_savings=0.0,
            ))

        recommendations.append(Recommendation(
            id="scenario-budget-monitoring",
            type=BUDGET_MONITORING,
            title="Set budget alerts",
            description="Track actual spend against this projection with AWS Budgets alerts.",
            impact="low",
            effort="low",
            risk_level="low",
            potential_savings=0.0,
        ))
        return rank_recommendations(recommendations)
