"""
API routes for cost estimation, recommendations, projections and variants.
"""
from typing import Dict, Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
import logging

from costplanner.core.config import config
from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    TRAFFIC_PROFILES,
    architecture_from_dict,
)
from costplanner.domain.patterns import ARCHITECTURE_PATTERNS, get_pattern
from costplanner.domain.recommendation_models import UsagePatternFlags
from costplanner.domain.scenario_models import (
    GrowthScenario,
    BaseConfig,
    AlertThresholds,
    PREDEFINED_SCENARIOS,
)
from costplanner.domain.variant_models import PreferenceWeights, Requirements
from costplanner.pricing.catalog import PricingCatalog
from costplanner.pricing.currency import convert_result, supported_currencies
from costplanner.services.cost_engine import CostEngine
from costplanner.services.optimization_advisor import OptimizationAdvisor
from costplanner.services.scenario_projector import ScenarioProjector
from costplanner.services.service_ranking import ServiceRanker
from costplanner.services.variant_optimizer import ServiceVariantOptimizer


logger = logging.getLogger(__name__)
router = APIRouter()


class UsageModel(BaseModel):
    """Monthly usage metrics; invalid values are clamped to zero with a diagnostic."""
    page_views: float = Field(0.0, description="Page views per month")
    unique_users: float = Field(0.0, description="Monthly active users")
    api_requests: float = Field(0.0, description="API requests per month")
    data_transfer_gb: float = Field(0.0, description="Outbound data transfer in GB")
    storage_gb: float = Field(0.0, description="Stored data in GB")
    compute_hours: float = Field(0.0, description="Compute hours per instance per month")


class ServiceModel(BaseModel):
    """A single service entry of an architecture."""
    service_id: str = Field(..., description="Catalog service id, e.g. ec2 or s3")
    purpose: str = Field(default="", description="What the service is used for")
    required: bool = Field(default=True, description="Whether the service is required")
    configuration: Optional[Dict[str, Any]] = Field(None, description="Category-specific configuration")


class ArchitectureModel(BaseModel):
    """Model for an architecture to price."""
    name: str = Field(default="", description="Architecture name")
    services: List[ServiceModel] = Field(..., description="Services in the architecture")


class EstimateRequest(BaseModel):
    """Request model for a single cost estimate."""
    architecture: ArchitectureModel = Field(..., description="Architecture to price")
    usage: Optional[UsageModel] = Field(None, description="Usage profile; overrides traffic_level")
    traffic_level: str = Field(default="low", description="Traffic preset used when usage is omitted")
    region: Optional[str] = Field(None, description="AWS region code (default from configuration)")
    free_tier_enabled: bool = Field(default=True, description="Apply free-tier savings")
    currency: Optional[str] = Field(None, description="Currency code for the response amounts")
    month: Optional[int] = Field(None, ge=1, description="Account age in months")


class RegionComparisonRequest(BaseModel):
    """Request model for comparing regions."""
    architecture: ArchitectureModel = Field(..., description="Architecture to price")
    usage: Optional[UsageModel] = Field(None, description="Usage profile; overrides traffic_level")
    traffic_level: str = Field(default="low", description="Traffic preset used when usage is omitted")
    regions: Optional[List[str]] = Field(None, description="Regions to compare (default: all)")
    free_tier_enabled: bool = Field(default=True, description="Apply free-tier savings")
    constraints: Optional[Dict[str, Any]] = Field(None, description="Placement constraints for the best region")


class RecommendationsRequest(BaseModel):
    """Request model for optimization recommendations."""
    architecture: ArchitectureModel = Field(..., description="Architecture to analyze")
    usage: Optional[UsageModel] = Field(None, description="Usage profile; overrides traffic_level")
    traffic_level: str = Field(default="low", description="Traffic preset used when usage is omitted")
    region: Optional[str] = Field(None, description="AWS region code")
    free_tier_enabled: bool = Field(default=True, description="Apply free-tier savings")
    usage_pattern: Optional[Dict[str, Optional[bool]]] = Field(None, description="Declared workload traits")


class ProjectionRequest(BaseModel):
    """Request model for growth projections."""
    architecture: ArchitectureModel = Field(..., description="Architecture to project")
    usage: Optional[UsageModel] = Field(None, description="Baseline usage; overrides traffic_level")
    traffic_level: str = Field(default="low", description="Traffic preset used when usage is omitted")
    region: Optional[str] = Field(None, description="AWS region code")
    free_tier_enabled: bool = Field(default=True, description="Apply free tier within its window")
    horizon_months: int = Field(default=12, description="Number of months to project")
    scenario: Optional[str] = Field(None, description="Predefined scenario name")
    growth_pattern: Optional[str] = Field(None, description="Growth pattern for a custom scenario")
    monthly_growth_rate: Optional[float] = Field(None, description="Monthly growth rate for a custom scenario")
    alert_monthly_cost: Optional[float] = Field(None, description="Monthly cost alert threshold")
    alert_growth_rate_pct: Optional[float] = Field(None, description="Month-over-month growth alert threshold")


class RequirementsModel(BaseModel):
    """Application requirements for variant generation."""
    app_type: str = Field(default="web", description="web, api or static")
    traffic: str = Field(default="low", description="low, medium, high or enterprise")
    database: bool = Field(default=False, description="Needs a database")
    auth: bool = Field(default=False, description="Needs user authentication")
    custom_domain: bool = Field(default=False, description="Needs a custom domain")
    complex_queries: bool = Field(default=False, description="Needs relational queries")
    budget: Optional[float] = Field(None, description="Monthly budget in USD")
    region: Optional[str] = Field(None, description="AWS region code")
    free_tier_enabled: bool = Field(default=True, description="Apply free-tier savings")
    usage: Optional[UsageModel] = Field(None, description="Usage profile; overrides traffic")


class PreferencesModel(BaseModel):
    """Optimization preferences rated 1-5."""
    model_config = ConfigDict(extra="forbid")

    cost_priority: int = Field(default=3, description="How much cost matters")
    performance_priority: int = Field(
        default=3,
        validation_alias=AliasChoices("performance_priority", "performance_requirements"),
        description="How much performance matters",
    )
    complexity_tolerance: int = Field(default=3, description="How much operational complexity is acceptable")
    scalability_need: int = Field(default=3, description="How much headroom for traffic growth is needed")


class VariantsRequest(BaseModel):
    """Request model for architecture variants."""
    pattern_id: str = Field(..., description="Predefined pattern id")
    requirements: RequirementsModel = Field(default_factory=RequirementsModel, description="Application requirements")
    preferences: PreferencesModel = Field(default_factory=PreferencesModel, description="Optimization preferences")


class RankingRequest(BaseModel):
    """Request model for ranking individual services."""
    services: List[ServiceModel] = Field(..., description="Services to rank")
    requirements: RequirementsModel = Field(default_factory=RequirementsModel, description="Application requirements")
    preferences: PreferencesModel = Field(default_factory=PreferencesModel, description="User preferences")
    criteria: Optional[List[str]] = Field(None, description="Criteria for the comparison matrix (default: all)")


class AlternativesRequest(BaseModel):
    """Request model for same-category alternatives to a service."""
    service: ServiceModel = Field(..., description="Service to replace")
    candidates: Optional[List[ServiceModel]] = Field(
        None, description="Services to consider (default: every catalog service)"
    )
    requirements: RequirementsModel = Field(default_factory=RequirementsModel, description="Application requirements")
    preferences: PreferencesModel = Field(default_factory=PreferencesModel, description="User preferences")
    limit: int = Field(default=3, ge=1, description="Maximum number of alternatives")


class DataTransferRequest(BaseModel):
    """Request model for pricing data transfer out of a region."""
    source_region: Optional[str] = Field(None, description="Region the data leaves (default from configuration)")
    destination: str = Field(..., description="Region code, internet or cloudfront")
    data_gb: float = Field(..., description="Gigabytes transferred per month")


def get_catalog(request: Request) -> PricingCatalog:
    """Pricing catalog loaded at startup."""
    return request.app.state.catalog


def get_engine(catalog: PricingCatalog = Depends(get_catalog)) -> CostEngine:
    return CostEngine(catalog)


def _architecture(model: ArchitectureModel, catalog: PricingCatalog) -> Architecture:
    try:
        return architecture_from_dict(model.model_dump(), catalog.category_of)
    except ValueError as error:
        raise HTTPException(status_code=422, detail=f"Invalid architecture: {error}") from error


def _usage(usage: Optional[UsageModel], traffic_level: str) -> UsageProfile:
    if usage is not None:
        return UsageProfile(**usage.model_dump())
    profile = TRAFFIC_PROFILES.get(traffic_level)
    if profile is None:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown traffic level '{traffic_level}'. Available: {', '.join(TRAFFIC_PROFILES)}",
        )
    return profile


def _requirements(model: RequirementsModel) -> Requirements:
    try:
        return Requirements(
            **model.model_dump(exclude={"usage", "region"}),
            region=model.region or config.DEFAULT_REGION,
            usage=UsageProfile(**model.usage.model_dump()) if model.usage is not None else None,
        )
    except ValueError as error:
        raise HTTPException(status_code=422, detail=f"Invalid requirements: {error}") from error


def _preferences(model: PreferencesModel) -> PreferenceWeights:
    try:
        return PreferenceWeights(**model.model_dump())
    except ValueError as error:
        raise HTTPException(status_code=422, detail=f"Invalid preferences: {error}") from error


def _service(model: ServiceModel, catalog: PricingCatalog) -> ServiceUsage:
    architecture = _architecture(ArchitectureModel(services=[model]), catalog)
    return architecture.services[0]


def _scenario(projection_request: ProjectionRequest) -> GrowthScenario:
    if projection_request.scenario:
        scenario = PREDEFINED_SCENARIOS.get(projection_request.scenario)
        if scenario is None:
            raise HTTPException(
                status_code=422,
                detail=(
                    f"Unknown scenario '{projection_request.scenario}'. "
                    f"Available: {', '.join(PREDEFINED_SCENARIOS)}"
                ),
            )
        return scenario
    if projection_request.growth_pattern is None or projection_request.monthly_growth_rate is None:
        raise HTTPException(
            status_code=422,
            detail="Either scenario or growth_pattern with monthly_growth_rate is required",
        )
    try:
        return GrowthScenario(
            pattern=projection_request.growth_pattern,
            monthly_growth_rate=projection_request.monthly_growth_rate,
            name="custom",
        )
    except ValueError as error:
        raise HTTPException(status_code=422, detail=str(error)) from error


@router.post("/api/estimate")
async def estimate_costs(
    estimate_request: EstimateRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Estimate monthly cost of an architecture.

    Services that cannot be priced are reported under diagnostics with zero
    cost; the rest of the architecture is still priced.

    Returns:
        JSON response with the cost estimate and a free-tier report

    Raises:
        HTTPException: 422 for malformed input, 500 for unexpected errors
    """
    try:
        architecture = _architecture(estimate_request.architecture, engine.catalog)
        usage = _usage(estimate_request.usage, estimate_request.traffic_level)

        result = engine.calculate(
            architecture,
            usage,
            estimate_request.region,
            estimate_request.free_tier_enabled,
            month=estimate_request.month,
        )
        free_tier_report = engine.free_tier.analyze(result, month=estimate_request.month)
        currency = estimate_request.currency or config.DEFAULT_CURRENCY

        return {
            "status": "ok",
            "estimate": convert_result(result, currency).to_dict(),
            "free_tier": free_tier_report.to_dict(),
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while estimating costs: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while estimating costs"
        ) from error


@router.post("/api/estimate/regions")
async def compare_regions(
    comparison_request: RegionComparisonRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Compare the cost of an architecture across regions.

    Returns:
        JSON response with comparisons (cheapest first) and the cheapest region
        satisfying the optional constraints
    """
    try:
        architecture = _architecture(comparison_request.architecture, engine.catalog)
        usage = _usage(comparison_request.usage, comparison_request.traffic_level)

        comparisons = engine.compare_regions(
            architecture, usage, comparison_request.regions, comparison_request.free_tier_enabled
        )
        best = engine.find_cost_effective_region(
            architecture, usage, comparison_request.constraints, comparison_request.free_tier_enabled
        )

        return {
            "status": "ok",
            "comparisons": [comparison.to_dict() for comparison in comparisons],
            "recommended_region": best.to_dict() if best else None,
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while comparing regions: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while comparing regions"
        ) from error


@router.post("/api/recommendations")
async def generate_recommendations(
    recommendations_request: RecommendationsRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Generate ranked cost-optimization recommendations.

    Returns:
        JSON response with the estimate the advice is based on and the
        recommendations, highest savings first
    """
    try:
        architecture = _architecture(recommendations_request.architecture, engine.catalog)
        usage = _usage(recommendations_request.usage, recommendations_request.traffic_level)
        try:
            flags = UsagePatternFlags.from_dict(recommendations_request.usage_pattern)
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error

        result = engine.calculate(
            architecture, usage, recommendations_request.region, recommendations_request.free_tier_enabled
        )
        advisor = OptimizationAdvisor(engine.catalog, engine.free_tier)
        recommendations = advisor.generate(architecture, result, flags)

        return {
            "status": "ok",
            "estimate": result.to_dict(),
            "recommendations": [recommendation.to_dict() for recommendation in recommendations],
            "total_potential_savings": round(
                sum(r.potential_savings for r in recommendations if r.standalone), 2
            ),
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while generating recommendations: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while generating recommendations"
        ) from error


@router.post("/api/projections")
async def project_costs(
    projection_request: ProjectionRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Project monthly cost under a growth scenario.

    Returns:
        JSON response with per-month projections, a summary and planning recommendations
    """
    try:
        architecture = _architecture(projection_request.architecture, engine.catalog)
        usage = _usage(projection_request.usage, projection_request.traffic_level)
        scenario = _scenario(projection_request)
        thresholds = AlertThresholds(
            monthly_cost=(
                projection_request.alert_monthly_cost
                if projection_request.alert_monthly_cost is not None
                else config.ALERT_MONTHLY_COST_THRESHOLD
            ),
            growth_rate_pct=(
                projection_request.alert_growth_rate_pct
                if projection_request.alert_growth_rate_pct is not None
                else config.ALERT_GROWTH_RATE_THRESHOLD
            ),
        )
        base_config = BaseConfig(
            usage=usage,
            region=projection_request.region or config.DEFAULT_REGION,
            free_tier_enabled=projection_request.free_tier_enabled,
        )

        projector = ScenarioProjector(engine)
        try:
            projections = projector.project(
                architecture, base_config, projection_request.horizon_months, scenario, thresholds
            )
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error

        return {
            "status": "ok",
            "scenario": scenario.to_dict(),
            "thresholds": thresholds.to_dict(),
            "projections": [projection.to_dict() for projection in projections],
            "summary": projector.summarize(projections).to_dict(),
            "recommendations": [
                recommendation.to_dict() for recommendation in projector.recommend(projections, scenario)
            ],
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while projecting costs: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while projecting costs"
        ) from error


@router.post("/api/variants")
async def generate_variants(
    variants_request: VariantsRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Generate ranked variants of a predefined architecture pattern.

    Returns:
        JSON response with variants, best first
    """
    try:
        try:
            pattern = get_pattern(variants_request.pattern_id)
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error
        requirements = _requirements(variants_request.requirements)
        preferences = _preferences(variants_request.preferences)

        variants = ServiceVariantOptimizer(engine).optimize(pattern, requirements, preferences)

        return {
            "status": "ok",
            "pattern": pattern.to_dict(),
            "variants": [variant.to_dict() for variant in variants],
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while generating variants: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while generating variants"
        ) from error


@router.post("/api/services/rank")
async def rank_services(
    ranking_request: RankingRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Rank individual services for an application.

    Returns:
        JSON response with services best first and a comparison matrix
    """
    try:
        services = list(_architecture(ArchitectureModel(services=ranking_request.services), engine.catalog).services)
        requirements = _requirements(ranking_request.requirements)
        preferences = _preferences(ranking_request.preferences)

        ranker = ServiceRanker(engine)
        ranked = ranker.rank_services(services, requirements, preferences)
        try:
            matrix = ranker.comparison_matrix(ranked, ranking_request.criteria)
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error

        return {
            "status": "ok",
            "services": [score.to_dict() for score in ranked],
            "comparison_matrix": matrix,
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while ranking services: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while ranking services"
        ) from error


@router.post("/api/services/alternatives")
async def find_alternatives(
    alternatives_request: AlternativesRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Find same-category alternatives to a service.

    Returns:
        JSON response with the primary service score and ranked alternatives
    """
    try:
        catalog = engine.catalog
        primary = _service(alternatives_request.service, catalog)
        if not catalog.has_service(primary.service_id):
            raise HTTPException(status_code=422, detail=f"Unknown service '{primary.service_id}'")
        if alternatives_request.candidates is not None:
            candidates = [_service(model, catalog) for model in alternatives_request.candidates]
        else:
            candidates = [ServiceUsage(definition.service_id) for definition in catalog.services()]
        requirements = _requirements(alternatives_request.requirements)
        preferences = _preferences(alternatives_request.preferences)

        ranker = ServiceRanker(engine)
        alternatives = ranker.find_alternatives(
            primary, candidates, requirements, preferences, limit=alternatives_request.limit
        )

        return {
            "status": "ok",
            "service": ranker.score_service(primary, requirements, preferences).to_dict(),
            "alternatives": [alternative.to_dict() for alternative in alternatives],
        }

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while finding alternatives: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while finding alternatives"
        ) from error


@router.post("/api/data-transfer")
async def price_data_transfer(
    transfer_request: DataTransferRequest,
    engine: CostEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    Price monthly data transfer out of a region.

    Returns:
        JSON response with the transfer type, rate and cost
    """
    try:
        try:
            transfer = engine.data_transfer_cost(
                transfer_request.source_region or config.DEFAULT_REGION,
                transfer_request.destination,
                transfer_request.data_gb,
            )
        except ValueError as error:
            raise HTTPException(status_code=422, detail=str(error)) from error

        return {"status": "ok", "data_transfer": transfer.to_dict()}

    except HTTPException:
        raise
    except Exception as error:
        logger.error(f"Unexpected error while pricing data transfer: {error}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while pricing data transfer"
        ) from error


@router.get("/api/catalog")
async def get_pricing_catalog(catalog: PricingCatalog = Depends(get_catalog)) -> Dict[str, Any]:
    """Return the loaded pricing catalog and supported currencies."""
    return {
        "status": "ok",
        "catalog": catalog.to_dict(),
        "currencies": supported_currencies(),
    }


@router.get("/api/patterns")
async def list_patterns() -> Dict[str, Any]:
    """Return predefined architecture patterns, growth scenarios and traffic presets."""
    return {
        "status": "ok",
        "patterns": [pattern.to_dict() for pattern in ARCHITECTURE_PATTERNS.values()],
        "scenarios": [scenario.to_dict() for scenario in PREDEFINED_SCENARIOS.values()],
        "traffic_levels": {level: profile.to_dict() for level, profile in TRAFFIC_PROFILES.items()},
    }
