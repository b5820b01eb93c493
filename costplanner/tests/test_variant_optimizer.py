"""
Tests for architecture patterns, compatibility checks and variant generation.
"""

import pytest
from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    ComputeConfiguration,
)
from costplanner.domain.patterns import get_pattern, select_services
from costplanner.domain.variant_models import (
    PatternCharacteristics,
    PreferenceWeights,
    Requirements,
)
from costplanner.services.compatibility import ServiceCompatibilityValidator
from costplanner.services.variant_optimizer import ServiceVariantOptimizer


@pytest.fixture
def optimizer(engine):
    """Variant optimizer over the bundled catalog."""
    return ServiceVariantOptimizer(engine)


@pytest.fixture
def validator(engine):
    """Compatibility validator able to resolve by cost."""
    return ServiceCompatibilityValidator(engine)


def _architecture(*service_ids):
    return Architecture(services=tuple(ServiceUsage(service_id, service_id) for service_id in service_ids))


def test_unknown_pattern_raises():
    """Unknown pattern ids list the available ones."""
    with pytest.raises(ValueError) as excinfo:
        get_pattern('mainframe')
    assert 'static-spa' in str(excinfo.value)


def test_optional_services_follow_requirements():
    """Optional services are included only when the requirements ask for them."""
    pattern = get_pattern('serverless-api')

    minimal = select_services(pattern, Requirements(app_type='api'))
    assert minimal.service_ids() == ['api-gateway', 'cloudwatch', 'lambda']

    full = select_services(pattern, Requirements(app_type='api', database=True, auth=True))
    assert full.service_ids() == ['api-gateway', 'cloudwatch', 'cognito', 'dynamodb', 'lambda']
    assert full.name == pattern.name


def test_preference_weights_validation():
    """Preference ratings must be integers from 1 to 5."""
    assert PreferenceWeights().to_dict() == {
        'cost_priority': 3, 'performance_priority': 3, 'complexity_tolerance': 3, 'scalability_need': 3,
    }
    with pytest.raises(ValueError):
        PreferenceWeights(cost_priority=6)
    with pytest.raises(ValueError):
        PreferenceWeights(complexity_tolerance=True)
    with pytest.raises(ValueError):
        PreferenceWeights.from_dict({'speed': 5})


def test_preference_weights_accept_legacy_performance_name():
    """performance_requirements is read as performance_priority; scalability_need is rated too."""
    preferences = PreferenceWeights.from_dict({'performance_requirements': 4, 'scalability_need': 5})
    assert preferences.performance_priority == 4
    assert preferences.scalability_need == 5
    with pytest.raises(ValueError):
        PreferenceWeights(scalability_need=0)


def test_requirements_validation():
    """Requirements reject unknown app types, traffic levels and negative budgets."""
    with pytest.raises(ValueError):
        Requirements(app_type='desktop')
    with pytest.raises(ValueError):
        Requirements(traffic='viral')
    with pytest.raises(ValueError):
        Requirements(budget=-1)
    assert Requirements(traffic='medium').usage_profile().page_views == 50000


def test_characteristics_adjustments_are_clamped():
    """Adjusted ratings stay between 1 and 5."""
    characteristics = PatternCharacteristics(cost=1, complexity=2, scalability=5, availability=5)
    adjusted = characteristics.adjusted(cost=-2, scalability=3, complexity=1)
    assert (adjusted.cost, adjusted.complexity, adjusted.scalability) == (1, 3, 5)


def test_overlapping_services_are_warnings(validator):
    """Two services serving the same purpose produce a warning, not an error."""
    architecture = _architecture('lambda', 'ec2', 'api-gateway', 'alb', 'cloudwatch')
    report = validator.validate(architecture)

    conflicts = [issue for issue in report.issues if issue.type == 'conflict']
    assert {issue.services for issue in conflicts} == {('lambda', 'ec2'), ('alb', 'api-gateway')}
    assert all(issue.severity == 'warning' for issue in conflicts)
    assert report.valid


def test_missing_companion_is_an_error(validator):
    """A database without monitoring fails validation."""
    report = validator.validate(_architecture('rds'))

    assert not report.valid
    assert [issue.message for issue in report.issues] == ['rds requires cloudwatch for proper operation.']
    assert report.diagnostics[0].code == 'configuration_conflict'
    assert report.diagnostics[0].service_id == 'rds'


def test_required_companion_lookup(validator):
    """Companions are required only while their owner is present."""
    assert validator.is_required_companion('cloudwatch', _architecture('rds', 'cloudwatch'))
    assert not validator.is_required_companion('cloudwatch', _architecture('s3', 'cloudwatch'))


def test_auto_resolve_leaves_neutral_preferences_alone(validator):
    """Without a strong preference nothing is removed."""
    architecture = _architecture('lambda', 'ec2')
    assert validator.auto_resolve(architecture, PreferenceWeights()) == architecture


def test_auto_resolve_by_complexity(validator):
    """Low complexity tolerance keeps the simpler service of each pair."""
    architecture = _architecture('lambda', 'ec2', 'rds', 'dynamodb')
    resolved = validator.auto_resolve(architecture, PreferenceWeights(complexity_tolerance=1))
    assert resolved.service_ids() == ['dynamodb', 'lambda']


def test_auto_resolve_by_cost(validator):
    """High cost priority keeps the cheaper service of each pair."""
    architecture = Architecture(services=(
        ServiceUsage('lambda', 'API', ComputeConfiguration()),
        ServiceUsage('ec2', 'API', ComputeConfiguration(instance_type='t3.large')),
    ))
    usage = UsageProfile(api_requests=10000, compute_hours=730)
    resolved = validator.auto_resolve(architecture, PreferenceWeights(cost_priority=5), usage, 'us-east-1')
    assert resolved.service_ids() == ['lambda']


def test_auto_resolve_by_cost_needs_engine():
    """Cost-based resolution cannot run without a cost engine."""
    with pytest.raises(ValueError):
        ServiceCompatibilityValidator().auto_resolve(_architecture('lambda', 'ec2'), PreferenceWeights(cost_priority=5))


def test_identical_variants_are_dropped(optimizer):
    """A variant with the same services and cost as the base is not returned."""
    variants = optimizer.optimize(get_pattern('static-spa'), Requirements(app_type='static'))

    assert [variant.variant for variant in variants] == ['base']
    assert variants[0].rank == 1
    assert variants[0].savings is None


def test_cost_variant_for_cost_focused_users(optimizer):
    """A strong cost priority yields a cheaper variant ranked first."""
    variants = optimizer.optimize(
        get_pattern('traditional-stack'),
        Requirements(app_type='web', database=True),
        PreferenceWeights(cost_priority=5),
    )

    assert [variant.variant for variant in variants] == ['cost-optimized', 'base', 'scalability-optimized']
    cost_variant = variants[0]
    assert cost_variant.id == 'traditional-stack-cost-optimized'
    assert cost_variant.savings > 0
    assert cost_variant.suitability_score == 1.0
    assert 'dynamodb' in cost_variant.architecture.service_ids()
    assert 'rds' not in cost_variant.architecture.service_ids()
    assert cost_variant.architecture.find('ec2').configuration.instance_type == 't3.micro'
    assert [variant.rank for variant in variants] == [1, 2, 3]


def test_performance_variant_adds_cache_and_cdn(optimizer):
    """A strong performance requirement adds caching and a CDN."""
    variants = optimizer.optimize(
        get_pattern('serverless-api'),
        Requirements(app_type='api'),
        PreferenceWeights(performance_priority=5),
    )

    performance = next(variant for variant in variants if variant.variant == 'performance-optimized')
    assert {'elasticache', 'cloudfront'} <= set(performance.architecture.service_ids())
    assert performance.architecture.find('lambda').configuration.memory_mb == 1024
    assert performance.savings < 0


def test_simplicity_variant_drops_unneeded_monitoring(optimizer):
    """Optional monitoring no service depends on is removed for simplicity."""
    variants = optimizer.optimize(
        get_pattern('container-stack'),
        Requirements(app_type='web'),
        PreferenceWeights(complexity_tolerance=1),
    )

    simplified = next(variant for variant in variants if variant.variant == 'simplicity-optimized')
    assert simplified.architecture.service_ids() == ['alb', 'ecs']
    assert simplified.characteristics.complexity == 2


def test_scalability_variant_scales_compute(optimizer):
    """The scalability variant runs at least two instances behind a load balancer."""
    variants = optimizer.optimize(get_pattern('traditional-stack'), Requirements(app_type='web', traffic='high'))

    scalable = next(variant for variant in variants if variant.variant == 'scalability-optimized')
    ec2 = scalable.architecture.find('ec2').configuration
    assert ec2.auto_scaling and ec2.min_instances == 2
    assert scalable.characteristics.scalability == 5
    assert scalable.suitability_score == pytest.approx(0.87 + 0.1)


def test_variants_sorted_by_suitability(optimizer):
    """Variants are ordered best first and scores stay within 0 and 1."""
    variants = optimizer.optimize(
        get_pattern('traditional-stack'),
        Requirements(app_type='web', database=True, budget=1000),
        PreferenceWeights(cost_priority=5, performance_priority=5, complexity_tolerance=1),
    )

    scores = [variant.suitability_score for variant in variants]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= score <= 1.0 for score in scores)
    assert [variant.rank for variant in variants] == list(range(1, len(variants) + 1))
    assert len({variant.id for variant in variants}) == len(variants)


def test_scalability_need_earns_preference_bonus(optimizer):
    """The scalability variant is always built and scores higher when scalability matters."""
    requirements = Requirements(app_type='web', database=True)

    neutral = optimizer.optimize(get_pattern('traditional-stack'), requirements)
    demanding = optimizer.optimize(get_pattern('traditional-stack'), requirements, PreferenceWeights(scalability_need=5))

    neutral_score = next(v.suitability_score for v in neutral if v.variant == 'scalability-optimized')
    assert neutral_score == pytest.approx(0.87)
    assert demanding[0].variant == 'scalability-optimized'
    assert demanding[0].suitability_score == 1.0


def test_optimize_is_repeatable(optimizer):
    """Identical inputs give the same ranked variants every time."""
    arguments = (
        get_pattern('traditional-stack'),
        Requirements(app_type='web', database=True, traffic='medium', budget=200),
        PreferenceWeights(cost_priority=5, performance_priority=4, complexity_tolerance=2, scalability_need=4),
    )
    first = [variant.to_dict() for variant in optimizer.optimize(*arguments)]
    second = [variant.to_dict() for variant in optimizer.optimize(*arguments)]
    assert first == second


def test_variant_to_dict(optimizer):
    """Serialized variants carry cost, services and validation."""
    variant = optimizer.optimize(get_pattern('static-spa'), Requirements(app_type='static'))[0]
    data = variant.to_dict()

    assert data['service_ids'] == ['cloudfront', 's3']
    assert data['validation']['valid'] is True
    assert data['net_monthly_cost'] == round(variant.cost.net_monthly_cost, 2)
    assert data['pattern_id'] == 'static-spa'
