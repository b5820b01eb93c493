"""
Tests for cost optimization recommendations.
"""

import pytest
from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    ComputeConfiguration,
    StorageConfiguration,
)
from costplanner.domain.cost_models import CostResult, ServiceCost, MeteredComponent
from costplanner.domain.recommendation_models import UsagePatternFlags
from costplanner.services.optimization_advisor import (
    OptimizationAdvisor,
    CommitmentTerm,
    EC2_RESERVED_TERMS,
    reserved_suitability,
    spot_suitability,
)


@pytest.fixture
def advisor(catalog, free_tier):
    """Advisor over the bundled catalog."""
    return OptimizationAdvisor(catalog, free_tier)


@pytest.fixture
def ec2_at_120():
    """EC2 web server billed $120/month on m5.large."""
    architecture = Architecture(services=(
        ServiceUsage('ec2', 'Web server', ComputeConfiguration(instance_type='m5.large')),
    ))
    service_cost = ServiceCost(
        service_id='ec2',
        purpose='Web server',
        name='Amazon EC2',
        category='compute',
        monthly_cost=120.0,
        components=[MeteredComponent('compute', 'compute', 1250.0, 'instance-hour', 120.0, 'm5.large')],
    )
    result = CostResult(
        service_costs=[service_cost],
        total_monthly_cost=120.0,
        free_tier_savings=0.0,
        net_monthly_cost=120.0,
        breakdown_by_category={'compute': 120.0},
        region='us-east-1',
        region_multiplier=1.0,
        free_tier_enabled=True,
        usage=UsageProfile(page_views=500000),
        pricing_version='2024.01',
    )
    return architecture, result


def test_reserved_instance_savings(advisor, ec2_at_120):
    """A 40% one-year reservation on $120/month saves $48/month."""
    architecture, result = ec2_at_120
    recommendations = advisor.generate(architecture, result)

    reserved = next(
        r for r in recommendations
        if r.id == 'reserved-instance-ec2-web-server-1yr-all-upfront'
    )
    assert reserved.potential_savings == pytest.approx(48.0)
    assert reserved.commitment.term_savings == pytest.approx(48.0 * 12)
    assert reserved.commitment.upfront_cost == pytest.approx(120.0 * 12 * 0.6)
    assert reserved.impact == 'high'


def test_capacity_options_are_mutually_exclusive(advisor, ec2_at_120):
    """Reserved and spot options for one resource replace each other."""
    architecture, result = ec2_at_120
    recommendations = advisor.generate(architecture, result)

    capacity = [r for r in recommendations if r.type in ('reserved-instance', 'spot-instance')]
    assert len(capacity) == len(EC2_RESERVED_TERMS) + 1
    groups = {r.alternative_group for r in capacity}
    assert groups == {'capacity:ec2:Web server'}
    for recommendation in capacity:
        assert not recommendation.standalone
        assert recommendation.id not in recommendation.alternatives
        assert len(recommendation.alternatives) == len(capacity) - 1


def test_spot_excluded_when_not_fault_tolerant(advisor, ec2_at_120):
    """Declaring the workload not fault tolerant removes the spot option."""
    architecture, result = ec2_at_120
    recommendations = advisor.generate(architecture, result, UsagePatternFlags(fault_tolerant=False))
    assert not any(r.type == 'spot-instance' for r in recommendations)


def test_rightsizing_falls_back_without_smaller_class(advisor, ec2_at_120):
    """Without a cheaper class in the family, savings use the fallback share."""
    architecture, result = ec2_at_120
    rightsizing = next(r for r in advisor.generate(architecture, result) if r.type == 'rightsizing')
    assert rightsizing.potential_savings == pytest.approx(120.0 * 0.30)
    assert rightsizing.standalone


def test_rightsizing_moves_to_next_smaller_class(advisor, engine, web_stack, always_on_usage):
    """t3.large is right-sized to t3.medium at half the compute cost."""
    result = engine.calculate(web_stack, always_on_usage, free_tier_enabled=False)
    rightsizing = next(r for r in advisor.generate(web_stack, result) if r.type == 'rightsizing')

    compute_cost = result.service('ec2').breakdown['compute']
    assert rightsizing.id == 'rightsizing-ec2-web-server'
    assert rightsizing.potential_savings == pytest.approx(compute_cost * 0.5)
    assert 't3.medium' in rightsizing.description


def test_recommendations_ranked_by_savings(advisor, engine, web_stack, always_on_usage):
    """Highest savings come first."""
    result = engine.calculate(web_stack, always_on_usage, free_tier_enabled=False)
    savings = [r.potential_savings for r in advisor.generate(web_stack, result)]
    assert savings == sorted(savings, reverse=True)


def test_storage_lifecycle_for_large_buckets(advisor, engine):
    """Large standard-class buckets get a lifecycle recommendation."""
    bucket = Architecture(services=(ServiceUsage('s3', 'Archive', StorageConfiguration(storage_gb=200)),))
    managed = Architecture(services=(
        ServiceUsage('s3', 'Archive', StorageConfiguration(storage_gb=200, lifecycle_policy=True)),
    ))

    result = engine.calculate(bucket, UsageProfile(), free_tier_enabled=False)
    lifecycle = [r for r in advisor.generate(bucket, result) if r.type == 'storage-lifecycle']
    assert len(lifecycle) == 1
    assert lifecycle[0].potential_savings == pytest.approx(200 * 0.023 * 0.25)

    result = engine.calculate(managed, UsageProfile(), free_tier_enabled=False)
    assert not any(r.type == 'storage-lifecycle' for r in advisor.generate(managed, result))


def test_cdn_recommended_for_heavy_transfer(advisor, engine):
    """Data transfer above the threshold without CloudFront suggests a CDN."""
    bucket = Architecture(services=(ServiceUsage('s3', 'Downloads', StorageConfiguration(data_transfer_gb=200)),))
    result = engine.calculate(bucket, UsageProfile(), free_tier_enabled=False)

    cdn = next(r for r in advisor.generate(bucket, result) if r.type == 'cdn-introduction')
    transfer_cost = 0.81 + 3.4 + 7.0 + 2.5
    assert cdn.potential_savings == pytest.approx(transfer_cost * 0.40)


def test_free_tier_enablement_when_disabled(advisor, engine, s3_only):
    """Disabling the free tier surfaces the savings it would provide."""
    result = engine.calculate(s3_only, UsageProfile(), free_tier_enabled=False)
    enablement = [r for r in advisor.generate(s3_only, result) if r.type == 'free-tier-enablement']
    assert len(enablement) == 1
    assert enablement[0].potential_savings == pytest.approx(result.total_monthly_cost)

    result = engine.calculate(s3_only, UsageProfile(), free_tier_enabled=True)
    assert not any(r.type == 'free-tier-enablement' for r in advisor.generate(s3_only, result))


def test_serverless_migration_for_low_traffic(advisor, engine, ec2_small):
    """Always-on compute under low traffic suggests Lambda."""
    result = engine.calculate(ec2_small, UsageProfile(page_views=1000, compute_hours=730), free_tier_enabled=False)
    migration = next(r for r in advisor.generate(ec2_small, result) if r.type == 'serverless-migration')
    assert migration.potential_savings == pytest.approx(15.184 * 0.70)


def test_region_relocation_from_expensive_region(advisor, engine, ec2_small):
    """An expensive region suggests the cheapest eligible one."""
    result = engine.calculate(ec2_small, UsageProfile(compute_hours=730), 'ap-northeast-1', free_tier_enabled=False)
    relocation = next(r for r in advisor.generate(ec2_small, result) if r.type == 'region-relocation')

    assert relocation.id == 'region-relocation-us-east-1'
    assert relocation.potential_savings == pytest.approx(result.net_monthly_cost * (1 - 1 / 1.18))


def test_no_region_relocation_in_cheapest_region(advisor, engine, ec2_small):
    """Already cheapest regions get no relocation advice."""
    result = engine.calculate(ec2_small, UsageProfile(compute_hours=730), 'us-east-1', free_tier_enabled=False)
    assert not any(r.type == 'region-relocation' for r in advisor.generate(ec2_small, result))


def test_unpriced_services_are_skipped(advisor, engine):
    """Services that could not be priced get no advice."""
    architecture = Architecture(services=(ServiceUsage('mainframe', 'Batch'),))
    result = engine.calculate(architecture, UsageProfile())
    assert all(r.service_id != 'mainframe' for r in advisor.generate(architecture, result))


def test_injected_reserved_terms(catalog, ec2_at_120):
    """Reserved discounts can be supplied by the caller."""
    architecture, result = ec2_at_120
    advisor = OptimizationAdvisor(catalog, ec2_reserved_terms=[CommitmentTerm(1, 'no-upfront', 0.5, 0)])
    reserved = [r for r in advisor.generate(architecture, result) if r.type == 'reserved-instance']

    assert len(reserved) == 1
    assert reserved[0].potential_savings == pytest.approx(60.0)


def test_suitability_scores():
    """Declared workload traits drive commitment suitability."""
    committed = UsagePatternFlags(consistent=True, predictable=True, long_term=True, has_capital=True)
    three_year_upfront = CommitmentTerm(3, 'all-upfront', 0.62, 13.68)
    assert reserved_suitability(committed, three_year_upfront) == 'high'
    assert reserved_suitability(UsagePatternFlags(), three_year_upfront) == 'low'

    batch = UsagePatternFlags(fault_tolerant=True, batch_processing=True)
    assert spot_suitability(batch) == 'high'
    assert spot_suitability(UsagePatternFlags(stateless=True)) == 'low'
