"""
Tests for free-tier savings and utilization reporting.
"""

import pytest
from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    MonitoringConfiguration,
    NetworkingConfiguration,
    StorageConfiguration,
)
from costplanner.services.free_tier import utilization_status


def test_disabled_free_tier_gives_no_savings(engine, s3_only):
    """Turning the free tier off bills every unit."""
    result = engine.calculate(s3_only, UsageProfile(), free_tier_enabled=False)
    assert result.free_tier_savings == 0.0
    assert result.service('s3').coverage == 'none'


def test_partial_coverage_when_one_dimension_exceeds(engine):
    """Usage over one allowance is billed for the excess only."""
    architecture = Architecture(services=(
        ServiceUsage('s3', 'Uploads', StorageConfiguration(storage_gb=10, requests=15000)),
    ))
    result = engine.calculate(architecture, UsageProfile(), free_tier_enabled=True)

    s3 = result.service('s3')
    assert s3.coverage == 'partial'
    # Only the 5 GB above the allowance is billed
    assert s3.net_monthly_cost == pytest.approx(5 * 0.023)


def test_allowance_applies_to_its_own_pricing_component(engine):
    """Glacier storage and European edge traffic do not use the standard allowances."""
    architecture = Architecture(services=(
        ServiceUsage('s3', 'Archive', StorageConfiguration(storage_gb=5, storage_class='glacier')),
        ServiceUsage('cloudfront', 'CDN', NetworkingConfiguration(price_class='europe', data_transfer_gb=100, requests=0)),
    ))
    result = engine.calculate(architecture, UsageProfile(), free_tier_enabled=True)

    s3 = result.service('s3')
    assert s3.monthly_cost == pytest.approx(5 * 0.004)
    assert s3.free_tier_savings == 0.0
    assert s3.coverage == 'none'
    cloudfront = result.service('cloudfront')
    assert cloudfront.monthly_cost == pytest.approx(100 * 0.085)
    assert cloudfront.free_tier_savings == 0.0


def test_dollar_allotment_caps_savings(engine):
    """Dashboards are covered by a fixed dollar allotment."""
    architecture = Architecture(services=(
        ServiceUsage('cloudwatch', 'Monitoring', MonitoringConfiguration(metrics=10, alarms=5, logs_gb=1, dashboards=5)),
    ))
    result = engine.calculate(architecture, UsageProfile(), free_tier_enabled=True)

    cloudwatch = result.service('cloudwatch')
    assert cloudwatch.monthly_cost == pytest.approx(19.0)
    assert cloudwatch.free_tier_savings == pytest.approx(13.0)
    assert cloudwatch.coverage == 'partial'


def test_report_flags_exceeded_allowances(engine, free_tier):
    """Utilization above 100% is reported with a suggestion."""
    architecture = Architecture(services=(
        ServiceUsage('s3', 'Uploads', StorageConfiguration(storage_gb=10, requests=15000)),
    ))
    report = free_tier.analyze(engine.calculate(architecture, UsageProfile()))

    storage = next(item for item in report.utilization if item.component == 'storage')
    assert storage.percentage == pytest.approx(200.0)
    assert storage.status == 'exceeded'
    gets = next(item for item in report.utilization if item.component == 'get_requests')
    assert gets.status == 'well-utilized'
    assert any('exceeds the free tier' in suggestion for suggestion in report.suggestions)
    assert report.eligible_services == ['s3']


def test_report_suggests_eligible_instance_class(engine, free_tier, ec2_small):
    """A non-eligible instance class is reported with a switch suggestion."""
    report = free_tier.analyze(engine.calculate(ec2_small, UsageProfile(compute_hours=730)))

    assert report.ineligible_services == ['ec2']
    assert report.total_savings == 0.0
    assert any('t3.micro' in suggestion for suggestion in report.suggestions)


def test_report_shows_unused_savings_when_disabled(engine, free_tier, s3_only):
    """The report prices the free tier even when the estimate did not apply it."""
    result = engine.calculate(s3_only, UsageProfile(), free_tier_enabled=False)
    report = free_tier.analyze(result)
    assert report.total_savings == pytest.approx(result.total_monthly_cost)


def test_report_for_services_without_free_tier(engine, free_tier):
    """Services with no allowance are listed as ineligible."""
    architecture = Architecture(services=(ServiceUsage('alb', 'Load balancing', NetworkingConfiguration()),))
    report = free_tier.analyze(engine.calculate(architecture, UsageProfile()))

    assert report.eligible_services == []
    assert report.ineligible_services == ['alb']
    assert report.total_savings == 0.0


def test_report_respects_account_age(engine, free_tier, s3_only):
    """Twelve-month allowances are not counted after they expire."""
    report = free_tier.analyze(engine.calculate(s3_only, UsageProfile()), month=24)
    assert report.total_savings == 0.0


def test_utilization_status_bands():
    """Utilization ratios map to status bands."""
    assert utilization_status(0.1) == 'under-utilized'
    assert utilization_status(0.6) == 'well-utilized'
    assert utilization_status(0.9) == 'near-limit'
    assert utilization_status(1.0) == 'near-limit'
    assert utilization_status(1.5) == 'exceeded'
