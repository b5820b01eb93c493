"""
Tests for currency conversion.
"""

import logging

import pytest
from costplanner.domain.architecture_models import UsageProfile
from costplanner.pricing.currency import (
    convert,
    convert_result,
    is_supported_currency,
    supported_currencies,
)


def test_supported_currencies():
    """USD and the fixed-rate currencies are listed in order."""
    currencies = supported_currencies()
    assert currencies == sorted(currencies)
    assert {'USD', 'EUR', 'GBP', 'JPY'} <= set(currencies)
    assert is_supported_currency('eur')
    assert not is_supported_currency('XYZ')


def test_convert_amount():
    """Amounts are multiplied by the currency rate."""
    assert convert(100.0, 'EUR') == pytest.approx(85.0)
    assert convert(100.0, 'usd') == pytest.approx(100.0)


def test_unknown_currency_falls_back_to_usd(caplog):
    """Unknown currencies leave amounts in USD with a warning."""
    with caplog.at_level(logging.WARNING):
        assert convert(42.0, 'XYZ') == 42.0
    assert 'XYZ' in caplog.text


def test_convert_result_returns_new_result(engine, ec2_small):
    """Every amount of a cost result is converted; the original is untouched."""
    result = engine.calculate(ec2_small, UsageProfile(compute_hours=730), free_tier_enabled=False)
    converted = convert_result(result, 'GBP')

    assert converted.currency == 'GBP'
    assert converted.total_monthly_cost == pytest.approx(15.184 * 0.73)
    assert converted.service('ec2').components[0].cost == pytest.approx(15.184 * 0.73)
    assert converted.breakdown_by_category['compute'] == pytest.approx(15.184 * 0.73)
    assert result.currency == 'USD'
    assert result.total_monthly_cost == pytest.approx(15.184)


def test_convert_result_unknown_currency(engine, ec2_small):
    """Unknown currencies return the USD result unchanged."""
    result = engine.calculate(ec2_small, UsageProfile(compute_hours=730))
    assert convert_result(result, 'XYZ') is result


def test_converted_result_cannot_be_converted_again(engine, ec2_small):
    """Conversion always starts from USD."""
    converted = convert_result(engine.calculate(ec2_small, UsageProfile(compute_hours=730)), 'EUR')
    with pytest.raises(ValueError):
        convert_result(converted, 'JPY')
