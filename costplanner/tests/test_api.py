"""
Tests for the HTTP API.
"""

import pytest


def test_health_reports_pricing_version(client):
    """Health check reports the loaded pricing table."""
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'ok', 'pricing_version': '2024.01'}


@pytest.mark.asyncio
async def test_health_handler_directly():
    """Health handler can be awaited without the HTTP stack."""
    from costplanner.main import health
    assert (await health())['status'] == 'ok'


def test_estimate(client, estimate_payload):
    """Estimates include the priced result and a free-tier report."""
    response = client.post('/api/estimate', json=estimate_payload)
    assert response.status_code == 200

    data = response.json()
    assert data['status'] == 'ok'
    assert data['estimate']['currency'] == 'USD'
    assert data['estimate']['region'] == 'us-east-1'
    assert {s['service_id'] for s in data['estimate']['service_costs']} == {'s3', 'cloudfront'}
    assert data['estimate']['net_monthly_cost'] == 0.0
    assert sorted(data['free_tier']['eligible_services']) == ['cloudfront', 's3']


def test_estimate_in_other_currency(client, estimate_payload):
    """Amounts are converted when a currency is requested."""
    estimate_payload['free_tier_enabled'] = False
    usd = client.post('/api/estimate', json=estimate_payload).json()['estimate']
    eur = client.post('/api/estimate', json={**estimate_payload, 'currency': 'EUR'}).json()['estimate']

    assert eur['currency'] == 'EUR'
    assert eur['total_monthly_cost'] == pytest.approx(usd['total_monthly_cost'] * 0.85, abs=0.02)


def test_estimate_with_traffic_preset(client, estimate_payload):
    """Traffic presets are used when usage is omitted."""
    del estimate_payload['usage']
    estimate_payload['traffic_level'] = 'high'
    data = client.post('/api/estimate', json=estimate_payload).json()
    assert data['estimate']['usage']['page_views'] == 1000000


def test_estimate_unknown_service_is_a_diagnostic(client, estimate_payload):
    """Unknown services do not fail the request."""
    estimate_payload['architecture']['services'].append({'service_id': 'mainframe', 'purpose': 'Batch'})
    response = client.post('/api/estimate', json=estimate_payload)

    assert response.status_code == 200
    diagnostics = response.json()['estimate']['diagnostics']
    assert [d['code'] for d in diagnostics] == ['unknown_service']


def test_estimate_rejects_invalid_configuration(client, estimate_payload):
    """Unknown configuration fields are a client error."""
    estimate_payload['architecture']['services'][0]['configuration'] = {'warp_drive': True}
    response = client.post('/api/estimate', json=estimate_payload)
    assert response.status_code == 422
    assert 'warp_drive' in response.json()['detail']


def test_estimate_rejects_non_finite_configuration(client):
    """An infinite storage size is a client error rather than an unpriceable total."""
    body = (
        '{"architecture": {"services": [{"service_id": "s3", "purpose": "Assets",'
        ' "configuration": {"storage_gb": Infinity}}]}}'
    )
    response = client.post('/api/estimate', content=body, headers={'Content-Type': 'application/json'})
    assert response.status_code == 422


def test_estimate_rejects_unknown_traffic_level(client, estimate_payload):
    """Unknown traffic presets are a client error."""
    del estimate_payload['usage']
    estimate_payload['traffic_level'] = 'viral'
    assert client.post('/api/estimate', json=estimate_payload).status_code == 422


def test_estimate_rejects_month_zero(client, estimate_payload):
    """Account age starts at month 1."""
    estimate_payload['month'] = 0
    assert client.post('/api/estimate', json=estimate_payload).status_code == 422


def test_estimate_rejects_oversized_architecture(client, estimate_payload):
    """Architectures with too many services are refused before pricing."""
    estimate_payload['architecture']['services'] = [
        {'service_id': 's3', 'purpose': f'bucket {index}'} for index in range(101)
    ]
    response = client.post('/api/estimate', json=estimate_payload)
    assert response.status_code == 413
    assert response.json()['error'] == 'request_too_large'


def test_region_comparison(client, estimate_payload):
    """Regions are compared cheapest first with a recommended region."""
    estimate_payload['free_tier_enabled'] = False
    estimate_payload['constraints'] = {'gdpr_compliance': True}
    response = client.post('/api/estimate/regions', json=estimate_payload)
    assert response.status_code == 200

    data = response.json()
    assert len(data['comparisons']) == 10
    costs = [c['net_monthly_cost'] for c in data['comparisons']]
    assert costs == sorted(costs)
    assert data['recommended_region']['region'] == 'eu-west-1'


def test_recommendations(client):
    """Recommendations come with the estimate they are based on."""
    payload = {
        'architecture': {
            'services': [
                {'service_id': 'ec2', 'purpose': 'Web', 'configuration': {'instance_type': 'm5.xlarge', 'instance_count': 2}},
            ],
        },
        'usage': {'page_views': 5000, 'compute_hours': 730},
        'usage_pattern': {'fault_tolerant': False, 'consistent': True},
    }
    response = client.post('/api/recommendations', json=payload)
    assert response.status_code == 200

    data = response.json()
    types = {r['type'] for r in data['recommendations']}
    assert {'reserved-instance', 'rightsizing', 'serverless-migration'} <= types
    assert 'spot-instance' not in types
    standalone = sum(r['potential_savings'] for r in data['recommendations'] if r['standalone'])
    assert data['total_potential_savings'] == pytest.approx(standalone, abs=0.05)


def test_recommendations_reject_unknown_flags(client, estimate_payload):
    """Unknown workload traits are a client error."""
    estimate_payload['usage_pattern'] = {'quantum': True}
    assert client.post('/api/recommendations', json=estimate_payload).status_code == 422


def test_projections_with_predefined_scenario(client, estimate_payload):
    """Projections return one entry per month with a summary."""
    estimate_payload.update({'scenario': 'moderate', 'horizon_months': 6})
    response = client.post('/api/projections', json=estimate_payload)
    assert response.status_code == 200

    data = response.json()
    assert [p['month'] for p in data['projections']] == [1, 2, 3, 4, 5, 6]
    assert data['scenario']['name'] == 'moderate'
    assert data['summary']['months'] == 6
    assert any(r['id'] == 'scenario-budget-monitoring' for r in data['recommendations'])


def test_projections_with_custom_growth(client, estimate_payload):
    """Custom growth needs a pattern and a rate."""
    estimate_payload.update({'growth_pattern': 'linear', 'monthly_growth_rate': 0.1, 'horizon_months': 2})
    data = client.post('/api/projections', json=estimate_payload).json()
    assert data['projections'][1]['growth_multiplier'] == pytest.approx(1.2)


def test_projections_reject_bad_input(client, estimate_payload):
    """Unknown scenarios, missing growth and out-of-range horizons are client errors."""
    assert client.post('/api/projections', json={**estimate_payload, 'scenario': 'lunar'}).status_code == 422
    assert client.post('/api/projections', json=estimate_payload).status_code == 422
    response = client.post('/api/projections', json={**estimate_payload, 'scenario': 'moderate', 'horizon_months': 0})
    assert response.status_code == 422


def test_variants(client):
    """Variants are ranked best first."""
    payload = {
        'pattern_id': 'traditional-stack',
        'requirements': {'app_type': 'web', 'database': True},
        'preferences': {'cost_priority': 5},
    }
    response = client.post('/api/variants', json=payload)
    assert response.status_code == 200

    data = response.json()
    assert data['pattern']['id'] == 'traditional-stack'
    assert [v['rank'] for v in data['variants']] == list(range(1, len(data['variants']) + 1))
    assert data['variants'][0]['variant'] == 'cost-optimized'


def test_variants_reject_bad_input(client):
    """Unknown patterns and out-of-range preferences are client errors."""
    assert client.post('/api/variants', json={'pattern_id': 'mainframe'}).status_code == 422
    response = client.post('/api/variants', json={'pattern_id': 'static-spa', 'preferences': {'cost_priority': 9}})
    assert response.status_code == 422


def test_variants_read_every_preference(client):
    """All four preference ratings reach the optimizer."""
    payload = {
        'pattern_id': 'serverless-api',
        'requirements': {'app_type': 'api'},
        'preferences': {'performance_priority': 5, 'scalability_need': 5},
    }
    response = client.post('/api/variants', json=payload)
    assert response.status_code == 200
    assert 'performance-optimized' in [v['variant'] for v in response.json()['variants']]

    payload['preferences'] = {'performance_requirements': 5}
    legacy = client.post('/api/variants', json=payload).json()
    assert 'performance-optimized' in [v['variant'] for v in legacy['variants']]


def test_variants_reject_unknown_preferences(client):
    """Misspelled preference names are a client error, not silently ignored."""
    payload = {'pattern_id': 'static-spa', 'preferences': {'speed_priority': 5}}
    assert client.post('/api/variants', json=payload).status_code == 422


def test_catalog_endpoint(client):
    """The pricing catalog and currencies are published."""
    data = client.get('/api/catalog').json()
    assert data['catalog']['version'] == '2024.01'
    assert 'EUR' in data['currencies']


def test_patterns_endpoint(client):
    """Patterns, scenarios and traffic presets are published."""
    data = client.get('/api/patterns').json()
    assert {p['id'] for p in data['patterns']} == {'static-spa', 'serverless-api', 'traditional-stack', 'container-stack'}
    assert {s['name'] for s in data['scenarios']} == {'conservative', 'moderate', 'aggressive', 'seasonal'}
    assert list(data['traffic_levels']) == ['low', 'medium', 'high', 'enterprise']


def test_rank_services(client):
    """Services come back best first with a comparison matrix."""
    payload = {
        'services': [
            {'service_id': 'ec2', 'purpose': 'Web server', 'configuration': {'instance_type': 't3.small'}},
            {'service_id': 'lambda', 'purpose': 'API handlers'},
            {'service_id': 's3', 'purpose': 'Assets'},
        ],
        'requirements': {'traffic': 'medium', 'budget': 100},
        'preferences': {'complexity_tolerance': 2},
        'criteria': ['cost', 'complexity'],
    }
    response = client.post('/api/services/rank', json=payload)
    assert response.status_code == 200

    data = response.json()
    assert [s['rank'] for s in data['services']] == [1, 2, 3]
    assert {s['service_id'] for s in data['services']} == {'ec2', 'lambda', 's3'}
    assert data['comparison_matrix']['criteria'] == ['cost', 'complexity']
    assert data['services'][0]['tier'] in ('recommended', 'suitable', 'acceptable', 'not-recommended')


def test_rank_services_rejects_bad_input(client):
    """Unknown criteria and invalid requirements are client errors."""
    services = [{'service_id': 's3', 'purpose': 'Assets'}]
    assert client.post(
        '/api/services/rank', json={'services': services, 'criteria': ['popularity']}
    ).status_code == 422
    assert client.post(
        '/api/services/rank', json={'services': services, 'requirements': {'traffic': 'galactic'}}
    ).status_code == 422


def test_service_alternatives(client):
    """Alternatives default to every catalog service in the same category."""
    payload = {'service': {'service_id': 'rds', 'purpose': 'Database'}, 'limit': 5}
    response = client.post('/api/services/alternatives', json=payload)
    assert response.status_code == 200

    data = response.json()
    assert data['service']['service_id'] == 'rds'
    assert {a['service_id'] for a in data['alternatives']} == {'dynamodb', 'elasticache'}
    assert all(a['category'] == 'database' for a in data['alternatives'])

    unknown = client.post('/api/services/alternatives', json={'service': {'service_id': 'warp_drive'}})
    assert unknown.status_code == 422


def test_data_transfer(client):
    """Transfer is priced from the configured default region."""
    response = client.post('/api/data-transfer', json={'destination': 'eu-west-1', 'data_gb': 100})
    assert response.status_code == 200
    data = response.json()['data_transfer']
    assert data['source_region'] == 'us-east-1'
    assert data['transfer_type'] == 'cross_region'
    assert data['cost'] == 2.0

    negative = client.post('/api/data-transfer', json={'destination': 'internet', 'data_gb': -5})
    assert negative.status_code == 422
