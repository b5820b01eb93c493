"""
Shared pytest fixtures for costplanner tests.
"""

import sys
import os
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

# Pin configuration so tests do not depend on the caller's environment
os.environ.setdefault('COSTPLANNER_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('COSTPLANNER_DEFAULT_CURRENCY', 'USD')

import pytest
from fastapi.testclient import TestClient
from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    UsageProfile,
    ComputeConfiguration,
    StorageConfiguration,
    DatabaseConfiguration,
    NetworkingConfiguration,
    MonitoringConfiguration,
)
from costplanner.pricing.catalog import load_catalog
from costplanner.services.cost_engine import CostEngine
from costplanner.services.free_tier import FreeTierCalculator


@pytest.fixture
def client():
    """FastAPI test client."""
    from costplanner.main import app
    return TestClient(app)


@pytest.fixture(scope='session')
def catalog():
    """Bundled pricing catalog."""
    return load_catalog()


@pytest.fixture
def engine(catalog):
    """Cost engine over the bundled catalog."""
    return CostEngine(catalog)


@pytest.fixture
def free_tier(catalog):
    """Free-tier calculator over the bundled catalog."""
    return FreeTierCalculator(catalog)


@pytest.fixture
def s3_only():
    """Architecture with a single static-hosting bucket."""
    return Architecture(services=(
        ServiceUsage('s3', 'Static hosting', StorageConfiguration(storage_gb=5, requests=15000)),
    ))


@pytest.fixture
def ec2_small():
    """Architecture with one t3.small instance and no attached volume."""
    return Architecture(services=(
        ServiceUsage('ec2', 'Web server', ComputeConfiguration(instance_type='t3.small')),
    ))


@pytest.fixture
def web_stack():
    """Load-balanced EC2 application with a database, storage and monitoring."""
    return Architecture(
        services=(
            ServiceUsage('ec2', 'Web server', ComputeConfiguration(instance_type='t3.large', instance_count=2)),
            ServiceUsage('alb', 'Load balancing', NetworkingConfiguration()),
            ServiceUsage('rds', 'Database', DatabaseConfiguration(instance_type='db.t3.small', storage_size_gb=50)),
            ServiceUsage('s3', 'Assets', StorageConfiguration()),
            ServiceUsage('cloudwatch', 'Monitoring', MonitoringConfiguration()),
        ),
        name='web stack',
    )


@pytest.fixture
def always_on_usage():
    """Usage with compute running the whole month."""
    return UsageProfile(
        page_views=50000,
        unique_users=5000,
        api_requests=500000,
        data_transfer_gb=50,
        storage_gb=10,
        compute_hours=730,
    )


@pytest.fixture
def estimate_payload():
    """Request body for the estimate endpoints."""
    return {
        'architecture': {
            'name': 'static site',
            'services': [
                {'service_id': 's3', 'purpose': 'Static hosting', 'configuration': {'storage_gb': 5, 'requests': 15000}},
                {'service_id': 'cloudfront', 'purpose': 'CDN'},
            ],
        },
        'usage': {'page_views': 10000, 'data_transfer_gb': 5, 'storage_gb': 5},
    }
