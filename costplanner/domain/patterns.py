"""
Predefined architecture patterns.
"""
from typing import Dict, List, Callable

from costplanner.domain.architecture_models import (
    Architecture,
    ServiceUsage,
    ComputeConfiguration,
    StorageConfiguration,
    DatabaseConfiguration,
    NetworkingConfiguration,
    MonitoringConfiguration,
    SecurityConfiguration,
)
from costplanner.domain.variant_models import (
    ArchitecturePattern,
    PatternCharacteristics,
    Requirements,
)


# Which requirement switches on an optional pattern service
OPTIONAL_SERVICE_RULES: Dict[str, Callable[[Requirements], bool]] = {
    "cognito": lambda requirements: requirements.auth,
    "dynamodb": lambda requirements: requirements.database,
    "rds": lambda requirements: requirements.database,
    "route53": lambda requirements: requirements.custom_domain,
}

# Optional services included by default rather than by a requirement
DEFAULT_OPTIONAL_SERVICES = frozenset({"cloudwatch"})


def _optional(service_id: str, purpose: str, configuration) -> ServiceUsage:
    return ServiceUsage(service_id, purpose, configuration, required=False)


ARCHITECTURE_PATTERNS: Dict[str, ArchitecturePattern] = {
    "static-spa": ArchitecturePattern(
        id="static-spa",
        name="Static SPA Hosting",
        description="Serverless hosting for single-page apps using S3 and CloudFront",
        services=(
            ServiceUsage("s3", "Static hosting", StorageConfiguration()),
            ServiceUsage("cloudfront", "Global CDN", NetworkingConfiguration()),
            _optional("route53", "DNS management", NetworkingConfiguration()),
            _optional("cognito", "User authentication", SecurityConfiguration()),
        ),
        characteristics=PatternCharacteristics(cost=1, complexity=2, scalability=5, availability=5),
        pros=("Extremely cost-effective", "Automatic scaling", "Global CDN", "HTTPS included"),
        cons=("Static content only", "No server-side processing", "Limited to frontend apps"),
    ),
    "serverless-api": ArchitecturePattern(
        id="serverless-api",
        name="Serverless API",
        description="Pay-per-request API using Lambda and API Gateway",
        services=(
            ServiceUsage("lambda", "Serverless compute", ComputeConfiguration()),
            ServiceUsage("api-gateway", "API management", NetworkingConfiguration()),
            _optional("dynamodb", "NoSQL database", DatabaseConfiguration()),
            _optional("cloudwatch", "Monitoring", MonitoringConfiguration()),
            _optional("cognito", "User authentication", SecurityConfiguration()),
        ),
        characteristics=PatternCharacteristics(cost=2, complexity=3, scalability=5, availability=4),
        pros=("Pay per use", "Auto-scaling", "No server management", "Built-in monitoring"),
        cons=("Cold start latency", "Vendor lock-in", "Complex debugging", "15-minute timeout limit"),
    ),
    "traditional-stack": ArchitecturePattern(
        id="traditional-stack",
        name="Traditional Stack",
        description="Classic setup with EC2, a load balancer and RDS",
        services=(
            ServiceUsage("ec2", "Virtual servers", ComputeConfiguration(instance_type="t3.small", storage_size_gb=20)),
            ServiceUsage("alb", "Load balancing", NetworkingConfiguration()),
            _optional("rds", "Managed database", DatabaseConfiguration(instance_type="db.t3.micro", storage_size_gb=20)),
            ServiceUsage("s3", "File storage", StorageConfiguration()),
            _optional("cloudwatch", "Monitoring", MonitoringConfiguration()),
            _optional("route53", "DNS management", NetworkingConfiguration()),
        ),
        characteristics=PatternCharacteristics(cost=4, complexity=4, scalability=4, availability=3),
        pros=("Full control", "Predictable performance", "Any technology stack", "Easy debugging"),
        cons=("Higher base cost", "Server management required", "Manual scaling", "Security responsibility"),
    ),
    "container-stack": ArchitecturePattern(
        id="container-stack",
        name="Container Platform",
        description="Containerized deployment with ECS on Fargate",
        services=(
            ServiceUsage("ecs", "Serverless containers", ComputeConfiguration(vcpu=0.25, memory_gb=0.5)),
            ServiceUsage("alb", "Load balancing", NetworkingConfiguration()),
            _optional("rds", "Managed database", DatabaseConfiguration(instance_type="db.t3.micro", storage_size_gb=20)),
            _optional("cloudwatch", "Monitoring", MonitoringConfiguration()),
        ),
        characteristics=PatternCharacteristics(cost=4, complexity=4, scalability=5, availability=4),
        pros=("Container benefits", "Auto-scaling", "No server management", "Easy CI/CD"),
        cons=("Container complexity", "Higher cost than serverless", "Learning curve", "Networking complexity"),
    ),
}


def get_pattern(pattern_id: str) -> ArchitecturePattern:
    """
    Look up a predefined pattern.

    Raises:
        ValueError: If the pattern id is unknown
    """
    pattern = ARCHITECTURE_PATTERNS.get(pattern_id)
    if pattern is None:
        raise ValueError(
            f"Unknown architecture pattern '{pattern_id}'. "
            f"Available: {', '.join(sorted(ARCHITECTURE_PATTERNS))}"
        )
    return pattern


def select_services(pattern: ArchitecturePattern, requirements: Requirements) -> Architecture:
    """Required pattern services plus the optional ones the requirements ask for."""
    selected: List[ServiceUsage] = []
    for usage in pattern.services:
        rule = OPTIONAL_SERVICE_RULES.get(usage.service_id)
        if (
            usage.required
            or usage.service_id in DEFAULT_OPTIONAL_SERVICES
            or (rule is not None and rule(requirements))
        ):
            selected.append(usage)
    return Architecture(services=tuple(selected), name=pattern.name)
