"""
Domain models for architectures and usage profiles.
Defines the caller-supplied inputs priced by the cost engine.
"""
import math
from typing import List, Dict, Any, Optional, Tuple, Callable, ClassVar, Union
from dataclasses import dataclass, field, fields, asdict, replace

from costplanner.domain.diagnostics import Diagnostic, InvalidUsageError


USAGE_FIELDS: Tuple[str, ...] = (
    "page_views",
    "unique_users",
    "api_requests",
    "data_transfer_gb",
    "storage_gb",
    "compute_hours",
)

# Metrics that count discrete events and are floored when projected
COUNT_FIELDS: Tuple[str, ...] = ("page_views", "unique_users", "api_requests")


@dataclass(frozen=True)
class UsageProfile:
    """Monthly traffic and resource usage for an application."""
    page_views: float = 0.0
    unique_users: float = 0.0
    api_requests: float = 0.0
    data_transfer_gb: float = 0.0
    storage_gb: float = 0.0
    compute_hours: float = 0.0

    def sanitized(self) -> Tuple["UsageProfile", List[Diagnostic]]:
        """
        Clamp negative, infinite or non-numeric metrics to zero.

        Returns:
            Tuple of (clean profile, diagnostics for every clamped metric)
        """
        values: Dict[str, float] = {}
        diagnostics: List[Diagnostic] = []
        for name in USAGE_FIELDS:
            raw = getattr(self, name)
            try:
                number = float(raw)
            except (TypeError, ValueError):
                number = math.nan
            if math.isnan(number) or math.isinf(number) or number < 0:
                issue = InvalidUsageError(f"Usage metric '{name}' has invalid value {raw!r}; using 0")
                diagnostics.append(issue.to_diagnostic())
                number = 0.0
            values[name] = number
        return UsageProfile(**values), diagnostics

    def scaled(self, multiplier: float) -> "UsageProfile":
        """Scale every metric by the same multiplier, flooring event counts."""
        values = {}
        for name in USAGE_FIELDS:
            scaled_value = getattr(self, name) * multiplier
            if name in COUNT_FIELDS:
                scaled_value = float(math.floor(scaled_value))
            values[name] = scaled_value
        return UsageProfile(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {name: getattr(self, name) for name in USAGE_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageProfile":
        unknown = set(data) - set(USAGE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown usage metrics: {', '.join(sorted(unknown))}")
        return cls(**data)


# Traffic presets used for quick comparisons and variant ranking
TRAFFIC_PROFILES: Dict[str, UsageProfile] = {
    "low": UsageProfile(
        page_views=1000, unique_users=100, api_requests=10000,
        data_transfer_gb=1, storage_gb=1, compute_hours=100,
    ),
    "medium": UsageProfile(
        page_views=50000, unique_users=5000, api_requests=500000,
        data_transfer_gb=50, storage_gb=10, compute_hours=500,
    ),
    "high": UsageProfile(
        page_views=1000000, unique_users=100000, api_requests=10000000,
        data_transfer_gb=1000, storage_gb=100, compute_hours=2000,
    ),
    "enterprise": UsageProfile(
        page_views=10000000, unique_users=1000000, api_requests=100000000,
        data_transfer_gb=10000, storage_gb=1000, compute_hours=8760,
    ),
}


def _reject_invalid_numbers(config: Any) -> None:
    for item in fields(config):
        value = getattr(config, item.name)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            continue
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"{type(config).__name__}.{item.name} must be a finite number (got: {value})")
        if value < 0:
            raise ValueError(f"{type(config).__name__}.{item.name} must not be negative (got: {value})")


@dataclass(frozen=True)
class ComputeConfiguration:
    """Configuration for EC2 instances, Lambda functions and Fargate tasks."""
    category: ClassVar[str] = "compute"
    instance_type: Optional[str] = None
    instance_count: int = 1
    storage_size_gb: float = 0.0
    volume_type: str = "gp3"
    hours_per_month: Optional[float] = None
    memory_mb: Optional[float] = None
    avg_duration_ms: Optional[float] = None
    monthly_invocations: Optional[float] = None
    provisioned_concurrency: int = 0
    vcpu: Optional[float] = None
    memory_gb: Optional[float] = None
    auto_scaling: bool = False
    min_instances: Optional[int] = None
    max_instances: Optional[int] = None
    multi_az: bool = False
    fully_managed: bool = False

    def __post_init__(self):
        _reject_invalid_numbers(self)


@dataclass(frozen=True)
class StorageConfiguration:
    """Configuration for object storage."""
    category: ClassVar[str] = "storage"
    storage_gb: Optional[float] = None
    storage_class: str = "standard"
    requests: Optional[float] = None
    put_ratio: float = 0.1
    data_transfer_gb: Optional[float] = None
    lifecycle_policy: bool = False
    versioning: bool = False

    def __post_init__(self):
        _reject_invalid_numbers(self)


@dataclass(frozen=True)
class DatabaseConfiguration:
    """Configuration for relational, key-value and cache databases."""
    category: ClassVar[str] = "database"
    instance_type: Optional[str] = None
    instance_count: int = 1
    storage_size_gb: Optional[float] = None
    backup_retention_days: int = 7
    billing_mode: str = "on-demand"
    read_capacity: int = 5
    write_capacity: int = 5
    read_ratio: Optional[float] = None
    multi_az: bool = False
    read_replicas: int = 0
    engine: str = "mysql"
    auto_scaling: bool = False
    fully_managed: bool = False

    def __post_init__(self):
        _reject_invalid_numbers(self)
        if self.billing_mode not in ("on-demand", "provisioned"):
            raise ValueError(f"Unsupported billing mode: {self.billing_mode}")
        if self.read_ratio is not None and self.read_ratio > 1:
            raise ValueError("read_ratio must be between 0 and 1")


@dataclass(frozen=True)
class NetworkingConfiguration:
    """Configuration for CDN, load balancing, API and DNS services."""
    category: ClassVar[str] = "networking"
    data_transfer_gb: Optional[float] = None
    requests: Optional[float] = None
    price_class: str = "north_america"
    load_balancer_count: int = 1
    lcu_count: Optional[float] = None
    hosted_zones: int = 1

    def __post_init__(self):
        _reject_invalid_numbers(self)


@dataclass(frozen=True)
class MonitoringConfiguration:
    """Configuration for metrics, alarms and log ingestion."""
    category: ClassVar[str] = "monitoring"
    metrics: int = 10
    alarms: int = 5
    logs_gb: float = 1.0
    dashboards: int = 0

    def __post_init__(self):
        _reject_invalid_numbers(self)


@dataclass(frozen=True)
class SecurityConfiguration:
    """Configuration for user identity services."""
    category: ClassVar[str] = "security"
    monthly_active_users: Optional[float] = None

    def __post_init__(self):
        _reject_invalid_numbers(self)


ServiceConfiguration = Union[
    ComputeConfiguration,
    StorageConfiguration,
    DatabaseConfiguration,
    NetworkingConfiguration,
    MonitoringConfiguration,
    SecurityConfiguration,
]

CONFIGURATION_TYPES: Dict[str, type] = {
    cls.category: cls
    for cls in (
        ComputeConfiguration,
        StorageConfiguration,
        DatabaseConfiguration,
        NetworkingConfiguration,
        MonitoringConfiguration,
        SecurityConfiguration,
    )
}


def parse_configuration(category: str, raw: Optional[Dict[str, Any]]) -> ServiceConfiguration:
    """
    Build the configuration variant for a service category.

    Args:
        category: Service category from the pricing catalog
        raw: Configuration fields, or None for defaults

    Returns:
        Configuration dataclass for the category

    Raises:
        ValueError: If the category is unknown or the fields are invalid
    """
    config_type = CONFIGURATION_TYPES.get(category)
    if config_type is None:
        raise ValueError(f"No configuration variant for category '{category}'")
    if raw is None:
        return config_type()
    if isinstance(raw, config_type):
        return raw

    allowed = {item.name for item in fields(config_type)}
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(
            f"Unknown {category} configuration fields: {', '.join(sorted(unknown))}"
        )
    try:
        return config_type(**raw)
    except TypeError as error:
        raise ValueError(f"Invalid {category} configuration: {error}") from error


def configuration_to_dict(configuration: Optional[ServiceConfiguration]) -> Optional[Dict[str, Any]]:
    if configuration is None:
        return None
    result = {"kind": configuration.category}
    result.update(asdict(configuration))
    return result


@dataclass(frozen=True)
class ServiceUsage:
    """A single service entry in an architecture."""
    service_id: str
    purpose: str = ""
    configuration: Optional[ServiceConfiguration] = None
    required: bool = True

    @property
    def key(self) -> Tuple[str, str]:
        return (self.service_id, self.purpose)

    def with_configuration(self, **changes: Any) -> "ServiceUsage":
        """Return a copy with configuration fields replaced."""
        if self.configuration is None:
            raise ValueError(f"Service '{self.service_id}' has no configuration to update")
        return replace(self, configuration=replace(self.configuration, **changes))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "service_id": self.service_id,
            "purpose": self.purpose,
            "required": self.required,
            "configuration": configuration_to_dict(self.configuration),
        }


@dataclass(frozen=True)
class Architecture:
    """Ordered set of services that make up a deployment."""
    services: Tuple[ServiceUsage, ...] = field(default_factory=tuple)
    name: str = ""

    def __post_init__(self):
        services = tuple(self.services)
        seen = set()
        for usage in services:
            if usage.key in seen:
                raise ValueError(
                    f"Duplicate service entry {usage.service_id!r} for purpose {usage.purpose!r}"
                )
            seen.add(usage.key)
        object.__setattr__(self, "services", services)

    def service_ids(self) -> List[str]:
        """Sorted, de-duplicated service ids."""
        return sorted({usage.service_id for usage in self.services})

    def has_service(self, service_id: str) -> bool:
        return any(usage.service_id == service_id for usage in self.services)

    def find(self, service_id: str) -> Optional[ServiceUsage]:
        for usage in self.services:
            if usage.service_id == service_id:
                return usage
        return None

    def with_service(self, usage: ServiceUsage) -> "Architecture":
        return replace(self, services=self.services + (usage,))

    def without_service(self, service_id: str) -> "Architecture":
        return replace(
            self,
            services=tuple(u for u in self.services if u.service_id != service_id),
        )

    def replace_service(self, service_id: str, new_usage: ServiceUsage) -> "Architecture":
        """Swap every entry of a service id for a new entry, keeping position."""
        services: List[ServiceUsage] = []
        for usage in self.services:
            candidate = new_usage if usage.service_id == service_id else usage
            # First occurrence wins when the replacement collides with an existing entry
            if candidate.key not in {s.key for s in services}:
                services.append(candidate)
        return replace(self, services=tuple(services))

    def map_services(self, transform: Callable[[ServiceUsage], ServiceUsage]) -> "Architecture":
        return replace(self, services=tuple(transform(usage) for usage in self.services))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "services": [usage.to_dict() for usage in self.services],
        }


def architecture_from_dict(
    data: Dict[str, Any],
    category_of: Callable[[str], Optional[str]],
) -> Architecture:
    """
    Build an Architecture from plain dictionaries.

    Services whose category cannot be resolved keep no configuration so the
    cost engine can report them as unknown instead of failing here.

    Args:
        data: Dict with "services" list and optional "name"
        category_of: Resolves a service id to its catalog category, or None

    Returns:
        Validated Architecture

    Raises:
        ValueError: If an entry is malformed or a configuration is invalid
    """
    services = []
    for index, entry in enumerate(data.get("services", [])):
        service_id = entry.get("service_id")
        if not service_id:
            raise ValueError(f"Service entry {index} is missing 'service_id'")
        category = category_of(service_id)
        raw_config = entry.get("configuration")
        configuration = parse_configuration(category, raw_config) if category else None
        services.append(
            ServiceUsage(
                service_id=service_id,
                purpose=entry.get("purpose", ""),
                configuration=configuration,
                required=entry.get("required", True),
            )
        )
    return Architecture(services=tuple(services), name=data.get("name", ""))
