"""
Per-service usage calculators.
Each calculator turns a service configuration and a usage profile into metered
quantities; the cost engine prices the quantities against the catalog.
"""
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass

from costplanner.core.config import config
from costplanner.domain.architecture_models import (
    UsageProfile,
    ComputeConfiguration,
    StorageConfiguration,
    DatabaseConfiguration,
    NetworkingConfiguration,
    MonitoringConfiguration,
    SecurityConfiguration,
)
from costplanner.domain.diagnostics import InvalidConfigurationError


SECONDS_PER_HOUR = 3600
LCU_PAGE_VIEWS = 25000  # Page views one load balancer capacity unit absorbs per month


@dataclass(frozen=True)
class Meter:
    """A metered quantity for one pricing component."""
    name: str
    quantity: float
    pricing_component: Optional[str] = None
    price_class: Optional[str] = None

    @property
    def component(self) -> str:
        return self.pricing_component or self.name


class ServiceCalculator(ABC):
    """Maps configuration and usage to metered quantities for one service."""

    configuration_type: type = ComputeConfiguration

    def __init__(self, hours_per_month: float = config.HOURS_PER_MONTH):
        self.hours_per_month = hours_per_month

    def resolve_configuration(self, configuration):
        """
        Return the configuration to use, defaulting when none was supplied.

        Raises:
            InvalidConfigurationError: If the configuration is the wrong variant
        """
        if configuration is None:
            return self.configuration_type()
        if not isinstance(configuration, self.configuration_type):
            raise InvalidConfigurationError(
                f"Expected {self.configuration_type.__name__}, got {type(configuration).__name__}"
            )
        return configuration

    def instance_hours(self, configuration, usage: UsageProfile) -> float:
        """Hours one always-on unit runs this month, capped at a full month."""
        if configuration.hours_per_month is not None:
            return min(configuration.hours_per_month, self.hours_per_month)
        return min(usage.compute_hours, self.hours_per_month)

    @staticmethod
    def instance_count(configuration) -> int:
        if configuration.auto_scaling and configuration.min_instances:
            return configuration.min_instances
        return configuration.instance_count

    @abstractmethod
    def calculate(self, configuration, usage: UsageProfile) -> Tuple[List[Meter], List[str]]:
        """
        Meter a service for one month.

        Args:
            configuration: Validated configuration variant
            usage: Sanitized usage profile

        Returns:
            Tuple of (meters, assumptions)
        """
        raise NotImplementedError


class EC2Calculator(ServiceCalculator):
    DEFAULT_INSTANCE_TYPE = "t3.micro"

    def calculate(self, configuration, usage):
        instance_type = configuration.instance_type or self.DEFAULT_INSTANCE_TYPE
        count = self.instance_count(configuration)
        hours = self.instance_hours(configuration, usage)
        assumptions = [
            f"{count} x {instance_type} for {hours:g} hours/month",
        ]
        if configuration.auto_scaling:
            assumptions.append("Auto scaling: priced at minimum instance count")
        meters = [Meter("compute", count * hours, price_class=instance_type)]
        if configuration.storage_size_gb:
            meters.append(
                Meter("storage", count * configuration.storage_size_gb, price_class=configuration.volume_type)
            )
            assumptions.append(f"{configuration.storage_size_gb:g} GB {configuration.volume_type} volume per instance")
        return meters, assumptions


class LambdaCalculator(ServiceCalculator):
    DEFAULT_MEMORY_MB = 512
    DEFAULT_DURATION_MS = 200

    def calculate(self, configuration, usage):
        invocations = configuration.monthly_invocations
        if invocations is None:
            invocations = usage.api_requests
        memory_gb = (configuration.memory_mb or self.DEFAULT_MEMORY_MB) / 1024
        duration_seconds = (configuration.avg_duration_ms or self.DEFAULT_DURATION_MS) / 1000
        meters = [
            Meter("requests", invocations),
            Meter("compute", invocations * duration_seconds * memory_gb),
        ]
        assumptions = [
            f"{invocations:,.0f} invocations/month",
            f"{memory_gb * 1024:g} MB memory, {duration_seconds * 1000:g}ms average duration",
        ]
        if configuration.provisioned_concurrency:
            provisioned = configuration.provisioned_concurrency * memory_gb * self.hours_per_month * SECONDS_PER_HOUR
            meters.append(Meter("provisioned_concurrency", provisioned))
            assumptions.append(f"Provisioned concurrency of {configuration.provisioned_concurrency} kept warm all month")
        return meters, assumptions


class FargateCalculator(ServiceCalculator):
    DEFAULT_VCPU = 0.25
    DEFAULT_MEMORY_GB = 0.5

    def calculate(self, configuration, usage):
        tasks = self.instance_count(configuration)
        hours = self.instance_hours(configuration, usage)
        vcpu = configuration.vcpu or self.DEFAULT_VCPU
        memory_gb = configuration.memory_gb or self.DEFAULT_MEMORY_GB
        meters = [
            Meter("vcpu", tasks * hours * vcpu),
            Meter("memory", tasks * hours * memory_gb),
        ]
        assumptions = [f"{tasks} task(s) with {vcpu:g} vCPU / {memory_gb:g} GB for {hours:g} hours/month"]
        return meters, assumptions


class S3Calculator(ServiceCalculator):
    configuration_type = StorageConfiguration
    STORAGE_CLASS_COMPONENTS: Dict[str, str] = {
        "standard": "storage",
        "infrequent": "storage_infrequent",
        "glacier": "storage_glacier",
    }

    def calculate(self, configuration, usage):
        component = self.STORAGE_CLASS_COMPONENTS.get(configuration.storage_class)
        if component is None:
            raise InvalidConfigurationError(f"Unknown S3 storage class '{configuration.storage_class}'")

        storage_gb = _first_set(configuration.storage_gb, usage.storage_gb)
        get_requests = _first_set(configuration.requests, usage.page_views)
        put_requests = math.ceil(get_requests * configuration.put_ratio)
        transfer_gb = _first_set(configuration.data_transfer_gb, usage.data_transfer_gb)
        meters = [
            Meter("storage", storage_gb, pricing_component=component),
            Meter("get_requests", get_requests),
            Meter("put_requests", put_requests),
            Meter("data_transfer", transfer_gb),
        ]
        assumptions = [
            f"{storage_gb:g} GB in {configuration.storage_class} storage",
            f"PUT requests estimated at {configuration.put_ratio:.0%} of GET requests",
        ]
        return meters, assumptions


class RDSCalculator(ServiceCalculator):
    configuration_type = DatabaseConfiguration
    DEFAULT_INSTANCE_TYPE = "db.t3.micro"
    DEFAULT_STORAGE_GB = 20

    def calculate(self, configuration, usage):
        instance_type = configuration.instance_type or self.DEFAULT_INSTANCE_TYPE
        zones = 2 if configuration.multi_az else 1
        instances = configuration.instance_count * zones + configuration.read_replicas
        storage_gb = _first_set(configuration.storage_size_gb, self.DEFAULT_STORAGE_GB) * zones
        backup_gb = storage_gb * configuration.backup_retention_days / 30
        meters = [
            Meter("compute", instances * self.hours_per_month, price_class=instance_type),
            Meter("storage", storage_gb),
            Meter("backup", backup_gb),
        ]
        assumptions = [f"{instances} x {instance_type} running 24/7 ({configuration.engine})"]
        if configuration.multi_az:
            assumptions.append("Multi-AZ deployment doubles instance and storage charges")
        if configuration.read_replicas:
            assumptions.append(f"{configuration.read_replicas} read replica(s)")
        assumptions.append(f"Backups retained {configuration.backup_retention_days} days")
        return meters, assumptions


class DynamoDBCalculator(ServiceCalculator):
    configuration_type = DatabaseConfiguration

    def __init__(
        self,
        hours_per_month: float = config.HOURS_PER_MONTH,
        read_ratio: float = config.DYNAMODB_READ_RATIO,
    ):
        super().__init__(hours_per_month)
        self.read_ratio = read_ratio

    def calculate(self, configuration, usage):
        storage_gb = _first_set(configuration.storage_size_gb, usage.storage_gb)
        if configuration.billing_mode == "provisioned":
            meters = [
                Meter("read_capacity", configuration.read_capacity * self.hours_per_month),
                Meter("write_capacity", configuration.write_capacity * self.hours_per_month),
                Meter("storage", storage_gb),
            ]
            assumptions = [
                f"Provisioned {configuration.read_capacity} RCU / {configuration.write_capacity} WCU",
            ]
            return meters, assumptions

        read_ratio = _first_set(configuration.read_ratio, self.read_ratio)
        meters = [
            Meter("reads", usage.api_requests * read_ratio),
            Meter("writes", usage.api_requests * (1 - read_ratio)),
            Meter("storage", storage_gb),
        ]
        assumptions = [f"On-demand requests split {read_ratio:.0%} reads / {1 - read_ratio:.0%} writes"]
        return meters, assumptions


class ElastiCacheCalculator(ServiceCalculator):
    configuration_type = DatabaseConfiguration
    DEFAULT_NODE_TYPE = "cache.t3.micro"

    def calculate(self, configuration, usage):
        node_type = configuration.instance_type or self.DEFAULT_NODE_TYPE
        zones = 2 if configuration.multi_az else 1
        nodes = configuration.instance_count * zones + configuration.read_replicas
        meters = [Meter("compute", nodes * self.hours_per_month, price_class=node_type)]
        return meters, [f"{nodes} x {node_type} cache node(s) running 24/7"]


class CloudFrontCalculator(ServiceCalculator):
    configuration_type = NetworkingConfiguration
    PRICE_CLASS_COMPONENTS: Dict[str, str] = {
        "north_america": "data_transfer",
        "europe": "data_transfer_europe",
        "asia": "data_transfer_asia",
    }

    def calculate(self, configuration, usage):
        component = self.PRICE_CLASS_COMPONENTS.get(configuration.price_class)
        if component is None:
            raise InvalidConfigurationError(f"Unknown CloudFront price class '{configuration.price_class}'")
        transfer_gb = _first_set(configuration.data_transfer_gb, usage.data_transfer_gb)
        requests = _first_set(configuration.requests, usage.page_views)
        meters = [
            Meter("data_transfer", transfer_gb, pricing_component=component),
            Meter("requests", requests),
        ]
        return meters, [f"Edge traffic priced at {configuration.price_class.replace('_', ' ')} rates"]


class ALBCalculator(ServiceCalculator):
    configuration_type = NetworkingConfiguration

    def calculate(self, configuration, usage):
        lcus = configuration.lcu_count
        if lcus is None:
            lcus = max(1, math.ceil(usage.page_views / LCU_PAGE_VIEWS))
        meters = [
            Meter("hourly", configuration.load_balancer_count * self.hours_per_month),
            Meter("lcu", lcus * self.hours_per_month),
        ]
        return meters, [f"{configuration.load_balancer_count} load balancer(s) with {lcus:g} LCU"]


class APIGatewayCalculator(ServiceCalculator):
    configuration_type = NetworkingConfiguration

    def calculate(self, configuration, usage):
        requests = _first_set(configuration.requests, usage.api_requests)
        return [Meter("requests", requests)], [f"{requests:,.0f} REST API requests/month"]


class Route53Calculator(ServiceCalculator):
    configuration_type = NetworkingConfiguration

    def calculate(self, configuration, usage):
        queries = _first_set(configuration.requests, usage.page_views)
        meters = [
            Meter("hosted_zones", configuration.hosted_zones),
            Meter("queries", queries),
        ]
        return meters, [f"{configuration.hosted_zones} hosted zone(s), one DNS query per page view"]


class CognitoCalculator(ServiceCalculator):
    configuration_type = SecurityConfiguration

    def calculate(self, configuration, usage):
        active_users = _first_set(configuration.monthly_active_users, usage.unique_users)
        return [Meter("active_users", active_users)], [f"{active_users:,.0f} monthly active users"]


class CloudWatchCalculator(ServiceCalculator):
    configuration_type = MonitoringConfiguration

    def calculate(self, configuration, usage):
        meters = [
            Meter("metrics", configuration.metrics),
            Meter("alarms", configuration.alarms),
            Meter("logs", configuration.logs_gb),
            Meter("dashboards", configuration.dashboards),
        ]
        assumptions = [
            f"{configuration.metrics} custom metrics, {configuration.alarms} alarms, "
            f"{configuration.logs_gb:g} GB logs ingested"
        ]
        return meters, assumptions


def _first_set(value: Optional[float], fallback: float) -> float:
    return fallback if value is None else value


def build_calculator_registry(
    hours_per_month: float = config.HOURS_PER_MONTH,
    dynamodb_read_ratio: float = config.DYNAMODB_READ_RATIO,
) -> Dict[str, ServiceCalculator]:
    """
    Build the service id to calculator registry.

    Adding a service means adding its pricing to the catalog and one entry here.

    Args:
        hours_per_month: Hours an always-on resource is billed per month
        dynamodb_read_ratio: Share of DynamoDB on-demand requests that are reads

    Returns:
        Dict mapping service id to calculator
    """
    return {
        "ec2": EC2Calculator(hours_per_month),
        "lambda": LambdaCalculator(hours_per_month),
        "ecs": FargateCalculator(hours_per_month),
        "s3": S3Calculator(hours_per_month),
        "rds": RDSCalculator(hours_per_month),
        "dynamodb": DynamoDBCalculator(hours_per_month, dynamodb_read_ratio),
        "elasticache": ElastiCacheCalculator(hours_per_month),
        "cloudfront": CloudFrontCalculator(hours_per_month),
        "alb": ALBCalculator(hours_per_month),
        "api-gateway": APIGatewayCalculator(hours_per_month),
        "route53": Route53Calculator(hours_per_month),
        "cognito": CognitoCalculator(hours_per_month),
        "cloudwatch": CloudWatchCalculator(hours_per_month),
    }
