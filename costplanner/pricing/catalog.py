"""
Pricing catalog.
Loads versioned AWS pricing tables from local JSON files and exposes read-only lookups.

Tables live in pricing/data as aws-pricing-<effective date>.json. The newest table
whose effective date is not after the requested date is used.
"""
import json
import logging
from datetime import date
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Tuple, Mapping, Union
from dataclasses import dataclass, field

from costplanner.core.config import config
from costplanner.domain.diagnostics import (
    UnknownServiceError,
    RegionNotFoundError,
    UnknownPriceClassError,
)
from costplanner.pricing.tiers import tiered_cost

logger = logging.getLogger(__name__)


TRANSFER_TYPES: Tuple[str, ...] = ("same_region", "cross_region", "internet", "cloudfront")
CATEGORIES: Tuple[str, ...] = ("compute", "storage", "database", "networking", "monitoring", "security")
COMPONENT_SHAPES: Tuple[str, ...] = ("unit", "flat", "by_class", "tiered", "capacity")


class CatalogIntegrityError(Exception):
    """Raised when a pricing table is missing or malformed."""
    pass


@dataclass(frozen=True)
class PriceTier:
    """One bracket of a tiered rate schedule."""
    up_to: Optional[float]
    rate: float


@dataclass(frozen=True)
class PricingComponent:
    """A single billable dimension of a service."""
    name: str
    shape: str
    unit: str
    rate: float = 0.0
    per: float = 1.0
    rates: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    tiers: Tuple[PriceTier, ...] = ()

    def class_rate(self, price_class: Optional[str]) -> float:
        if price_class not in self.rates:
            raise UnknownPriceClassError(
                f"No '{self.name}' rate for class '{price_class}'"
            )
        return self.rates[price_class]

    def price(self, quantity: float, price_class: Optional[str] = None) -> float:
        """
        Price a quantity of this component in the base region.

        Args:
            quantity: Units consumed (hours, GB, requests, capacity-unit-hours)
            price_class: Instance or volume class for by_class components

        Returns:
            Cost in USD before the region multiplier

        Raises:
            UnknownPriceClassError: If price_class has no rate
        """
        if quantity <= 0:
            return 0.0
        if self.shape == "by_class":
            return quantity * self.class_rate(price_class)
        if self.shape == "tiered":
            return tiered_cost(quantity, [(tier.up_to, tier.rate) for tier in self.tiers], self.per)
        return quantity * self.rate / self.per

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"type": self.shape, "unit": self.unit}
        if self.shape == "by_class":
            result["rates"] = dict(self.rates)
        elif self.shape == "tiered":
            result["tiers"] = [{"up_to": t.up_to, "rate": t.rate} for t in self.tiers]
        else:
            result["rate"] = self.rate
        if self.per != 1.0:
            result["per"] = self.per
        return result


@dataclass(frozen=True)
class FreeTierLimit:
    """Free allowance for one pricing component."""
    component: str
    quantity: Optional[float] = None
    allotment_usd: Optional[float] = None
    eligible_classes: Tuple[str, ...] = ()

    @property
    def is_flat(self) -> bool:
        return self.allotment_usd is not None

    def covers_class(self, price_class: Optional[str]) -> bool:
        return not self.eligible_classes or price_class in self.eligible_classes


@dataclass(frozen=True)
class FreeTierPolicy:
    """Free-tier limits of a service and how long they last."""
    limits: Tuple[FreeTierLimit, ...]
    duration_months: Optional[int] = None  # None means always free

    def active_in_month(self, month: Optional[int]) -> bool:
        if month is None or self.duration_months is None:
            return True
        return month <= self.duration_months


@dataclass(frozen=True)
class ServiceDefinition:
    """Immutable pricing definition of a service."""
    service_id: str
    name: str
    category: str
    components: Mapping[str, PricingComponent]
    free_tier: Optional[FreeTierPolicy] = None

    def component(self, name: str) -> PricingComponent:
        return self.components[name]


@dataclass(frozen=True)
class Region:
    """AWS region with its price multiplier."""
    code: str
    name: str = ""
    multiplier: float = 1.0
    free_tier_eligible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "name": self.name,
            "multiplier": self.multiplier,
            "free_tier_eligible": self.free_tier_eligible,
        }


class PricingCatalog:
    """
    Read-only table of service pricing and regions.

    Constructed once at startup; there is no mutation API.
    """

    def __init__(
        self,
        version: str,
        effective_date: date,
        services: Dict[str, ServiceDefinition],
        regions: Dict[str, Region],
        currency: str = "USD",
        transfer_rates: Optional[Dict[str, float]] = None,
    ):
        self._version = version
        self._effective_date = effective_date
        self._currency = currency
        self._services = MappingProxyType(dict(services))
        self._regions = MappingProxyType(dict(regions))
        self._transfer_rates = MappingProxyType(dict(transfer_rates or {}))

    @property
    def version(self) -> str:
        return self._version

    @property
    def effective_date(self) -> date:
        return self._effective_date

    @property
    def currency(self) -> str:
        return self._currency

    def lookup(self, service_id: str) -> ServiceDefinition:
        """
        Get the pricing definition of a service.

        Raises:
            UnknownServiceError: If the service is not in the catalog
        """
        definition = self._services.get(service_id)
        if definition is None:
            raise UnknownServiceError(
                f"Service '{service_id}' is not in pricing table {self._version}",
                service_id=service_id,
            )
        return definition

    def has_service(self, service_id: str) -> bool:
        return service_id in self._services

    def category_of(self, service_id: str) -> Optional[str]:
        definition = self._services.get(service_id)
        return definition.category if definition else None

    def services(self) -> List[ServiceDefinition]:
        return [self._services[key] for key in sorted(self._services)]

    def region(self, code: str) -> Region:
        """
        Get a region by code.

        Raises:
            RegionNotFoundError: If the region is not in the catalog
        """
        region = self._regions.get(code)
        if region is None:
            raise RegionNotFoundError(f"Region '{code}' is not in pricing table {self._version}")
        return region

    def regions(self) -> List[Region]:
        return [self._regions[key] for key in sorted(self._regions)]

    @property
    def transfer_rates(self) -> Mapping[str, float]:
        """Per-GB rates for data moved out of a region, keyed by transfer type."""
        return self._transfer_rates

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self._version,
            "effective_date": self._effective_date.isoformat(),
            "currency": self._currency,
            "regions": [region.to_dict() for region in self.regions()],
            "data_transfer": dict(self._transfer_rates),
            "services": [
                {
                    "service_id": definition.service_id,
                    "name": definition.name,
                    "category": definition.category,
                    "components": {
                        name: component.to_dict()
                        for name, component in definition.components.items()
                    },
                    "free_tier": definition.free_tier is not None,
                }
                for definition in self.services()
            ],
        }


def _require(data: Dict[str, Any], key: str, context: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise CatalogIntegrityError(f"{context}: missing '{key}'")
    return data[key]


def _non_negative(value: Any, context: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise CatalogIntegrityError(f"{context}: expected a non-negative number, got {value!r}")
    return float(value)


def _parse_component(name: str, data: Dict[str, Any], context: str) -> PricingComponent:
    shape = _require(data, "type", context)
    if shape not in COMPONENT_SHAPES:
        raise CatalogIntegrityError(f"{context}: unknown component type '{shape}'")
    unit = data.get("unit", "")
    per = _non_negative(data.get("per", 1), f"{context}.per")
    if per == 0:
        raise CatalogIntegrityError(f"{context}.per must be positive")

    if shape == "by_class":
        raw_rates = _require(data, "rates", context)
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise CatalogIntegrityError(f"{context}: 'rates' must be a non-empty object")
        rates = {
            price_class: _non_negative(rate, f"{context}.rates.{price_class}")
            for price_class, rate in raw_rates.items()
        }
        return PricingComponent(name=name, shape=shape, unit=unit, per=per, rates=MappingProxyType(rates))

    if shape == "tiered":
        raw_tiers = _require(data, "tiers", context)
        if not isinstance(raw_tiers, list) or not raw_tiers:
            raise CatalogIntegrityError(f"{context}: 'tiers' must be a non-empty list")
        tiers = []
        previous = 0.0
        for index, raw_tier in enumerate(raw_tiers):
            tier_context = f"{context}.tiers[{index}]"
            up_to = _require(raw_tier, "up_to", tier_context)
            rate = _non_negative(_require(raw_tier, "rate", tier_context), f"{tier_context}.rate")
            is_last = index == len(raw_tiers) - 1
            if up_to is None:
                if not is_last:
                    raise CatalogIntegrityError(f"{tier_context}: only the last tier may be open-ended")
            else:
                up_to = _non_negative(up_to, f"{tier_context}.up_to")
                if up_to <= previous:
                    raise CatalogIntegrityError(f"{tier_context}: breakpoints must be ascending")
                if is_last:
                    raise CatalogIntegrityError(f"{tier_context}: last tier must be open-ended")
                previous = up_to
            tiers.append(PriceTier(up_to=up_to, rate=rate))
        return PricingComponent(name=name, shape=shape, unit=unit, per=per, tiers=tuple(tiers))

    rate = _non_negative(_require(data, "rate", context), f"{context}.rate")
    return PricingComponent(name=name, shape=shape, unit=unit, rate=rate, per=per)


def _parse_free_tier(data: Dict[str, Any], components: Dict[str, PricingComponent], context: str) -> FreeTierPolicy:
    duration = _require(data, "duration_months", context)
    if duration == "always":
        duration_months = None
    else:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise CatalogIntegrityError(f"{context}: duration_months must be a positive integer or 'always'")
        duration_months = duration

    limits = []
    for index, raw_limit in enumerate(_require(data, "limits", context)):
        limit_context = f"{context}.limits[{index}]"
        component = _require(raw_limit, "component", limit_context)
        if component not in components:
            raise CatalogIntegrityError(f"{limit_context}: unknown component '{component}'")
        has_quantity = "quantity" in raw_limit
        has_allotment = "allotment_usd" in raw_limit
        if has_quantity == has_allotment:
            raise CatalogIntegrityError(f"{limit_context}: exactly one of quantity or allotment_usd is required")
        limits.append(
            FreeTierLimit(
                component=component,
                quantity=_non_negative(raw_limit["quantity"], limit_context) if has_quantity else None,
                allotment_usd=_non_negative(raw_limit["allotment_usd"], limit_context) if has_allotment else None,
                eligible_classes=tuple(raw_limit.get("eligible_classes", ())),
            )
        )
    return FreeTierPolicy(limits=tuple(limits), duration_months=duration_months)


def catalog_from_dict(data: Dict[str, Any]) -> PricingCatalog:
    """
    Validate and build a catalog from a parsed pricing table.

    Args:
        data: Parsed JSON pricing table

    Returns:
        PricingCatalog

    Raises:
        CatalogIntegrityError: If any part of the table is malformed
    """
    version = str(_require(data, "version", "catalog"))
    try:
        effective_date = date.fromisoformat(_require(data, "effective_date", "catalog"))
    except (TypeError, ValueError) as error:
        raise CatalogIntegrityError(f"catalog: invalid effective_date ({error})") from error

    regions = {}
    for code, raw_region in _require(data, "regions", "catalog").items():
        context = f"regions.{code}"
        multiplier = _non_negative(_require(raw_region, "multiplier", context), f"{context}.multiplier")
        if multiplier < 1.0:
            raise CatalogIntegrityError(f"{context}: multiplier must be at least 1.0")
        regions[code] = Region(
            code=code,
            name=raw_region.get("name", code),
            multiplier=multiplier,
            free_tier_eligible=bool(raw_region.get("free_tier_eligible", True)),
        )
    if not regions:
        raise CatalogIntegrityError("catalog: no regions defined")

    transfer_rates = {}
    for transfer_type, rate in data.get("data_transfer", {}).items():
        if transfer_type not in TRANSFER_TYPES:
            raise CatalogIntegrityError(f"data_transfer: unknown transfer type '{transfer_type}'")
        transfer_rates[transfer_type] = _non_negative(rate, f"data_transfer.{transfer_type}")

    services = {}
    for service_id, raw_service in _require(data, "services", "catalog").items():
        context = f"services.{service_id}"
        category = _require(raw_service, "category", context)
        if category not in CATEGORIES:
            raise CatalogIntegrityError(f"{context}: unknown category '{category}'")
        raw_components = _require(raw_service, "pricing", context)
        if not isinstance(raw_components, dict) or not raw_components:
            raise CatalogIntegrityError(f"{context}: 'pricing' must be a non-empty object")
        components = {
            name: _parse_component(name, raw_component, f"{context}.pricing.{name}")
            for name, raw_component in raw_components.items()
        }
        free_tier = None
        if raw_service.get("free_tier"):
            free_tier = _parse_free_tier(raw_service["free_tier"], components, f"{context}.free_tier")
        services[service_id] = ServiceDefinition(
            service_id=service_id,
            name=raw_service.get("name", service_id),
            category=category,
            components=MappingProxyType(components),
            free_tier=free_tier,
        )

    return PricingCatalog(
        version=version,
        effective_date=effective_date,
        services=services,
        regions=regions,
        currency=data.get("currency", "USD"),
        transfer_rates=transfer_rates,
    )


def _read_table(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError) as error:
        raise CatalogIntegrityError(f"Cannot read pricing table {path}: {error}") from error


def load_catalog(
    data_dir: Optional[Union[str, Path]] = None,
    as_of: Optional[Union[str, date]] = None,
) -> PricingCatalog:
    """
    Load the pricing table in effect on a given date.

    Args:
        data_dir: Directory of aws-pricing-*.json tables (default from config)
        as_of: Date the prices must be effective on (default: newest table)

    Returns:
        PricingCatalog

    Raises:
        CatalogIntegrityError: If no usable table exists or the chosen table is malformed
    """
    directory = Path(data_dir or config.PRICING_DATA_DIR)
    as_of = as_of or config.PRICING_EFFECTIVE_DATE
    if isinstance(as_of, str):
        try:
            as_of = date.fromisoformat(as_of)
        except ValueError as error:
            raise CatalogIntegrityError(f"Invalid pricing effective date '{as_of}'") from error

    if not directory.exists():
        raise CatalogIntegrityError(f"Pricing data directory not found: {directory}")

    candidates = []
    for path in sorted(directory.glob("aws-pricing-*.json")):
        data = _read_table(path)
        try:
            effective = date.fromisoformat(str(data.get("effective_date")))
        except ValueError as error:
            raise CatalogIntegrityError(f"{path.name}: invalid effective_date") from error
        if as_of is None or effective <= as_of:
            candidates.append((effective, path, data))

    if not candidates:
        raise CatalogIntegrityError(
            f"No pricing table in {directory} is effective on {as_of or 'any date'}"
        )

    effective, path, data = max(candidates, key=lambda item: item[0])
    catalog = catalog_from_dict(data)
    logger.info(
        "Loaded pricing table %s (effective %s) with %d services and %d regions",
        catalog.version,
        effective.isoformat(),
        len(catalog.services()),
        len(catalog.regions()),
    )
    return catalog
