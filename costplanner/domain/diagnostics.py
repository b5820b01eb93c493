"""
Non-fatal estimation issues and the diagnostics they are reported as.
Issues are raised inside a single service calculation and collected by the caller.
"""
from typing import Dict, Any, Optional
from dataclasses import dataclass


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found while pricing an architecture."""
    code: str
    message: str
    service_id: Optional[str] = None
    purpose: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "service_id": self.service_id,
            "purpose": self.purpose,
        }


class EstimationIssue(Exception):
    """Base class for issues that degrade a single item without aborting the batch."""
    code = "estimation_issue"

    def __init__(self, message: str, service_id: Optional[str] = None, purpose: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.service_id = service_id
        self.purpose = purpose

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            code=self.code,
            message=self.message,
            service_id=self.service_id,
            purpose=self.purpose,
        )


class UnknownServiceError(EstimationIssue):
    """Raised when a service id has no catalog entry or calculator."""
    code = "unknown_service"


class InvalidUsageError(EstimationIssue):
    """Raised when a usage metric is negative or not a number."""
    code = "invalid_usage"


class ConfigurationConflictError(EstimationIssue):
    """Raised when two services in an architecture cannot be combined."""
    code = "configuration_conflict"


class RegionNotFoundError(EstimationIssue):
    """Raised when a region code is not present in the pricing table."""
    code = "region_not_found"


class InvalidConfigurationError(EstimationIssue):
    """Raised when a configuration variant does not match its service category."""
    code = "invalid_configuration"


class UnknownPriceClassError(EstimationIssue):
    """Raised when an instance class has no rate in the pricing table."""
    code = "unknown_price_class"
