"""
Configuration module for loading environment variables.
Pricing, projection and alert defaults can all be overridden from the environment.
"""
import os
from pathlib import Path
from typing import Optional


DEFAULT_PRICING_DATA_DIR = Path(__file__).parent.parent / "pricing" / "data"


class Config:
    """Application configuration loaded from environment variables."""

    # Pricing Configuration
    DEFAULT_REGION: str = os.getenv("COSTPLANNER_DEFAULT_REGION", "us-east-1")
    DEFAULT_CURRENCY: str = os.getenv("COSTPLANNER_DEFAULT_CURRENCY", "USD")
    PRICING_DATA_DIR: str = os.getenv("COSTPLANNER_PRICING_DATA_DIR", str(DEFAULT_PRICING_DATA_DIR))
    PRICING_EFFECTIVE_DATE: Optional[str] = os.getenv("COSTPLANNER_PRICING_EFFECTIVE_DATE") or None
    HOURS_PER_MONTH: int = 730  # Standard assumption: 24/7 operation

    # Share of DynamoDB on-demand requests billed as reads (remainder are writes)
    DYNAMODB_READ_RATIO: float = float(os.getenv("COSTPLANNER_DYNAMODB_READ_RATIO", "0.7"))

    # Projection Configuration
    FREE_TIER_WINDOW_MONTHS: int = int(os.getenv("COSTPLANNER_FREE_TIER_WINDOW_MONTHS", "12"))
    MAX_PROJECTION_MONTHS: int = int(os.getenv("COSTPLANNER_MAX_PROJECTION_MONTHS", "60"))
    ALERT_MONTHLY_COST_THRESHOLD: float = float(os.getenv("COSTPLANNER_ALERT_MONTHLY_COST", "100"))
    ALERT_GROWTH_RATE_THRESHOLD: float = float(os.getenv("COSTPLANNER_ALERT_GROWTH_RATE", "50"))

    @classmethod
    def validate(cls) -> None:
        """
        Validates that configuration values are usable.

        Raises:
            ValueError: If any configuration value is missing or out of range.
        """
        if not cls.DEFAULT_REGION:
            raise ValueError("COSTPLANNER_DEFAULT_REGION is required")
        if not cls.DEFAULT_CURRENCY:
            raise ValueError("COSTPLANNER_DEFAULT_CURRENCY is required")
        if not 0.0 <= cls.DYNAMODB_READ_RATIO <= 1.0:
            raise ValueError(
                f"COSTPLANNER_DYNAMODB_READ_RATIO must be between 0 and 1 (got: {cls.DYNAMODB_READ_RATIO})"
            )
        if cls.FREE_TIER_WINDOW_MONTHS < 0:
            raise ValueError("COSTPLANNER_FREE_TIER_WINDOW_MONTHS must not be negative")
        if cls.MAX_PROJECTION_MONTHS < 1:
            raise ValueError("COSTPLANNER_MAX_PROJECTION_MONTHS must be at least 1")
        if cls.ALERT_MONTHLY_COST_THRESHOLD < 0 or cls.ALERT_GROWTH_RATE_THRESHOLD < 0:
            raise ValueError("Alert thresholds must not be negative")


config = Config()
