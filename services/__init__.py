"""
Services package for business logic and external integrations.

This package contains the DynamoDB table wrapper, Cognito and Plaid
clients, session resolution, data sources and the service container.
"""

from .config import Settings, load_settings
from .container import Services, build_services
from .dynamodb import ItemNotFoundError, PlannerTable

__all__ = [
    "Settings",
    "load_settings",
    "Services",
    "build_services",
    "ItemNotFoundError",
    "PlannerTable",
]
