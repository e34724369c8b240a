"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from car_reliability.db.models.user import User
from car_reliability.db.models.entitlement import EntitlementRecord
from car_reliability.db.models.payment import Payment
from car_reliability.db.models.search_log import SearchLogEntry
from car_reliability.db.models.saved_vehicle import SavedVehicle
from car_reliability.db.models.webhook_log import WebhookLogEntry
from car_reliability.db.models.rate_limit import RateLimitCounter

# Explicitly export all models for clarity
__all__ = [
    "User",
    "EntitlementRecord",
    "Payment",
    "SearchLogEntry",
    "SavedVehicle",
    "WebhookLogEntry",
    "RateLimitCounter",
]
