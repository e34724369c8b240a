"""
Plan and subscription status configuration.

Single source of truth for plan names, status vocabulary, plan expiry rules
and per-plan listing limits.
"""
import calendar
from datetime import datetime, timedelta
from typing import Dict, Optional, List

from car_reliability.core.timeutils import utcnow

# Plans
PLAN_BASIC = "basic"
PLAN_PREMIUM = "premium"
PLAN_PROFESSIONAL = "professional"
PLANS: List[str] = [PLAN_BASIC, PLAN_PREMIUM, PLAN_PROFESSIONAL]
PREMIUM_PLANS = frozenset([PLAN_PREMIUM, PLAN_PROFESSIONAL])

# Ledger statuses
STATUS_ACTIVE = "active"
STATUS_PAST_DUE = "past_due"
STATUS_UNPAID = "unpaid"
STATUS_CANCELED = "canceled"
STATUS_CANCELING = "canceling"
STATUS_PAUSED = "paused"
STATUS_PENDING = "pending"
STATUSES: List[str] = [
    STATUS_ACTIVE,
    STATUS_PAST_DUE,
    STATUS_UNPAID,
    STATUS_CANCELED,
    STATUS_CANCELING,
    STATUS_PAUSED,
    STATUS_PENDING,
]

# Stripe subscription status -> ledger status
STRIPE_STATUS_MAP: Dict[str, str] = {
    "active": STATUS_ACTIVE,
    "past_due": STATUS_PAST_DUE,
    "unpaid": STATUS_UNPAID,
    "canceled": STATUS_CANCELED,
    "incomplete": STATUS_PENDING,
    "incomplete_expired": STATUS_CANCELED,
    "trialing": STATUS_ACTIVE,
    "paused": STATUS_PAUSED,
}

# Failed invoice attempts above this mark the subscription unpaid
MAX_PAYMENT_ATTEMPTS_BEFORE_UNPAID = 3

# Listing limits (None means unlimited)
SAVED_VEHICLE_LIMITS: Dict[str, Optional[int]] = {
    PLAN_BASIC: 5,
    PLAN_PREMIUM: 20,
    PLAN_PROFESSIONAL: None,
}
SEARCH_HISTORY_LIMIT_FREE = 10
SEARCH_HISTORY_LIMIT_PREMIUM = 1000


def map_stripe_status(stripe_status: Optional[str], cancel_at_period_end: bool = False) -> str:
    """
    Map a Stripe subscription status onto the ledger vocabulary.

    An active subscription scheduled to cancel at period end becomes ``canceling``.
    Unknown statuses map to ``pending`` so they are never entitled.
    """
    status = STRIPE_STATUS_MAP.get((stripe_status or "").lower(), STATUS_PENDING)
    if cancel_at_period_end and status == STATUS_ACTIVE:
        return STATUS_CANCELING
    return status


def normalize_plan(plan_name: Optional[str], default: str = PLAN_PREMIUM) -> str:
    """Reduce a free-form plan name (e.g. ``premium-monthly``) to a ledger plan."""
    if not plan_name:
        return default
    name = plan_name.lower()
    if PLAN_PROFESSIONAL in name:
        return PLAN_PROFESSIONAL
    if PLAN_PREMIUM in name:
        return PLAN_PREMIUM
    if PLAN_BASIC in name or name == "free":
        return PLAN_BASIC
    return default


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, 12 * years)


def compute_plan_expiry(plan_name: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Expiry for a purchased plan name.

    monthly +1 month, yearly/annual +1 year, weekly +7 days, quarterly +3 months.
    A basic plan never expires (``None``). Anything else gets +1 year.
    """
    now = now or utcnow()
    name = (plan_name or "").lower()

    if "monthly" in name:
        return add_months(now, 1)
    if "yearly" in name or "annual" in name:
        return add_years(now, 1)
    if "weekly" in name:
        return now + timedelta(days=7)
    if "quarterly" in name:
        return add_months(now, 3)
    if normalize_plan(name, default="") == PLAN_BASIC:
        return None
    return add_years(now, 1)


def compute_interval_expiry(interval: Optional[str], interval_count: int = 1, now: Optional[datetime] = None) -> Optional[datetime]:
    """Expiry from a Stripe price recurring interval (day | week | month | year)."""
    now = now or utcnow()
    count = max(int(interval_count or 1), 1)
    if interval == "day":
        return now + timedelta(days=count)
    if interval == "week":
        return now + timedelta(weeks=count)
    if interval == "month":
        return add_months(now, count)
    if interval == "year":
        return add_years(now, count)
    return None


def get_saved_vehicle_limit(plan: Optional[str]) -> Optional[int]:
    """Saved vehicle listing limit for an entitled plan (basic when not entitled)."""
    return SAVED_VEHICLE_LIMITS.get(plan or PLAN_BASIC, SAVED_VEHICLE_LIMITS[PLAN_BASIC])


def get_search_history_limit(is_entitled: bool) -> int:
    return SEARCH_HISTORY_LIMIT_PREMIUM if is_entitled else SEARCH_HISTORY_LIMIT_FREE
