"""
Entitlement ledger model.

One row per subscription period of a user. At most one row per user is not
canceled; that row is the user's current record and the only one consulted
for entitlement. Canceled rows are kept as history.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from car_reliability.db.base import Base
from car_reliability.core.plans import PLAN_BASIC, PREMIUM_PLANS, STATUS_ACTIVE
from car_reliability.core.timeutils import utcnow, ensure_utc


class EntitlementRecord(Base):
    __tablename__ = "entitlements"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    plan = Column(String(32), nullable=False, default=PLAN_BASIC)  # basic | premium | professional
    status = Column(String(32), nullable=False, default=STATUS_ACTIVE)

    stripe_session_id = Column(String, nullable=True)
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    access_token = Column(String(128), nullable=True, unique=True, index=True)

    period_start = Column(DateTime(timezone=True), nullable=True)
    period_end = Column(DateTime(timezone=True), nullable=True)  # NULL = non-expiring

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="entitlements")

    __table_args__ = (
        Index(
            "uq_entitlements_current_user",
            "user_id",
            unique=True,
            postgresql_where=text("status != 'canceled'"),
            sqlite_where=text("status != 'canceled'"),
        ),
    )

    def is_current_period(self, now: Optional[datetime] = None) -> bool:
        period_end = ensure_utc(self.period_end)
        return period_end is None or period_end > (now or utcnow())

    def is_entitled(self, now: Optional[datetime] = None) -> bool:
        """Premium plan, active status and an unexpired period."""
        return (
            self.plan in PREMIUM_PLANS
            and self.status == STATUS_ACTIVE
            and self.is_current_period(now)
        )

    def __repr__(self):
        return f"<EntitlementRecord(id={self.id}, user_id={self.user_id}, plan='{self.plan}', status='{self.status}')>"
