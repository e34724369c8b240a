from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from car_reliability.db.base import Base


class Payment(Base):
    """
    Successful invoice payment.

    Written by ``invoice.payment_succeeded``; the unique invoice id keeps
    redelivered events from creating duplicates.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    entitlement_id = Column(Integer, ForeignKey("entitlements.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)  # major currency units
    currency = Column(String(8), nullable=False, default="usd")
    stripe_invoice_id = Column(String, nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="payments")
