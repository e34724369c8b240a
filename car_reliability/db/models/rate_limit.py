from sqlalchemy import Column, Integer, String, BigInteger, UniqueConstraint
from car_reliability.db.base import Base


class RateLimitCounter(Base):
    """
    Fixed-window request counter shared by every API instance.

    One row per bucket (e.g. ``report:<ip>``) per window.
    """
    __tablename__ = "rate_limit_counters"

    id = Column(Integer, primary_key=True, index=True)
    bucket_key = Column(String(255), nullable=False, index=True)
    window_start = Column(BigInteger, nullable=False)  # epoch seconds
    hits = Column(Integer, default=0, nullable=False)

    # One counter per bucket per window
    __table_args__ = (
        UniqueConstraint("bucket_key", "window_start", name="uq_bucket_window"),
    )
