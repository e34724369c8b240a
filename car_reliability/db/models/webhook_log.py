from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from car_reliability.db.base import Base

# Processing statuses
WEBHOOK_RECEIVED = "received"
WEBHOOK_VERIFIED = "verified"
WEBHOOK_PROCESSING = "processing"
WEBHOOK_COMPLETED = "completed"
WEBHOOK_FAILED = "failed"
WEBHOOK_VERIFICATION_FAILED = "verification_failed"
WEBHOOK_DUPLICATE = "duplicate"


class WebhookLogEntry(Base):
    """
    Audit row for one webhook delivery.

    ``event_id`` stays NULL until the signature has been verified.
    """
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(String, nullable=True, index=True)
    event_type = Column(String, nullable=True, index=True)
    processing_status = Column(String(32), nullable=False, default=WEBHOOK_RECEIVED)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "eventType": self.event_type,
            "processingStatus": self.processing_status,
            "errorMessage": self.error_message,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
