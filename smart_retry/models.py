"""SQLAlchemy ORM models for the Smart Retry decision service."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Numeric, String, Text, Uuid

from smart_retry.database import Base


class LoanTransaction(Base):
    """One historical payment attempt against a loan."""
    __tablename__ = "loan_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(Text, nullable=False, index=True)
    payment_request_id = Column(Text)
    status = Column(String(32), nullable=False)
    amount = Column(Numeric(14, 2))
    failed_reason = Column(Text)
    failed_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True))
    chargeback_at = Column(DateTime(timezone=True))

    def to_record(self) -> dict:
        """Plain dict in the shape the decision engine consumes."""
        return {
            "loan_id": self.loan_id,
            "payment_request_id": self.payment_request_id,
            "status": self.status,
            "amount": float(self.amount) if self.amount is not None else None,
            "failed_reason": self.failed_reason,
            "failed_message": self.failed_message,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "chargeback_at": self.chargeback_at,
        }
