from sqlalchemy import Column, DateTime, Index, String, func

from loanadmin.db.base import Base


class VerificationRecord(Base):
    __tablename__ = "verification_records"
    __table_args__ = (
        Index("ix_verification_records_recipient_channel", "recipient", "channel"),
        Index("ix_verification_records_status_expires_at", "status", "expires_at"),
    )

    id = Column(String(64), primary_key=True)
    subject_id = Column(String(64), nullable=False, index=True)
    recipient = Column(String(320), nullable=False)
    channel = Column(String(16), nullable=False)
    code = Column(String(6), nullable=False)
    token = Column(String(128), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
