from sqlalchemy import Column, DateTime, ForeignKey, String, func

from loanadmin.db.base import Base


class StaffMember(Base):
    __tablename__ = "staff_members"

    id = Column(String(64), primary_key=True)
    organisation_id = Column(
        String(64), ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    full_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True)
    phone_number = Column(String(32), nullable=True)
    role = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
