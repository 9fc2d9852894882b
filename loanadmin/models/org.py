from sqlalchemy import Column, DateTime, String, func

from loanadmin.db.base import Base


class Organisation(Base):
    __tablename__ = "organisations"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    subscription_plan_type = Column(String(100), nullable=True)
    organisation_status = Column(String(50), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
