from sqlalchemy import Boolean, Column, DateTime, Numeric, String, Text, func

from loanadmin.db.base import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(64), primary_key=True)
    plan_name = Column(String(100), nullable=False, unique=True)
    # Comma separated FeatureKey values
    features = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=False)
    price_per_month = Column(Numeric(12, 2), nullable=True)
    plan_description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
