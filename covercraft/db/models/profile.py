from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func
from covercraft.db.base import Base


class Profile(Base):
    """
    One row per authenticated user, keyed by the auth provider's user id.

    Holds entitlement (is_pro, subscription_status, current_period_end, plan_id),
    payment linkage ids, the free-tier usage counter and the resume summary cache.
    """
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # auth user uuid
    email = Column(String, nullable=True, index=True)

    is_pro = Column(Boolean, nullable=False, default=False)
    subscription_status = Column(String, nullable=False, default="none")
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    plan_id = Column(String, nullable=True)

    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)

    generations_used = Column(Integer, nullable=False, default=0)

    resume_hash = Column(String, nullable=True)
    resume_summary = Column(Text, nullable=True)
    resume_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self) -> dict:
        """Serialize every column, with timestamps as ISO strings."""
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if hasattr(value, "isoformat"):
                value = value.isoformat()
            data[column.name] = value
        return data
