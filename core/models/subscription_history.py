from .base import Base, Column, Integer, DateTime


class SubscriptionHistory(Base):
    __tablename__ = "subscription_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    extended_for_days = Column(Integer, nullable=False)
    new_expiry_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime)
