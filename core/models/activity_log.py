from .base import Base, Column, String, Integer, DateTime, Text


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    user_full_name = Column(String(120), default="")
    action = Column(Text, nullable=False)
    created_at = Column(DateTime, index=True)
