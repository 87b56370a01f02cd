from .base import Base, Column, Integer, DateTime, Text


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime)
