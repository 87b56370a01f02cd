from .base import Base, Column, Integer, DateTime, Text


class Scenario(Base):
    __tablename__ = "scenarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    scenario_number = Column(Integer, default=1)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime)
