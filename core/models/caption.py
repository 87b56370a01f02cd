from .base import Base, Column, String, Integer, DateTime, Text


class Caption(Base):
    __tablename__ = "captions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    title = Column(String(255), default="")
    content = Column(Text, nullable=False)
    original_scenario_content = Column(Text, default="")
    created_at = Column(DateTime)
