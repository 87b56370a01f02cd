from .base import Base, Column, Integer, DateTime, Text


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime)
