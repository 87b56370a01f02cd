from .base import Base, Column, Integer, DateTime, Text


class Broadcast(Base):
    __tablename__ = "broadcasts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, index=True)
