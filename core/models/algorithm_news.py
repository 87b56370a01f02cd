from .base import Base, Column, Integer, DateTime, Text


class AlgorithmNews(Base):
    __tablename__ = "algorithm_news"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
