from .base import Base, Column, String, Integer, DateTime, Text


class CompetitorAnalysis(Base):
    __tablename__ = "competitor_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    instagram_id = Column(String(120), default="")
    visual_analysis = Column(Text, default="")
    web_analysis = Column(Text, default="")
    created_at = Column(DateTime)
