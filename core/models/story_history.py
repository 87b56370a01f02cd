from .base import Base, Column, Integer, DateTime, JSON


class StoryHistory(Base):
    __tablename__ = "story_history"

    user_id = Column(Integer, primary_key=True)
    stories = Column(JSON, default=list)  # [{"id": ..., "content": ...}], newest first
    updated_at = Column(DateTime)
