from .base import Base, Column, Integer, DateTime, Text


class Idea(Base):
    __tablename__ = "ideas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    idea_text = Column(Text, nullable=False)
    created_at = Column(DateTime)
