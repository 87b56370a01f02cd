from .base import Base, Column, Integer, DateTime, JSON


class ChatHistory(Base):
    """One row per user; ``messages`` is overwritten as a whole on every save."""

    __tablename__ = "chat_history"

    user_id = Column(Integer, primary_key=True)
    messages = Column(JSON, default=list)
    updated_at = Column(DateTime)
