from .base import Base, Column, String, Integer, DateTime, Boolean, Text


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(120), nullable=False)
    access_code = Column(String(64), unique=True, index=True, nullable=False)
    role = Column(String(20), default="user")  # admin/user
    is_verified = Column(Boolean, default=True)
    is_vip = Column(Boolean, default=False)
    about_info = Column(Text, default="")  # prompt context for every generation
    preferred_name = Column(String(120), default="")  # used in the chat greeting

    # usage counters, reset daily (story, caption_idea) or weekly (image, chat)
    story_requests = Column(Integer, default=0)
    caption_idea_requests = Column(Integer, default=0)
    image_requests = Column(Integer, default=0)
    chat_messages = Column(Integer, default=0)

    # per-user ceilings; NULL means the configured default
    story_limit = Column(Integer, nullable=True)
    caption_idea_limit = Column(Integer, nullable=True)
    image_limit = Column(Integer, nullable=True)
    chat_limit = Column(Integer, nullable=True)

    last_request_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    last_weekly_reset_date = Column(String(10), nullable=True)  # YYYY-MM-DD

    subscription_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)

    # set on login, never stored
    is_subscription_expired = False
