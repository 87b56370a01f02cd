"""Typed payloads checked at the record-store boundary."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: Literal["user", "ai"]
    text: str = ""
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    is_interim: bool = Field(default=False, alias="isInterim")

    def to_record(self) -> dict:
        """Stored form: image references and interim flags are not persisted."""
        return {"sender": self.sender, "text": self.text}


class StoryEntry(BaseModel):
    id: int
    content: str


class ImagePayload(BaseModel):
    data: str = Field(min_length=1)  # base64 without the data: prefix
    mime: str = Field(default="image/jpeg", max_length=64)

    def data_url(self) -> str:
        return f"data:{self.mime};base64,{self.data}"


class ScenarioIn(BaseModel):
    user_id: int
    scenario_number: int = Field(default=1, ge=1)
    content: str = Field(min_length=1)
    created_at: Optional[datetime] = None


class IdeaIn(BaseModel):
    user_id: int
    idea_text: str = Field(min_length=1)
    created_at: Optional[datetime] = None


class PlanIn(BaseModel):
    user_id: int
    content: str = Field(min_length=1)
    timestamp: Optional[datetime] = None


class ReportIn(BaseModel):
    user_id: int
    content: str = Field(min_length=1)
    timestamp: Optional[datetime] = None


class CaptionIn(BaseModel):
    user_id: int
    title: str = Field(default="", max_length=255)
    content: str = Field(min_length=1)
    original_scenario_content: str = ""
    created_at: Optional[datetime] = None


class CompetitorAnalysisIn(BaseModel):
    user_id: int
    instagram_id: str = Field(default="", max_length=120)
    visual_analysis: str = ""
    web_analysis: str = ""
    created_at: Optional[datetime] = None


class ActivityLogIn(BaseModel):
    user_id: int
    user_full_name: str = ""
    action: str = Field(min_length=1)
    created_at: Optional[datetime] = None


class BroadcastIn(BaseModel):
    message: str = Field(min_length=1)
    timestamp: Optional[datetime] = None


class AlgorithmNewsIn(BaseModel):
    content: str = Field(min_length=1)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
