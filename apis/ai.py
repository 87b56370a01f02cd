from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from core.ai_client import AIClient
from core.cancellation import CancelToken
from core.caption_service import generate_caption_from_idea, regenerate_caption
from core.chat_service import send_chat_message
from core.competitor_service import run_competitor_analysis
from core.db import Database
from core.history_service import delete_chat_history, get_chat_history, get_story_history, save_chat_history
from core.image_service import generate_story_image
from core.record_store import record_to_dict
from core.scenario_service import generate_hooks_or_ctas
from core.schemas import ChatMessage, ImagePayload
from core.story_service import generate_story, validate_story_request
from core.usage_service import ensure_can_proceed
from .base import success_response, stream_text
from .deps import get_active_user, get_ai_client, get_database, get_db_session

router = APIRouter(prefix="/ai", tags=["ai"])

TEXT_STREAM = "text/plain; charset=utf-8"


class StoryRequest(BaseModel):
    goal: str = Field(default="", max_length=2000)
    idea: str = Field(default="", max_length=4000)
    yesterday_feedback: str = Field(default="", max_length=2000)
    image: Optional[ImagePayload] = None


class ChatRequest(BaseModel):
    text: str = Field(default="", max_length=8000)
    image: Optional[ImagePayload] = None


class ChatHistoryRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)


class CaptionIdeaRequest(BaseModel):
    idea: str = Field(..., min_length=1, max_length=4000)
    image: Optional[ImagePayload] = None


class HooksRequest(BaseModel):
    scenario_content: str = Field(..., min_length=1)
    kind: Literal["hooks", "ctas"] = "hooks"


class ScreenshotRequest(BaseModel):
    image: ImagePayload


class StoryImageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
    image: ImagePayload


@router.post("/story", summary="Stream a story scenario")
def stream_story(
    payload: StoryRequest,
    user=Depends(get_active_user),
    db: Database = Depends(get_database),
    ai: AIClient = Depends(get_ai_client),
):
    # rejections must happen before the first byte so they keep their status code
    validate_story_request(payload.goal, payload.idea, payload.image)
    ensure_can_proceed(user, "story")
    token = CancelToken()
    user_id = user.id

    def _run(on_chunk):
        with db.session_scope() as session:
            generate_story(
                session, ai, user_id,
                payload.goal, payload.idea, payload.yesterday_feedback,
                image=payload.image, on_chunk=on_chunk, cancel_token=token,
            )

    return StreamingResponse(stream_text(_run, token), media_type=TEXT_STREAM)


@router.get("/story/history", summary="Last generated stories")
def story_history(user=Depends(get_active_user), session=Depends(get_db_session)):
    return success_response([entry.model_dump() for entry in get_story_history(session, user.id)])


@router.post("/chat", summary="Stream a chat reply")
def stream_chat(
    payload: ChatRequest,
    user=Depends(get_active_user),
    db: Database = Depends(get_database),
    ai: AIClient = Depends(get_ai_client),
):
    ensure_can_proceed(user, "chat")
    token = CancelToken()
    user_id = user.id

    def _run(on_chunk):
        with db.session_scope() as session:
            send_chat_message(session, ai, user_id, payload.text, image=payload.image, on_chunk=on_chunk, cancel_token=token)

    return StreamingResponse(stream_text(_run, token), media_type=TEXT_STREAM)


@router.get("/chat/history", summary="Stored chat messages")
def chat_history(user=Depends(get_active_user), session=Depends(get_db_session)):
    return success_response([m.model_dump() for m in get_chat_history(session, user.id)])


@router.put("/chat/history", summary="Overwrite the stored chat messages")
def replace_chat_history(payload: ChatHistoryRequest, user=Depends(get_active_user), session=Depends(get_db_session)):
    return success_response(save_chat_history(session, user.id, payload.messages))


@router.delete("/chat/history", summary="Clear the chat")
def clear_chat_history(user=Depends(get_active_user), session=Depends(get_db_session)):
    return success_response({"deleted": delete_chat_history(session, user.id)})


@router.post("/caption", summary="Caption from an idea")
def caption_from_idea(
    payload: CaptionIdeaRequest,
    user=Depends(get_active_user),
    session=Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    caption = generate_caption_from_idea(session, ai, user.id, payload.idea, image=payload.image)
    return success_response(record_to_dict(caption), message="کپشن با موفقیت تولید شد.")


@router.post("/captions/{caption_id}/regenerate", summary="Write a caption again")
def caption_regenerate(
    caption_id: int,
    user=Depends(get_active_user),
    session=Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    return success_response(record_to_dict(regenerate_caption(session, ai, user.id, caption_id)))


@router.post("/hooks", summary="50 hooks or CTAs for a scenario")
def hooks(payload: HooksRequest, user=Depends(get_active_user), ai: AIClient = Depends(get_ai_client)):
    return success_response({"kind": payload.kind, "content": generate_hooks_or_ctas(ai, payload.scenario_content, payload.kind)})


@router.post("/competitor", summary="Analyse a competitor from a profile screenshot")
def competitor(
    payload: ScreenshotRequest,
    user=Depends(get_active_user),
    session=Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    row = run_competitor_analysis(session, ai, user.id, payload.image.data, payload.image.mime)
    return success_response(record_to_dict(row))


@router.post("/image", summary="Design a story image")
def story_image(
    payload: StoryImageRequest,
    user=Depends(get_active_user),
    session=Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    url = generate_story_image(session, ai, user.id, payload.text, payload.image)
    return success_response({"image_url": url}, message="استوری با موفقیت طراحی شد!")
