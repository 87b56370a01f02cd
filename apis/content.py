from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from core.ai_client import AIClient
from core.content_service import USER_COLLECTIONS, add_idea, delete_record, list_records
from core.record_store import record_to_dict
from core.scenario_service import record_scenario
from .base import success_response, error_response
from .deps import get_active_user, get_ai_client, get_db_session

router = APIRouter(prefix="/content", tags=["content"])


class IdeaRequest(BaseModel):
    idea_text: str = Field(..., min_length=1, max_length=4000)


def _check_collection(collection: str) -> None:
    if collection not in USER_COLLECTIONS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response(code=40402, message="بخش مورد نظر پیدا نشد."),
        )


@router.get("/{collection}", summary="List the user's records of one kind")
def list_collection(collection: str, user=Depends(get_active_user), session=Depends(get_db_session)):
    _check_collection(collection)
    return success_response([record_to_dict(row) for row in list_records(session, collection, user.id)])


@router.delete("/{collection}/{record_id}", summary="Delete one of the user's records")
def delete_from_collection(collection: str, record_id: int, user=Depends(get_active_user), session=Depends(get_db_session)):
    _check_collection(collection)
    if not delete_record(session, collection, record_id, user_id=user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response(code=40401, message="رکورد مورد نظر پیدا نشد."),
        )
    return success_response({"id": record_id}, message="حذف شد.")


@router.post("/ideas", summary="Send a post idea to the team")
def submit_idea(payload: IdeaRequest, user=Depends(get_active_user), session=Depends(get_db_session)):
    row = add_idea(session, user.id, payload.idea_text)
    return success_response(record_to_dict(row), message="ایده شما با موفقیت ارسال شد.")


@router.post("/scenarios/{scenario_id}/record", summary="Approve a scenario for production")
def approve_scenario(
    scenario_id: int,
    user=Depends(get_active_user),
    session=Depends(get_db_session),
    ai: AIClient = Depends(get_ai_client),
):
    result = record_scenario(session, ai, user.id, scenario_id)
    message = "ویدیو با موفقیت برای تدوینگر ارسال شد."
    if result["caption_id"] is None:
        message = "تولید کپشن با خطا مواجه شد، اما سناریو برای تدوین ارسال شد."
    return success_response(result, message=message)
