from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field

from core.auth import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, get_current_user
from core.activity_service import is_admin
from core.user_service import get_user, serialize_user, verify_access_code
from .base import success_response, error_response
from .deps import get_db_session

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    access_code: str = Field(..., min_length=1, max_length=64)


def _issue_token(user) -> dict:
    role = "admin" if is_admin(user) else "user"
    access_token = create_access_token(
        data={"sub": str(user.id), "role": role},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def _authenticate(session, code: str):
    user = verify_access_code(session, code)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response(code=40101, message="کد دسترسی نامعتبر است."),
        )
    if user.is_subscription_expired:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error_response(
                code=40302,
                message="اشتراک شما به پایان رسیده است. لطفاً برای تمدید اقدام کنید.",
                data={"user_id": user.id, "full_name": user.full_name},
            ),
        )
    return user


@router.post("/login", summary="Log in with an access code")
async def login(payload: LoginRequest, session=Depends(get_db_session)):
    user = _authenticate(session, payload.access_code)
    data = _issue_token(user)
    data["user"] = serialize_user(user)
    return success_response(data)


@router.post("/token", summary="OAuth2 token (password = access code)")
async def get_token(form_data: OAuth2PasswordRequestForm = Depends(), session=Depends(get_db_session)):
    return _issue_token(_authenticate(session, form_data.password))


@router.get("/verify", summary="Check the current token")
async def verify_token(current_user: dict = Depends(get_current_user), session=Depends(get_db_session)):
    user = get_user(session, current_user["user_id"])
    return success_response({
        "is_valid": True,
        "user": serialize_user(user),
        "expires_at": current_user.get("exp"),
    })
