"""
Exception types shared by the services.

Every exception carries a user-facing Persian ``message``; the HTTP layer
renders it as-is, services never build display strings on their own.
"""

from typing import Optional


AI_INIT_ERROR = (
    "خطای حیاتی: اطلاعات اتصال به سرویس هوش مصنوعی پیدا نشد! 🔑\n\n"
    "این برنامه برای اتصال به سرویس هوش مصنوعی به کلید و آدرس API نیاز دارد.\n"
    "مقادیر ai.api_key و ai.base_url را در config.yaml (یا متغیرهای محیطی "
    "AI_API_KEY و AI_BASE_URL) تنظیم کنید و سرویس را دوباره اجرا کنید."
)

BOX_API_INIT_ERROR = (
    "خطای حیاتی: کلید API برای BoxAPI پیدا نشد! 🔑\n\n"
    "کلید را از پنل boxapi.ir کپی کرده و در boxapi.api_key (یا متغیر BOX_API_KEY) قرار دهید."
)


class AitemError(Exception):
    """Base error with a displayable message."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class AIConfigError(AitemError):
    def __init__(self, message: str = AI_INIT_ERROR):
        super().__init__(message)


class AIServiceError(AitemError):
    """Vendor API failure: non-2xx status, transport error or unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StreamCancelled(AitemError):
    def __init__(self, message: str = "درخواست لغو شد."):
        super().__init__(message)


class QuotaExceededError(AitemError):
    def __init__(self, category: str, message: str):
        super().__init__(message)
        self.category = category


class ValidationFailed(AitemError):
    pass


class RecordNotFound(AitemError):
    def __init__(self, collection: str, record_id, message: str = "رکورد مورد نظر پیدا نشد."):
        super().__init__(message)
        self.collection = collection
        self.record_id = record_id


class StoreError(AitemError):
    pass


def describe_ai_error(exc: BaseException) -> str:
    """Map an AI failure to the text shown to the user."""
    if isinstance(exc, (AIConfigError, StreamCancelled, QuotaExceededError, ValidationFailed)):
        return exc.message
    status_code = getattr(exc, "status_code", None)
    raw = getattr(exc, "message", "") or str(exc) or "یک خطای ناشناخته رخ داد."
    if status_code == 401 or (status_code is None and "401" in raw):
        return "خطای احراز هویت (401): کلید API سرویس هوش مصنوعی نامعتبر یا منقضی شده است. لطفاً کلید صحیح را تنظیم کنید."
    if status_code == 429 or (status_code is None and "429" in raw):
        return "شما به محدودیت تعداد درخواست در سرویس هوش مصنوعی رسیده‌اید (خطای 429). لطفاً چند لحظه صبر کرده و دوباره تلاش کنید."
    return f"خطا در ارتباط با سرویس هوش مصنوعی: {raw}"
