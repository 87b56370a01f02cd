"""
Prompt templates.

All prompts ask for Persian output in a warm, conversational creator tone.
Builders return plain strings; ``user_message`` wraps text (and an optional
image) into a chat message the completion API accepts.
"""

from typing import Any, Dict, Optional

from core.schemas import ImagePayload


HOOK_KINDS = {
    "hooks": "قلاب (هوک) شروع ویدیو",
    "ctas": "کال تو اکشن (دعوت به اقدام)",
}

STORY_RULES = [
    "سناریو باید شامل چند استوری (اسلاید) پشت سر هم باشد.",
    "برای هر استوری با لحنی ساده و صمیمی توضیح بده کاربر چه بگوید و چه تصویری نشان دهد.",
    "متنی که باید روی استوری نوشته شود را هم بنویس.",
    "از اموجی‌های مرتبط استفاده کن و برای بولد کردن از * استفاده نکن.",
    "هر استوری را با --- از استوری بعدی جدا کن.",
]

CAPTION_RULES = [
    "کپشن را به فارسی بنویس.",
    "کپشن جذاب باشد و مخاطب را به لایک، کامنت و اشتراک‌گذاری تشویق کند.",
    "هشتگ‌های مرتبط و پرکاربرد اضافه کن.",
    "از اموجی به اندازه استفاده کن و متن را با خط جدید خوانا کن.",
]


def _numbered(rules) -> str:
    return "\n".join(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1))


def user_message(text: str, image: Optional[ImagePayload] = None) -> Dict[str, Any]:
    content = [{"type": "text", "text": text}]
    if image is not None:
        content.append({"type": "image_url", "image_url": {"url": image.data_url()}})
    return {"role": "user", "content": content}


def build_story_prompt(user_about: str, goal: str, idea: str, yesterday_feedback: str = "", has_image: bool = False) -> str:
    sections = [
        "برای یک کاربر با مشخصات زیر، یک سناریوی استوری اینستاگرام بنویس.",
        f"مشخصات کاربر (برای لحن‌شناسی):\n{user_about or '-'}",
        f"هدف اصلی استوری امروز:\n{goal}",
        f"ایده خام کاربر برای استوری امروز:\n{idea or '-'}",
    ]
    if has_image:
        sections.append("کاربر یک تصویر هم ضمیمه کرده است؛ سناریو باید بر اساس تصویر و ایده بالا باشد.")
    if str(yesterday_feedback or "").strip():
        sections.append(f"بازخورد استوری دیروز (مهم):\n\"{yesterday_feedback.strip()}\"")
    sections.append(f"دستورالعمل‌ها:\n{_numbered(STORY_RULES)}")
    return "\n\n".join(sections)


def build_caption_prompt(user_about: str, description: str, has_image: bool = False) -> str:
    sections = [
        "تو یک استراتژیست حرفه‌ای محتوای اینستاگرام هستی. بر اساس پروفایل کاربر و محتوای زیر یک کپشن خلاقانه بنویس.",
        f"پروفایل کاربر:\n{user_about or '-'}",
        f"توضیح یا ایده محتوا:\n{description}",
    ]
    if has_image:
        sections.append("یک تصویر ضمیمه شده است؛ کپشن باید مستقیماً به همین تصویر مربوط باشد.")
    sections.append(f"دستورالعمل‌ها:\n{_numbered(CAPTION_RULES)}")
    return "\n\n".join(sections)


def build_chat_system_prompt(display_name: str, about: str) -> str:
    return (
        "تو «هوش مصنوعی آیتم» هستی، یک متخصص دوستانه در استراتژی محتوای اینستاگرام. "
        f"با {display_name} جان صحبت می‌کنی. درباره کارش: \"{about or '-'}\". "
        "با لحنی صمیمی، گرم و محاوره‌ای فارسی صحبت کن و تا جای ممکن کمک‌کننده و دلگرم‌کننده باش."
    )


def build_screenshot_prompt() -> str:
    return (
        "این اسکرین‌شات پروفایل اینستاگرام را تحلیل کن. نام کاربری صفحه را پیدا کن و هویت بصری، "
        "برندینگ، پالت رنگی و حال‌وهوای کلی صفحه را به فارسی و خلاصه تحلیل کن. "
        "کل پاسخ باید فقط یک شیء JSON با دو کلید باشد: "
        "\"instagramId\" (نام کاربری بدون @) و \"visualAnalysis\" (تحلیل به فارسی)."
    )


def build_competitor_prompt(instagram_id: str, user_about: str, profile: Optional[Dict[str, Any]] = None) -> str:
    sections = [
        f"یک تحلیل رقیب دوستانه و خودمانی برای صفحه اینستاگرام «@{instagram_id}» بنویس.",
        f"اطلاعات کاربری که به او کمک می‌کنی: \"{user_about or '-'}\". "
        "تحلیل را با مقایسه صفحه رقیب با کسب‌وکار کاربر شروع کن.",
    ]
    if profile:
        bio = str(profile.get("biography") or profile.get("bio") or "").strip()
        followers = profile.get("follower_count") or profile.get("followers")
        facts = [f"نام: {profile.get('full_name') or '-'}"]
        if bio:
            facts.append(f"بیو: {bio}")
        if followers is not None:
            facts.append(f"تعداد دنبال‌کننده: {followers}")
        sections.append("اطلاعات عمومی صفحه:\n" + "\n".join(facts))
    sections.append(
        "سپس پروفایل (آیدی، نام، بیو)، هایلایت‌ها و پست‌ها (تم بصری و نوع محتوا) را بررسی کن "
        "و پیشنهادهای عملی بده. پاسخ فارسی، با تیتر و لیست مارک‌داون و اموجی به جای ستاره باشد."
    )
    return "\n\n".join(sections)


def build_hooks_prompt(scenario_content: str, kind: str) -> str:
    label = HOOK_KINDS[kind]
    return (
        f"بر اساس سناریوی ویدیوی اینستاگرامی زیر، فهرستی از ۵۰ {label} خلاقانه و جذاب بنویس.\n\n"
        f"سناریو:\n\"{scenario_content}\"\n\n"
        "دستورالعمل‌ها:\n- دقیقاً ۵۰ مورد بنویس.\n- لحن مناسب اینستاگرام باشد.\n- به صورت فهرست شماره‌دار و کوتاه ارائه بده."
    )


def build_story_image_prompt(user_text: str) -> str:
    return (
        "GENERATE an image based on this input.\n\n"
        f"User Request: \"{user_text}\"\n\n"
        "The output MUST be an image URL. Create a high-quality, professional Instagram Story "
        "background that incorporates the style of the attached image and the theme of the text."
    )
