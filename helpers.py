"""
Small formatting helpers shared by the public site and the admin console.
"""
import math
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Literal

from pydantic import BaseModel

# Ukrainian mobile operator codes (without the leading 0)
UA_MOBILE_PREFIXES = (
    "39", "50", "63", "66", "67", "68", "73",
    "91", "92", "93", "94", "95", "96", "97", "98", "99",
)


def normalize_phone(value: str) -> str:
    """Bring a typed phone number to the +380... form.

    "0991234567" -> "+380991234567", "380991234567" -> "+380991234567",
    "80991234567" -> "+380991234567", "991234567" -> "+380991234567".
    Numbers already starting with "+" are only stripped of punctuation.
    """
    cleaned = re.sub(r"[^\d+]", "", value or "")
    if cleaned.startswith("0"):
        return "+38" + cleaned
    if cleaned.startswith("380"):
        return "+" + cleaned
    if cleaned.startswith("80") and len(cleaned) > 2:
        return "+3" + cleaned
    if cleaned.isdigit() and len(cleaned) >= 2 and cleaned[:2] in UA_MOBILE_PREFIXES:
        return "+380" + cleaned
    return cleaned


def phone_digits(number: str) -> str:
    return re.sub(r"\D", "", number or "")


def messenger_links(number: str) -> dict:
    digits = phone_digits(number)
    return {
        "tel": f"tel:{digits}",
        "viber": f"viber://chat?number={digits}",
        "telegram": f"https://t.me/{digits}",
        "whatsapp": f"https://wa.me/{digits}",
    }


# ---------------------- Pagination ----------------------
class Page(BaseModel):
    items: List[Any]
    page: int
    per_page: int
    total: int
    total_pages: int

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def page_count(total: int, per_page: int) -> int:
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    return math.ceil(total / per_page)


def paginate(items: List[Any], page: int, per_page: int) -> Page:
    total_pages = page_count(len(items), per_page)
    page = max(1, min(page, total_pages or 1))
    start = (page - 1) * per_page
    return Page(
        items=list(items[start:start + per_page]),
        page=page,
        per_page=per_page,
        total=len(items),
        total_pages=total_pages,
    )


# ---------------------- Video links ----------------------
# Best-effort platform sniffing; the result is display metadata only.
class VideoInfo(BaseModel):
    platform: Literal["youtube", "tiktok", "instagram", "vimeo", "other"]
    embed_url: str
    thumbnail_url: Optional[str] = None
    is_embeddable: bool = False


_YOUTUBE_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/)([^&?/]+)"),
    re.compile(r"youtube\.com/embed/([^&?/]+)"),
)
_VIMEO_PATTERN = re.compile(r"vimeo\.com/(\d+)")
_TIKTOK_PATTERN = re.compile(r"tiktok\.com/@[\w.-]+/video/(\d+)")
_INSTAGRAM_PATTERNS = (
    re.compile(r"instagram\.com/p/([A-Za-z0-9_-]+)"),
    re.compile(r"instagram\.com/reel/([A-Za-z0-9_-]+)"),
    re.compile(r"instagram\.com/tv/([A-Za-z0-9_-]+)"),
)
VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com", "tiktok.com", "instagram.com")
VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg", ".mov")


def _first_match(patterns, url: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def get_video_info(url: str) -> VideoInfo:
    lower = url.lower()

    if "youtube.com" in lower or "youtu.be" in lower:
        video_id = _first_match(_YOUTUBE_PATTERNS, url)
        if video_id:
            return VideoInfo(
                platform="youtube",
                embed_url=f"https://www.youtube.com/embed/{video_id}",
                thumbnail_url=f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg",
                is_embeddable=True,
            )

    if "vimeo.com" in lower:
        video_id = _first_match((_VIMEO_PATTERN,), url)
        if video_id:
            return VideoInfo(platform="vimeo", embed_url=f"https://player.vimeo.com/video/{video_id}", is_embeddable=True)

    if "tiktok.com" in lower:
        video_id = _first_match((_TIKTOK_PATTERN,), url)
        if video_id:
            return VideoInfo(platform="tiktok", embed_url=f"https://www.tiktok.com/embed/v2/{video_id}", is_embeddable=True)

    if "instagram.com" in lower:
        post_id = _first_match(_INSTAGRAM_PATTERNS, url)
        if post_id:
            return VideoInfo(platform="instagram", embed_url=f"https://www.instagram.com/p/{post_id}/embed", is_embeddable=True)

    return VideoInfo(platform="other", embed_url=url)


def is_video_platform_url(url: str) -> bool:
    lower = url.lower()
    return any(host in lower for host in VIDEO_HOSTS)


def is_direct_video_file(url: str) -> bool:
    return url.lower().endswith(VIDEO_EXTENSIONS)


# ---------------------- Text ----------------------
def initials(name: str) -> str:
    return "".join(part[0] for part in (name or "").split() if part).upper()[:2]


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def sort_timestamp(value: Any) -> datetime:
    """Comparable UTC datetime for ordering; missing or bad values sort oldest."""
    dt = parse_datetime(value)
    if dt is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def format_date(value: Any, with_time: bool = False) -> str:
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return dt.strftime("%d.%m.%Y %H:%M" if with_time else "%d.%m.%Y")
