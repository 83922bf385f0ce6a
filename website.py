"""
Public site content.

Every section pulls its slice of content from the shared ResourceCache and
falls back to built-in defaults when the API fails or returns nothing, so a
section never breaks the page. Page containers (pricing, reviews, gallery,
blog) shape the fetched collections for display; `Router` picks the page.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

from pydantic import BaseModel

from client import ApiError
from events import EventBus, ResourceCache
from helpers import (
    Page,
    paginate,
    normalize_phone,
    messenger_links,
    get_video_info,
    initials,
    format_date,
    sort_timestamp,
)
from schemas import (
    PRICING_CATEGORIES,
    Contacts,
    Branding,
    SocialMedia,
    HeroImages,
    Benefits,
    Discount,
)

logger = logging.getLogger("blisk.site")

REVIEWS_ON_HOME = 6
REVIEWS_PER_PAGE = 9
FOOTER_SERVICES = 4
DEFAULT_PHONE = "+380 (12) 345-67-89"

BENEFITS = [
    {"icon": "shield", "title": "Гарантія якості", "description": "Повернемо кошти, якщо ви не задоволені результатом"},
    {"icon": "clock", "title": "Пунктуальність", "description": "Завжди приїжджаємо вчасно та дотримуємось графіку"},
    {"icon": "award", "title": "Професіоналізм", "description": "Наші співробітники пройшли спеціальне навчання"},
    {"icon": "thumbs-up", "title": "Досвід", "description": "Понад 5 років успішної роботи на ринку"},
    {"icon": "users", "title": "Індивідуальний підхід", "description": "Врахуємо всі ваші побажання та особливості"},
    {"icon": "leaf", "title": "Екологічність", "description": "Використовуємо безпечні та екологічні засоби"},
]


def _load(cache: ResourceCache, resource: str, default: Any) -> Tuple[Any, bool]:
    """Return (value, loaded); `default` stands in when the fetch fails or is empty."""
    try:
        value = cache.get(resource)
    except ApiError as e:
        logger.warning("Falling back to defaults for %s: %s", resource, e)
        return default, False
    if not value:
        return default, False
    return value, True


def newest_first(items: List[dict]) -> List[dict]:
    return sorted(items, key=lambda d: sort_timestamp(d.get("created_at")), reverse=True)


# ---------------------- Sections ----------------------
def header(cache: ResourceCache) -> dict:
    branding, branding_ok = _load(cache, "branding", Branding().model_dump())
    contacts, contacts_ok = _load(cache, "contacts", Contacts().model_dump())
    phones = contacts.get("phones") or []
    phone = phones[0]["number"] if phones else DEFAULT_PHONE
    return {
        "company_name": branding.get("company_name") or Branding().company_name,
        "logo": branding.get("logo") or "",
        "phone": phone,
        "phone_href": messenger_links(phone)["tel"],
        "loaded": branding_ok and contacts_ok,
    }


def hero(cache: ResourceCache) -> dict:
    images, images_ok = _load(cache, "hero_images", HeroImages().model_dump())
    discount, discount_ok = _load(cache, "discount", Discount().model_dump())
    return {"images": images, "discount": discount, "loaded": images_ok and discount_ok}


def services(cache: ResourceCache) -> dict:
    items, loaded = _load(cache, "services", [])
    return {"services": items, "loaded": loaded}


def benefits(cache: ResourceCache) -> dict:
    data, loaded = _load(cache, "benefits", Benefits().model_dump())
    return {"image": data.get("image") or Benefits().image, "benefits": BENEFITS, "loaded": loaded}


def reviews_section(cache: ResourceCache) -> dict:
    items, loaded = _load(cache, "reviews", [])
    approved = newest_first([r for r in items if r.get("approved")])[:REVIEWS_ON_HOME]
    return {"reviews": [review_card(r) for r in approved], "loaded": loaded}


def contact_form(cache: ResourceCache) -> dict:
    items, services_ok = _load(cache, "services", [])
    contacts, contacts_ok = _load(cache, "contacts", Contacts().model_dump())
    discount, discount_ok = _load(cache, "discount", Discount().model_dump())
    phones = [{**p, "links": messenger_links(p.get("number", ""))} for p in contacts.get("phones") or []]
    return {
        "service_options": [s.get("title") for s in items],
        "contacts": {**contacts, "phones": phones},
        "discount": discount,
        "loaded": services_ok and contacts_ok and discount_ok,
    }


def footer(cache: ResourceCache, today: Optional[datetime] = None) -> dict:
    fallback_contacts = Contacts(phones=[{"number": DEFAULT_PHONE}]).model_dump()
    contacts, contacts_ok = _load(cache, "contacts", fallback_contacts)
    items, services_ok = _load(cache, "services", [])
    social, social_ok = _load(cache, "social_media", SocialMedia().model_dump())
    branding, branding_ok = _load(cache, "branding", Branding().model_dump())
    return {
        "contacts": contacts,
        "services": items[:FOOTER_SERVICES],
        "social": {name: link for name, link in social.items() if link.get("enabled") and link.get("url")},
        "branding": branding,
        "year": (today or datetime.now()).year,
        "loaded": contacts_ok and services_ok and social_ok and branding_ok,
    }


def home_page(cache: ResourceCache) -> dict:
    return {
        "hero": hero(cache),
        "services": services(cache),
        "benefits": benefits(cache),
        "reviews": reviews_section(cache),
        "contact_form": contact_form(cache),
    }


def review_card(review: dict) -> dict:
    return {
        **review,
        "initials": initials(review.get("name", "")),
        "date": format_date(review.get("created_at")),
        "stars": int(review.get("rating") or 0),
    }


# ---------------------- Forms ----------------------
class FormResult(BaseModel):
    ok: bool
    message: str
    data: Optional[dict] = None


def submit_order(client, form: Dict[str, str]) -> FormResult:
    name = (form.get("name") or "").strip()
    phone = normalize_phone((form.get("phone") or "").strip())
    service = (form.get("service") or "").strip()
    if not name:
        return FormResult(ok=False, message="Введіть ваше ім'я")
    if not phone:
        return FormResult(ok=False, message="Введіть номер телефону")
    if not service:
        return FormResult(ok=False, message="Оберіть послугу")
    try:
        order = client.create_order({
            "name": name,
            "phone": phone,
            "email": (form.get("email") or "").strip(),
            "service": service,
            "message": (form.get("message") or "").strip(),
        })
    except ApiError as e:
        logger.error("Order submission failed: %s", e)
        return FormResult(ok=False, message=f"Помилка: {e}")
    return FormResult(ok=True, message="Замовлення успішно відправлено! Ми зв'яжемося з вами найближчим часом.", data=order)


def submit_review(client, form: Dict[str, Any]) -> FormResult:
    name = (form.get("name") or "").strip()
    text = (form.get("text") or "").strip()
    try:
        rating = int(form.get("rating", 5))
    except (TypeError, ValueError):
        rating = 0
    if not name or not text:
        return FormResult(ok=False, message="Заповніть ім'я та текст відгуку")
    if not 1 <= rating <= 5:
        return FormResult(ok=False, message="Оцінка має бути від 1 до 5")
    payload = {"name": name, "text": text, "rating": rating}
    if (form.get("image") or "").strip():
        payload["image"] = form["image"].strip()
    try:
        review = client.submit_review(payload)
    except ApiError as e:
        logger.error("Review submission failed: %s", e)
        return FormResult(ok=False, message="Помилка при відправці відгуку")
    return FormResult(ok=True, message="Дякуємо за ваш відгук! Він з'явиться після модерації.", data=review)


# ---------------------- Pages ----------------------
def pricing_page(cache: ResourceCache) -> dict:
    data, loaded = _load(cache, "pricing", {})
    return {"categories": {c: data.get(c) or [] for c in PRICING_CATEGORIES}, "loaded": loaded}


def reviews_page(cache: ResourceCache, page: int = 1) -> Page:
    items, _ = _load(cache, "reviews", [])
    approved = newest_first([r for r in items if r.get("approved")])
    return paginate([review_card(r) for r in approved], page, REVIEWS_PER_PAGE)


def gallery_page(cache: ResourceCache) -> dict:
    items, loaded = _load(cache, "gallery", [])
    items = [dict(i) for i in newest_first(items)]
    for item in items:
        if item.get("type") == "video":
            item["video"] = get_video_info(item.get("url", "")).model_dump()
    photos = [i for i in items if i.get("type") == "photo"]
    videos = [i for i in items if i.get("type") == "video"]
    return {
        "all": items,
        "photos": photos,
        "videos": videos,
        "counts": {"all": len(items), "photos": len(photos), "videos": len(videos)},
        "loaded": loaded,
    }


def blog_page(cache: ResourceCache) -> dict:
    posts, loaded = _load(cache, "blog", [])
    out = []
    for post in newest_first(posts):
        entry = {**post, "date": format_date(post.get("created_at"))}
        if post.get("video"):
            entry["video_info"] = get_video_info(post["video"]).model_dump()
        out.append(entry)
    return {"posts": out, "loaded": loaded}


# ---------------------- App shell ----------------------
PAGES: Dict[str, Callable[[ResourceCache], Any]] = {
    "home": home_page,
    "pricing": pricing_page,
    "reviews": reviews_page,
    "gallery": gallery_page,
    "blog": blog_page,
}
ADMIN_PAGE = "admin"
PAGE_CHANGED = "page_changed"


class Router:
    def __init__(self, bus: Optional[EventBus] = None, page: str = "home"):
        self.bus = bus
        self.current_page = "home"
        self.navigate(page)

    @classmethod
    def from_query(cls, query: str, bus: Optional[EventBus] = None) -> "Router":
        params = parse_qs(query.lstrip("?"))
        page = (params.get("page") or ["home"])[0]
        return cls(bus=bus, page=ADMIN_PAGE if page == ADMIN_PAGE else "home")

    def navigate(self, page: str) -> str:
        if page != ADMIN_PAGE and page not in PAGES:
            page = "home"
        if page != self.current_page:
            self.current_page = page
            if self.bus:
                self.bus.publish(PAGE_CHANGED, page)
        return self.current_page

    def render(self, cache: ResourceCache) -> dict:
        if self.current_page == ADMIN_PAGE:
            return {"page": ADMIN_PAGE}
        return {
            "page": self.current_page,
            "header": header(cache),
            "content": PAGES[self.current_page](cache),
            "footer": footer(cache),
        }
