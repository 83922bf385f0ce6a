"""
Admin console.

`AdminSession` is the password gate: it trades the password for a signed
session token once and keeps only the token. Each content type gets a
manager built on the same template: load, validate, save, notify, reload.
Writes invalidate the matching ResourceCache entry so the public sections
pick up the change.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from client import ApiClient, ApiError, UnauthorizedError, handle_api_error, wait_for_connection, check_connection, ConnectionStatus
from events import UNAUTHORIZED, EventBus, ResourceCache, RESOURCE_LOADERS
from helpers import Page, paginate, get_video_info, is_video_platform_url, is_direct_video_file
from schemas import ORDER_STATUSES, PRICING_CATEGORIES
import settings

logger = logging.getLogger("blisk.admin")

Notifier = Callable[[str, str], None]

LOGGED_IN = "logged_in"
LOGGED_OUT = "logged_out"


class ValidationError(ValueError):
    pass


def log_notice(level: str, message: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, "[%s] %s", level, message)


def _is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


# ---------------------- Session gate ----------------------
class AdminSession:
    def __init__(self, client: ApiClient, bus: EventBus, notify: Notifier = log_notice):
        self.client = client
        self.bus = bus
        self.notify = notify
        self.token: Optional[str] = None
        self._unsubscribe = bus.subscribe(UNAUTHORIZED, self._on_unauthorized)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _arm(self, token: str) -> None:
        self.token = token
        self.client.token = token

    def login(self, password: str) -> bool:
        password = (password or "").strip()
        if not password:
            self.notify("error", "Введіть пароль")
            return False
        try:
            data = self.client.login(password)
        except UnauthorizedError:
            self.notify("error", "Неправильний пароль адміністратора")
            return False
        except ApiError as e:
            self.notify("error", str(e))
            return False
        self._arm(data["access_token"])
        self.bus.publish(LOGGED_IN)
        logger.info("Admin session started")
        return True

    def logout(self) -> None:
        was_authenticated = self.is_authenticated
        self.token = None
        self.client.token = None
        if was_authenticated:
            self.bus.publish(LOGGED_OUT)
            logger.info("Admin session ended")

    def _on_unauthorized(self, error: Any = None) -> None:
        if self.is_authenticated:
            self.notify("error", "Сесія завершилась. Увійдіть знову.")
        self.logout()

    def change_password(self, current: str, new: str, confirm: Optional[str] = None) -> bool:
        if not current or not new:
            self.notify("error", "Заповніть усі поля")
            return False
        if len(new) < settings.MIN_PASSWORD_LENGTH:
            self.notify("error", f"Новий пароль має містити щонайменше {settings.MIN_PASSWORD_LENGTH} символів")
            return False
        if confirm is not None and new != confirm:
            self.notify("error", "Паролі не співпадають")
            return False
        if new == current:
            self.notify("error", "Новий пароль має відрізнятися від поточного")
            return False
        try:
            data = self.client.change_password(current, new)
        except UnauthorizedError:
            self.notify("error", "Поточний пароль неправильний")
            return False
        except ApiError as e:
            self.notify("error", str(e))
            return False
        self._arm(data["access_token"])
        self.notify("success", "Пароль успішно змінено")
        return True

    def close(self) -> None:
        self._unsubscribe()


# ---------------------- Manager template ----------------------
class Manager:
    resources: tuple = ()

    def __init__(self, session: AdminSession, cache: Optional[ResourceCache] = None, notify: Optional[Notifier] = None):
        self.session = session
        self.cache = cache
        self.notify = notify or session.notify
        self.loading = False

    @property
    def client(self) -> ApiClient:
        return self.session.client

    def _run(self, action: Callable[[], Any], success: Optional[str] = None, failure: str = "Помилка виконання операції"):
        try:
            result = action()
        except ValidationError as e:
            self.notify("error", str(e))
            return None
        except ApiError as e:
            logger.error("%s: %s", type(self).__name__, e)
            handle_api_error(e, self.session.bus, self.notify, failure)
            return None
        if success:
            self.notify("success", success)
        return result

    def _changed(self) -> None:
        if self.cache is not None:
            for resource in self.resources:
                self.cache.invalidate(resource)
        self.load()

    def load(self) -> Any:
        self.loading = True
        try:
            return self._run(self.fetch, failure="Помилка завантаження")
        finally:
            self.loading = False

    def fetch(self) -> Any:
        raise NotImplementedError


class ServicesManager(Manager):
    resources = ("services",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.services: List[dict] = []

    def fetch(self):
        self.services = self.client.get_services()
        return self.services

    @staticmethod
    def parse_features(features: Union[str, List[str], None]) -> List[str]:
        if isinstance(features, str):
            features = features.replace("\n", ",").split(",")
        return [f.strip() for f in features or [] if f and f.strip()]

    def save(self, title: str, description: str, features: Union[str, List[str], None] = None, service_id: Optional[str] = None):
        def action():
            if not title.strip() or not description.strip():
                raise ValidationError("Заповніть назву та опис послуги")
            payload = {"title": title.strip(), "description": description.strip(), "features": self.parse_features(features)}
            if service_id:
                payload["id"] = service_id
            return self.client.save_service(payload)

        saved = self._run(action, "Послугу збережено!")
        if saved:
            self._changed()
        return saved

    def delete(self, service_id: str) -> bool:
        if self._run(lambda: self.client.delete_service(service_id), "Послугу видалено!") is None:
            return False
        self._changed()
        return True


class ContactsManager(Manager):
    resources = ("contacts",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.contacts: dict = {}

    def fetch(self):
        self.contacts = self.client.get_contacts()
        return self.contacts

    def save(self, contacts: dict):
        def action():
            phones = []
            for phone in contacts.get("phones") or []:
                number = (phone.get("number") or "").strip()
                if not number:
                    raise ValidationError("Номер телефону не може бути порожнім")
                phones.append({**phone, "number": number})
            email = (contacts.get("email") or "").strip()
            if email and "@" not in email:
                raise ValidationError("Некоректний email")
            return self.client.update_contacts({**contacts, "phones": phones, "email": email})

        saved = self._run(action, "Контакти оновлено!")
        if saved:
            self._changed()
        return saved


class BrandingManager(Manager):
    resources = ("branding", "social_media")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.branding: dict = {}
        self.social: dict = {}

    def fetch(self):
        self.branding = self.client.get_branding()
        self.social = self.client.get_social_media()
        return {"branding": self.branding, "social": self.social}

    def save_branding(self, company_name: str, logo: str = ""):
        def action():
            if not company_name.strip():
                raise ValidationError("Введіть назву компанії")
            if logo and not _is_url(logo.strip()):
                raise ValidationError("Логотип має бути посиланням http(s)")
            return self.client.update_branding({"company_name": company_name.strip(), "logo": logo.strip()})

        saved = self._run(action, "Брендинг оновлено!")
        if saved:
            if self.cache is not None:
                self.cache.invalidate("branding")
            self.load()
        return saved

    def save_social(self, social: Dict[str, dict]):
        def action():
            for name, link in social.items():
                if link.get("enabled") and not _is_url((link.get("url") or "").strip()):
                    raise ValidationError(f"Вкажіть коректне посилання для {name}")
            return self.client.update_social_media(social)

        saved = self._run(action, "Соціальні мережі оновлено!")
        if saved:
            if self.cache is not None:
                self.cache.invalidate("social_media")
            self.load()
        return saved


class HeroImagesManager(Manager):
    resources = ("hero_images",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.images: dict = {}

    def fetch(self):
        self.images = self.client.get_hero_images()
        return self.images

    def save(self, main_image: str, secondary_image: str):
        def action():
            for url in (main_image, secondary_image):
                if url and not _is_url(url.strip()):
                    raise ValidationError("Зображення мають бути посиланнями http(s)")
            return self.client.update_hero_images({"main_image": main_image.strip(), "secondary_image": secondary_image.strip()})

        saved = self._run(action, "Зображення оновлено!")
        if saved:
            self._changed()
        return saved


class BenefitsManager(Manager):
    resources = ("benefits",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.benefits: dict = {}

    def fetch(self):
        self.benefits = self.client.get_benefits()
        return self.benefits

    def save(self, image: str):
        def action():
            if not _is_url(image.strip()):
                raise ValidationError("Зображення має бути посиланням http(s)")
            return self.client.update_benefits({"image": image.strip()})

        saved = self._run(action, "Зображення оновлено!")
        if saved:
            self._changed()
        return saved


class DiscountManager(Manager):
    resources = ("discount",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.discount: dict = {}

    def fetch(self):
        self.discount = self.client.get_discount()
        return self.discount

    def save(self, enabled: bool, percentage: int, description: str):
        def action():
            try:
                value = int(percentage)
            except (TypeError, ValueError):
                raise ValidationError("Знижка має бути числом")
            if not 1 <= value <= 100:
                raise ValidationError("Знижка має бути від 1 до 100%")
            if not description.strip():
                raise ValidationError("Введіть опис знижки")
            return self.client.update_discount({"enabled": enabled, "percentage": value, "description": description.strip()})

        saved = self._run(action, "Знижку оновлено!")
        if saved:
            self._changed()
        return saved


PRICING_FIELDS = {
    "cleaning": ("area", "after_repair", "general", "supporting"),
    "windows": ("type", "price"),
    "chemistry": ("item", "price"),
    "additional": ("service", "price"),
}


class PricingManager(Manager):
    resources = ("pricing",)
    per_page = 10

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.pricing: Dict[str, List[dict]] = {c: [] for c in PRICING_CATEGORIES}

    def fetch(self):
        data = self.client.get_pricing() or {}
        self.pricing = {c: list(data.get(c) or []) for c in PRICING_CATEGORIES}
        return self.pricing

    @staticmethod
    def validate_row(category: str, row: dict) -> dict:
        if category not in PRICING_FIELDS:
            raise ValidationError(f"Невідома категорія: {category}")
        fields = PRICING_FIELDS[category]
        clean = {f: str(row.get(f) or "").strip() for f in fields}
        if not all(clean.values()):
            raise ValidationError("Заповніть усі поля")
        return clean

    def _save_category(self, category: str, rows: List[dict], message: str):
        saved = self._run(lambda: self.client.update_pricing(category, rows), message, "Помилка збереження цін")
        if saved is not None:
            self._changed()
        return saved

    def add_item(self, category: str, row: dict):
        clean = self._run(lambda: self.validate_row(category, row))
        if clean is None:
            return None
        return self._save_category(category, self.pricing.get(category, []) + [clean], "Ціни збережено!")

    def update_item(self, category: str, index: int, row: dict):
        clean = self._run(lambda: self.validate_row(category, row))
        if clean is None:
            return None
        rows = list(self.pricing.get(category, []))
        if not 0 <= index < len(rows):
            self.notify("error", "Позицію не знайдено")
            return None
        rows[index] = clean
        return self._save_category(category, rows, "Ціни збережено!")

    def remove_item(self, category: str, index: int):
        rows = list(self.pricing.get(category, []))
        if not 0 <= index < len(rows):
            self.notify("error", "Позицію не знайдено")
            return None
        del rows[index]
        return self._save_category(category, rows, "Позицію видалено!")

    def search(self, category: str, query: str = "") -> List[dict]:
        rows = self.pricing.get(category, [])
        query = query.strip().lower()
        if not query:
            return list(rows)
        return [r for r in rows if any(query in str(v).lower() for v in r.values())]

    def page(self, category: str, page: int = 1, query: str = "") -> Page:
        return paginate(self.search(category, query), page, self.per_page)


class GalleryManager(Manager):
    resources = ("gallery",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.items: List[dict] = []

    def fetch(self):
        self.items = self.client.get_gallery()
        return self.items

    @staticmethod
    def check_media(url: str, media_type: str) -> List[str]:
        """Warnings for a media URL; an empty list means it looks usable."""
        warnings = []
        if not _is_url(url):
            warnings.append("Посилання має починатися з http:// або https://")
        if media_type == "video":
            info = get_video_info(url)
            if not info.is_embeddable and not is_direct_video_file(url):
                warnings.append("Відео не вдасться вбудувати: використайте YouTube, Vimeo, TikTok, Instagram або файл .mp4/.webm")
        elif is_video_platform_url(url):
            warnings.append("Схоже, це відео: оберіть тип 'video'")
        return warnings

    def add(self, url: str, media_type: str = "photo", description: str = ""):
        def action():
            clean = (url or "").strip()
            if media_type not in ("photo", "video"):
                raise ValidationError("Тип має бути photo або video")
            if not _is_url(clean):
                raise ValidationError("Посилання має починатися з http:// або https://")
            return self.client.add_gallery_item({"url": clean, "type": media_type, "description": description.strip()})

        saved = self._run(action, "Додано до галереї!")
        if saved:
            self._changed()
        return saved

    def delete(self, item_id: str) -> bool:
        if self._run(lambda: self.client.delete_gallery_item(item_id), "Видалено з галереї!") is None:
            return False
        self._changed()
        return True


class BlogManager(Manager):
    resources = ("blog",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.posts: List[dict] = []

    def fetch(self):
        self.posts = self.client.get_all_blog_posts()
        return self.posts

    def save(self, title: str, content: str, image: str = "", video: str = "", published: bool = False, post_id: Optional[str] = None):
        def action():
            if not title.strip() or not content.strip():
                raise ValidationError("Заповніть заголовок та текст статті")
            for url in (image, video):
                if url and not _is_url(url.strip()):
                    raise ValidationError("Посилання має починатися з http:// або https://")
            payload = {
                "title": title.strip(),
                "content": content,
                "image": image.strip() or None,
                "video": video.strip() or None,
                "published": published,
            }
            if post_id:
                payload["id"] = post_id
            return self.client.save_blog_post(payload)

        saved = self._run(action, "Статтю збережено!")
        if saved:
            self._changed()
        return saved

    def toggle_published(self, post_id: str):
        post = next((p for p in self.posts if p.get("id") == post_id), None)
        if post is None:
            self.notify("error", "Статтю не знайдено")
            return None
        return self.save(post["title"], post["content"], post.get("image") or "", post.get("video") or "",
                         not post.get("published"), post_id)

    def delete(self, post_id: str) -> bool:
        if self._run(lambda: self.client.delete_blog_post(post_id), "Статтю видалено!") is None:
            return False
        self._changed()
        return True


class ReviewsManager(Manager):
    resources = ("reviews",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reviews: List[dict] = []

    def fetch(self):
        self.reviews = self.client.get_all_reviews()
        return self.reviews

    @property
    def pending_count(self) -> int:
        return sum(1 for r in self.reviews if not r.get("approved"))

    def filtered(self, status: str = "all") -> List[dict]:
        if status == "pending":
            return [r for r in self.reviews if not r.get("approved")]
        if status == "approved":
            return [r for r in self.reviews if r.get("approved")]
        return list(self.reviews)

    def set_approved(self, review_id: str, approved: bool = True):
        message = "Відгук схвалено!" if approved else "Відгук приховано!"
        saved = self._run(lambda: self.client.approve_review(review_id, approved), message)
        if saved:
            self._changed()
        return saved

    def delete(self, review_id: str) -> bool:
        if self._run(lambda: self.client.delete_review(review_id), "Відгук видалено!") is None:
            return False
        self._changed()
        return True


class OrdersManager(Manager):
    per_page = 10

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.orders: List[dict] = []

    def fetch(self):
        self.orders = self.client.get_orders() or []
        return self.orders

    def filtered(self, status: str = "all", query: str = "") -> List[dict]:
        orders = list(self.orders)
        if status != "all":
            orders = [o for o in orders if o.get("status") == status]
        query = query.strip().lower()
        if query:
            orders = [
                o for o in orders
                if query in o.get("name", "").lower()
                or query in o.get("phone", "")
                or query in o.get("email", "").lower()
                or query in o.get("service", "").lower()
            ]
        return orders

    def page(self, page: int = 1, status: str = "all", query: str = "") -> Page:
        return paginate(self.filtered(status, query), page, self.per_page)

    def stats(self) -> Dict[str, int]:
        return {
            "total": len(self.orders),
            "new": sum(1 for o in self.orders if o.get("status") == "new"),
            "in_progress": sum(1 for o in self.orders if o.get("status") == "in-progress"),
            "completed": sum(1 for o in self.orders if o.get("status") == "completed"),
        }

    def set_status(self, order_id: str, status: str):
        def action():
            if status not in ORDER_STATUSES:
                raise ValidationError("Невідомий статус")
            return self.client.update_order_status(order_id, status)

        saved = self._run(action, "Статус оновлено!", "Помилка оновлення статусу")
        if saved:
            self._changed()
        return saved

    def delete(self, order_id: str) -> bool:
        if self._run(lambda: self.client.delete_order(order_id), "Замовлення видалено!", "Помилка видалення замовлення") is None:
            return False
        self._changed()
        return True


class AccountManager(Manager):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.username: str = ""
        self.password_status: dict = {}

    def fetch(self):
        self.username = self.client.get_admin_username()
        self.password_status = self.client.password_status()
        return {"username": self.username, "password_status": self.password_status}

    def update_username(self, username: str):
        def action():
            if len(username.strip()) < settings.MIN_USERNAME_LENGTH:
                raise ValidationError(f"Ім'я має містити щонайменше {settings.MIN_USERNAME_LENGTH} символи")
            return self.client.update_admin_username(username.strip())

        saved = self._run(action, "Ім'я оновлено!")
        if saved:
            self.load()
        return saved

    def change_password(self, current: str, new: str, confirm: Optional[str] = None) -> bool:
        changed = self.session.change_password(current, new, confirm)
        if changed:
            self.load()
        return changed


class DataExportImport(Manager):
    def fetch(self):
        return None

    def export(self) -> Optional[dict]:
        return self._run(self.client.export_all, "Дані експортовано!", "Помилка експорту")

    def export_json(self) -> Optional[str]:
        bundle = self.export()
        if bundle is None:
            return None
        return json.dumps(bundle, ensure_ascii=False, indent=2)

    def import_bundle(self, bundle: Union[str, dict], mode: str = "merge") -> Optional[dict]:
        def action():
            data = bundle
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except ValueError:
                    raise ValidationError("Файл не є коректним JSON")
            if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
                raise ValidationError("Невірний формат файлу експорту")
            if mode not in ("merge", "overwrite"):
                raise ValidationError("Режим має бути merge або overwrite")
            return self.client.import_all(data, mode)

        imported = self._run(action, "Дані імпортовано!", "Помилка імпорту")
        if imported is not None and self.cache is not None:
            for resource in RESOURCE_LOADERS:
                self.cache.invalidate(resource)
        return imported


# ---------------------- Panel ----------------------
class ConnectionGate:
    """Start-up health polling shown before the admin panel."""

    def __init__(self, check: Callable[[], ConnectionStatus] = check_connection, max_attempts: int = 5, delay: float = 3.0):
        self.check = check
        self.max_attempts = max_attempts
        self.delay = delay
        self.attempt = 0
        self.message = "Перевірка з'єднання..."
        self.status: Optional[ConnectionStatus] = None

    @property
    def progress(self) -> float:
        return self.attempt / self.max_attempts * 100

    def _on_progress(self, attempt: int, max_attempts: int, message: str) -> None:
        self.attempt = attempt
        self.message = message

    def run(self, sleep: Optional[Callable[[float], None]] = None) -> ConnectionStatus:
        kwargs = {"sleep": sleep} if sleep else {}
        self.status = wait_for_connection(self.check, self.max_attempts, self.delay, self._on_progress, **kwargs)
        self.message = "З'єднання встановлено!" if self.status.success else "Не вдалося встановити з'єднання"
        return self.status


class AdminPanel:
    TABS = {
        "services": ServicesManager,
        "contacts": ContactsManager,
        "branding": BrandingManager,
        "hero_images": HeroImagesManager,
        "benefits": BenefitsManager,
        "discount": DiscountManager,
        "pricing": PricingManager,
        "gallery": GalleryManager,
        "blog": BlogManager,
        "reviews": ReviewsManager,
        "orders": OrdersManager,
        "account": AccountManager,
        "data": DataExportImport,
    }

    def __init__(self, client: ApiClient, bus: EventBus, cache: Optional[ResourceCache] = None, notify: Notifier = log_notice):
        self.session = AdminSession(client, bus, notify)
        self.managers: Dict[str, Manager] = {name: cls(self.session, cache, notify) for name, cls in self.TABS.items()}

    def __getitem__(self, tab: str) -> Manager:
        return self.managers[tab]

    def open(self, tab: str) -> Any:
        if not self.session.is_authenticated:
            raise PermissionError("Admin session required")
        return self.managers[tab].load()
