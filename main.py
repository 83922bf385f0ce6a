import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Literal

from bson import ObjectId
from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

import settings
from database import KeyValueStore, get_store
from helpers import sort_timestamp
from schemas import (
    ORDER_STATUSES,
    PRICING_CATEGORIES,
    MediaType,
    Service,
    Review,
    GalleryItem,
    BlogPost,
    Order,
    Contacts,
    Branding,
    SocialMedia,
    HeroImages,
    Benefits,
    Discount,
    ExportBundle,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger("blisk.api")

pwd_context = CryptContext(schemes=["bcrypt_sha256", "bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

app = FastAPI(title="Blisk Cleaning API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*" if settings.FRONTEND_URL == "*" else settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def ok(data: Any = None, **extra) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def new_id() -> str:
    return str(ObjectId())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def newest_first(items: List[dict]) -> List[dict]:
    return sorted(items, key=lambda d: (sort_timestamp(d.get("created_at")), str(d.get("id") or "")), reverse=True)


# ---------------------- Error envelope ----------------------
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    body = {"success": False, "error": exc.detail}
    if exc.status_code == 404 and exc.detail == "Not Found":
        body["error"] = "Route not found"
        body["path"] = request.url.path
        body["method"] = request.method
        body["available_routes"] = available_routes()
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
    return JSONResponse({"success": False, "error": "; ".join(parts) or "Invalid request"}, status_code=422)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"success": False, "error": str(exc)}, status_code=500)


def available_routes() -> List[str]:
    out = []
    for route in app.routes:
        if isinstance(route, APIRoute):
            for method in sorted(route.methods):
                out.append(f"{method} {route.path}")
    return out


# ---------------------- Auth helpers ----------------------
class PasswordRequest(BaseModel):
    password: str = ""


class PasswordChange(BaseModel):
    current_password: str = ""
    new_password: str = ""


class UsernameUpdate(BaseModel):
    username: str = ""


def get_password_version(store: KeyValueStore) -> int:
    return int(store.get("admin_password_version") or 0)


def bump_password_version(store: KeyValueStore) -> int:
    version = get_password_version(store) + 1
    store.set("admin_password_version", version)
    return version


def verify_admin_password(store: KeyValueStore, password: Optional[str]) -> bool:
    if not password:
        logger.warning("Auth check failed: no password provided")
        return False
    hashed = store.get("admin_password_hash")
    if hashed:
        try:
            valid = pwd_context.verify(password, hashed)
        except ValueError as e:
            # passlib rejects some inputs outright (e.g. NUL bytes for legacy bcrypt hashes)
            logger.warning("Auth check failed: %s", e)
            valid = False
    else:
        valid = secrets.compare_digest(password.encode("utf-8"), settings.DEFAULT_ADMIN_PASSWORD.encode("utf-8"))
    if not valid:
        logger.warning("Auth check failed: password mismatch")
    return valid


def set_admin_password(store: KeyValueStore, password: str) -> int:
    store.set("admin_password_hash", pwd_context.hash(password))
    return bump_password_version(store)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def issue_token(store: KeyValueStore) -> dict:
    token = create_access_token({"sub": "admin", "pwv": get_password_version(store)})
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


async def get_current_admin(token: str = Depends(oauth2_scheme), store: KeyValueStore = Depends(get_store)) -> dict:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("sub") != "admin":
        raise credentials_exception
    if payload.get("pwv") != get_password_version(store):
        logger.warning("Rejected token issued for an older admin password")
        raise credentials_exception
    return payload


# ---------------------- Auth routes ----------------------
@app.get("/")
def read_root():
    return {"message": "Blisk Cleaning API running"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/check-password")
def check_password(payload: PasswordRequest, store: KeyValueStore = Depends(get_store)):
    valid = verify_admin_password(store, payload.password)
    return ok(valid=valid, message="Password is correct" if valid else "Password is incorrect")


@app.post("/auth/login")
def login(payload: PasswordRequest, store: KeyValueStore = Depends(get_store)):
    if not verify_admin_password(store, payload.password):
        raise HTTPException(status_code=401, detail="Invalid password")
    logger.info("Admin logged in")
    return ok(issue_token(store))


@app.get("/validate-password")
def validate_password(x_admin_password: Optional[str] = Header(None), store: KeyValueStore = Depends(get_store)):
    if not verify_admin_password(store, x_admin_password):
        raise HTTPException(status_code=401, detail="Invalid password")
    return ok(issue_token(store), message="Password is valid")


@app.post("/change-password")
def change_password(payload: PasswordChange, store: KeyValueStore = Depends(get_store)):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="Current and new passwords are required")
    if not verify_admin_password(store, payload.current_password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")
    if len(payload.new_password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {settings.MIN_PASSWORD_LENGTH} characters",
        )
    if payload.new_password == payload.current_password:
        raise HTTPException(status_code=400, detail="New password must be different from current password")
    set_admin_password(store, payload.new_password)
    logger.info("Admin password changed")
    return ok(issue_token(store), message="Password changed successfully")


@app.get("/password-status")
def password_status(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    hashed = store.get("admin_password_hash")
    is_default = not hashed or pwd_context.verify(settings.DEFAULT_ADMIN_PASSWORD, hashed)
    return ok({"is_default": is_default, "version": get_password_version(store)})


@app.post("/reset-password")
def reset_password(store: KeyValueStore = Depends(get_store)):
    if not settings.ALLOW_PASSWORD_RESET:
        raise HTTPException(status_code=403, detail="Password reset is disabled")
    store.delete("admin_password_hash")
    bump_password_version(store)
    logger.warning("Admin password reset to default without authentication")
    return ok(message="Password reset to default")


@app.get("/admin-username")
def get_admin_username(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok({"username": store.get("admin_username") or "Адміністратор"})


@app.post("/admin-username")
def update_admin_username(payload: UsernameUpdate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    username = payload.username.strip()
    if len(username) < settings.MIN_USERNAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Username must be at least {settings.MIN_USERNAME_LENGTH} characters",
        )
    store.set("admin_username", username)
    return ok({"username": username}, message="Username updated successfully")


# ---------------------- Services ----------------------
class ServiceCreate(BaseModel):
    id: Optional[str] = None
    title: str
    description: str = ""
    features: List[str] = []


@app.get("/services")
def list_services(store: KeyValueStore = Depends(get_store)):
    return ok(store.get_by_prefix("service:"))


@app.post("/services")
def save_service(item: ServiceCreate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    existing = store.get(f"service:{item.id}") if item.id else None
    service = Service(
        id=item.id or new_id(),
        title=item.title,
        description=item.description,
        features=item.features,
        created_at=(existing or {}).get("created_at") or now_iso(),
        updated_at=now_iso(),
    ).model_dump(mode="json")
    store.set(f"service:{service['id']}", service)
    logger.info("Service saved: %s", service["id"])
    return ok(service)


@app.delete("/services/{service_id}")
def delete_service(service_id: str, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    store.delete(f"service:{service_id}")
    return ok()


# ---------------------- Singleton documents ----------------------
def read_singleton(store: KeyValueStore, key: str, model):
    data = store.get(key)
    return data if data else model().model_dump(mode="json")


@app.get("/contacts")
def get_contacts(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "contacts", Contacts))


@app.post("/contacts")
def update_contacts(item: Contacts, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = item.model_dump(mode="json")
    store.set("contacts", data)
    return ok(data)


@app.get("/branding")
def get_branding(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "branding", Branding))


@app.post("/branding")
def update_branding(item: Branding, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = Branding(logo=item.logo, company_name=item.company_name or Branding().company_name).model_dump(mode="json")
    store.set("branding", data)
    return ok(data)


@app.get("/social-media")
@app.get("/social")
def get_social_media(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "social_media", SocialMedia))


@app.post("/social-media")
@app.post("/social")
def update_social_media(item: SocialMedia, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = item.model_dump(mode="json")
    store.set("social_media", data)
    return ok(data)


@app.get("/hero-images")
def get_hero_images(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "hero_images", HeroImages))


@app.post("/hero-images")
def update_hero_images(item: HeroImages, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    defaults = HeroImages()
    data = HeroImages(
        main_image=item.main_image or defaults.main_image,
        secondary_image=item.secondary_image or defaults.secondary_image,
    ).model_dump(mode="json")
    store.set("hero_images", data)
    return ok(data)


@app.get("/benefits")
def get_benefits(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "benefits", Benefits))


@app.post("/benefits")
def update_benefits(item: Benefits, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = item.model_dump(mode="json")
    store.set("benefits", data)
    return ok(data)


@app.get("/discount")
def get_discount(store: KeyValueStore = Depends(get_store)):
    return ok(read_singleton(store, "discount_settings", Discount))


@app.post("/discount")
def update_discount(item: Discount, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = item.model_dump(mode="json")
    store.set("discount_settings", data)
    return ok(data)


# ---------------------- Pricing ----------------------
class PricingUpdate(BaseModel):
    items: List[Dict[str, Any]] = []


@app.get("/pricing")
def get_pricing(store: KeyValueStore = Depends(get_store)):
    stored = store.mget(f"price:{c}" for c in PRICING_CATEGORIES)
    return ok({c: stored.get(f"price:{c}") or [] for c in PRICING_CATEGORIES})


@app.post("/pricing/{category}")
def update_pricing(category: str, payload: PricingUpdate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    if category not in PRICING_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown pricing category: {category}")
    store.set(f"price:{category}", payload.items)
    return ok(payload.items)


# ---------------------- Reviews ----------------------
class ReviewCreate(BaseModel):
    name: str
    text: str
    rating: int = Field(..., ge=1, le=5)
    image: Optional[str] = None


class ReviewApproval(BaseModel):
    approved: bool


@app.get("/reviews")
def list_reviews(store: KeyValueStore = Depends(get_store)):
    approved = [r for r in store.get_by_prefix("review:") if r.get("approved")]
    return ok(newest_first(approved))


@app.get("/reviews/all")
def list_all_reviews(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok(newest_first(store.get_by_prefix("review:")))


@app.post("/reviews")
def submit_review(item: ReviewCreate, store: KeyValueStore = Depends(get_store)):
    image = item.image.strip() if item.image and item.image.strip() else None
    review = Review(
        id=new_id(),
        name=item.name,
        text=item.text,
        rating=item.rating,
        image=image,
        approved=False,
        created_at=datetime.now(timezone.utc),
    ).model_dump(mode="json")
    store.set(f"review:{review['id']}", review)
    logger.info("Review submitted: %s", review["id"])
    return ok(review)


def set_review_approval(store: KeyValueStore, review_id: str, approved: bool) -> dict:
    review = store.get(f"review:{review_id}")
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    review = {**review, "approved": approved}
    store.set(f"review:{review_id}", review)
    return review


@app.put("/reviews/{review_id}")
def update_review(review_id: str, payload: ReviewApproval, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok(set_review_approval(store, review_id, payload.approved))


@app.post("/reviews/{review_id}/approve")
def approve_review(review_id: str, payload: ReviewApproval, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok(set_review_approval(store, review_id, payload.approved))


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    store.delete(f"review:{review_id}")
    return ok()


# ---------------------- Gallery ----------------------
class GalleryCreate(BaseModel):
    url: str
    type: MediaType
    description: str = ""


@app.get("/gallery")
def list_gallery(store: KeyValueStore = Depends(get_store)):
    return ok(newest_first(store.get_by_prefix("gallery:")))


@app.post("/gallery")
def add_gallery_item(item: GalleryCreate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    url = item.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    record = GalleryItem(
        id=new_id(),
        url=url,
        type=item.type,
        description=item.description or "",
        created_at=datetime.now(timezone.utc),
    ).model_dump(mode="json")
    store.set(f"gallery:{record['id']}", record)
    logger.info("Gallery item added: %s (%s)", record["id"], record["type"])
    return ok(record)


@app.delete("/gallery/{item_id}")
def delete_gallery_item(item_id: str, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    store.delete(f"gallery:{item_id}")
    return ok()


# ---------------------- Blog CRUD ----------------------
class BlogUpdate(BaseModel):
    title: str
    content: str
    image: Optional[str] = None
    video: Optional[str] = None
    published: bool = False


class BlogCreate(BlogUpdate):
    id: Optional[str] = None


def _clean_url(value: Optional[str]) -> Optional[str]:
    return value.strip() if value and value.strip() else None


def write_post(store: KeyValueStore, post_id: str, item: BlogUpdate, created_at: Optional[str]) -> dict:
    post = BlogPost(
        id=post_id,
        title=item.title,
        content=item.content,
        image=_clean_url(item.image),
        video=_clean_url(item.video),
        published=item.published,
        created_at=created_at or now_iso(),
        updated_at=now_iso(),
    ).model_dump(mode="json")
    store.set(f"blog:{post_id}", post)
    return post


@app.get("/blog")
def list_blog(store: KeyValueStore = Depends(get_store)):
    published = [p for p in store.get_by_prefix("blog:") if p.get("published")]
    return ok(newest_first(published))


@app.get("/blog/all")
def list_all_blog(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok(newest_first(store.get_by_prefix("blog:")))


@app.get("/blog/{post_id}")
def get_blog_post(post_id: str, store: KeyValueStore = Depends(get_store)):
    post = store.get(f"blog:{post_id}")
    if not post or not post.get("published"):
        raise HTTPException(status_code=404, detail="Post not found")
    return ok(post)


@app.post("/blog")
def save_blog_post(item: BlogCreate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    existing = store.get(f"blog:{item.id}") if item.id else None
    post = write_post(store, item.id or new_id(), item, (existing or {}).get("created_at"))
    logger.info("Blog post saved: %s", post["id"])
    return ok(post)


@app.put("/blog/{post_id}")
def update_blog_post(post_id: str, item: BlogUpdate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    existing = store.get(f"blog:{post_id}")
    if not existing:
        raise HTTPException(status_code=404, detail="Post not found")
    return ok(write_post(store, post_id, item, existing.get("created_at")))


@app.delete("/blog/{post_id}")
def delete_blog_post(post_id: str, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    store.delete(f"blog:{post_id}")
    return ok()


# ---------------------- Orders ----------------------
class OrderCreate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    message: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str


@app.post("/orders")
def create_order(payload: OrderCreate, store: KeyValueStore = Depends(get_store)):
    name = (payload.name or "").strip()
    phone = (payload.phone or "").strip()
    service = (payload.service or "").strip()
    if not name or not phone or not service:
        raise HTTPException(status_code=400, detail="Missing required fields")
    order = Order(
        id=new_id(),
        name=name,
        phone=phone,
        email=(payload.email or "").strip(),
        service=service,
        message=(payload.message or "").strip(),
        status="new",
        created_at=datetime.now(timezone.utc),
    ).model_dump(mode="json")
    store.set(f"order:{order['id']}", order)
    logger.info("New order created: %s", order["id"])
    return ok(order)


@app.get("/orders")
def list_orders(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    return ok(newest_first(store.get_by_prefix("order:")))


@app.patch("/orders/{order_id}")
@app.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: OrderStatusUpdate, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    if payload.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    order = store.get(f"order:{order_id}")
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    order = {**order, "status": payload.status, "updated_at": now_iso()}
    store.set(f"order:{order_id}", order)
    return ok(order)


@app.delete("/orders/{order_id}")
def delete_order(order_id: str, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    if not store.delete(f"order:{order_id}"):
        raise HTTPException(status_code=404, detail="Order not found")
    return ok()


# ---------------------- Export / import ----------------------
COLLECTION_PREFIXES = {
    "services": "service:",
    "reviews": "review:",
    "gallery": "gallery:",
    "blog": "blog:",
}

SINGLETON_KEYS = {
    "contacts": "contacts",
    "branding": "branding",
    "hero_images": "hero_images",
    "benefits": "benefits",
    "discount": "discount_settings",
    "social_media": "social_media",
}


class ImportRequest(BaseModel):
    data: ExportBundle
    mode: Literal["merge", "overwrite"] = "merge"


@app.get("/export/all")
def export_all(admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data: Dict[str, Any] = {name: store.get_by_prefix(prefix) for name, prefix in COLLECTION_PREFIXES.items()}
    for name, key in SINGLETON_KEYS.items():
        data[name] = store.get(key)
    data["pricing"] = {c: store.get(f"price:{c}") for c in PRICING_CATEGORIES}
    bundle = ExportBundle(export_date=datetime.now(timezone.utc), data=data)
    logger.info("Full data export completed")
    return ok(bundle.model_dump(mode="json"))


@app.post("/import/all")
def import_all(payload: ImportRequest, admin: dict = Depends(get_current_admin), store: KeyValueStore = Depends(get_store)):
    data = payload.data.data
    imported = {"services": 0, "reviews": 0, "gallery": 0, "blog": 0, "other": 0}
    logger.info("Starting data import, mode: %s", payload.mode)

    for name, prefix in COLLECTION_PREFIXES.items():
        items = data.get(name)
        if not isinstance(items, list):
            continue
        if payload.mode == "overwrite":
            store.delete_prefix(prefix)
        for item in items:
            if not isinstance(item, dict):
                continue
            item_id = str(item.get("id") or new_id())
            store.set(f"{prefix}{item_id}", {**item, "id": item_id})
            imported[name] += 1

    for name, key in SINGLETON_KEYS.items():
        if data.get(name):
            store.set(key, data[name])
            imported["other"] += 1

    pricing = data.get("pricing") or {}
    if isinstance(pricing, dict):
        for category, items in pricing.items():
            if category in PRICING_CATEGORIES and items:
                store.set(f"price:{category}", items)
                imported["other"] += 1

    logger.info("Import completed: %s", imported)
    return ok(message="Data imported successfully", imported=imported)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
