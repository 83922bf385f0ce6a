"""
Client data-access layer for the site API.

Wraps every endpoint of the API in one method on `ApiClient`, attaches the
bearer token, parses the {"success": ..., "data": ...} envelope and turns
failures into one of three exceptions:

- UnauthorizedError   -> HTTP 401 (the admin session must end)
- ApiConnectionError  -> the server could not be reached
- ApiError            -> anything else (non-2xx, or success == false)
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import BaseModel

import settings
from events import UNAUTHORIZED

logger = logging.getLogger("blisk.client")

TROUBLESHOOTING = [
    "Check that the API server is running and reachable",
    "Check the API base URL configuration",
    "Check your internet connection",
    "Wait 15-30 seconds and try again: a cold start can take that long",
]


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UnauthorizedError(ApiError):
    pass


class ApiConnectionError(ApiError):
    pass


class ApiClient:
    def __init__(self, base_url: str = settings.API_BASE_URL, anon_key: str = settings.ANON_KEY,
                 token: Optional[str] = None, session=None, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {"Content-Type": "application/json"}
        bearer = self.token or self.anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if extra:
            headers.update(extra)
        return headers

    def call(self, endpoint: str, method: str = "GET", body: Any = None, headers: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{endpoint}"
        logger.debug("API call %s %s", method, endpoint)
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Cannot connect to %s: %s", url, e)
            raise ApiConnectionError(f"Cannot connect to API at {url}: {e}")

        if response.status_code == 401:
            raise UnauthorizedError(_error_text(response) or "Unauthorized", 401)
        if response.status_code < 200 or response.status_code >= 300:
            message = _error_text(response)
            logger.error("API error %s on %s: %s", response.status_code, endpoint, message)
            raise ApiError(f"API Error: {response.status_code} - {message}", response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise ApiError(f"Invalid JSON from {endpoint}", response.status_code)
        if isinstance(data, dict) and data.get("success") is False:
            raise ApiError(data.get("error") or "API call failed", response.status_code)
        return data

    # ---------------------- Auth ----------------------
    def login(self, password: str) -> dict:
        return self.call("/auth/login", "POST", {"password": password})["data"]

    def validate_password(self, password: str) -> dict:
        return self.call("/validate-password", headers={"X-Admin-Password": password})["data"]

    def check_password(self, password: str) -> bool:
        return bool(self.call("/check-password", "POST", {"password": password}).get("valid"))

    def change_password(self, current_password: str, new_password: str) -> dict:
        body = {"current_password": current_password, "new_password": new_password}
        return self.call("/change-password", "POST", body)["data"]

    def reset_password(self) -> dict:
        return self.call("/reset-password", "POST")

    def password_status(self) -> dict:
        return self.call("/password-status")["data"]

    def get_admin_username(self) -> str:
        return self.call("/admin-username")["data"]["username"]

    def update_admin_username(self, username: str) -> dict:
        return self.call("/admin-username", "POST", {"username": username})

    def health(self) -> dict:
        return self.call("/health")

    # ---------------------- Services ----------------------
    def get_services(self) -> List[dict]:
        return self.call("/services")["data"]

    def save_service(self, service: dict) -> dict:
        return self.call("/services", "POST", service)["data"]

    def delete_service(self, service_id: str) -> dict:
        return self.call(f"/services/{service_id}", "DELETE")

    # ---------------------- Singletons ----------------------
    def get_contacts(self) -> dict:
        return self.call("/contacts")["data"]

    def update_contacts(self, contacts: dict) -> dict:
        return self.call("/contacts", "POST", contacts)["data"]

    def get_branding(self) -> dict:
        return self.call("/branding")["data"]

    def update_branding(self, branding: dict) -> dict:
        return self.call("/branding", "POST", branding)["data"]

    def get_social_media(self) -> dict:
        return self.call("/social-media")["data"]

    def update_social_media(self, social: dict) -> dict:
        return self.call("/social-media", "POST", social)["data"]

    def get_hero_images(self) -> dict:
        return self.call("/hero-images")["data"]

    def update_hero_images(self, images: dict) -> dict:
        return self.call("/hero-images", "POST", images)["data"]

    def get_benefits(self) -> dict:
        return self.call("/benefits")["data"]

    def update_benefits(self, benefits: dict) -> dict:
        return self.call("/benefits", "POST", benefits)["data"]

    def get_discount(self) -> dict:
        return self.call("/discount")["data"]

    def update_discount(self, discount: dict) -> dict:
        return self.call("/discount", "POST", discount)["data"]

    # ---------------------- Pricing ----------------------
    def get_pricing(self) -> Dict[str, List[dict]]:
        return self.call("/pricing")["data"]

    def update_pricing(self, category: str, items: List[dict]) -> List[dict]:
        return self.call(f"/pricing/{category}", "POST", {"items": items})["data"]

    # ---------------------- Reviews ----------------------
    def get_reviews(self) -> List[dict]:
        return self.call("/reviews")["data"]

    def get_all_reviews(self) -> List[dict]:
        return self.call("/reviews/all")["data"]

    def submit_review(self, review: dict) -> dict:
        return self.call("/reviews", "POST", review)["data"]

    def approve_review(self, review_id: str, approved: bool) -> dict:
        return self.call(f"/reviews/{review_id}/approve", "POST", {"approved": approved})["data"]

    def delete_review(self, review_id: str) -> dict:
        return self.call(f"/reviews/{review_id}", "DELETE")

    # ---------------------- Gallery ----------------------
    def get_gallery(self) -> List[dict]:
        return self.call("/gallery")["data"]

    def add_gallery_item(self, item: dict) -> dict:
        return self.call("/gallery", "POST", item)["data"]

    def delete_gallery_item(self, item_id: str) -> dict:
        return self.call(f"/gallery/{item_id}", "DELETE")

    # ---------------------- Blog ----------------------
    def get_blog_posts(self) -> List[dict]:
        return self.call("/blog")["data"]

    def get_all_blog_posts(self) -> List[dict]:
        return self.call("/blog/all")["data"]

    def get_blog_post(self, post_id: str) -> dict:
        return self.call(f"/blog/{post_id}")["data"]

    def save_blog_post(self, post: dict) -> dict:
        return self.call("/blog", "POST", post)["data"]

    def delete_blog_post(self, post_id: str) -> dict:
        return self.call(f"/blog/{post_id}", "DELETE")

    # ---------------------- Orders ----------------------
    def create_order(self, order: dict) -> dict:
        return self.call("/orders", "POST", order)["data"]

    def get_orders(self) -> List[dict]:
        return self.call("/orders")["data"]

    def update_order_status(self, order_id: str, status: str) -> dict:
        return self.call(f"/orders/{order_id}/status", "PATCH", {"status": status})["data"]

    def delete_order(self, order_id: str) -> dict:
        return self.call(f"/orders/{order_id}", "DELETE")

    # ---------------------- Export / import ----------------------
    def export_all(self) -> dict:
        return self.call("/export/all")["data"]

    def import_all(self, bundle: dict, mode: str = "merge") -> dict:
        return self.call("/import/all", "POST", {"data": bundle, "mode": mode})["imported"]


def _error_text(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


# ---------------------- Connection check ----------------------
class ConnectionStatus(BaseModel):
    success: bool
    message: str
    details: Dict[str, Any] = {}


def check_connection(base_url: str = settings.API_BASE_URL, anon_key: str = settings.ANON_KEY,
                     session=None, timeout: float = settings.HEALTH_CHECK_TIMEOUT) -> ConnectionStatus:
    """Single GET /health with a fixed timeout."""
    if not base_url:
        return ConnectionStatus(
            success=False,
            message="Missing API configuration: set API_BASE_URL",
            details={"base_url": "MISSING", "has_anon_key": bool(anon_key), "health_check_passed": False},
        )

    session = session or requests.Session()
    url = f"{base_url.rstrip('/')}/health"
    details = {"base_url": base_url, "has_anon_key": bool(anon_key), "health_check_passed": False}
    headers = {"Authorization": f"Bearer {anon_key}"} if anon_key else {}
    started = time.monotonic()
    try:
        response = session.request("GET", url, headers=headers, timeout=timeout)
    except requests.Timeout:
        return ConnectionStatus(success=False, message=f"Health check timed out after {timeout:g}s", details=details)
    except requests.RequestException as e:
        logger.warning("Connection check failed: %s", e)
        return ConnectionStatus(
            success=False,
            message="Cannot reach the API server. It may still be starting; wait 15-30 seconds and try again.",
            details=details,
        )

    details["response_time_ms"] = int((time.monotonic() - started) * 1000)
    if 200 <= response.status_code < 300:
        details["health_check_passed"] = True
        return ConnectionStatus(success=True, message="Connection successful", details=details)
    return ConnectionStatus(success=False, message=f"API responded with {response.status_code}", details=details)


def wait_for_connection(check: Callable[[], ConnectionStatus] = check_connection, max_attempts: int = 5,
                        delay: float = 3.0, on_progress: Optional[Callable[[int, int, str], None]] = None,
                        sleep: Callable[[float], None] = time.sleep) -> ConnectionStatus:
    """Poll the health check a fixed number of times with a fixed delay."""
    status = ConnectionStatus(success=False, message="Not checked")
    for attempt in range(1, max_attempts + 1):
        if on_progress:
            on_progress(attempt, max_attempts, f"Attempt {attempt} of {max_attempts}...")
        status = check()
        if status.success:
            logger.info("Connection established on attempt %d", attempt)
            return status
        logger.info("Attempt %d/%d failed: %s", attempt, max_attempts, status.message)
        if attempt < max_attempts:
            sleep(delay)

    details = dict(status.details)
    details["troubleshooting"] = list(TROUBLESHOOTING)
    return ConnectionStatus(success=False, message=status.message, details=details)


# ---------------------- Error funnel ----------------------
def handle_api_error(error: Exception, bus, notify: Callable[[str, str], None],
                     default_message: str = "Operation failed") -> None:
    """Route an API failure: 401 ends the admin session, the rest become notices."""
    if isinstance(error, UnauthorizedError):
        bus.publish(UNAUTHORIZED, error)
        return
    message = str(error) or default_message
    notify("error", message)
