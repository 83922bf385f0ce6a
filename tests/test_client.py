import pytest
import requests

import settings
from client import (
    ApiClient,
    ApiError,
    ApiConnectionError,
    UnauthorizedError,
    ConnectionStatus,
    check_connection,
    wait_for_connection,
    handle_api_error,
    TROUBLESHOOTING,
)
from events import UNAUTHORIZED


class DownSession:
    """A session whose every request fails to connect."""

    def __init__(self, exc=requests.ConnectionError("refused")):
        self.exc = exc
        self.calls = 0

    def request(self, *args, **kwargs):
        self.calls += 1
        raise self.exc


def test_public_calls(api):
    assert api.get_services() == []
    assert api.get_contacts()["email"] == "info@bliskcleaning.ua"
    assert api.health() == {"status": "ok"}


def test_login_and_admin_calls(api):
    api.token = api.login(settings.DEFAULT_ADMIN_PASSWORD)["access_token"]
    saved = api.save_service({"title": "Прибирання", "description": "d", "features": []})
    assert api.get_services()[0]["id"] == saved["id"]
    assert api.get_orders() == []


def test_wrong_login_raises_unauthorized(api):
    with pytest.raises(UnauthorizedError) as exc_info:
        api.login("wrong")
    assert exc_info.value.status_code == 401


def test_admin_call_without_token_is_unauthorized(api):
    with pytest.raises(UnauthorizedError):
        api.get_orders()


def test_non_2xx_becomes_api_error(admin_api):
    with pytest.raises(ApiError) as exc_info:
        admin_api.update_pricing("boats", [])
    assert exc_info.value.status_code == 400
    assert str(exc_info.value).startswith("API Error: 400 - ")
    assert "boats" in str(exc_info.value)


def test_connection_failure(api):
    client = ApiClient(base_url="http://nowhere", session=DownSession())
    with pytest.raises(ApiConnectionError) as exc_info:
        client.get_services()
    assert "http://nowhere/services" in str(exc_info.value)


def test_bearer_header_prefers_token():
    client = ApiClient(base_url="http://x", anon_key="anon")
    assert client._headers()["Authorization"] == "Bearer anon"
    client.token = "session"
    assert client._headers()["Authorization"] == "Bearer session"
    assert "Authorization" not in ApiClient(base_url="http://x", anon_key="")._headers()


def test_order_and_review_round_through_api(admin_api):
    order = admin_api.create_order({"name": "A", "phone": "+380991234567", "service": "S"})
    assert admin_api.update_order_status(order["id"], "completed")["status"] == "completed"
    review = admin_api.submit_review({"name": "A", "text": "B", "rating": 5})
    admin_api.approve_review(review["id"], True)
    assert [r["id"] for r in admin_api.get_reviews()] == [review["id"]]


def test_change_password_returns_fresh_token(admin_api):
    old = admin_api.token
    data = admin_api.change_password(settings.DEFAULT_ADMIN_PASSWORD, "n3wpass")
    assert data["access_token"] != old
    with pytest.raises(UnauthorizedError):
        admin_api.get_orders()
    admin_api.token = data["access_token"]
    assert admin_api.get_orders() == []


def _visible_counts(api):
    return {
        "services": len(api.get_services()),
        "reviews": len(api.get_reviews()),
        "gallery": len(api.get_gallery()),
        "blog": len(api.get_blog_posts()),
    }


def test_export_then_overwrite_import_keeps_visible_content(admin_api):
    admin_api.save_service({"title": "A"})
    admin_api.save_service({"title": "B"})
    approved = admin_api.submit_review({"name": "A", "text": "B", "rating": 5})
    admin_api.approve_review(approved["id"], True)
    admin_api.submit_review({"name": "C", "text": "D", "rating": 3})
    admin_api.add_gallery_item({"url": "https://x/a.jpg", "type": "photo"})
    admin_api.add_gallery_item({"url": "https://youtu.be/abc", "type": "video"})
    admin_api.save_blog_post({"title": "Live", "content": "x", "published": True})
    admin_api.save_blog_post({"title": "Draft", "content": "x"})
    before = _visible_counts(admin_api)
    assert before == {"services": 2, "reviews": 1, "gallery": 2, "blog": 1}

    imported = admin_api.import_all(admin_api.export_all(), "overwrite")
    assert imported["services"] == 2
    assert imported["reviews"] == 2
    assert imported["gallery"] == 2
    assert imported["blog"] == 2
    assert _visible_counts(admin_api) == before


# ---------------------- Connection check ----------------------
def test_check_connection_success(http):
    status = check_connection("http://testserver", "", session=http)
    assert status.success
    assert status.details["health_check_passed"] is True
    assert "response_time_ms" in status.details


def test_check_connection_missing_config():
    status = check_connection("", "")
    assert not status.success
    assert status.details["base_url"] == "MISSING"


def test_check_connection_unreachable():
    status = check_connection("http://nowhere", "", session=DownSession())
    assert not status.success
    assert status.details["health_check_passed"] is False


def test_check_connection_timeout():
    status = check_connection("http://slow", "", session=DownSession(requests.Timeout()), timeout=10)
    assert status.message == "Health check timed out after 10s"


def test_wait_for_connection_retries_then_succeeds():
    results = iter([False, False, True])
    progress, sleeps = [], []
    status = wait_for_connection(
        lambda: ConnectionStatus(success=next(results), message="m"),
        max_attempts=5,
        delay=3.0,
        on_progress=lambda attempt, total, msg: progress.append(attempt),
        sleep=sleeps.append,
    )
    assert status.success
    assert progress == [1, 2, 3]
    assert sleeps == [3.0, 3.0]


def test_wait_for_connection_gives_up_with_troubleshooting():
    calls, sleeps = [], []

    def check():
        calls.append(1)
        return ConnectionStatus(success=False, message="down")

    status = wait_for_connection(check, max_attempts=5, delay=3.0, sleep=sleeps.append)
    assert not status.success
    assert len(calls) == 5
    assert len(sleeps) == 4
    assert status.details["troubleshooting"] == TROUBLESHOOTING


# ---------------------- Error funnel ----------------------
def test_handle_api_error_routes_401_to_bus(bus):
    heard, notices = [], []
    bus.subscribe(UNAUTHORIZED, heard.append)
    handle_api_error(UnauthorizedError("Unauthorized", 401), bus, lambda level, msg: notices.append(msg))
    assert len(heard) == 1
    assert notices == []


def test_handle_api_error_notifies_other_failures(bus):
    notices = []
    handle_api_error(ApiError("API Error: 500 - boom", 500), bus, lambda level, msg: notices.append((level, msg)))
    assert notices == [("error", "API Error: 500 - boom")]
