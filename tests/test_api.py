from passlib.hash import bcrypt

import settings


def test_health_and_root(http):
    assert http.get("/health").json() == {"status": "ok"}
    assert "running" in http.get("/").json()["message"]


def test_unknown_route_lists_available_routes(http):
    res = http.get("/no-such-thing")
    assert res.status_code == 404
    body = res.json()
    assert body["success"] is False
    assert body["error"] == "Route not found"
    assert body["path"] == "/no-such-thing"
    assert "GET /services" in body["available_routes"]


# ---------------------- Auth ----------------------
def test_login_with_default_password(http):
    res = http.post("/auth/login", json={"password": settings.DEFAULT_ADMIN_PASSWORD})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["access_token"]


def test_login_with_wrong_password(http):
    res = http.post("/auth/login", json={"password": "nope"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Invalid password"}


def test_check_password_reports_validity(http):
    assert http.post("/check-password", json={"password": settings.DEFAULT_ADMIN_PASSWORD}).json()["valid"] is True
    assert http.post("/check-password", json={"password": "wrong"}).json()["valid"] is False


def test_validate_password_header(http):
    res = http.get("/validate-password", headers={"X-Admin-Password": settings.DEFAULT_ADMIN_PASSWORD})
    assert res.status_code == 200
    assert res.json()["data"]["access_token"]
    assert http.get("/validate-password").status_code == 401


def test_protected_routes_need_token(http):
    for method, path in [("get", "/orders"), ("get", "/reviews/all"), ("get", "/export/all"), ("get", "/blog/all")]:
        res = getattr(http, method)(path)
        assert res.status_code == 401
        assert res.json()["success"] is False


def test_garbage_token_rejected(http):
    res = http.get("/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401
    assert res.json()["error"] == "Unauthorized"


def test_change_password_rotates_tokens(http, auth):
    res = http.post("/change-password", json={"current_password": settings.DEFAULT_ADMIN_PASSWORD, "new_password": "s3cret!"})
    assert res.status_code == 200
    new_token = res.json()["data"]["access_token"]

    # tokens from before the change no longer open the admin routes
    assert http.get("/orders", headers=auth).status_code == 401
    assert http.get("/orders", headers={"Authorization": f"Bearer {new_token}"}).status_code == 200

    assert http.post("/auth/login", json={"password": settings.DEFAULT_ADMIN_PASSWORD}).status_code == 401
    assert http.post("/auth/login", json={"password": "s3cret!"}).status_code == 200


def test_change_password_validation(http):
    default = settings.DEFAULT_ADMIN_PASSWORD
    short = http.post("/change-password", json={"current_password": default, "new_password": "abc"})
    assert short.status_code == 400
    same = http.post("/change-password", json={"current_password": default, "new_password": default})
    assert same.status_code == 400
    wrong = http.post("/change-password", json={"current_password": "bad", "new_password": "another1"})
    assert wrong.status_code == 401
    missing = http.post("/change-password", json={"current_password": "", "new_password": ""})
    assert missing.status_code == 400


def test_password_status(http, auth):
    assert http.get("/password-status", headers=auth).json()["data"]["is_default"] is True


def test_reset_password_restores_default(http, store):
    http.post("/change-password", json={"current_password": settings.DEFAULT_ADMIN_PASSWORD, "new_password": "s3cret!"})
    new_token = http.post("/auth/login", json={"password": "s3cret!"}).json()["data"]["access_token"]

    res = http.post("/reset-password")
    assert res.status_code == 200
    assert store.get("admin_password_hash") is None
    assert http.post("/auth/login", json={"password": settings.DEFAULT_ADMIN_PASSWORD}).status_code == 200
    assert http.get("/orders", headers={"Authorization": f"Bearer {new_token}"}).status_code == 401


def test_long_passwords_compare_in_full(http):
    secret = "a" * 72 + "-real-secret"
    res = http.post("/change-password", json={"current_password": settings.DEFAULT_ADMIN_PASSWORD, "new_password": secret})
    assert res.status_code == 200

    lookalike = "a" * 72 + "-totally-different"
    assert http.post("/check-password", json={"password": lookalike}).json()["valid"] is False
    assert http.post("/auth/login", json={"password": lookalike}).status_code == 401
    assert http.get("/validate-password", headers={"X-Admin-Password": lookalike}).status_code == 401
    assert http.post("/change-password", json={"current_password": lookalike, "new_password": "another1"}).status_code == 401
    assert http.post("/auth/login", json={"password": secret}).status_code == 200


def test_nul_byte_password_is_just_wrong(http):
    http.post("/change-password", json={"current_password": settings.DEFAULT_ADMIN_PASSWORD, "new_password": "s3cret!"})
    res = http.post("/auth/login", json={"password": "bad\x00pw"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Invalid password"}

    changed = http.post("/change-password", json={"current_password": "s3cret!", "new_password": "new\x00pass"})
    assert changed.status_code == 200
    assert http.post("/auth/login", json={"password": "new\x00pass"}).status_code == 200
    assert http.post("/auth/login", json={"password": "new"}).status_code == 401


def test_legacy_bcrypt_hash_still_verifies(http, store):
    store.set("admin_password_hash", bcrypt.hash("legacy-pass"))
    assert http.post("/auth/login", json={"password": "legacy-pass"}).status_code == 200
    assert http.post("/auth/login", json={"password": "bad\x00pw"}).status_code == 401


def test_reset_password_can_be_disabled(http, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_PASSWORD_RESET", False)
    res = http.post("/reset-password")
    assert res.status_code == 403
    assert res.json()["success"] is False


def test_admin_username(http, auth):
    assert http.get("/admin-username", headers=auth).json()["data"]["username"] == "Адміністратор"
    assert http.post("/admin-username", json={"username": "ab"}, headers=auth).status_code == 400
    assert http.post("/admin-username", json={"username": "Олена"}, headers=auth).status_code == 200
    assert http.get("/admin-username", headers=auth).json()["data"]["username"] == "Олена"


# ---------------------- Content ----------------------
def test_services_crud(http, auth):
    assert http.get("/services").json() == {"success": True, "data": []}
    created = http.post("/services", json={"title": "Миття вікон", "description": "d", "features": ["a"]}, headers=auth).json()["data"]
    assert created["id"]

    edited = http.post("/services", json={"id": created["id"], "title": "Миття вікон 2"}, headers=auth).json()["data"]
    assert edited["created_at"] == created["created_at"]
    assert [s["title"] for s in http.get("/services").json()["data"]] == ["Миття вікон 2"]

    assert http.delete(f"/services/{created['id']}", headers=auth).json() == {"success": True}
    assert http.get("/services").json()["data"] == []


def test_singletons_fall_back_to_defaults(http):
    assert http.get("/contacts").json()["data"]["email"] == "info@bliskcleaning.ua"
    assert http.get("/branding").json()["data"]["company_name"] == "БлискКлінінг"
    assert http.get("/discount").json()["data"]["percentage"] == 20
    assert http.get("/hero-images").json()["data"]["main_image"].startswith("https://")


def test_discount_stored_under_settings_key(http, auth, store):
    http.post("/discount", json={"enabled": False, "percentage": 10, "description": "x"}, headers=auth)
    assert store.get("discount_settings")["percentage"] == 10
    assert http.get("/discount").json()["data"]["enabled"] is False


def test_social_alias(http, auth):
    social = {"facebook": {"url": "https://facebook.com/blisk", "enabled": True}, "instagram": {"url": "", "enabled": False}}
    http.post("/social", json=social, headers=auth)
    assert http.get("/social-media").json()["data"] == social


def test_branding_keeps_default_name(http, auth):
    data = http.post("/branding", json={"logo": "https://x/logo.png", "company_name": ""}, headers=auth).json()["data"]
    assert data["company_name"] == "БлискКлінінг"


def test_pricing(http, auth):
    assert http.get("/pricing").json()["data"] == {"cleaning": [], "windows": [], "chemistry": [], "additional": []}
    rows = [{"type": "Сезонне миття вікон", "price": "від 150 грн."}]
    assert http.post("/pricing/windows", json={"items": rows}, headers=auth).status_code == 200
    assert http.get("/pricing").json()["data"]["windows"] == rows
    assert http.post("/pricing/boats", json={"items": []}, headers=auth).status_code == 400


def test_review_moderation(http, auth):
    first = http.post("/reviews", json={"name": "Ірина", "text": "Супер", "rating": 5}).json()["data"]
    second = http.post("/reviews", json={"name": "Олег", "text": "Добре", "rating": 4, "image": "  "}).json()["data"]
    assert first["approved"] is False
    assert second["image"] is None
    assert http.get("/reviews").json()["data"] == []

    http.post(f"/reviews/{first['id']}/approve", json={"approved": True}, headers=auth)
    http.put(f"/reviews/{second['id']}", json={"approved": True}, headers=auth)
    public = http.get("/reviews").json()["data"]
    assert [r["id"] for r in public] == [second["id"], first["id"]]

    everything = http.get("/reviews/all", headers=auth).json()["data"]
    assert len(everything) == 2

    assert http.post("/reviews/missing/approve", json={"approved": True}, headers=auth).status_code == 404


def test_review_rating_out_of_range(http):
    res = http.post("/reviews", json={"name": "A", "text": "B", "rating": 6})
    assert res.status_code == 422
    assert res.json()["success"] is False
    assert "rating" in res.json()["error"]


def test_gallery(http, auth):
    assert http.post("/gallery", json={"url": "https://x/a.jpg", "type": "gif"}, headers=auth).status_code == 422
    assert http.post("/gallery", json={"url": "  ", "type": "photo"}, headers=auth).status_code == 400
    item = http.post("/gallery", json={"url": "https://x/a.jpg", "type": "photo"}, headers=auth).json()["data"]
    assert http.get("/gallery").json()["data"][0]["id"] == item["id"]
    http.delete(f"/gallery/{item['id']}", headers=auth)
    assert http.get("/gallery").json()["data"] == []


def test_blog_visibility(http, auth):
    draft = http.post("/blog", json={"title": "Чернетка", "content": "..."}, headers=auth).json()["data"]
    live = http.post("/blog", json={"title": "Поради", "content": "...", "published": True}, headers=auth).json()["data"]

    assert [p["id"] for p in http.get("/blog").json()["data"]] == [live["id"]]
    assert http.get(f"/blog/{draft['id']}").status_code == 404
    assert http.get(f"/blog/{live['id']}").json()["data"]["title"] == "Поради"
    assert len(http.get("/blog/all", headers=auth).json()["data"]) == 2

    updated = http.put(f"/blog/{draft['id']}", json={"title": "Готово", "content": "!", "published": True}, headers=auth)
    assert updated.json()["data"]["created_at"] == draft["created_at"]
    assert http.put("/blog/missing", json={"title": "a", "content": "b"}, headers=auth).status_code == 404


def test_orders(http, auth):
    res = http.post("/orders", json={"name": "Андрій", "phone": "+380991234567"})
    assert res.status_code == 400
    assert res.json()["error"] == "Missing required fields"

    order = http.post("/orders", json={"name": "Андрій", "phone": "+380991234567", "service": "Миття вікон"}).json()["data"]
    assert order["status"] == "new"

    listed = http.get("/orders", headers=auth).json()["data"]
    assert [o["id"] for o in listed] == [order["id"]]

    assert http.patch(f"/orders/{order['id']}/status", json={"status": "done"}, headers=auth).status_code == 400
    assert http.patch("/orders/missing/status", json={"status": "completed"}, headers=auth).status_code == 404
    updated = http.patch(f"/orders/{order['id']}", json={"status": "in-progress"}, headers=auth).json()["data"]
    assert updated["status"] == "in-progress"

    assert http.delete(f"/orders/{order['id']}", headers=auth).status_code == 200
    assert http.delete(f"/orders/{order['id']}", headers=auth).status_code == 404


# ---------------------- Export / import ----------------------
def test_export_shape(http, auth):
    http.post("/services", json={"title": "A"}, headers=auth)
    http.post("/orders", json={"name": "A", "phone": "1", "service": "A"})
    bundle = http.get("/export/all", headers=auth).json()["data"]
    assert bundle["version"] == "1.0"
    assert bundle["export_date"]
    data = bundle["data"]
    assert len(data["services"]) == 1
    assert set(data["pricing"]) == {"cleaning", "windows", "chemistry", "additional"}
    assert "orders" not in data


def test_import_overwrite_replaces_collections(http, auth):
    http.post("/services", json={"title": "Old"}, headers=auth)
    bundle = {
        "version": "1.0",
        "data": {
            "services": [{"id": "s1", "title": "New"}, {"id": "s2", "title": "Newer"}],
            "reviews": [{"id": "r1", "name": "A", "text": "B", "rating": 5, "approved": True}],
            "contacts": {"phones": [], "email": "a@b.c", "address": "", "schedule": ""},
            "pricing": {"windows": [{"type": "a", "price": "1"}]},
        },
    }
    res = http.post("/import/all", json={"data": bundle, "mode": "overwrite"}, headers=auth).json()
    assert res["imported"] == {"services": 2, "reviews": 1, "gallery": 0, "blog": 0, "other": 2}
    assert sorted(s["title"] for s in http.get("/services").json()["data"]) == ["New", "Newer"]
    assert http.get("/contacts").json()["data"]["email"] == "a@b.c"
    assert http.get("/pricing").json()["data"]["windows"] == [{"type": "a", "price": "1"}]


def test_import_merge_keeps_existing(http, auth):
    http.post("/services", json={"title": "Old"}, headers=auth)
    bundle = {"data": {"services": [{"title": "Imported"}]}}
    res = http.post("/import/all", json={"data": bundle}, headers=auth).json()
    assert res["imported"]["services"] == 1
    assert sorted(s["title"] for s in http.get("/services").json()["data"]) == ["Imported", "Old"]


def test_mutations_rejected_without_valid_token(http):
    bad = {"Authorization": "Bearer " + "x" * 20}
    for path, body in [("/services", {"title": "A"}), ("/contacts", {}), ("/discount", {}), ("/gallery", {"url": "https://x", "type": "photo"})]:
        assert http.post(path, json=body).status_code == 401
        assert http.post(path, json=body, headers=bad).status_code == 401
    assert http.delete("/services/any").status_code == 401


def test_reviews_sorted_by_time_not_text(http, auth, store):
    # same second: whole-second stamp is the oldest despite sorting last as text
    store.set("review:r1", {"id": "r1", "name": "A", "text": "t", "rating": 5, "approved": True, "created_at": "2024-03-05T10:20:00Z"})
    store.set("review:r2", {"id": "r2", "name": "B", "text": "t", "rating": 5, "approved": True, "created_at": "2024-03-05T10:20:00.400000Z"})
    store.set("review:r3", {"id": "r3", "name": "C", "text": "t", "rating": 5, "approved": True, "created_at": "2024-03-05T10:20:00.200000+00:00"})
    assert [r["id"] for r in http.get("/reviews").json()["data"]] == ["r2", "r3", "r1"]
