import pytest

from client import UnauthorizedError
from seed import initialize_all, INITIAL_PRICING, INITIAL_SERVICES, SAMPLE_GALLERY


def test_initialize_all_fills_store(admin_api):
    summary = initialize_all(admin_api, with_gallery=True)
    assert summary == {"services": len(INITIAL_SERVICES), "singletons": 5, "pricing": 4, "gallery": len(SAMPLE_GALLERY)}

    assert len(admin_api.get_services()) == 6
    assert admin_api.get_pricing()["cleaning"] == INITIAL_PRICING["cleaning"]
    assert admin_api.get_contacts()["phones"][0]["viber"] is True
    assert admin_api.get_social_media()["instagram"]["enabled"] is True
    assert len(admin_api.get_gallery()) == len(SAMPLE_GALLERY)


def test_initialize_all_needs_admin(api):
    with pytest.raises(UnauthorizedError):
        initialize_all(api)
