"""
In-process notifications and the shared content cache.

Components subscribe to named events on an EventBus instead of listening on
global strings, and read shared documents (contacts, branding, ...) through
one ResourceCache so the same document is fetched once and every subscriber
hears about a change.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger("blisk.events")

UNAUTHORIZED = "unauthorized"

# Resource name -> ApiClient getter
RESOURCE_LOADERS = {
    "contacts": "get_contacts",
    "branding": "get_branding",
    "social_media": "get_social_media",
    "hero_images": "get_hero_images",
    "benefits": "get_benefits",
    "discount": "get_discount",
    "services": "get_services",
    "pricing": "get_pricing",
    "reviews": "get_reviews",
    "gallery": "get_gallery",
    "blog": "get_blog_posts",
}


def updated_event(resource: str) -> str:
    return f"{resource}_updated"


CONTACTS_UPDATED = updated_event("contacts")
BRANDING_UPDATED = updated_event("branding")
SOCIAL_MEDIA_UPDATED = updated_event("social_media")
SERVICES_UPDATED = updated_event("services")


class EventBus:
    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe():
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def publish(self, event: str, payload: Any = None) -> int:
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %r failed", event)
        return len(handlers)

    def subscribers(self, event: str) -> List[Callable]:
        return list(self._handlers.get(event, ()))


class ResourceCache:
    def __init__(self, client, bus: EventBus):
        self.client = client
        self.bus = bus
        self._entries: Dict[str, Any] = {}

    def get(self, resource: str) -> Any:
        if resource in self._entries:
            return self._entries[resource]
        try:
            loader = getattr(self.client, RESOURCE_LOADERS[resource])
        except KeyError:
            raise KeyError(f"Unknown resource: {resource}")
        value = loader()
        self._entries[resource] = value
        return value

    def peek(self, resource: str, default: Any = None) -> Any:
        return self._entries.get(resource, default)

    def invalidate(self, resource: str) -> None:
        self._entries.pop(resource, None)
        self.bus.publish(updated_event(resource), resource)

    def clear(self) -> None:
        self._entries.clear()

    def subscribe(self, resource: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        return self.bus.subscribe(updated_event(resource), handler)
