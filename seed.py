"""
Starter content for a fresh store.

Everything is pushed through an authenticated ApiClient, so the same
validation and storage paths are used as for edits made in the admin console.

    python seed.py            # prompts for the admin password
"""
import getpass
import logging
from typing import Dict, List

from client import ApiClient

logger = logging.getLogger("blisk.seed")

INITIAL_SERVICES = [
    {
        "title": "Прибирання квартир",
        "description": "Комплексне прибирання вашої квартири з використанням професійного обладнання",
        "features": ["Вологе прибирання", "Миття вікон", "Чистка меблів"],
    },
    {
        "title": "Прибирання офісів",
        "description": "Підтримка чистоти у ваших офісних приміщеннях для комфортної роботи",
        "features": ["Щоденне прибирання", "Дезінфекція", "Прибирання після ремонту"],
    },
    {
        "title": "Генеральне прибирання",
        "description": "Глибоке очищення всіх приміщень, включаючи важкодоступні місця",
        "features": ["Повне прибирання", "Чистка всіх поверхонь", "Миття люстр"],
    },
    {
        "title": "Миття вікон",
        "description": "Професійне миття вікон з обох сторін на будь-якій висоті",
        "features": ["Зовнішнє миття", "Внутрішнє миття", "Чистка підвіконь"],
    },
    {
        "title": "Хімчистка меблів",
        "description": "Глибока очистка меблів та килимів з професійним обладнанням",
        "features": ["М'які меблі", "Килими", "Матраци"],
    },
    {
        "title": "Прибирання після ремонту",
        "description": "Очищення приміщень після ремонтних робіт від будівельного пилу",
        "features": ["Видалення пилу", "Миття всіх поверхонь", "Полірування"],
    },
]

INITIAL_CONTACTS = {
    "phones": [{"number": "+380 (12) 345-67-89", "viber": True, "telegram": True, "whatsapp": True}],
    "email": "info@bliskcleaning.ua",
    "address": "Київ, Україна",
    "schedule": "Пн-Нд: 24/7",
}

INITIAL_BRANDING = {"logo": "", "company_name": "БлискКлінінг"}

INITIAL_SOCIAL_MEDIA = {
    "facebook": {"url": "https://facebook.com", "enabled": True},
    "instagram": {"url": "https://instagram.com", "enabled": True},
}

INITIAL_HERO_IMAGES = {
    "main_image": "https://images.unsplash.com/photo-1628177142898-93e36e4e3a50?w=800",
    "secondary_image": "https://images.unsplash.com/photo-1581578731548-c64695cc6952?w=800",
}

INITIAL_DISCOUNT = {"enabled": True, "percentage": 20, "description": "Знижка на перше замовлення"}

_MIN_WINDOWS_CALL = "(мінімальна ціна виїзду - 2500 грн.)"

INITIAL_PRICING: Dict[str, List[dict]] = {
    "cleaning": [
        {"area": "До 40 м.кв.", "after_repair": "від 4400 грн.", "general": "від 4000 грн.", "supporting": "від 2200 грн."},
        {"area": "41-50 м.кв.", "after_repair": "від 5500 грн.", "general": "від 5000 грн.", "supporting": "від 2700 грн."},
        {"area": "51-60 кв.м.", "after_repair": "від 6600 грн.", "general": "від 6000 грн.", "supporting": "від 3300 грн."},
        {"area": "61-80 кв.м.", "after_repair": "від 7700 грн.", "general": "від 7000 грн.", "supporting": "від 4400 грн."},
        {"area": "81-100 м.кв.", "after_repair": "від 8800 грн.", "general": "від 8000 грн.", "supporting": "від 5000 грн."},
        {"area": "101-120 м.кв.", "after_repair": "від 11000 грн.", "general": "від 10000 грн.", "supporting": "від 5500 грн."},
        {"area": "121-140 м.кв.", "after_repair": "від 13500 грн.", "general": "від 12000 грн.", "supporting": "від 6600 грн."},
        {"area": "Більше 160 м.кв.", "after_repair": "Договірна", "general": "Договірна", "supporting": "Договірна"},
    ],
    "windows": [
        {"type": "Сезонне миття вікон", "price": f"від 150 грн. / м.кв. {_MIN_WINDOWS_CALL}"},
        {"type": "Післяремонтне миття вікон", "price": f"від 180 грн. / м.кв. {_MIN_WINDOWS_CALL}"},
        {"type": "Зняття застарілої монтажної плівки", "price": f"від 300 грн. / м.кв. {_MIN_WINDOWS_CALL}"},
    ],
    "chemistry": [
        {"item": "Диван", "price": "від 400 грн. / місце"},
        {"item": "Матрац односпальний", "price": "від 1000 грн."},
        {"item": "Матрац двоспальний", "price": "від 1500 грн."},
        {"item": "Крісло м'яке", "price": "від 450 грн."},
        {"item": "Стілець", "price": "від 200 грн."},
        {"item": "Ковролін", "price": "від 80 грн / м.кв."},
        {"item": "Килим", "price": "від 100 грн / м.кв."},
    ],
    "additional": [
        {"service": "Миття жалюзей", "price": "від 200 грн. / шт."},
        {"service": "Прання штор та їх вивішування", "price": "від 300 грн. / шт."},
        {"service": "Миття холодильника всередині", "price": "900 грн."},
    ],
}

SAMPLE_GALLERY = [
    {"url": "https://images.unsplash.com/photo-1581578731548-c64695cc6952?w=800", "type": "photo",
     "description": "Прибирання вітальні - чиста та охайна"},
    {"url": "https://images.unsplash.com/photo-1628177142898-93e36e4e3a50?w=800", "type": "photo",
     "description": "Професійне прибирання кухні"},
    {"url": "https://images.unsplash.com/photo-1584622650111-993a426fbf0a?w=800", "type": "photo",
     "description": "Чиста та охайна ванна кімната"},
    {"url": "https://images.unsplash.com/photo-1527515637462-cff94eecc1ac?w=800", "type": "photo",
     "description": "Сучасний чистий офіс"},
    {"url": "https://www.youtube.com/embed/VrXqUPCwMXE", "type": "video",
     "description": "Професійне прибирання квартири - відеозвіт"},
    {"url": "https://images.unsplash.com/photo-1556911220-bff31c812dba?w=800", "type": "photo",
     "description": "Миття вікон - результат роботи"},
]


def initialize_services(client: ApiClient) -> int:
    for service in INITIAL_SERVICES:
        client.save_service(service)
    return len(INITIAL_SERVICES)


def initialize_pricing(client: ApiClient) -> int:
    for category, rows in INITIAL_PRICING.items():
        client.update_pricing(category, rows)
    return len(INITIAL_PRICING)


def add_sample_gallery(client: ApiClient) -> int:
    for item in SAMPLE_GALLERY:
        client.add_gallery_item(item)
    return len(SAMPLE_GALLERY)


def initialize_all(client: ApiClient, with_gallery: bool = False) -> Dict[str, int]:
    """Write the starter content; the client must hold an admin token.

    Errors propagate: a half-seeded store is reported, not hidden.
    """
    summary = {"services": initialize_services(client)}
    client.update_contacts(INITIAL_CONTACTS)
    client.update_branding(INITIAL_BRANDING)
    client.update_social_media(INITIAL_SOCIAL_MEDIA)
    client.update_hero_images(INITIAL_HERO_IMAGES)
    client.update_discount(INITIAL_DISCOUNT)
    summary["singletons"] = 5
    summary["pricing"] = initialize_pricing(client)
    if with_gallery:
        summary["gallery"] = add_sample_gallery(client)
    logger.info("Initial data written: %s", summary)
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    api = ApiClient()
    api.token = api.login(getpass.getpass("Admin password: "))["access_token"]
    print(initialize_all(api, with_gallery=True))
