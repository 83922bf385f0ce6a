"""
Database Schemas

Each Pydantic model describes one kind of record kept in the key-value store.
Collection-like records are stored one per key under a prefix
(Service -> "service:<id>"); singletons are stored under a fixed key
(Contacts -> "contacts").

Example: class BlogPost -> keys "blog:<id>"
"""
from typing import Optional, List, Literal, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime

ORDER_STATUSES = ("new", "in-progress", "completed")
PRICING_CATEGORIES = ("cleaning", "windows", "chemistry", "additional")

OrderStatus = Literal["new", "in-progress", "completed"]
MediaType = Literal["photo", "video"]


# Services
class Service(BaseModel):
    id: str
    title: str
    description: str = ""
    features: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Reviews
class Review(BaseModel):
    id: str
    name: str
    text: str
    rating: int = Field(..., ge=1, le=5, description="Rating 1-5")
    image: Optional[str] = Field(None, description="Optional photo URL")
    approved: bool = Field(False, description="Moderation flag, gates public visibility")
    created_at: datetime


# Gallery
class GalleryItem(BaseModel):
    id: str
    url: str
    type: MediaType
    description: str = ""
    created_at: datetime


# Blog
class BlogPost(BaseModel):
    id: str
    title: str
    content: str = Field(..., description="Post body (plain text or HTML)")
    image: Optional[str] = Field(None, description="URL to cover image")
    video: Optional[str] = Field(None, description="URL to embedded video")
    published: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Orders
class Order(BaseModel):
    id: str
    name: str
    phone: str
    email: str = ""
    service: str
    message: str = ""
    status: OrderStatus = "new"
    created_at: datetime
    updated_at: Optional[datetime] = None


# Singletons
class PhoneNumber(BaseModel):
    number: str
    viber: bool = False
    telegram: bool = False
    whatsapp: bool = False


class Contacts(BaseModel):
    phones: List[PhoneNumber] = Field(default_factory=list)
    email: str = "info@bliskcleaning.ua"
    address: str = "Київ, Україна"
    schedule: str = "Пн-Нд: 24/7"


class Branding(BaseModel):
    logo: str = ""
    company_name: str = "БлискКлінінг"


class SocialLink(BaseModel):
    url: str = ""
    enabled: bool = False


class SocialMedia(BaseModel):
    facebook: SocialLink = Field(default_factory=SocialLink)
    instagram: SocialLink = Field(default_factory=SocialLink)


class HeroImages(BaseModel):
    main_image: str = "https://images.unsplash.com/photo-1628177142898-93e36e4e3a50?w=800"
    secondary_image: str = "https://images.unsplash.com/photo-1581578731548-c64695cc6952?w=800"


class Benefits(BaseModel):
    image: str = (
        "https://images.unsplash.com/photo-1758523670634-df4e12ed7a26"
        "?crop=entropy&cs=tinysrgb&fit=max&fm=jpg&q=80&w=1080"
    )


class Discount(BaseModel):
    enabled: bool = True
    percentage: int = Field(20, ge=0, le=100)
    description: str = "Знижка на перше замовлення"


# Export bundle
class ExportBundle(BaseModel):
    version: str = "1.0"
    export_date: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)
