"""
Database Schemas for the Gemora store

Each Pydantic model corresponds to a MongoDB collection. Collection names are
lowercase singular: User -> "user", Gem -> "gem", Tool -> "tool",
Order -> "order", NewsPost -> "newspost".

Documents are stored with camelCase keys (``countInStock``, ``orderItems``)
which is also the JSON shape of requests and responses; Python code uses the
snake_case attribute names.
"""
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              use_enum_values=True, validate_default=True)


# Enumerations

class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class ModerationStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"


class NewsStatus(str, Enum):
    PUBLISHED = "Published"
    DRAFT = "Draft"
    ARCHIVED = "Archived"


# Core domain models

class User(Document):
    name: str
    email: EmailStr
    password: str
    role: Role = Role.USER
    profile_image: Optional[str] = None


class Gem(Document):
    name: str
    carat: float
    clarity: Optional[str] = None
    origin: Optional[str] = None
    phone_number: str
    price: Optional[float] = None
    count_in_stock: int = 1
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    status: ModerationStatus = ModerationStatus.PENDING
    seller_id: Optional[str] = None


class Tool(Document):
    name: str
    brand: str
    category: str
    price: float
    count_in_stock: int = 0
    images: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    status: ModerationStatus = ModerationStatus.PENDING


class Address(Document):
    full_name: Optional[str] = None
    address: str
    city: str
    state: Optional[str] = None
    postal_code: str
    country: str
    phone: Optional[str] = None


class OrderItem(Document):
    product_id: str
    product_type: Literal["Gem", "Tool", "Instrument"]
    quantity: int
    price: float = 0
    name: Optional[str] = None
    image: Optional[str] = None


class OrderCreate(Document):
    """Checkout payload. Totals are computed client side and stored as sent."""
    order_items: Optional[List[OrderItem]] = None
    shipping_address: Address
    payment_method: str
    items_price: float = 0
    tax_price: float = 0
    shipping_price: float = 0
    total_price: float


class Order(Document):
    user: str
    order_items: List[OrderItem]
    shipping_address: Address
    payment_method: str
    items_price: float = 0
    tax_price: float = 0
    shipping_price: float = 0
    total_price: float
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    order_status: OrderStatus = OrderStatus.PROCESSING


class NewsPost(Document):
    title: str
    excerpt: str
    content: str
    author: str = "Admin"
    status: NewsStatus = NewsStatus.PUBLISHED
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
