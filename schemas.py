"""
Database Schemas

MongoDB collection schemas for the ÆTHER storefront, as Pydantic models.
Each top-level model represents a collection in the database.
Model name lowercased is the collection name.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

PRODUCT_CATEGORIES = [
    "leather jacket",
    "y2k era tops",
    "corset top",
    "denim jeans",
    "handbags",
    "faux leather jacket",
]

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"


class User(BaseModel):
    name: str = Field(..., description="Full name")
    username: str = Field(..., min_length=3, max_length=20, pattern=USERNAME_PATTERN)
    email: EmailStr = Field(..., description="Lowercased email address")
    password_hash: str = Field(..., description="BCrypt hashed password")
    is_admin: bool = False
    reset_password_token: Optional[str] = Field(None, description="sha256 of the emailed reset token")
    reset_password_expires: Optional[datetime] = None


class Review(BaseModel):
    user_id: str
    name: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)
    created_at: Optional[datetime] = None


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str
    category: str
    brand: str = "Aether"
    price: float = Field(..., ge=0)
    condition: Literal["New", "Used"] = "New"
    images: List[str] = Field(..., min_length=1)
    thumbnail: str = Field(..., min_length=1)
    description: str = ""
    sizes: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0)
    badge: Optional[str] = None
    reviews: List[Review] = Field(default_factory=list)
    rating: float = Field(default=0, ge=0, le=5)
    num_reviews: int = Field(default=0, ge=0)


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: str = ""


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = Field(default_factory=list, description="each stored with its own _id")


class Wishlist(BaseModel):
    user_id: str
    products: List[str] = Field(default_factory=list)


class ShippingInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    size: str = ""
    image: str = ""


class Order(BaseModel):
    user_id: str
    items: List[OrderItem]
    shipping: ShippingInfo = Field(default_factory=ShippingInfo)
    payment_provider: Literal["razorpay", "cod"] = "razorpay"
    payment_status: Literal["pending", "paid", "failed"] = "pending"
    payment_id: str = ""
    razorpay_order_id: str = ""
    razorpay_signature: str = ""
    subtotal: float = 0
    shipping_fee: float = 0
    tax: float = 0
    total: float = 0


class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    message: str = Field(..., min_length=1)
