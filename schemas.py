"""
Database Schemas for the Auto-Parts Marketplace

Each Pydantic model represents a collection in MongoDB.
Class name lowercased = collection name (e.g., SellerReview -> "sellerreview").
"""
from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Literal, Dict, Any
from datetime import datetime

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded", "cancelled"]
BannerPosition = Literal["home_top", "home_middle", "home_bottom", "category_page", "sidebar"]

class User(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password_hash: str
    phone: Optional[str] = None
    role: Literal["buyer", "seller", "admin"] = "buyer"
    store_name: Optional[str] = None
    rating: float = 0.0
    total_sales: int = 0
    is_active: bool = True

class Address(BaseModel):
    user_id: str
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    is_default: bool = False

class BillingAddress(BaseModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

class BillingDetails(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[BillingAddress] = None

class PaymentMethod(BaseModel):
    """Mirror of a Stripe payment method."""
    user_id: str
    stripe_customer_id: str
    stripe_payment_method_id: str
    card_type: str
    last_four_digits: str = Field(..., min_length=4, max_length=4)
    expiration_month: str = Field(..., min_length=1, max_length=2)
    expiration_year: str = Field(..., min_length=4, max_length=4)
    is_default: bool = False
    billing_details: Optional[BillingDetails] = None

class Category(BaseModel):
    name: str
    description: str
    slug: str
    parent_id: Optional[str] = None
    image_url: Optional[str] = None

class Version(BaseModel):
    name: str

class CarModel(BaseModel):
    name: str
    versions: List[Version] = []

class Brand(BaseModel):
    name: str
    logo: str = ""
    models: List[CarModel] = []
    active: bool = True

class Product(BaseModel):
    title: str
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    oem_number: Optional[str] = None
    condition: Literal["new", "used", "refurbished"] = "used"
    category_id: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    images: List[str] = []
    seller_id: str

class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)

class ShippingAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

class PickupPoint(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    provider: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    price: Optional[float] = None
    delivery_days: Optional[str] = None
    distance: Optional[str] = None

class Order(BaseModel):
    buyer_id: str
    seller_id: str
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    shipping_address: Optional[ShippingAddress] = None
    pickup_point: Optional[PickupPoint] = None
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    payment_method: str
    shipping_method: Literal["pickup", "home", "standard", "express"] = "standard"
    tracking_number: Optional[str] = None
    pickup_reference_number: Optional[str] = None

class SellerReview(BaseModel):
    user_id: str
    seller_id: str
    order_id: str
    product_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)
    is_visible: bool = True

class WishlistItem(BaseModel):
    product_id: str
    price_at_add: float
    added_at: datetime

class Wishlist(BaseModel):
    user_id: str
    products: List[WishlistItem] = []

class Banner(BaseModel):
    title: str
    image_url: str
    link: str = "#"
    is_active: bool = True
    position: BannerPosition = "home_top"
    start_date: datetime
    end_date: datetime
    created_by: str

class Notification(BaseModel):
    user_id: str
    type: Literal["order", "message", "review", "system"] = "system"
    title: str
    message: str
    data: Dict[str, Any] = {}
    read: bool = False

class Conversation(BaseModel):
    participants: List[str]
    product_id: Optional[str] = None
    last_message: Optional[str] = None

class Message(BaseModel):
    conversation_id: str
    sender_id: str
    content: str = Field(..., min_length=1)
    read: bool = False
