"""
Database Schemas for the Textile Shop

Each Pydantic model represents a MongoDB collection. The collection name is the lowercase of the class name.

- User -> "user"
- Product -> "product"
- Order -> "order"
- Delivery -> "delivery"
- Refund -> "refund"

Request bodies accepted by the API follow the collection models.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, EmailStr


class Role(str, Enum):
    BUYER = "buyer"
    ADMIN = "admin"
    DELIVERY = "delivery"


# Cancellation is stored as lowercase "cancelled" like every other order
# status, never "Cancelled". Parsing is case-insensitive so capitalized values
# from older records still map onto these members.
class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        return None


class DeliveryStatus(str, Enum):
    PENDING = "Pending"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "CashOnDelivery"
    CARD = "Card"


class RefundStatus(str, Enum):
    REQUESTED = "Requested"
    APPROVED = "Approved"
    REJECTED = "Rejected"


def generate_tracking_number() -> str:
    return "TRK-" + uuid.uuid4().hex[:8].upper()


class Document(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class User(Document):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="Hashed password")
    role: Role = Field(Role.BUYER, description="buyer | admin | delivery")
    phone: Optional[str] = Field(None, description="Phone number")
    address: Optional[str] = Field(None, description="Address")


class Product(Document):
    name: str = Field(..., description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Unit price")
    stock: int = Field(0, ge=0, description="Units available")
    category: Optional[str] = Field(None, description="Product category, e.g. Cotton or Silk")
    image: Optional[str] = Field(None, description="Stored image filename")


class ShippingAddress(BaseModel):
    full_name: str
    email: EmailStr
    address: str
    city: str
    postal_code: str
    country: str


class PaymentResult(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class Order(Document):
    product_id: str
    user_id: str
    quantity: int = Field(..., gt=0)
    total_price: float = Field(..., ge=0, description="Computed by the client")
    payment_method: PaymentMethod
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    status: OrderStatus = OrderStatus.PENDING
    shipping_address: ShippingAddress
    sync_pending: bool = Field(False, description="Set while a linked delivery write is outstanding")


class Delivery(Document):
    order_id: str
    delivery_person: str = "Unassigned"
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    delivery_date: Optional[datetime] = None
    tracking_number: str = Field(default_factory=generate_tracking_number)
    sync_pending: bool = Field(False, description="Set while a linked order write is outstanding")


class Refund(Document):
    order_id: str
    user_id: str
    reason: str
    status: RefundStatus = RefundStatus.REQUESTED
    admin_notes: Optional[str] = None


# Request bodies

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str = "buyer"


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[Role] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    phone: Optional[str] = None
    address: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    password: Optional[str] = None


class OrderCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    total_price: float = Field(..., ge=0)
    payment_method: PaymentMethod
    shipping_address: ShippingAddress


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None


class DeliveryCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    order_id: str
    delivery_person: str = "Unassigned"
    delivery_status: DeliveryStatus = DeliveryStatus.PENDING
    delivery_date: Optional[datetime] = None
    tracking_number: Optional[str] = None


class DeliveryUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    delivery_person: Optional[str] = None
    delivery_status: Optional[DeliveryStatus] = None
    delivery_date: Optional[datetime] = None
    tracking_number: Optional[str] = None


class RefundCreate(BaseModel):
    order_id: str
    reason: str = Field(..., min_length=1)


class RefundUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    status: Optional[RefundStatus] = None
    reason: Optional[str] = None
    admin_notes: Optional[str] = None


class PaymentIntentRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Amount in currency units")
    currency: Optional[str] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    address: Optional[str] = None
