"""
Database Schemas for the Adventure Works store

Each Pydantic model below corresponds to a stored collection or to a piece of
one. The collection name is the lowercase class name (e.g., User -> "user").
Products and categories are static and live in catalog.py.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, EmailStr, TypeAdapter, field_validator

_email_adapter = TypeAdapter(EmailStr)


def check_email(value: Optional[str]) -> Optional[str]:
    """Reject malformed addresses but keep the address as it was typed."""
    if not value:
        return value
    value = value.strip()
    try:
        _email_adapter.validate_python(value)
    except ValueError:
        raise ValueError("value is not a valid email address")
    return value


class Category(BaseModel):
    id: str = Field(..., description="Category identifier")
    name: str = Field(..., description="Display name")


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique product identifier")
    name: str
    brand: str
    category: str = Field(..., description="Reference to category id")
    price: float = Field(..., ge=0, description="Catalog price in USD")
    tag: Optional[str] = Field(None, description='"deal" means 25% off at checkout')
    image: Optional[str] = None


class User(BaseModel):
    id: Optional[str] = None
    email: str = Field(..., description="Unique email address (case-insensitive), stored as typed")
    name: str = Field("", description="Display name")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash, absent for Google accounts")
    is_admin: bool = Field(False, description="Admin privileges")
    provider: Optional[str] = Field(None, description='Identity provider, e.g. "google"')
    created_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value):
        return check_email(value)


class Address(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    email: Optional[str] = None
    line1: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class Discount(BaseModel):
    code: Optional[str] = None
    amount: Optional[float] = Field(None, allow_inf_nan=False)


class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    quantity: Optional[int] = Field(None, alias="qty", description="Defaults to 1 when absent or 0")


class OrderLine(BaseModel):
    product_id: str = Field(..., description="Reference to catalog product id")
    name: str
    brand: str
    image: Optional[str] = None
    tag: Optional[str] = None
    quantity: int = Field(..., description="Units ordered")
    unit_price: float = Field(..., description="Price charged per unit, after deal discount")
    line_total: float = Field(..., description="unit_price * quantity rounded to cents")


class Order(BaseModel):
    id: Optional[str] = None
    user_id: str = Field(..., description="Owner of the order")
    items: List[OrderLine] = Field(..., description="Snapshot of purchased products")
    total: float = 0.0
    address: Optional[Address] = None
    discount: Optional[Discount] = None
    shipping: float = Field(0.0, allow_inf_nan=False)
    status: str = Field("created", description="Free-form, admins may change it")
    created_at: Optional[datetime] = None


"""
Notes:
- id and created_at are assigned by database.py when a document is stored.
- Money is stored as plain numbers; pricing.py does the arithmetic in Decimal.
"""
