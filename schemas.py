"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each model represents one collection; the lowercased model name is the
collection name. Documents are stored with snake_case field names.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

Role = Literal["user", "admin"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

_email_adapter = TypeAdapter(EmailStr)


def check_email(value: str) -> str:
    """Reject malformed addresses but keep the address exactly as submitted."""
    try:
        _email_adapter.validate_python(value)
    except PydanticValidationError:
        raise ValueError("value is not a valid email address")
    return value


class User(BaseModel):
    username: str = Field(..., min_length=1)
    email: str
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: Role = "user"
    favorites: List[str] = Field(default_factory=list, description="Product ids")

    @field_validator("email")
    @classmethod
    def email_is_valid(cls, value: str) -> str:
        return check_email(value)


class Product(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    brand: str
    category: str
    image: str
    in_stock: bool = True


class CartItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    # Bumped on every write; writes are conditional on the version they read
    version: int = 0


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price when the order was placed")


class Order(BaseModel):
    user_id: str
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: str


class Review(BaseModel):
    user_id: str
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
