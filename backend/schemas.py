"""
Database schemas for the A & N storefront.

Each collection model maps to a MongoDB collection named after the lowercased
class name (Product -> "product", FragranceType -> "fragrancetype"). Documents
are stored with snake_case keys; the API speaks camelCase through the aliases
configured on ApiModel.
"""
from __future__ import annotations
import re
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
Role = Literal["admin", "user"]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _required_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(message)
    return value.strip()


def _check_email(value: Any) -> str:
    email = _required_text(value, "Email is required")
    if not EMAIL_RE.match(email):
        raise ValueError("Invalid email format")
    return email


def _split_notes(value: Any) -> Any:
    if isinstance(value, str):
        return [n.strip() for n in value.split(",") if n.strip()]
    return value


NoteList = Annotated[List[str], BeforeValidator(_split_notes)]


class Timestamped(ApiModel):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ------------ Catalog ------------

class Product(ApiModel):
    name: str
    description: str
    price: float = Field(ge=0)
    image: str = "/images/1.png"
    images: List[str] = []
    category: str
    fragrance_type: str = "Oriental"
    fragrance_notes: List[str] = []
    rating: float = Field(0, ge=0, le=5)
    reviews_count: int = Field(0, ge=0)
    in_stock: bool = True
    size: str = "50ml"
    discount: float = Field(0, ge=0, le=100)


class ProductCreate(ApiModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    image: Optional[str] = None
    images: List[str] = []
    category: str = Field(min_length=1)
    fragrance_type: Optional[str] = None
    fragrance_notes: NoteList = []
    in_stock: bool = True
    size: Optional[str] = None
    discount: float = Field(0, ge=0, le=100)

    def to_document(self) -> dict[str, Any]:
        images = list(self.images)
        if not images and self.image:
            images = [self.image]
        return Product(
            name=self.name.strip(),
            description=self.description,
            price=self.price,
            image=self.image or "/images/1.png",
            images=images,
            category=self.category,
            fragrance_type=self.fragrance_type or "Oriental",
            fragrance_notes=self.fragrance_notes,
            in_stock=self.in_stock,
            size=self.size or "50ml",
            discount=self.discount,
        ).model_dump()


class ProductUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    image: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = None
    fragrance_type: Optional[str] = None
    fragrance_notes: Optional[NoteList] = None
    in_stock: Optional[bool] = None
    size: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0, le=100)


class ProductOut(Product, Timestamped):
    pass


class Pagination(ApiModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class ProductPage(ApiModel):
    products: List[ProductOut]
    pagination: Pagination


class Category(ApiModel):
    name: str
    description: str = ""
    image: str = ""


class CategoryCreate(ApiModel):
    name: str
    description: str = ""
    image: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return _required_text(v, "Category name is required")


class CategoryUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return None if v is None else _required_text(v, "Category name is required")


class CategoryOut(Category, Timestamped):
    pass


class FragranceType(ApiModel):
    name: str
    description: str = ""


class FragranceTypeCreate(ApiModel):
    name: str
    description: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return _required_text(v, "Name is required")


class FragranceTypeUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return None if v is None else _required_text(v, "Name is required")


class FragranceTypeOut(FragranceType, Timestamped):
    pass


# ------------ Reviews & testimonials ------------

class Review(ApiModel):
    product_id: str
    name: str
    email: str
    rating: int = Field(ge=1, le=5)
    comment: str
    date: datetime


class ReviewCreate(ApiModel):
    product_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return _check_email(v).lower()


class ReviewUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return None if v is None else _check_email(v).lower()


class ReviewOut(Review, Timestamped):
    pass


class Testimonial(ApiModel):
    name: str
    rating: int = Field(ge=1, le=5)
    comment: str
    location: str = ""


class TestimonialCreate(ApiModel):
    name: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1)
    location: str = ""


class TestimonialUpdate(ApiModel):
    name: Optional[str] = Field(None, min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = None


class TestimonialOut(Testimonial, Timestamped):
    pass


# ------------ Orders ------------

class OrderItem(ApiModel):
    name: str = Field(min_length=1)
    price: float = Field(gt=0)
    quantity: int = Field(gt=0)
    product_id: Optional[str] = None
    image: Optional[str] = None


class ShippingAddress(ApiModel):
    address: str
    city: str
    state: str
    zip_code: str
    country: str

    def one_line(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.zip_code}, {self.country}"


ADDRESS_FIELDS = ("address", "city", "state", "zipCode", "country")


class OrderCreate(ApiModel):
    items: List[OrderItem] = Field(min_length=1)
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: Union[ShippingAddress, str]
    payment_method: str = "cash_on_delivery"
    subtotal: Optional[float] = Field(None, ge=0)
    tax: Optional[float] = Field(None, ge=0)
    total: float = Field(gt=0)

    @field_validator("customer_name", mode="before")
    @classmethod
    def _name(cls, v):
        return _required_text(v, "Customer name is required")

    @field_validator("customer_email", mode="before")
    @classmethod
    def _email(cls, v):
        return _check_email(v)

    @field_validator("customer_phone", mode="before")
    @classmethod
    def _phone(cls, v):
        phone = _required_text(v, "Phone number is required")
        if not PHONE_RE.match(re.sub(r"\s", "", phone)):
            raise ValueError("Invalid phone number format")
        return phone

    @field_validator("shipping_address", mode="before")
    @classmethod
    def _address(cls, v):
        if isinstance(v, dict):
            values = {
                key: str(x).strip() if isinstance(x, (str, int, float)) and not isinstance(x, bool) else ""
                for key, x in ((key, v.get(key)) for key in ADDRESS_FIELDS)
            }
            if not all(values.values()):
                raise ValueError(
                    "Complete shipping address is required (address, city, state, zipCode, country)"
                )
            return values
        return _required_text(v, "Shipping address is required")

    @field_validator("payment_method", mode="before")
    @classmethod
    def _payment(cls, v):
        return v or "cash_on_delivery"

    def to_document(self) -> dict[str, Any]:
        data = self.model_dump()
        data["subtotal"] = self.subtotal or self.total
        data["tax"] = self.tax or 0
        data["status"] = "pending"
        return data


class Order(ApiModel):
    items: List[OrderItem]
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: Union[ShippingAddress, str]
    payment_method: str = "cash_on_delivery"
    subtotal: float
    tax: float = 0
    total: float
    status: OrderStatus = "pending"

    def address_line(self) -> str:
        if isinstance(self.shipping_address, str):
            return self.shipping_address
        return self.shipping_address.one_line()


class OrderOut(Order, Timestamped):
    pass


class StatusUpdate(ApiModel):
    status: OrderStatus


# ------------ Auth & contact ------------

class User(ApiModel):
    email: str
    password: str
    role: Role = "admin"


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterIn(ApiModel):
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = "admin"


class AuthUser(ApiModel):
    email: str
    role: Role


class AuthOut(ApiModel):
    success: bool = True
    token: str
    user: AuthUser


class VerifyOut(ApiModel):
    valid: bool
    user: dict


class ContactIn(ApiModel):
    name: str
    email: str
    message: str

    @field_validator("name", "message", mode="before")
    @classmethod
    def _text(cls, v):
        return _required_text(v, "All fields are required (name, email, message)")

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v):
        return _check_email(v)


class UploadedImage(ApiModel):
    url: str
    public_id: str


class UploadOut(UploadedImage):
    success: bool = True


class UploadManyOut(ApiModel):
    success: bool = True
    images: List[UploadedImage]


class MessageOut(ApiModel):
    message: str
