"""
Database Schemas for ProdVent

Each record model maps to a MongoDB collection:
- Product -> "products"
- User -> "users"
- Review -> "reviews"
- Coupon -> "coupons"

Attributes are snake_case in Python and camelCase on the wire and in the
database, which is what the web client reads and writes.
"""
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True
    )

    def to_document(self, **kwargs) -> dict:
        """Dump with camelCase keys, ready for insert_one or $set"""
        return self.model_dump(by_alias=True, **kwargs)


#################
# Enums
#################
class ProductStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProductType(str, Enum):
    REGULAR = "regular"
    FEATURED = "featured"


class UserStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class UserRole(str, Enum):
    NORMAL = "normal"
    MODERATOR = "moderator"
    ADMIN = "admin"


#################
# Products
#################
def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    """Strip tags, drop blanks and repeats while keeping order"""
    if tags is None:
        return None
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ProductCreate(CamelModel):
    product_name: str = Field(..., min_length=1)
    product_image: str = Field(..., min_length=1)
    product_description: str = Field(..., min_length=1)
    user_email: EmailStr
    user_name: Optional[str] = None
    user_image: Optional[str] = None
    external_link: Optional[str] = None
    tags: List[str] = []

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, tags):
        return _clean_tags(tags)


class ProductUpdate(CamelModel):
    """Partial update; only externalLink may be cleared with null"""
    model_config = ConfigDict(validate_default=False)

    product_name: Optional[str] = Field(None, min_length=1)
    product_image: Optional[str] = Field(None, min_length=1)
    product_description: Optional[str] = Field(None, min_length=1)
    external_link: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, tags):
        return _clean_tags(tags)

    @field_validator("product_name", "product_image", "product_description", "tags", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class Product(ProductCreate):
    vote: int = 0
    liked_users: List[str] = []
    report: int = 0
    reported_by: List[str] = []
    status: ProductStatus = ProductStatus.PENDING
    type: ProductType = ProductType.REGULAR
    timestamp: datetime = Field(default_factory=utc_now)


class ToggleRequest(BaseModel):
    """Actor for a vote or report toggle; clients send it as ``user`` or ``email``"""
    actor: EmailStr = Field(..., validation_alias=AliasChoices("user", "email"))


#################
# Reviews
#################
class ReviewCreate(CamelModel):
    email: EmailStr
    rating: float
    comment: str
    name: Optional[str] = None
    photo: Optional[str] = None


class Review(ReviewCreate):
    product_id: str
    created_at: datetime = Field(default_factory=utc_now)


#################
# Users
#################
SERVER_USER_FIELDS = {"_id", "status", "role", "createdAt", "created_at"}


class UserProfile(CamelModel):
    """Profile fields; anything beyond email, name and photo is stored as given"""
    model_config = ConfigDict(extra="allow")

    email: EmailStr
    name: Optional[str] = None
    photo: Optional[str] = None


class UserCreate(UserProfile):
    @model_validator(mode="before")
    @classmethod
    def drop_server_fields(cls, data):
        # status, role and timestamps are only ever set by the server
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in SERVER_USER_FIELDS}
        return data


class User(UserProfile):
    status: UserStatus = UserStatus.UNVERIFIED
    role: UserRole = UserRole.NORMAL
    created_at: datetime = Field(default_factory=utc_now)


class RoleUpdate(BaseModel):
    role: UserRole


class TokenRequest(BaseModel):
    """User payload to embed in a token; anything besides email is carried along"""
    model_config = ConfigDict(extra="allow")

    email: EmailStr


#################
# Coupons
#################
def _as_datetime(value: Optional[date]) -> Optional[datetime]:
    # BSON has no plain date type
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class CouponCreate(CamelModel):
    code: str = Field(..., min_length=1)
    expiry_date: date
    description: str
    discount: float

    def to_document(self, **kwargs) -> dict:
        doc = super().to_document(**kwargs)
        if "expiryDate" in doc:
            doc["expiryDate"] = _as_datetime(doc["expiryDate"])
        return doc


class CouponUpdate(CouponCreate):
    code: Optional[str] = Field(None, min_length=1)
    expiry_date: Optional[date] = None
    description: Optional[str] = None
    discount: Optional[float] = None


class Coupon(CouponCreate):
    created_at: datetime = Field(default_factory=utc_now)
