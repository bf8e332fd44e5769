"""
API request and response models for shopgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Every API response -- success or failure -- uses the ApiResponse envelope:
    {"status": "success" | "fail" | "error", "message": str, "data": ...}
"fail" is a client-side problem (bad input, bad token), "error" a server-side one.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account
from catalog.models import Product

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ApiResponse(BaseModel):
    status: Literal["success", "fail", "error"]
    message: str
    data: Any = None


def success(message: str, data: Any = None) -> dict:
    return ApiResponse(status="success", message=message, data=data).model_dump()


def fail(message: str, data: Any = None) -> dict:
    return ApiResponse(status="fail", message=message, data=data).model_dump()


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=_EMAIL_PATTERN)
    # bcrypt truncates past 72 bytes; reject rather than silently truncate.
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class TokenData(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int


class AccountData(BaseModel):
    """Public view of an Account. The password hash is never serialized."""

    id: str
    name: str
    email: str
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountData":
        return cls(
            id=account.id or "",
            name=account.name,
            email=account.email,
            created_at=account.created_at or "",
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=5000)
    price: int = Field(ge=0)
    category: str = Field(min_length=1, max_length=100)
    condition: Literal["new", "used"]
    image_url: Optional[str] = Field(default=None, max_length=2048)


class ProductUpdate(BaseModel):
    """Partial update: only the fields present in the request body are written."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    price: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    condition: Optional[Literal["new", "used"]] = None
    image_url: Optional[str] = Field(default=None, max_length=2048)


class ProductData(BaseModel):
    id: int
    owner_id: str
    name: str
    description: str
    price: int
    category: str
    condition: str
    image_url: Optional[str]
    created_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductData":
        return cls(
            id=product.id or 0,
            owner_id=product.owner_id,
            name=product.name,
            description=product.description,
            price=product.price,
            category=product.category,
            condition=product.condition,
            image_url=product.image_url,
            created_at=product.created_at,
        )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=lambda: {"app": "ok"})
