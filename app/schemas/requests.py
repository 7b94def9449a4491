from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.store import OrderStatus, PaymentMethod


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class AcaiSelection(RequestModel):
    group_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)


class LineSelection(RequestModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    flavors: list[str] = Field(default_factory=list)
    crust: Optional[str] = None
    complements: list[str] = Field(default_factory=list)
    acai_selections: list[AcaiSelection] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=500)


class CustomerInfo(RequestModel):
    name: str = Field(..., min_length=2, max_length=120)
    whatsapp: str = Field(..., min_length=10, max_length=30)
    address: str = Field(..., min_length=5, max_length=300)

    @field_validator("name", "address")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class OrderCreate(RequestModel):
    restaurant_slug: str = Field(..., min_length=1)
    customer: CustomerInfo
    items: list[LineSelection] = Field(..., min_length=1)
    payment_method: PaymentMethod
    general_notes: Optional[str] = Field(default=None, max_length=500)


class ManualOrderCreate(RequestModel):
    restaurant_slug: str = Field(..., min_length=1)
    customer_name: Optional[str] = Field(default=None, max_length=120)
    customer_whatsapp: Optional[str] = Field(default=None, max_length=30)
    table: Optional[str] = Field(default=None, max_length=40)
    items: list[LineSelection] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.MONEY
    general_notes: Optional[str] = Field(default=None, max_length=500)


class StatusUpdate(RequestModel):
    status: OrderStatus
    restaurant_slug: Optional[str] = None


class SubscribeRequest(RequestModel):
    plan_id: str = Field(..., min_length=1)


class ConfirmRequest(RequestModel):
    external_id: Optional[str] = Field(default=None, min_length=2)


class OnboardingRequest(RequestModel):
    name: str = Field(..., min_length=2, max_length=120)
    slug: Optional[str] = Field(default=None, max_length=80)
    whatsapp: str = Field(default="", max_length=30)
    owner_email: Optional[EmailStr] = None
    plan_id: Optional[str] = None
    delivery_fee: Optional[Decimal] = Field(default=None, ge=0)
    min_order_value: Optional[Decimal] = Field(default=None, ge=0)


class PlanCreateRequest(RequestModel):
    name: str = Field(..., min_length=2, max_length=80)
    price: Decimal = Field(..., gt=0)
    color: str = Field(default="#6366f1", min_length=4)
    description: str = Field(..., min_length=4)
    features: list[str] = Field(..., min_length=1)
    active: bool = True

    @field_validator("features")
    @classmethod
    def _non_empty_features(cls, value: list[str]) -> list[str]:
        cleaned = [feature.strip() for feature in value]
        if any(not feature for feature in cleaned):
            raise ValueError("Recursos do plano não podem ser vazios")
        return cleaned


class PlanUpdateRequest(RequestModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=80)
    price: Optional[Decimal] = Field(default=None, gt=0)
    color: Optional[str] = Field(default=None, min_length=4)
    description: Optional[str] = Field(default=None, min_length=4)
    features: Optional[list[str]] = Field(default=None, min_length=1)
    active: Optional[bool] = None

    @field_validator("features")
    @classmethod
    def _non_empty_features(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return value
        cleaned = [feature.strip() for feature in value]
        if any(not feature for feature in cleaned):
            raise ValueError("Recursos do plano não podem ser vazios")
        return cleaned
