"""Pydantic models for payment records and the checkout / verification results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from course_catalog import Currency
from db_core import UtcDatetime, utcnow
from entitlements import AccessTier
from pydantic import BaseModel, ConfigDict, Field

PAYMENT_GATEWAY = "razorpay"
METADATA_SCHEMA_VERSION = 1


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class SettlementSource(str, Enum):
    CLIENT = "client"
    WEBHOOK = "webhook"
    RECOVERY = "recovery"


class CheckoutMetadata(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    course_name: str
    access_tier: AccessTier
    guest_email: Optional[str] = None
    is_guest_checkout: bool = False
    is_new_user: bool = False
    created_at: UtcDatetime = Field(default_factory=utcnow)


class SettledOutcome(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    kind: Literal["settled"] = "settled"
    verified_at: UtcDatetime
    expiry_date: Optional[UtcDatetime] = None
    source: SettlementSource = SettlementSource.CLIENT


class FailedOutcome(BaseModel):
    kind: Literal["failed"] = "failed"
    failed_at: UtcDatetime
    reason: str
    error_code: Optional[str] = None


PaymentOutcome = Annotated[Union[SettledOutcome, FailedOutcome], Field(discriminator="kind")]


class PaymentMetadata(BaseModel):
    """Closed, versioned metadata attached to every payment record."""

    schema_version: int = METADATA_SCHEMA_VERSION
    checkout: CheckoutMetadata
    outcome: Optional[PaymentOutcome] = None


class Receipt(BaseModel):
    public_id: str
    url: str
    generated_at: UtcDatetime


class PaymentRecord(BaseModel):
    """Document stored in the ``transactions`` collection, one per checkout attempt."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: str = Field(alias="_id")
    order_id: str
    payment_id: Optional[str] = None
    user_id: Optional[str] = None  # None while the purchase belongs to a guest
    purchaser_email: str
    course_id: str
    amount: float
    currency: Currency
    status: PaymentStatus = PaymentStatus.PENDING
    gateway: str = PAYMENT_GATEWAY
    metadata: PaymentMetadata
    receipt: Optional[Receipt] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def settled_outcome(self) -> Optional[SettledOutcome]:
        outcome = self.metadata.outcome
        return outcome if isinstance(outcome, SettledOutcome) else None


class GatewayOrder(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None


class CheckoutCourse(BaseModel):
    id: str
    name: str
    price: float
    currency: Currency
    access_tier: AccessTier


class CheckoutResult(BaseModel):
    order_id: str
    amount: int  # minor units
    currency: str  # ISO code
    key_id: str
    transaction_id: str
    course: CheckoutCourse
    purchaser_email: str
    is_logged_in: bool
    is_guest_checkout: bool
    is_new_user: bool


class VerificationResult(BaseModel):
    transaction_id: str
    order_id: str
    payment_id: Optional[str] = None
    course_id: str
    user_id: Optional[str] = None
    email: str
    expiry_date: Optional[datetime] = None
    already_processed: bool = False
    is_new_user: bool = False
    session_token: Optional[str] = Field(default=None, exclude=True)
    receipt_url: Optional[str] = None
