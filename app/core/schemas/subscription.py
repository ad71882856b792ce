from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from app.core.enums import PaymentType, SubscriptionStatus
from app.core.schemas.user import Pagination


class PaymentRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "utr_no": "UTR123456789",
                "months": 3,
                "amount": "49.99",
                "payment_type": "regular",
            }
        }
    )

    utr_no: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
    months: Annotated[int, Field(ge=1, le=36)]
    amount: Annotated[Decimal, Field(gt=0)]
    payment_type: PaymentType
    payment_plan_id: str | None = None


class SubscriptionResponse(BaseModel):
    """A user's subscription state."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    is_premium: bool
    is_subscription_active: bool
    subscription_status: SubscriptionStatus | None = None
    subscription_months: int | None = None
    payment_type: PaymentType | None = None
    payment_amount: Decimal | None = None
    payment_plan_id: str | None = None
    utr_no: str | None = None
    premium_start_date: datetime | None = None
    premium_end_date: datetime | None = None


class ApproveRequest(BaseModel):
    premium_end_date: datetime | None = None
    transaction_id: Annotated[
        str | None, StringConstraints(strip_whitespace=True, max_length=128)
    ] = None


class SubscriptionMonthsRequest(BaseModel):
    months: Annotated[int, Field(ge=1, le=36)]


class PremiumCheckResponse(BaseModel):
    message: str
    updated_count: int
    checked_at: datetime


class OnlineUsersResponse(BaseModel):
    online_users: int


class PaymentInfoResponse(BaseModel):
    """An account's payment details as reviewed by an admin."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str | None = None
    is_premium: bool
    subscription_status: SubscriptionStatus | None = None
    premium_start_date: datetime | None = None
    premium_end_date: datetime | None = None
    subscription_months: int | None = None
    payment_type: PaymentType | None = None
    payment_amount: Decimal | None = None
    payment_plan_id: str | None = None
    transaction_id: str | None = None
    utr_no: str | None = None
    created_at: datetime
    updated_at: datetime


class PaymentListResponse(BaseModel):
    payments: list[PaymentInfoResponse]
    pagination: Pagination


__all__ = [
    "ApproveRequest",
    "OnlineUsersResponse",
    "PaymentInfoResponse",
    "PaymentListResponse",
    "PaymentRequest",
    "PremiumCheckResponse",
    "SubscriptionMonthsRequest",
    "SubscriptionResponse",
]
