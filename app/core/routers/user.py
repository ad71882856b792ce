"""
Endpoints for the current user, mounted under /user: subscription
and recently opened charts.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import CurrentUser, get_async_session
from app.core.schemas.subscription import PaymentRequest, SubscriptionResponse
from app.core.schemas.user import ChartHistoryRequest, ChartHistoryResponse
from app.core.services.subscription import subscription_service
from app.core.services.user import user_service


router = APIRouter()


@router.post(
    "/payment",
    response_model=SubscriptionResponse,
    summary="Submit a payment for review",
)
async def submit_payment(
    request_data: PaymentRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SubscriptionResponse:
    """
    Record a payment reference. Premium stays off until an admin approves.
    """
    updated = await subscription_service.submit_payment(
        session,
        user,
        utr_no=request_data.utr_no,
        months=request_data.months,
        amount=request_data.amount,
        payment_type=request_data.payment_type,
        payment_plan_id=request_data.payment_plan_id,
    )
    return SubscriptionResponse.model_validate(updated)


@router.get(
    "/subscription",
    response_model=SubscriptionResponse,
    summary="Current subscription",
)
async def get_subscription(user: CurrentUser) -> SubscriptionResponse:
    return SubscriptionResponse.model_validate(user)


@router.get(
    "/chart-history",
    response_model=ChartHistoryResponse,
    summary="Recently opened charts",
)
async def get_chart_history(user: CurrentUser) -> ChartHistoryResponse:
    return ChartHistoryResponse(history=user_service.get_chart_history(user))


@router.post(
    "/chart-history",
    response_model=ChartHistoryResponse,
    summary="Record an opened chart",
)
async def add_chart_history(
    request_data: ChartHistoryRequest,
    user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> ChartHistoryResponse:
    """
    Move the chart to the front of the history. An older entry with the same
    path or symbol is replaced.
    """
    history = await user_service.add_chart_history_entry(
        session,
        user,
        symbol=request_data.symbol,
        title=request_data.title,
        path=request_data.path,
    )
    return ChartHistoryResponse(history=history)
