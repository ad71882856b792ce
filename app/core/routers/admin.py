"""
Admin endpoints for reviewing subscriptions and managing users, mounted
under /admin.

Every route requires a session token belonging to an admin.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import subscription_logger, user_logger
from app.core.dependencies import AdminUser, get_async_session
from app.core.enums import PaymentType, SubscriptionStatus
from app.core.schemas.auth import MessageResponse, UserResponse
from app.core.schemas.subscription import (
    ApproveRequest,
    OnlineUsersResponse,
    PaymentInfoResponse,
    PaymentListResponse,
    PremiumCheckResponse,
    SubscriptionMonthsRequest,
    SubscriptionResponse,
)
from app.core.schemas.user import Pagination, UserListResponse
from app.core.services.session import session_service
from app.core.services.subscription import subscription_service
from app.core.services.user import user_service
from app.core.utils import utc_now


router = APIRouter()


@router.post(
    "/users/{user_id}/approve",
    response_model=SubscriptionResponse,
    summary="Approve a payment",
)
async def approve_subscription(
    user_id: UUID,
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    request_data: ApproveRequest | None = None,
) -> SubscriptionResponse:
    """
    Turn premium on from now. Without ``premium_end_date`` the end date is
    the start plus the months the user paid for.
    """
    user = await subscription_service.approve(
        session,
        user_id,
        premium_end_date=request_data.premium_end_date if request_data else None,
        transaction_id=request_data.transaction_id if request_data else None,
    )
    subscription_logger.info(f"Approved by admin {admin.email}: user {user_id}")
    return SubscriptionResponse.model_validate(user)


@router.post(
    "/users/{user_id}/decline",
    response_model=SubscriptionResponse,
    summary="Decline a payment",
)
async def decline_subscription(
    user_id: UUID,
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SubscriptionResponse:
    user = await subscription_service.decline(session, user_id)
    subscription_logger.info(f"Declined by admin {admin.email}: user {user_id}")
    return SubscriptionResponse.model_validate(user)


@router.put(
    "/users/{user_id}/subscription-months",
    response_model=SubscriptionResponse,
    summary="Change subscription length",
)
async def change_subscription_months(
    user_id: UUID,
    request_data: SubscriptionMonthsRequest,
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> SubscriptionResponse:
    user = await subscription_service.change_subscription_months(
        session, user_id, request_data.months
    )
    return SubscriptionResponse.model_validate(user)


@router.post(
    "/check-premium-status",
    response_model=PremiumCheckResponse,
    summary="Expire lapsed subscriptions now",
)
async def check_premium_status(
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> PremiumCheckResponse:
    """Run the subscription-expiry sweep on demand."""
    now = utc_now()
    count = await subscription_service.expire_subscriptions(session, now=now)
    return PremiumCheckResponse(
        message=f"Premium status check completed. {count} users updated",
        updated_count=count,
        checked_at=now,
    )


@router.get(
    "/online-users",
    response_model=OnlineUsersResponse,
    summary="Count users online now",
)
async def online_users(
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> OnlineUsersResponse:
    count = await session_service.online_users_count(session)
    return OnlineUsersResponse(online_users=count)


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List users",
)
async def list_users(
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    search: Annotated[
        str | None,
        Query(max_length=100, description="Substring of name, email or phone"),
    ] = None,
    status: Annotated[
        SubscriptionStatus | None, Query(description="Filter by subscription status")
    ] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Users per page")] = 10,
) -> UserListResponse:
    """Newest accounts first."""
    users, total = await user_service.list_users(
        session, search=search, status=status, page=page, limit=limit
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.of(page, limit, total),
    )


@router.delete(
    "/users/{user_id}",
    response_model=MessageResponse,
    summary="Delete a user",
)
async def delete_user(
    user_id: UUID,
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Permanently delete the account and end all of its sessions."""
    await user_service.delete_user(session, user_id)
    user_logger.info(f"Deleted by admin {admin.email}: user {user_id}")
    return MessageResponse(message="User deleted successfully")


@router.get(
    "/users/{user_id}/payment",
    response_model=PaymentInfoResponse,
    summary="Payment details of a user",
)
async def get_user_payment_info(
    user_id: UUID,
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> PaymentInfoResponse:
    user = await subscription_service.get_payment_info(session, user_id)
    return PaymentInfoResponse.model_validate(user)


@router.get(
    "/payments",
    response_model=PaymentListResponse,
    summary="List submitted payments",
)
async def list_payments(
    admin: AdminUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
    status: Annotated[
        SubscriptionStatus | None, Query(description="Filter by subscription status")
    ] = None,
    payment_type: Annotated[PaymentType | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Payments per page")] = 10,
) -> PaymentListResponse:
    """Accounts that have submitted a payment, newest account first."""
    payments, total = await subscription_service.list_payments(
        session, status=status, payment_type=payment_type, page=page, limit=limit
    )
    return PaymentListResponse(
        payments=[PaymentInfoResponse.model_validate(p) for p in payments],
        pagination=Pagination.of(page, limit, total),
    )
