from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Header

from app.common.deps import CurrentUser, get_current_user, get_optional_user
from .schemas import (
    CaptureRequest,
    CaptureResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    PendingOrderView,
)
from . import service

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/orders",
    response_model=CreateOrderResponse,
    summary="Start a PayPal checkout for a course",
    description=(
        "Creates a PayPal order for the course's current catalog price and remembers it "
        "server-side until capture. Send an `Idempotency-Key` header to make retries safe."
    ),
)
async def create_order(
    body: CreateOrderRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    return await service.create_order(body, user, idempotency_key)


@router.get("/orders/{order_id}", response_model=PendingOrderView, summary="Look up a pending order")
async def read_pending_order(order_id: str):
    """Used by the post-payment page to recover the course from the returned order id."""
    return await service.get_pending_order(order_id)


@router.post("/orders/{order_id}/capture", response_model=CaptureResponse, summary="Capture an approved order")
async def capture_order(order_id: str, user: Optional[CurrentUser] = Depends(get_optional_user)):
    return await service.capture_order(order_id, current=user)


@router.post(
    "/capture",
    response_model=CaptureResponse,
    summary="Capture an approved order (body form)",
    description="Body `{orderId, userId?}`. When signed in, `userId` must match the token.",
)
async def capture_order_body(body: CaptureRequest, user: Optional[CurrentUser] = Depends(get_optional_user)):
    return await service.capture_order(body.order_id, current=user, body_user_id=body.user_id)


@router.post(
    "/orders/{order_id}/claim",
    response_model=CaptureResponse,
    summary="Attach a guest payment to my account",
)
async def claim_order(order_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.claim_order(order_id, user)
