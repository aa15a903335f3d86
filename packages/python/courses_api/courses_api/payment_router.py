"""FastAPI router for checkout, payment verification and gateway webhooks."""

from __future__ import annotations

from typing import Optional

from accounts import User
from fastapi import APIRouter, Depends, Header, Request, Response
from pydantic import AliasChoices, BaseModel, Field

from .container import ServiceContainer
from .cookies import set_session_cookie
from .dependencies import get_container, get_optional_user
from .responses import envelope

router = APIRouter(prefix="/api/v1", tags=["payments"])


class CheckoutPayload(BaseModel):
    course_id: str = Field(validation_alias=AliasChoices("course_id", "courseId"))
    email: Optional[str] = None


class VerifyPayload(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    email: Optional[str] = None


@router.post("/checkout")
async def checkout(
    payload: CheckoutPayload,
    user: Optional[User] = Depends(get_optional_user),
    container: ServiceContainer = Depends(get_container),
):
    """Open a gateway order for a logged-in user or a guest email."""

    result = await container.checkout.initiate(payload.course_id, user=user, guest_email=payload.email)
    return envelope(result, "Order created successfully")


@router.post("/payment/verify")
async def verify_payment(
    payload: VerifyPayload,
    response: Response,
    container: ServiceContainer = Depends(get_container),
):
    """Verify the checkout callback and grant access; logs guests in on first settlement."""

    result = await container.verifier.verify(
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
        guest_email=payload.email,
    )
    if result.session_token:
        set_session_cookie(response, container, result.session_token)

    data = result.model_dump(mode="json")
    data["logged_in"] = result.session_token is not None
    message = "Payment already processed" if result.already_processed else "Payment verified successfully"
    return envelope(data, message)


@router.post("/payment/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container),
):
    body = await request.body()
    outcome = await container.webhooks.handle(body, x_razorpay_signature)
    return envelope(outcome, "Webhook processed")
