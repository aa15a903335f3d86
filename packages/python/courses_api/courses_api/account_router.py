"""FastAPI router for the logged-in user's profile, transactions and receipts."""

from __future__ import annotations

from accounts import ProfileUpdate, User, UserProfile
from domain_errors import InvalidRequest, NotFound
from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from payments import PaymentRecord, PaymentStatus, build_receipt_html

from .container import ServiceContainer
from .dependencies import get_container, get_current_user
from .responses import envelope

router = APIRouter(prefix="/api/v1/user", tags=["account"])


def _owns(user: User, record: PaymentRecord) -> bool:
    return record.user_id == user.id or record.id in user.transactions


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return envelope(UserProfile.from_user(user), "Profile fetched successfully")


@router.patch("/profile")
async def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    profile = await container.auth.update_profile(user, payload)
    return envelope(profile, "Profile updated successfully")


@router.get("/transactions")
async def list_transactions(
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    records = await container.payments.list_for_user(user.id, user.transactions)
    return envelope(
        [record.model_dump(mode="json") for record in records],
        "Transactions fetched successfully",
    )


@router.get("/transactions/{transaction_id}/receipt", response_class=HTMLResponse)
async def get_receipt(
    transaction_id: str,
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    """Render the receipt of a settled transaction owned by the user."""

    record = await container.payments.get(transaction_id)
    if record is None or not _owns(user, record):
        raise NotFound("Transaction not found")
    if record.status != PaymentStatus.SUCCESS:
        raise InvalidRequest("Receipts are only available for successful payments")

    course = await container.courses.get(record.course_id)
    if course is None:
        raise NotFound("Course not found")
    html = build_receipt_html(record, course, user, container.settings.payments.company)
    return HTMLResponse(content=html)
