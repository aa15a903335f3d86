import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from domain_errors import InvalidRequest, InvalidSignature, NotFound, ValidationError
from entitlements import Entitlement
from payments import (
    CheckoutMetadata,
    PaymentMetadata,
    PaymentRecord,
    PaymentStatus,
    SettledOutcome,
)


async def _guest_checkout(container, make_course, email="guest@example.com", **course_overrides):
    course = await make_course(price=499, currency="rupee", access_tier="monthly", **course_overrides)
    result = await container.checkout.initiate(course.id, guest_email=email)
    return course, result


async def test_guest_purchase_end_to_end(container, make_course, sign_payment, storage):
    course, checkout = await _guest_checkout(container, make_course)
    signature = sign_payment(checkout.order_id, "pay_1")

    result = await container.verifier.verify(checkout.order_id, "pay_1", signature, guest_email="guest@example.com")

    assert not result.already_processed
    assert result.expiry_date == datetime(2024, 2, 29, 10, 0, tzinfo=UTC)
    assert result.session_token is not None
    assert container.sessions.verify(result.session_token)["sub"] == result.user_id

    user = await container.users.get(result.user_id)
    assert [item.course_id for item in user.entitlements] == [course.id]
    assert user.entitlements[0].expiry_date == datetime(2024, 2, 29, 10, 0, tzinfo=UTC)
    assert user.transactions == [checkout.transaction_id]

    record = await container.payments.find_by_order_id(checkout.order_id)
    assert record.status == PaymentStatus.SUCCESS
    assert record.payment_id == "pay_1"
    assert record.user_id == user.id
    assert isinstance(record.metadata.outcome, SettledOutcome)
    assert record.metadata.outcome.source == "client"
    assert record.receipt is not None
    assert result.receipt_url == record.receipt.url
    assert b"guest@example.com" in storage.uploads[record.receipt.public_id]

    decision = await container.entitlements.check_course_access(user.id, course.id)
    assert decision.granted


async def test_repeated_verification_is_idempotent(container, make_course, sign_payment):
    course, checkout = await _guest_checkout(container, make_course)
    signature = sign_payment(checkout.order_id, "pay_1")

    first = await container.verifier.verify(checkout.order_id, "pay_1", signature)
    second = await container.verifier.verify(checkout.order_id, "pay_1", signature)

    assert not first.already_processed
    assert second.already_processed
    assert second.session_token is None
    assert second.expiry_date == first.expiry_date
    assert second.transaction_id == first.transaction_id

    user = await container.users.get(first.user_id)
    assert len(user.entitlements) == 1
    assert user.transactions == [checkout.transaction_id]


async def test_concurrent_verifications_settle_once(container, make_course, sign_payment):
    course, checkout = await _guest_checkout(container, make_course)
    signature = sign_payment(checkout.order_id, "pay_1")

    results = await asyncio.gather(
        container.verifier.verify(checkout.order_id, "pay_1", signature),
        container.verifier.verify(checkout.order_id, "pay_1", signature),
    )

    assert sorted(result.already_processed for result in results) == [False, True]
    user = await container.users.get(results[0].user_id)
    assert len(user.entitlements) == 1


async def test_tampered_signature_changes_nothing(container, make_course, sign_payment):
    course, checkout = await _guest_checkout(container, make_course)
    signature = sign_payment(checkout.order_id, "pay_1")
    tampered = signature[:-1] + ("0" if signature[-1] != "0" else "1")

    with pytest.raises(InvalidSignature):
        await container.verifier.verify(checkout.order_id, "pay_1", tampered)
    with pytest.raises(InvalidSignature):
        await container.verifier.verify(checkout.order_id, "pay_2", signature)

    record = await container.payments.find_by_order_id(checkout.order_id)
    assert record.status == PaymentStatus.PENDING
    assert record.payment_id is None
    user = await container.users.find_by_email("guest@example.com")
    assert user.entitlements == []
    assert user.transactions == []


async def test_missing_fields_and_unknown_orders(container, sign_payment):
    with pytest.raises(ValidationError):
        await container.verifier.verify("order_x", "", "sig")
    with pytest.raises(NotFound):
        await container.verifier.verify("order_x", "pay_1", sign_payment("order_x", "pay_1"))


async def test_logged_in_purchase_issues_no_new_session(container, make_course, make_user, sign_payment):
    user = await make_user()
    course = await make_course(access_tier="yearly")
    checkout = await container.checkout.initiate(course.id, user=user)

    result = await container.verifier.verify(
        checkout.order_id, "pay_9", sign_payment(checkout.order_id, "pay_9")
    )

    assert result.user_id == user.id
    assert result.session_token is None
    assert result.expiry_date == datetime(2025, 1, 31, 10, 0, tzinfo=UTC)


async def test_existing_entitlement_is_not_duplicated(container, make_course, make_user, sign_payment, clock):
    user = await make_user()
    course = await make_course()
    checkout = await container.checkout.initiate(course.id, user=user)
    original_expiry = clock() + timedelta(days=3)
    await container.entitlements_repo.grant(
        user.id, Entitlement(course_id=course.id, purchase_date=clock(), expiry_date=original_expiry)
    )

    result = await container.verifier.verify(
        checkout.order_id, "pay_1", sign_payment(checkout.order_id, "pay_1")
    )

    refreshed = await container.users.get(user.id)
    assert len(refreshed.entitlements) == 1
    assert result.expiry_date == original_expiry


async def test_receipt_failure_does_not_fail_verification(container, make_course, sign_payment, storage):
    storage.fail = True
    course, checkout = await _guest_checkout(container, make_course)

    result = await container.verifier.verify(
        checkout.order_id, "pay_1", sign_payment(checkout.order_id, "pay_1")
    )

    assert result.receipt_url is None
    record = await container.payments.find_by_order_id(checkout.order_id)
    assert record.status == PaymentStatus.SUCCESS
    assert record.receipt is None


async def test_failed_payment_cannot_be_verified(container, make_course, sign_payment):
    course, checkout = await _guest_checkout(container, make_course)

    failed = await container.verifier.mark_failed(checkout.order_id, "Card declined", "BAD_REQUEST_ERROR")
    assert failed.status == PaymentStatus.FAILED
    assert failed.metadata.outcome.reason == "Card declined"
    assert await container.verifier.mark_failed(checkout.order_id, "again") is None

    with pytest.raises(InvalidRequest):
        await container.verifier.verify(checkout.order_id, "pay_1", sign_payment(checkout.order_id, "pay_1"))
    user = await container.users.find_by_email("guest@example.com")
    assert user.entitlements == []


async def test_settlement_creates_verified_account_when_missing(
    container, make_course, sign_payment, mailer, clock
):
    course = await make_course(access_tier="lifetime")
    record = PaymentRecord(
        _id="txn-orphan-user",
        order_id="order_manual",
        purchaser_email="newcomer@example.com",
        course_id=course.id,
        amount=course.price,
        currency=course.currency,
        metadata=PaymentMetadata(
            checkout=CheckoutMetadata(
                course_name=course.name,
                access_tier=course.access_tier,
                guest_email="newcomer@example.com",
                is_guest_checkout=True,
                created_at=clock(),
            )
        ),
        created_at=clock(),
        updated_at=clock(),
    )
    await container.payments.insert(record)

    result = await container.verifier.verify("order_manual", "pay_1", sign_payment("order_manual", "pay_1"))

    assert result.is_new_user
    assert result.expiry_date is None
    assert result.session_token is not None
    user = await container.users.get(result.user_id)
    assert user.is_verified
    assert user.entitlements[0].expiry_date is None
    assert mailer.last_to("newcomer@example.com")["subject"] == "Your account has been created"


async def test_orphan_sweep_settles_only_linked_records(container, make_course, clock):
    course = await make_course()
    other_course = await make_course()
    linked = await container.checkout.initiate(course.id, guest_email="linked@example.com")
    unlinked = await container.checkout.initiate(other_course.id, guest_email="unlinked@example.com")
    untouched = await container.checkout.initiate(course.id, guest_email="untouched@example.com")

    # Simulate a verification that stopped right before the status swap.
    await container.payments.attach_payment_id(linked.order_id, "pay_linked")
    holder = await container.users.find_by_email("linked@example.com")
    await container.entitlements_repo.grant(
        holder.id,
        Entitlement(course_id=course.id, purchase_date=clock(), expiry_date=clock() + timedelta(days=29)),
    )
    await container.entitlements_repo.attach_transaction(holder.id, linked.transaction_id)
    await container.payments.attach_payment_id(unlinked.order_id, "pay_unlinked")

    assert await container.verifier.recover_orphaned_settlements(timedelta(minutes=10)) == []

    clock.advance(minutes=15)
    recovered = await container.verifier.recover_orphaned_settlements(timedelta(minutes=10))

    assert recovered == [linked.order_id]
    settled = await container.payments.find_by_order_id(linked.order_id)
    assert settled.status == PaymentStatus.SUCCESS
    assert settled.user_id == holder.id
    assert settled.metadata.outcome.source == "recovery"
    assert settled.metadata.outcome.expiry_date == clock() - timedelta(minutes=15) + timedelta(days=29)
    assert (await container.payments.find_by_order_id(unlinked.order_id)).status == PaymentStatus.PENDING
    assert (await container.payments.find_by_order_id(untouched.order_id)).status == PaymentStatus.PENDING


async def test_guest_checkout_for_existing_account_does_not_log_in(container, make_course, make_user, sign_payment):
    owner = await make_user("owner@example.com")
    course, checkout = await _guest_checkout(container, make_course, email="owner@example.com")

    result = await container.verifier.verify(
        checkout.order_id, "pay_1", sign_payment(checkout.order_id, "pay_1"), guest_email="owner@example.com"
    )

    assert result.user_id == owner.id
    assert result.session_token is None
    assert not result.is_new_user
    user = await container.users.get(owner.id)
    assert [item.course_id for item in user.entitlements] == [course.id]


async def test_replay_without_known_purchaser_has_no_user_id(container, make_course, sign_payment, clock):
    course = await make_course()
    record = PaymentRecord(
        _id="txn-settled-elsewhere",
        order_id="order_settled",
        purchaser_email="gone@example.com",
        course_id=course.id,
        amount=course.price,
        currency=course.currency,
        status=PaymentStatus.SUCCESS,
        payment_id="pay_1",
        metadata=PaymentMetadata(
            checkout=CheckoutMetadata(
                course_name=course.name,
                access_tier=course.access_tier,
                guest_email="gone@example.com",
                is_guest_checkout=True,
                created_at=clock(),
            ),
            outcome=SettledOutcome(verified_at=clock()),
        ),
        created_at=clock(),
        updated_at=clock(),
    )
    await container.payments.insert(record)

    result = await container.verifier.verify("order_settled", "pay_1", sign_payment("order_settled", "pay_1"))

    assert result.already_processed
    assert result.user_id is None
    assert result.email == "gone@example.com"
