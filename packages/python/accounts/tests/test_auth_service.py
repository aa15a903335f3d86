import re

import pytest
from accounts import ProfileUpdate, SignupRequest, TokenPurpose, validate_email
from domain_errors import (
    AccessDenied,
    AlreadyExists,
    AuthenticationRequired,
    NotFound,
    ValidationError,
)

OTP_PATTERN = re.compile(r"<strong>(\d{4})</strong>")


def _otp_sent_to(mailer, email):
    mail = mailer.last_to(email)
    assert mail is not None, f"no email sent to {email}"
    return OTP_PATTERN.search(mail["html"]).group(1)


def _signup_request(**overrides):
    data = {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "Asha@Example.com",
        "mobile_number": "9876543210",
        "password": "Str0ng#Pass",
    }
    data.update(overrides)
    return SignupRequest(**data)


async def test_signup_then_verify_otp_yields_session(container, mailer):
    auth = container.auth
    pending = await auth.signup(_signup_request())
    assert pending.purpose is TokenPurpose.SIGNUP_OTP
    assert pending.user.email == "asha@example.com"
    assert not pending.user.is_verified

    stored = await container.users.find_by_email("asha@example.com")
    assert stored.otp_hash is not None
    otp = _otp_sent_to(mailer, "asha@example.com")
    assert stored.otp_hash != otp

    verified = await auth.verify_otp(otp, signup_token=pending.token)
    assert verified.purpose is TokenPurpose.SESSION
    assert verified.user.is_verified
    assert container.sessions.verify(verified.token)["sub"] == stored.id

    refreshed = await container.users.get(stored.id)
    assert refreshed.otp_hash is None


async def test_wrong_or_expired_otp_is_rejected(container, mailer, clock):
    auth = container.auth
    pending = await auth.signup(_signup_request())
    otp = _otp_sent_to(mailer, "asha@example.com")
    wrong = "0000" if otp != "0000" else "1111"

    with pytest.raises(ValidationError, match="Invalid OTP"):
        await auth.verify_otp(wrong, signup_token=pending.token)

    clock.advance(minutes=6)
    with pytest.raises(ValidationError, match="expired"):
        await auth.verify_otp(otp, signup_token=pending.token)


async def test_resend_replaces_otp(container, mailer):
    auth = container.auth
    pending = await auth.signup(_signup_request())
    await auth.resend_otp(pending.token)
    assert len([m for m in mailer.sent if m["to"] == "asha@example.com"]) == 2

    latest = _otp_sent_to(mailer, "asha@example.com")
    verified = await auth.verify_otp(latest, signup_token=pending.token)
    assert verified.purpose is TokenPurpose.SESSION


async def test_signup_rejects_duplicates_and_weak_passwords(container, make_user):
    await make_user("taken@example.com", mobile_number="5550001111")
    auth = container.auth

    with pytest.raises(AlreadyExists):
        await auth.signup(_signup_request(email="TAKEN@example.com", mobile_number=None))
    with pytest.raises(AlreadyExists):
        await auth.signup(_signup_request(email="new@example.com", mobile_number="5550001111"))
    with pytest.raises(ValidationError):
        await auth.signup(_signup_request(email="new@example.com", password="weakpass"))


async def test_signup_survives_mail_failure(container, mailer):
    mailer.fail = True
    pending = await container.auth.signup(_signup_request())
    assert pending.purpose is TokenPurpose.SIGNUP_OTP


async def test_login_by_email_or_mobile(container, make_user):
    user = await make_user("login@example.com", mobile_number="9000000001")
    auth = container.auth

    by_email = await auth.login("LOGIN@example.com", "Secret#123")
    assert by_email.purpose is TokenPurpose.SESSION
    assert by_email.user.id == user.id

    by_mobile = await auth.login("9000000001", "Secret#123")
    assert by_mobile.user.id == user.id

    with pytest.raises(AuthenticationRequired):
        await auth.login("login@example.com", "Wrong#123")
    with pytest.raises(AuthenticationRequired):
        await auth.login("nobody@example.com", "Secret#123")


async def test_login_of_unverified_account_restarts_verification(container, make_user, mailer):
    await make_user("fresh@example.com", is_verified=False)
    result = await container.auth.login("fresh@example.com", "Secret#123")
    assert result.purpose is TokenPurpose.SIGNUP_OTP
    assert mailer.last_to("fresh@example.com") is not None


async def test_blocked_user_cannot_log_in(container, make_user, db):
    user = await make_user("blocked@example.com")
    await db["users"].update_one({"_id": user.id}, {"$set": {"is_blocked": True}})
    with pytest.raises(AccessDenied):
        await container.auth.login("blocked@example.com", "Secret#123")


async def test_forgot_and_reset_password(container, make_user, mailer):
    user = await make_user("reset@example.com")
    auth = container.auth

    reset = await auth.forgot_password("reset@example.com")
    assert reset.purpose is TokenPurpose.PASSWORD_RESET
    otp = _otp_sent_to(mailer, "reset@example.com")

    verified = await auth.verify_otp(otp, reset_token=reset.token)
    assert verified.purpose is TokenPurpose.PASSWORD_RESET_VERIFIED

    with pytest.raises(AuthenticationRequired):
        await auth.reset_password(reset.token, "N3w#Password")

    await auth.reset_password(verified.token, "N3w#Password")
    logged_in = await auth.login("reset@example.com", "N3w#Password")
    assert logged_in.user.id == user.id


async def test_forgot_password_for_unknown_account(container):
    with pytest.raises(NotFound):
        await container.auth.forgot_password("ghost@example.com")


async def test_verify_otp_without_any_token(container):
    with pytest.raises(AuthenticationRequired):
        await container.auth.verify_otp("1234")


async def test_update_profile_checks_mobile_uniqueness(container, make_user):
    first = await make_user("first@example.com", mobile_number="7000000001")
    second = await make_user("second@example.com")

    updated = await container.auth.update_profile(second, ProfileUpdate(first_name=" Ravi ", mobile_number="7000000002"))
    assert updated.first_name == "Ravi"
    assert updated.mobile_number == "7000000002"

    with pytest.raises(AlreadyExists):
        await container.auth.update_profile(second, ProfileUpdate(mobile_number=first.mobile_number))


def test_validate_email():
    assert validate_email("  Someone@Example.COM ") == "someone@example.com"
    with pytest.raises(ValidationError):
        validate_email("not-an-email")
    with pytest.raises(ValidationError):
        validate_email(None)
