import json
import re
from datetime import timedelta

import httpx
import pytest
from core_server.main import create_app
from entitlements import Entitlement

OTP_PATTERN = re.compile(r"<strong>(\d{4})</strong>")


@pytest.fixture
async def client(container):
    app = create_app(container=container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


async def _login(client, email, password="Secret#123"):
    resp = await client.post("/api/v1/user/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_guest_checkout_verify_and_watch(client, make_course, sign_payment):
    course = await make_course(price=499, currency="rupee", access_tier="monthly")

    resp = await client.post("/api/v1/checkout", json={"courseId": course.id, "email": "buyer@example.com"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] is True
    order = body["data"]
    assert order["amount"] == 49900
    assert order["currency"] == "INR"
    assert order["is_guest_checkout"] is True

    resp = await client.get(f"/api/v1/videos/{course.id}")
    assert resp.status_code == 401

    resp = await client.post(
        "/api/v1/payment/verify",
        json={
            "razorpay_order_id": order["order_id"],
            "razorpay_payment_id": "pay_api",
            "razorpay_signature": sign_payment(order["order_id"], "pay_api"),
            "email": "buyer@example.com",
        },
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["logged_in"] is True
    assert "session_token" not in data
    assert data["expiry_date"].startswith("2024-02-29T10:00:00")
    assert client.cookies.get("user_token")

    resp = await client.get(f"/api/v1/videos/{course.id}")
    assert resp.status_code == 200
    videos = resp.json()["data"]
    assert [video["id"] for video in videos["videos"]] == [video.id for video in course.videos]
    assert videos["access"]["has_access"] is True

    resp = await client.get("/api/v1/my-courses")
    assert resp.status_code == 200
    assert [item["course"]["id"] for item in resp.json()["data"]] == [course.id]

    replay = await client.post(
        "/api/v1/payment/verify",
        json={
            "razorpay_order_id": order["order_id"],
            "razorpay_payment_id": "pay_api",
            "razorpay_signature": sign_payment(order["order_id"], "pay_api"),
        },
    )
    assert replay.status_code == 200
    assert replay.json()["data"]["already_processed"] is True
    assert replay.json()["message"] == "Payment already processed"


async def test_tampered_verification_is_rejected_with_envelope(client, make_course):
    course = await make_course()
    resp = await client.post("/api/v1/checkout", json={"course_id": course.id, "email": "t@example.com"})
    order_id = resp.json()["data"]["order_id"]

    resp = await client.post(
        "/api/v1/payment/verify",
        json={"razorpay_order_id": order_id, "razorpay_payment_id": "pay_1", "razorpay_signature": "deadbeef"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"data": None, "message": "Payment could not be verified", "status": False}


async def test_checkout_validation_errors_use_envelope(client, make_course):
    resp = await client.post("/api/v1/checkout", json={"email": "x@example.com"})
    assert resp.status_code == 400
    assert resp.json()["status"] is False

    resp = await client.post("/api/v1/checkout", json={"course_id": "missing", "email": "x@example.com"})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Course not found"


async def test_access_denied_and_expired(client, container, make_course, make_user, clock):
    course = await make_course(access_tier="monthly")
    user = await make_user("learner@example.com")
    await _login(client, "learner@example.com")

    resp = await client.get(f"/api/v1/videos/{course.id}")
    assert resp.status_code == 403

    await container.entitlements_repo.grant(
        user.id,
        Entitlement(course_id=course.id, purchase_date=clock(), expiry_date=clock() + timedelta(days=30)),
    )
    assert (await client.get(f"/api/v1/videos/{course.id}")).status_code == 200

    resp = await client.post(
        "/api/v1/checkout", json={"course_id": course.id}
    )
    assert resp.status_code == 409

    clock.advance(days=31)
    resp = await client.get(f"/api/v1/videos/{course.id}")
    assert resp.status_code == 402
    assert "expired" in resp.json()["message"]

    status = await client.get(f"/api/v1/course/{course.id}/access")
    assert status.status_code == 200
    assert status.json()["data"]["has_access"] is False


async def test_bearer_token_is_accepted(container, make_user, make_course):
    user = await make_user("bearer@example.com")
    token = container.sessions.issue({"sub": user.id, "email": user.email})
    app = create_app(container=container)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        resp = await client.get("/api/v1/user/profile", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == "bearer@example.com"
    assert "password_hash" not in resp.json()["data"]


async def test_webhook_endpoint(client, container, make_course, sign_webhook):
    course = await make_course()
    resp = await client.post("/api/v1/checkout", json={"course_id": course.id, "email": "w@example.com"})
    order_id = resp.json()["data"]["order_id"]
    body = json.dumps(
        {
            "event": "payment.failed",
            "payload": {"payment": {"entity": {"id": "pay_w", "order_id": order_id, "error_code": "BAD"}}},
        }
    ).encode()

    rejected = await client.post("/api/v1/payment/webhook", content=body, headers={"X-Razorpay-Signature": "nope"})
    assert rejected.status_code == 400

    resp = await client.post(
        "/api/v1/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["action"] == "failed"
    record = await container.payments.find_by_order_id(order_id)
    assert record.status == "failed"


async def test_transactions_and_receipt_ownership(client, make_course, make_user, sign_payment):
    course = await make_course(name="Data <Science>")
    await make_user("owner@example.com")
    await make_user("other@example.com")
    await _login(client, "owner@example.com")

    order = (await client.post("/api/v1/checkout", json={"course_id": course.id})).json()["data"]
    await client.post(
        "/api/v1/payment/verify",
        json={
            "razorpay_order_id": order["order_id"],
            "razorpay_payment_id": "pay_r",
            "razorpay_signature": sign_payment(order["order_id"], "pay_r"),
        },
    )

    listing = await client.get("/api/v1/user/transactions")
    assert listing.status_code == 200
    records = listing.json()["data"]
    assert [record["order_id"] for record in records] == [order["order_id"]]
    assert records[0]["status"] == "success"

    receipt = await client.get(f"/api/v1/user/transactions/{order['transaction_id']}/receipt")
    assert receipt.status_code == 200
    assert receipt.headers["content-type"].startswith("text/html")
    assert "Data &lt;Science&gt;" in receipt.text

    await client.post("/api/v1/user/logout")
    await _login(client, "other@example.com")
    foreign = await client.get(f"/api/v1/user/transactions/{order['transaction_id']}/receipt")
    assert foreign.status_code == 404


async def test_signup_verify_and_password_reset_via_cookies(client, mailer):
    resp = await client.post(
        "/api/v1/user/signup",
        json={
            "first_name": "Mira",
            "last_name": "Shah",
            "email": "mira@example.com",
            "password": "Str0ng#Pass",
        },
    )
    assert resp.status_code == 200
    assert client.cookies.get("signup_token")
    assert (await client.get("/api/v1/user/profile")).status_code == 401

    otp = OTP_PATTERN.search(mailer.last_to("mira@example.com")["html"]).group(1)
    resp = await client.post("/api/v1/user/verify-otp", json={"otp": otp})
    assert resp.status_code == 200
    assert resp.json()["data"]["is_verified"] is True

    profile = await client.get("/api/v1/user/profile")
    assert profile.status_code == 200
    resp = await client.patch("/api/v1/user/profile", json={"last_name": "Shah-Rao"})
    assert resp.json()["data"]["last_name"] == "Shah-Rao"

    await client.post("/api/v1/user/logout")
    assert (await client.get("/api/v1/user/profile")).status_code == 401

    resp = await client.post("/api/v1/user/forgot-password", json={"email": "mira@example.com"})
    assert resp.status_code == 200
    otp = OTP_PATTERN.search(mailer.last_to("mira@example.com")["html"]).group(1)
    assert (await client.post("/api/v1/user/verify-otp", json={"otp": otp})).status_code == 200
    resp = await client.post("/api/v1/user/new-password", json={"password": "An0ther#Pass"})
    assert resp.status_code == 200

    await _login(client, "mira@example.com", "An0ther#Pass")
    assert (await client.get("/api/v1/user/profile")).status_code == 200


async def test_catalog_listing(client, make_course):
    await make_course(name="Alpha")
    await make_course(name="Beta")

    resp = await client.get("/api/v1/course", params={"search": "alp"})
    assert resp.status_code == 200
    assert resp.json()["status"] is True

    missing = await client.get("/api/v1/course/nope")
    assert missing.status_code == 404
