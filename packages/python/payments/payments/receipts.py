"""HTML receipt rendering for settled payments."""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Optional

from accounts import User
from course_catalog import Course

from .config import ReceiptCompany
from .models import PaymentRecord

CURRENCY_SYMBOLS = {
    "dollar": "$",
    "rupee": "₹",
}

TIER_LABELS = {
    "free": "Free",
    "lifetime": "Lifetime access",
    "monthly": "Monthly access",
    "yearly": "Yearly access",
}

_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Receipt {order_id}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #333; }}
    .receipt {{ max-width: 640px; margin: 0 auto; padding: 32px; border: 1px solid #eee; }}
    table {{ width: 100%; border-collapse: collapse; margin-top: 16px; }}
    td {{ padding: 8px 0; border-bottom: 1px solid #f0f0f0; }}
    td.label {{ color: #666; width: 40%; }}
    .total {{ font-size: 20px; font-weight: bold; }}
  </style>
</head>
<body>
  <div class="receipt">
    <h1>{company_name}</h1>
    <p>{company_details}</p>
    <h2>Payment receipt</h2>
    <table>
      <tr><td class="label">Order ID</td><td>{order_id}</td></tr>
      <tr><td class="label">Transaction ID</td><td>{payment_id}</td></tr>
      <tr><td class="label">Date</td><td>{date}</td></tr>
      <tr><td class="label">Customer</td><td>{customer_name}<br>{customer_email}</td></tr>
      <tr><td class="label">Course</td><td>{course_name}</td></tr>
      <tr><td class="label">Access</td><td>{access_tier}</td></tr>
      <tr><td class="label">Status</td><td>{status}</td></tr>
      <tr><td class="label">Amount paid</td><td class="total">{amount}</td></tr>
    </table>
  </div>
</body>
</html>"""


def _value(item) -> str:
    return str(getattr(item, "value", item))


def format_amount(amount: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(_value(currency), "")
    return f"{symbol}{amount:,.2f}"


def _format_date(moment: datetime) -> str:
    return moment.strftime("%d %b %Y, %H:%M UTC")


def build_receipt_html(
    record: PaymentRecord,
    course: Course,
    user: User,
    company: Optional[ReceiptCompany] = None,
) -> str:
    """Render the receipt for ``record``; every interpolated value is HTML-escaped."""

    company = company or ReceiptCompany()
    details = [part for part in (company.address, company.email, company.website) if part]
    settled = record.settled_outcome
    paid_at = settled.verified_at if settled else record.updated_at

    return _TEMPLATE.format(
        company_name=escape(company.name),
        company_details=" &middot; ".join(escape(part) for part in details),
        order_id=escape(record.order_id),
        payment_id=escape(record.payment_id or "-"),
        date=escape(_format_date(paid_at)),
        customer_name=escape(user.full_name),
        customer_email=escape(user.email),
        course_name=escape(course.name),
        access_tier=escape(TIER_LABELS.get(_value(course.access_tier), _value(course.access_tier))),
        status=escape(_value(record.status).title()),
        amount=escape(format_amount(record.amount, record.currency)),
    )
