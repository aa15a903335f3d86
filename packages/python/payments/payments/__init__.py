from .checkout import CheckoutInitiator
from .config import PaymentSettings, ReceiptCompany, StorageSettings
from .gateway import (
    CURRENCY_CODES,
    PaymentGateway,
    RazorpayGateway,
    currency_code,
    to_minor_units,
)
from .models import (
    CheckoutCourse,
    CheckoutMetadata,
    CheckoutResult,
    FailedOutcome,
    GatewayOrder,
    PaymentMetadata,
    PaymentRecord,
    PaymentStatus,
    Receipt,
    SettledOutcome,
    SettlementSource,
    VerificationResult,
)
from .receipts import build_receipt_html, format_amount
from .repository import PaymentRepository
from .signatures import compute_signature, verify_payment_signature, verify_webhook_signature
from .storage import CloudinaryStorage, ObjectStorage, StoredAsset
from .verifier import PaymentVerifier
from .webhooks import WebhookOutcome, WebhookProcessor

__all__ = [
    "CURRENCY_CODES",
    "CheckoutCourse",
    "CheckoutInitiator",
    "CheckoutMetadata",
    "CheckoutResult",
    "CloudinaryStorage",
    "FailedOutcome",
    "GatewayOrder",
    "ObjectStorage",
    "PaymentGateway",
    "PaymentMetadata",
    "PaymentRecord",
    "PaymentRepository",
    "PaymentSettings",
    "PaymentStatus",
    "PaymentVerifier",
    "RazorpayGateway",
    "Receipt",
    "ReceiptCompany",
    "SettledOutcome",
    "SettlementSource",
    "StorageSettings",
    "StoredAsset",
    "VerificationResult",
    "WebhookOutcome",
    "WebhookProcessor",
    "build_receipt_html",
    "compute_signature",
    "currency_code",
    "format_amount",
    "to_minor_units",
    "verify_payment_signature",
    "verify_webhook_signature",
]
