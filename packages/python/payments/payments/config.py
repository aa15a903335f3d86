"""Configuration for the payment gateway, receipt storage and receipt branding."""

import os

from pydantic import BaseModel, Field


class ReceiptCompany(BaseModel):
    """Seller details printed on receipts."""

    name: str = Field(default_factory=lambda: os.getenv("RECEIPT_COMPANY_NAME", "Happy Education"))
    address: str = Field(default_factory=lambda: os.getenv("RECEIPT_COMPANY_ADDRESS", ""))
    email: str = Field(
        default_factory=lambda: os.getenv("RECEIPT_COMPANY_EMAIL", "support@happyeducation.com")
    )
    website: str = Field(default_factory=lambda: os.getenv("RECEIPT_COMPANY_WEBSITE", ""))


class PaymentSettings(BaseModel):
    """Razorpay credentials and client behaviour."""

    key_id: str = Field(default_factory=lambda: os.getenv("RAZORPAY_KEY_ID", ""))
    key_secret: str = Field(default_factory=lambda: os.getenv("RAZORPAY_KEY_SECRET", ""))
    webhook_secret: str = Field(default_factory=lambda: os.getenv("RAZORPAY_WEBHOOK_SECRET", ""))
    api_base_url: str = Field(
        default_factory=lambda: os.getenv("RAZORPAY_API_BASE_URL", "https://api.razorpay.com/v1")
    )
    timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))
    )
    company: ReceiptCompany = Field(default_factory=ReceiptCompany)


class StorageSettings(BaseModel):
    """Cloudinary credentials used for receipt uploads."""

    cloud_name: str = Field(default_factory=lambda: os.getenv("CLOUDINARY_CLOUD_NAME", ""))
    api_key: str = Field(default_factory=lambda: os.getenv("CLOUDINARY_API_KEY", ""))
    api_secret: str = Field(default_factory=lambda: os.getenv("CLOUDINARY_API_SECRET", ""))
    api_base_url: str = Field(
        default_factory=lambda: os.getenv("CLOUDINARY_API_BASE_URL", "https://api.cloudinary.com/v1_1")
    )
    timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("STORAGE_TIMEOUT_SECONDS", "15"))
    )
    receipts_folder: str = "receipts"
