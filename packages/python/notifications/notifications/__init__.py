from .config import MailSettings
from .mailer import Mailer, ResendMailer, send_best_effort
from .templates import account_created_email, otp_email, password_reset_email

__all__ = [
    "MailSettings",
    "Mailer",
    "ResendMailer",
    "account_created_email",
    "otp_email",
    "password_reset_email",
    "send_best_effort",
]
