"""HTML bodies for transactional emails."""

from __future__ import annotations

from html import escape

_WRAPPER = """<!DOCTYPE html>
<html lang="en">
<body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 24px;">
    {body}
    <p style="color: #666; font-size: 12px;">If you did not request this email you can ignore it.</p>
  </div>
</body>
</html>"""


def otp_email(otp: str, minutes_valid: int = 5) -> tuple[str, str]:
    body = (
        "<h2>Your verification code</h2>"
        f"<p style=\"font-size: 28px; letter-spacing: 6px;\"><strong>{escape(otp)}</strong></p>"
        f"<p>The code expires in {minutes_valid} minutes.</p>"
    )
    return "Verify your email", _WRAPPER.format(body=body)


def password_reset_email(otp: str, minutes_valid: int = 5) -> tuple[str, str]:
    body = (
        "<h2>Reset your password</h2>"
        f"<p>Use this code to reset your password: <strong>{escape(otp)}</strong></p>"
        f"<p>The code expires in {minutes_valid} minutes.</p>"
    )
    return "Forgot Password", _WRAPPER.format(body=body)


def account_created_email(first_name: str, email: str, password: str) -> tuple[str, str]:
    body = (
        f"<h2>Welcome, {escape(first_name)}!</h2>"
        "<p>An account was created for you while purchasing a course.</p>"
        f"<p>Email: <strong>{escape(email)}</strong><br>"
        f"Temporary password: <strong>{escape(password)}</strong></p>"
        "<p>Please change your password after logging in.</p>"
    )
    return "Your account has been created", _WRAPPER.format(body=body)
