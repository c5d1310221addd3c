"""
Client Files Portal - Email Templates

Builds the messages sent by the account-security core.
"""

from datetime import datetime

from portal.auth.models import User
from portal.config import settings
from portal.notifications.email import EmailMessage


_LAYOUT = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background-color: {color}; color: white; padding: 20px; text-align: center; }}
    .content {{ background-color: #f9f9f9; padding: 30px; }}
    .button {{ display: inline-block; padding: 12px 30px; background-color: {color}; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
    .footer {{ text-align: center; color: #666; font-size: 12px; margin-top: 20px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header"><h1>{title}</h1></div>
    <div class="content">
      <h2>Hello {first_name}!</h2>
      {body}
    </div>
    <div class="footer"><p>This is an automated message, please do not reply.</p></div>
  </div>
</body>
</html>
"""


def _render(title: str, first_name: str, body: str, color: str = "#4F46E5") -> str:
    return _LAYOUT.format(title=title, first_name=first_name, body=body, color=color)


def _link(path: str, token: str) -> str:
    return f"{settings.FRONTEND_URL}/{path}?token={token}"


def password_reset(user: User, token: str) -> EmailMessage:
    url = _link("reset-password", token)
    hours = settings.PASSWORD_RESET_EXPIRE_HOURS
    body = (
        "<p>We received a request to reset your password.</p>"
        f'<a href="{url}" class="button">Reset Password</a>'
        f'<p style="word-break: break-all;">{url}</p>'
        f"<p>This link will expire in {hours} hour(s).</p>"
        "<p>If you didn't request a password reset, you can ignore this email.</p>"
    )
    return EmailMessage(
        to=user.email,
        subject="Reset Your Password",
        html=_render("Password Reset", user.first_name, body, color="#DC2626"),
        text=f"Reset your password: {url} (expires in {hours} hour(s))",
        kind="password_reset",
    )


def email_verification(user: User, token: str) -> EmailMessage:
    url = _link("verify-email", token)
    hours = settings.EMAIL_VERIFICATION_EXPIRE_HOURS
    body = (
        "<p>Please verify your email address by clicking the button below:</p>"
        f'<a href="{url}" class="button">Verify Email Address</a>'
        f'<p style="word-break: break-all;">{url}</p>'
        f"<p>This link will expire in {hours} hours.</p>"
    )
    return EmailMessage(
        to=user.email,
        subject="Verify Your Email Address",
        html=_render("Email Verification", user.first_name, body),
        text=f"Verify your email address: {url} (expires in {hours} hours)",
        kind="email_verification",
    )


def welcome(user: User) -> EmailMessage:
    url = f"{settings.FRONTEND_URL}/dashboard"
    body = (
        "<p>Your email address has been verified. You now have full access to the portal.</p>"
        f'<a href="{url}" class="button">Go to Dashboard</a>'
    )
    return EmailMessage(
        to=user.email,
        subject="Welcome to Client Files Viewer!",
        html=_render("Welcome!", user.first_name, body, color="#059669"),
        text=f"Welcome! Your email is verified. Dashboard: {url}",
        kind="welcome",
    )


def account_locked(user: User, locked_until: datetime) -> EmailMessage:
    until = locked_until.strftime("%Y-%m-%d %H:%M UTC")
    body = (
        "<p>Your account has been temporarily locked after too many failed login attempts.</p>"
        f"<p>You can try again after <strong>{until}</strong>, or reset your password to unlock it now.</p>"
        "<p>If these attempts were not made by you, please reset your password.</p>"
    )
    return EmailMessage(
        to=user.email,
        subject="Account Temporarily Locked",
        html=_render("Account Locked", user.first_name, body, color="#DC2626"),
        text=f"Your account is locked until {until} after too many failed login attempts.",
        kind="account_locked",
    )


def account_provisioned(user: User, temporary_password: str) -> EmailMessage:
    url = f"{settings.FRONTEND_URL}/login"
    body = (
        "<p>An administrator has created an account for you.</p>"
        f"<p>Temporary password: <code>{temporary_password}</code></p>"
        "<p>You will be asked to choose a new password after your first login.</p>"
        f'<a href="{url}" class="button">Log In</a>'
    )
    return EmailMessage(
        to=user.email,
        subject="Your Client Files Viewer Account",
        html=_render("Account Created", user.first_name, body),
        text=f"An account was created for you. Temporary password: {temporary_password}. Log in: {url}",
        kind="account_provisioned",
    )
