"""Transactional emails: verification and password reset"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import VerificationToken

logger = logging.getLogger('storefront.core')


def issue_token(user, purpose, hours):
    """Invalidate previous tokens of the same purpose and issue a fresh one"""
    VerificationToken.objects.filter(user=user, purpose=purpose, used_at__isnull=True).update(used_at=timezone.now())
    return VerificationToken.objects.create(
        user=user,
        token=secrets.token_urlsafe(32),
        purpose=purpose,
        expires_at=timezone.now() + timedelta(hours=hours),
    )


def _deliver(subject, body, recipient):
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [recipient], fail_silently=False)
        return True
    except Exception as e:
        logger.warning(f"Email to {recipient} failed: {e}")
        return False


def send_verification_email(user):
    token = issue_token(user, VerificationToken.PURPOSE_EMAIL_VERIFY, settings.STOREFRONT['VERIFICATION_TOKEN_HOURS'])
    link = f"{settings.FRONTEND_URL}/verify-email?token={token.token}"
    _deliver(
        'Verify your email',
        f"Hi {user.full_name or user.email},\n\nConfirm your email address by opening:\n{link}\n\n"
        f"The link expires in {settings.STOREFRONT['VERIFICATION_TOKEN_HOURS']} hour(s).",
        user.email,
    )
    logger.info(f"Verification email issued for user {user.id}")
    return token


def send_password_reset_email(user):
    token = issue_token(user, VerificationToken.PURPOSE_PASSWORD_RESET, settings.STOREFRONT['PASSWORD_RESET_TOKEN_HOURS'])
    link = f"{settings.FRONTEND_URL}/reset-password/confirm?token={token.token}"
    _deliver(
        'Reset your password',
        f"Hi {user.full_name or user.email},\n\nReset your password by opening:\n{link}\n\n"
        "If you did not request this, ignore this email.",
        user.email,
    )
    logger.info(f"Password reset email issued for user {user.id}")
    return token
