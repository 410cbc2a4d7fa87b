import secrets

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)

    def deleted(self):
        return self.filter(deleted_at__isnull=False)


class SoftDeleteModel(models.Model):
    """Rows are hidden by setting deleted_at instead of being removed"""
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at'])

    def restore(self):
        self.deleted_at = None
        self.save(update_fields=['deleted_at'])


class User(AbstractUser):
    """Storefront account: shoppers, store admins and super admins"""
    ROLE_SUPER_ADMIN = 'SUPER_ADMIN'
    ROLE_STORE_ADMIN = 'STORE_ADMIN'
    ROLE_USER = 'USER'
    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_STORE_ADMIN, 'Store Admin'),
        (ROLE_USER, 'User'),
    ]

    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=200, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER, db_index=True)
    store = models.ForeignKey('stores.Store', on_delete=models.SET_NULL, null=True, blank=True, related_name='admins')
    is_verified = models.BooleanField(default=False)
    referral_code = models.CharField(max_length=20, unique=True, null=True, blank=True)
    referred_by = models.ForeignKey('self', on_delete=models.SET_NULL, null=True, blank=True, related_name='referrals')
    profile_photo = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def is_super_admin(self):
        return self.role == self.ROLE_SUPER_ADMIN

    @property
    def is_store_admin(self):
        return self.role == self.ROLE_STORE_ADMIN

    @property
    def is_admin(self):
        return self.role in (self.ROLE_SUPER_ADMIN, self.ROLE_STORE_ADMIN)

    def ensure_referral_code(self):
        if self.referral_code:
            return self.referral_code
        code = f"REF-{secrets.token_hex(4).upper()}"
        while User.objects.filter(referral_code=code).exists():
            code = f"REF-{secrets.token_hex(4).upper()}"
        self.referral_code = code
        self.save(update_fields=['referral_code'])
        return code


class UserAddress(models.Model):
    """Shipping addresses; at most one per user is marked main"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='addresses')
    label = models.CharField(max_length=100, blank=True)
    full_address = models.TextField()
    latitude = models.FloatField()
    longitude = models.FloatField()
    recipient_name = models.CharField(max_length=200)
    recipient_phone = models.CharField(max_length=30, blank=True)
    is_main = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_addresses'
        ordering = ['-is_main', '-created_at']

    def __str__(self):
        return f"{self.recipient_name} - {self.label or self.full_address[:30]}"


class VerificationToken(models.Model):
    """Single-use tokens for email verification and password reset"""
    PURPOSE_EMAIL_VERIFY = 'EMAIL_VERIFY'
    PURPOSE_PASSWORD_RESET = 'PASSWORD_RESET'
    PURPOSE_CHOICES = [
        (PURPOSE_EMAIL_VERIFY, 'Email Verification'),
        (PURPOSE_PASSWORD_RESET, 'Password Reset'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='tokens')
    token = models.CharField(max_length=100, unique=True)
    purpose = models.CharField(max_length=20, choices=PURPOSE_CHOICES)
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'verification_tokens'

    def is_usable(self):
        return self.used_at is None and self.expires_at > timezone.now()


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('restore', 'Restore'),
        ('stock_in', 'Stock In'),
        ('stock_out', 'Stock Out'),
        ('order_create', 'Order Created'),
        ('order_status', 'Order Status Changed'),
        ('order_cancel', 'Order Cancelled'),
        ('payment_proof', 'Payment Proof Uploaded'),
        ('admin_assign', 'Store Admin Assigned'),
        ('admin_remove', 'Store Admin Removed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
        ]
