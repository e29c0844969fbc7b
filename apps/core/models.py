import uuid

from django.db import models
from django.utils.translation import gettext_lazy as _


class UUIDModel(models.Model):
    """
    UUID primary key to prevent ID enumeration
    """
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name='Universal ID'
    )

    class Meta:
        abstract = True

    @property
    def short_id(self):
        """Short identifier for logging and display"""
        return str(self.id)[:8]


class TimeStampedModel(models.Model):
    """
    Timestamp tracking with the acting user recorded as an opaque id.

    Identities live in the external user directory, so ``created_by`` and
    ``updated_by`` hold the actor's id rather than a foreign key.
    """
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name='Creation Timestamp'
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Last Modification Timestamp'
    )
    created_by = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name='Created By'
    )
    updated_by = models.CharField(
        max_length=100,
        blank=True,
        default='',
        verbose_name='Last Modified By'
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class BaseModel(UUIDModel, TimeStampedModel):
    """
    Base model for library records
    """

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.__class__.__name__}[{self.short_id}]"


class AuditLog(models.Model):
    """Audit logging model matching the AuditService"""

    class AuditSeverity(models.TextChoices):
        DEBUG = 'DEBUG', 'Debug'
        INFO = 'INFO', 'Info'
        WARNING = 'WARNING', 'Warning'
        ERROR = 'ERROR', 'Error'
        CRITICAL = 'CRITICAL', 'Critical'

    class AuditAction(models.TextChoices):
        CREATE = 'CREATE', 'Create'
        UPDATE = 'UPDATE', 'Update'
        DELETE = 'DELETE', 'Delete'
        REQUEST = 'REQUEST', 'Request'
        APPROVE = 'APPROVE', 'Approve'
        REJECT = 'REJECT', 'Reject'
        CANCEL = 'CANCEL', 'Cancel'
        RETURN = 'RETURN', 'Return'
        RECONCILE = 'RECONCILE', 'Reconcile'

    class AuditStatus(models.TextChoices):
        SUCCESS = 'SUCCESS', 'Success'
        FAILED = 'FAILED', 'Failed'

    # Basic Information
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    # User Information (as strings, not foreign keys)
    user_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    user_role = models.CharField(max_length=20, null=True, blank=True)

    # Action Information
    action = models.CharField(max_length=50, choices=AuditAction.choices, db_index=True)
    severity = models.CharField(max_length=20, choices=AuditSeverity.choices, default=AuditSeverity.INFO)
    status = models.CharField(max_length=20, choices=AuditStatus.choices, default=AuditStatus.SUCCESS)

    # Resource Information
    resource_type = models.CharField(max_length=100, db_index=True)
    resource_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    resource_name = models.CharField(max_length=500, null=True, blank=True)

    # Changes and State
    changes = models.JSONField(null=True, blank=True)
    previous_state = models.JSONField(null=True, blank=True)
    new_state = models.JSONField(null=True, blank=True)

    # Request Information
    request_id = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    user_ip = models.GenericIPAddressField(null=True, blank=True)
    request_method = models.CharField(max_length=10, null=True, blank=True)
    request_path = models.CharField(max_length=500, null=True, blank=True)

    # Error Information
    error_message = models.TextField(null=True, blank=True)

    # Extra data
    extra_data = models.JSONField(null=True, blank=True)

    class Meta:
        db_table = 'audit_logs'
        verbose_name = _("Audit Log")
        verbose_name_plural = _("Audit Logs")
        indexes = [
            models.Index(fields=['timestamp', 'action']),
            models.Index(fields=['resource_type', 'resource_id']),
        ]
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.timestamp} - {self.user_id or 'System'} - {self.action} - {self.resource_type}"
