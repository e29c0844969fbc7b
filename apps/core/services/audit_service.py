# apps/core/services/audit_service.py
import datetime
import decimal
import logging
import uuid
from typing import Optional, Dict, Any

from django.db import models, transaction
from django.http import HttpRequest

from apps.core.models import AuditLog

logger = logging.getLogger('audit_service')


class AuditService:
    """
    Audit logging service that matches the AuditLog model.

    Audit writes never break the operation being audited: failures are
    logged and ``None`` is returned.
    """

    @classmethod
    def get_client_ip(cls, request: HttpRequest) -> Optional[str]:
        """Extract client IP address"""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')

    @classmethod
    def get_actor_info(cls, actor) -> Dict[str, Any]:
        """Extract actor information matching AuditLog model fields"""
        if actor is None:
            return {'user_id': None, 'user_role': None}

        return {
            'user_id': str(actor.user_id)[:100],
            'user_role': actor.role,
        }

    @classmethod
    def create_audit_entry(
        cls,
        action: str,
        resource_type: str,
        actor=None,
        request: Optional[HttpRequest] = None,
        instance=None,
        resource_id: Optional[str] = None,
        resource_name: Optional[str] = None,
        changes: Optional[Dict] = None,
        previous_state: Optional[Dict] = None,
        new_state: Optional[Dict] = None,
        severity: str = AuditLog.AuditSeverity.INFO,
        status: str = AuditLog.AuditStatus.SUCCESS,
        error_message: Optional[str] = None,
        extra_data: Optional[Dict] = None,
    ) -> Optional[AuditLog]:
        """
        Create an audit log entry
        """
        try:
            request_id = getattr(request, 'request_id', None) or uuid.uuid4().hex

            request_path = None
            request_method = None
            user_ip = None

            if request is not None:
                request_path = request.path[:500]
                request_method = request.method[:10]
                user_ip = cls.get_client_ip(request)

            if instance is not None and not resource_id:
                resource_id = str(getattr(instance, 'pk', ''))[:100]

            if instance is not None and not resource_name:
                resource_name = str(instance)[:500]

            if changes is None and previous_state and new_state:
                changes = cls._calculate_changes(previous_state, new_state)

            audit_data = {
                **cls.get_actor_info(actor),
                'action': action,
                'severity': severity,
                'status': status,
                'resource_type': resource_type,
                'resource_id': str(resource_id) if resource_id else None,
                'resource_name': resource_name,
                'changes': changes,
                'previous_state': previous_state,
                'new_state': new_state,
                'request_id': request_id,
                'user_ip': user_ip,
                'request_method': request_method,
                'request_path': request_path,
                'error_message': error_message,
                'extra_data': extra_data or {},
            }
            audit_data = {k: v for k, v in audit_data.items() if v is not None}

            with transaction.atomic():
                return AuditLog.objects.create(**audit_data)

        except Exception:
            logger.error(
                "Failed to create audit entry: action=%s resource_type=%s",
                action, resource_type,
                exc_info=True,
            )
            return None

    @classmethod
    def _calculate_changes(cls, old_state: Dict, new_state: Dict) -> Optional[Dict]:
        """Calculate changes between two states"""
        changes = {}
        for key in set(old_state) | set(new_state):
            old_val = old_state.get(key)
            new_val = new_state.get(key)
            if old_val != new_val:
                changes[key] = {'old': old_val, 'new': new_val}
        return changes or None

    # Convenience methods for common operations
    @classmethod
    def log_creation(cls, actor, instance, request=None, **kwargs):
        """Log creation of an instance"""
        return cls.create_audit_entry(
            action=AuditLog.AuditAction.CREATE,
            resource_type=instance.__class__.__name__,
            actor=actor,
            request=request,
            instance=instance,
            new_state=cls.serialize_instance(instance),
            **kwargs
        )

    @classmethod
    def log_update(cls, actor, instance, previous_state=None, request=None, **kwargs):
        """Log update of an instance"""
        return cls.create_audit_entry(
            action=AuditLog.AuditAction.UPDATE,
            resource_type=instance.__class__.__name__,
            actor=actor,
            request=request,
            instance=instance,
            previous_state=previous_state,
            new_state=cls.serialize_instance(instance),
            **kwargs
        )

    @classmethod
    def log_deletion(cls, actor, instance, previous_state=None, request=None, **kwargs):
        """Log deletion of an instance"""
        return cls.create_audit_entry(
            action=AuditLog.AuditAction.DELETE,
            resource_type=instance.__class__.__name__,
            actor=actor,
            request=request,
            resource_id=str(previous_state.get('id')) if previous_state else None,
            resource_name=str(instance),
            previous_state=previous_state,
            **kwargs
        )

    @classmethod
    def log_transition(cls, action, actor, instance, previous_state=None, request=None, **kwargs):
        """Log a state transition of an instance"""
        return cls.create_audit_entry(
            action=action,
            resource_type=instance.__class__.__name__,
            actor=actor,
            request=request,
            instance=instance,
            previous_state=previous_state,
            new_state=cls.serialize_instance(instance),
            **kwargs
        )

    @classmethod
    def serialize_instance(cls, instance):
        """Serialize concrete fields of an instance to a JSON-safe dict"""
        if instance is None:
            return None

        data = {}
        for field in instance._meta.concrete_fields:
            value = getattr(instance, field.attname)
            if isinstance(value, (uuid.UUID, decimal.Decimal)):
                value = str(value)
            elif isinstance(value, (datetime.date, datetime.datetime)):
                value = value.isoformat()
            elif isinstance(value, models.Model):
                value = str(value.pk)
            data[field.name] = value
        return data
