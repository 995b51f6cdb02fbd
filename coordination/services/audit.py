import functools
import logging
from typing import Any, Dict, Optional

from django.db import transaction
from django.http import Http404
from rest_framework.exceptions import APIException

from coordination.models import AuditLog
from coordination.permissions import Principal, request_principal

logger = logging.getLogger(__name__)

METHOD_ACTIONS = {
    'GET': 'READ',
    'POST': 'CREATE',
    'PUT': 'UPDATE',
    'PATCH': 'UPDATE',
    'DELETE': 'DELETE',
}


def log_action(*, principal: Optional[Principal], action: str, entity_type: str, entity_id: Any,
               description: str, changes: Optional[Dict[str, Any]] = None, request=None,
               success: bool = True, error_message: Optional[str] = None) -> Optional[AuditLog]:
    """Write one audit row.  Never raises: a failed write is logged and ``None`` returned.

    The insert runs in its own savepoint so a failure leaves the caller's
    transaction usable.
    """
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                user_id=principal.id if principal else None,
                user_role=principal.role if principal else '',
                user_name=(principal.name if principal else '') or 'System',
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                description=description,
                changes=changes,
                ip_address=getattr(request, 'client_ip', None) if request is not None else None,
                user_agent=getattr(request, 'user_agent', '') if request is not None else '',
                facility_id=principal.hospital_id if principal else None,
                success=success,
                error_message=error_message,
            )
    except Exception:
        logger.exception("audit write failed: %s %s/%s", action, entity_type, entity_id)
        return None


def audit_failures(entity_type: str):
    """Record a failed audit row when a handler raises an unexpected error.

    API errors (401/403/400/404) are expected outcomes and pass through
    untouched; anything else is audited and re-raised so the exception
    handler can turn it into a 500.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(request, *args, **kwargs):
            try:
                return func(request, *args, **kwargs)
            except (APIException, Http404):
                raise
            except Exception as exc:
                method = request.method.upper()
                entity_id = kwargs.get('pk') or ('LIST' if method == 'GET' else 'NEW' if method == 'POST' else 'BULK')
                log_action(
                    principal=request_principal(request),
                    action=METHOD_ACTIONS.get(method, 'READ'),
                    entity_type=entity_type,
                    entity_id=entity_id,
                    description=f"Failed {method} {request.path}",
                    request=request,
                    success=False,
                    error_message=str(exc),
                )
                raise
        return wrapper
    return decorator
