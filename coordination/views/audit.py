from django.db.models import Q
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import AuditLog
from coordination.permissions import RequiresPermission
from coordination.views.common import iso, paginate


class AuditQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    action = serializers.ChoiceField(choices=[c for c, _ in AuditLog.ACTION_CHOICES], required=False)
    entityType = serializers.CharField(required=False)
    entityId = serializers.CharField(required=False)
    userId = serializers.CharField(required=False)
    success = serializers.BooleanField(required=False, allow_null=True, default=None)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    q = serializers.CharField(required=False, allow_blank=True)


def _serialize(row: AuditLog) -> dict:
    return {
        'id': row.id,
        'userId': row.user_id,
        'userName': row.user_name,
        'userRole': row.user_role,
        'action': row.action,
        'entityType': row.entity_type,
        'entityId': row.entity_id,
        'description': row.description,
        'changes': row.changes,
        'ipAddress': row.ip_address,
        'userAgent': row.user_agent,
        'facilityId': row.facility_id,
        'success': row.success,
        'errorMessage': row.error_message,
        'timestamp': iso(row.timestamp),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, RequiresPermission('audit.read')])
def audit_logs(request):
    """Audit trail, newest first.

    Query: action, entityType, entityId, userId, success, start/end
    (ISO datetimes) and ``q`` matched against description, user name and
    entity id.
    """
    # Accept the dashboard's from/to aliases
    params = request.query_params.copy()
    for alias, key in (('from', 'start'), ('to', 'end')):
        if alias in params and key not in params:
            params[key] = params[alias]
    qs_params = AuditQuerySerializer(data=params)
    qs_params.is_valid(raise_exception=True)
    vd = qs_params.validated_data

    qs = AuditLog.objects.all()
    for key, field in (('action', 'action'), ('entityType', 'entity_type'),
                       ('entityId', 'entity_id'), ('userId', 'user_id')):
        if vd.get(key):
            qs = qs.filter(**{field: vd[key]})
    if vd.get('success') is not None:
        qs = qs.filter(success=vd['success'])
    if vd.get('start'):
        qs = qs.filter(timestamp__gte=vd['start'])
    if vd.get('end'):
        qs = qs.filter(timestamp__lte=vd['end'])
    term = (vd.get('q') or '').strip()
    if term:
        qs = qs.filter(Q(description__icontains=term) | Q(user_name__icontains=term) | Q(entity_id__icontains=term))

    rows, pagination = paginate(qs.order_by('-timestamp'), vd['page'], vd.get('limit'))
    return Response({'logs': [_serialize(r) for r in rows], 'pagination': pagination})
