from django.db import transaction
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import SystemAlert
from coordination.permissions import request_principal
from coordination.serializers.common import PageQuerySerializer
from coordination.services.alerts import format_alert, visible_alerts
from coordination.services.audit import audit_failures, log_action
from coordination.views.common import get_or_404, paginate


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def alerts(request):
    principal = request_principal(request)
    pq = PageQuerySerializer(data=request.query_params)
    pq.is_valid(raise_exception=True)
    qs = visible_alerts(SystemAlert.objects.all(), principal)
    params = request.query_params
    if params.get('unacknowledged') in ('1', 'true', 'True'):
        qs = qs.filter(acknowledged_at__isnull=True)
    if params.get('severity'):
        qs = qs.filter(severity=params['severity'])
    unread = qs.filter(acknowledged_at__isnull=True).count()
    rows, pagination = paginate(qs, pq.validated_data['page'], pq.validated_data.get('limit'))
    return Response({'alerts': [format_alert(a) for a in rows], 'unacknowledged': unread, 'pagination': pagination})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@audit_failures('ALERT')
def acknowledge(request, pk: str):
    principal = request_principal(request)
    with transaction.atomic():
        a = get_or_404(visible_alerts(SystemAlert.objects.select_for_update(), principal), pk, 'Alert')
        if a.acknowledged_at is None:
            a.acknowledged_by_id = principal.id
            a.acknowledged_at = timezone.now()
            a.save(update_fields=['acknowledged_by', 'acknowledged_at'])
            log_action(principal=principal, action='UPDATE', entity_type='ALERT', entity_id=a.id,
                       description=f"Acknowledged alert {a.alert_number}", request=request)
    return Response(format_alert(a))
