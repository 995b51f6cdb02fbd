"""
Emergency incident endpoints.

County administrators only see and touch incidents in their county;
hospital administrators those in their hospital's county.  Creating an
incident fans out :class:`~coordination.models.SystemAlert` rows to the
county's hospitals and dispatch centres.
"""
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import County, Emergency
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.emergency import (
    EmergencyBulkUpdateSerializer,
    EmergencyCreateSerializer,
    EmergencyListQuerySerializer,
    EmergencyUpdateSerializer,
    to_model_fields,
)
from coordination.services.alerts import notify_emergency
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import stamped_number
from coordination.services.scoping import ensure_county_access, scope_by_county, scoped_county_id
from coordination.views.common import get_or_404, iso, paginate


def _serialize(e: Emergency) -> dict:
    return {
        'id': e.id,
        'emergencyNumber': e.emergency_number,
        'type': e.emergency_type,
        'severity': e.severity,
        'status': e.status,
        'countyId': e.county_id,
        'county': {'name': e.county.name, 'code': e.county.code} if e.county_id else None,
        'location': e.location,
        'coordinates': e.coordinates,
        'description': e.description,
        'cause': e.cause,
        'estimatedCasualties': e.estimated_casualties,
        'reportedBy': e.reported_by,
        'reporterPhone': e.reporter_phone,
        'reportedAt': iso(e.reported_at),
        'resolvedAt': iso(e.resolved_at),
        'dispatchCount': getattr(e, 'dispatch_count', None),
    }


def _apply_status_side_effects(fields: dict) -> dict:
    if fields.get('status') == 'RESOLVED':
        fields['resolved_at'] = timezone.now()
    return fields


@api_view(['GET', 'POST', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('emergencies')])
@audit_failures('EMERGENCY')
def emergencies(request):
    if request.method == 'POST':
        return _create(request)
    if request.method == 'PATCH':
        return _bulk_update(request)
    return _list(request)


def _list(request):
    principal = request_principal(request)
    q = EmergencyListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data

    qs = Emergency.objects.select_related('county')
    for key, field in (('status', 'status'), ('countyId', 'county_id'),
                       ('type', 'emergency_type'), ('severity', 'severity')):
        if vd.get(key):
            qs = qs.filter(**{field: vd[key]})
    qs = scope_by_county(qs, principal).order_by('-reported_at')

    rows, pagination = paginate(qs, vd['page'], vd.get('limit'))
    log_action(principal=principal, action='READ', entity_type='EMERGENCY', entity_id='LIST',
               description='Viewed emergencies list with filters',
               changes={k: str(v) for k, v in vd.items()}, request=request)
    return Response({'emergencies': [_serialize(e) for e in rows], 'pagination': pagination})


def _create(request):
    principal = require(request, 'emergencies.write')
    s = EmergencyCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    county = County.objects.filter(pk=vd['countyId']).first()
    if county is None:
        raise NotFound('County not found')
    ensure_county_access(principal, county.id,
                         'Access denied - can only create emergencies in your county')

    with transaction.atomic():
        e = Emergency.objects.create(
            emergency_number=stamped_number('EMG'),
            status='REPORTED',
            reported_at=timezone.now(),
            **{k: v for k, v in to_model_fields(vd).items() if v not in ('', None)},
        )
        log_action(principal=principal, action='CREATE', entity_type='EMERGENCY', entity_id=e.id,
                   description=f"Created emergency {e.emergency_number}",
                   changes={'type': e.emergency_type, 'severity': e.severity,
                            'location': e.location, 'county': county.name},
                   request=request)
    notify_emergency(e)
    return Response(_serialize(e), status=status.HTTP_201_CREATED)


def _bulk_update(request):
    principal = require(request, 'emergencies.write')
    s = EmergencyBulkUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    ids = list(dict.fromkeys(s.validated_data['ids']))
    data = s.validated_data['data']

    found = list(Emergency.objects.filter(pk__in=ids))
    if len(found) != len(ids):
        raise NotFound('One or more emergencies not found')
    allowed = scoped_county_id(principal)
    if allowed and any(e.county_id != allowed for e in found):
        raise PermissionDenied('Access denied to one or more emergencies')
    if 'countyId' in data:
        ensure_county_access(principal, data['countyId'], 'Access denied - can only move emergencies to your county')
        if not County.objects.filter(pk=data['countyId']).exists():
            raise NotFound('County not found')

    fields = _apply_status_side_effects(to_model_fields(data))
    with transaction.atomic():
        count = Emergency.objects.filter(pk__in=ids).update(updated_at=timezone.now(), **fields) if fields else 0
        log_action(principal=principal, action='UPDATE', entity_type='EMERGENCY', entity_id='BULK',
                   description=f"Bulk updated {count} emergencies",
                   changes={'updatedFields': sorted(data.keys()), 'affectedCount': count},
                   request=request)
    return Response({'message': f"Successfully updated {count} emergencies", 'count': count})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('emergencies')])
@audit_failures('EMERGENCY')
def emergency_detail(request, pk: str):
    principal = request_principal(request)
    e = get_or_404(scope_by_county(Emergency.objects.select_related('county'), principal), pk, 'Emergency')

    if request.method == 'GET':
        log_action(principal=principal, action='READ', entity_type='EMERGENCY', entity_id=e.id,
                   description=f"Viewed emergency {e.emergency_number}", request=request)
        return Response(_serialize(e))

    require(request, 'emergencies.write')
    s = EmergencyUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = s.validated_data
    if 'countyId' in data:
        ensure_county_access(principal, data['countyId'], 'Access denied - can only move emergencies to your county')
        if not County.objects.filter(pk=data['countyId']).exists():
            raise NotFound('County not found')

    fields = _apply_status_side_effects(to_model_fields(data))
    before = {f: getattr(e, f) for f in fields if f != 'resolved_at'}
    with transaction.atomic():
        for f, v in fields.items():
            setattr(e, f, v)
        e.save()
        log_action(principal=principal, action='UPDATE', entity_type='EMERGENCY', entity_id=e.id,
                   description=f"Updated emergency {e.emergency_number}",
                   changes={f: {'from': str(before[f]), 'to': str(fields[f])} for f in before},
                   request=request)
    e.refresh_from_db()
    return Response(_serialize(e))
