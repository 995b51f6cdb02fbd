"""
Hospital directory, detail and bed-capacity endpoints.

Writes need ``hospitals.write``; a hospital administrator may also edit
their own hospital, and ward staff (doctors, nurses) may report bed
availability for the hospital they work at.
"""
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import County, Hospital
from coordination.permissions import ModuleAccess, can_access_module, has_permission, request_principal, require
from coordination.serializers.common import PageQuerySerializer
from coordination.serializers.facility import (
    CAPACITY_FIELD_MAP,
    HOSPITAL_FIELD_MAP,
    STATUS_FIELD_MAP,
    CapacitySerializer,
    HospitalSerializer,
    HospitalStatusSerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.scoping import ensure_county_access, scope_by_county
from coordination.views.common import get_or_404, iso, paginate

CAPACITY_REPORTER_ROLES = {'HOSPITAL_ADMIN', 'DOCTOR', 'NURSE'}


def _capacity(h: Hospital) -> dict:
    return {
        'totalBeds': h.total_beds,
        'availableBeds': h.available_beds,
        'icuBeds': h.icu_beds,
        'availableIcuBeds': h.available_icu_beds,
        'emergencyBeds': h.emergency_beds,
        'availableEmergencyBeds': h.available_emergency_beds,
        'occupancyRate': round((h.total_beds - h.available_beds) / h.total_beds * 100, 1) if h.total_beds else 0,
        'acceptingPatients': h.accepting_patients,
        'lastBedUpdate': iso(h.last_bed_update),
    }


def _serialize(h: Hospital, *, detail: bool = False) -> dict:
    data = {
        'id': h.id,
        'name': h.name,
        'code': h.code,
        'mflCode': h.mfl_code,
        'countyId': h.county_id,
        'countyName': h.county.name if h.county_id else None,
        'level': h.level,
        'type': h.hospital_type,
        'ownership': h.ownership,
        'subCounty': h.sub_county,
        'phone': h.phone,
        'emergencyPhone': h.emergency_phone,
        'shaContracted': h.sha_contracted,
        'hasAmbulance': h.has_ambulance,
        'operationalStatus': h.operational_status,
        'isActive': h.is_active,
        'capacity': _capacity(h),
    }
    if detail:
        data.update({
            'address': h.address,
            'coordinates': h.coordinates,
            'email': h.email,
            'shaFacilityCode': h.sha_facility_code,
            'services': h.services,
            'departments': [
                {'id': d.id, 'name': d.name, 'type': d.department_type,
                 'totalBeds': d.total_beds, 'availableBeds': d.available_beds}
                for d in h.departments.all()
            ],
        })
    return data


def _visible(principal):
    return scope_by_county(Hospital.objects.select_related('county'), principal)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
@audit_failures('HOSPITAL')
def hospitals(request):
    principal = request_principal(request)
    if request.method == 'GET':
        params = request.query_params
        qs = _visible(principal)
        if params.get('countyId'):
            qs = qs.filter(county_id=params['countyId'])
        if params.get('level'):
            qs = qs.filter(level=params['level'])
        if params.get('accepting') in ('1', 'true', 'True'):
            qs = qs.filter(accepting_patients=True, is_active=True)
        search = (params.get('search') or '').strip()
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(code__icontains=search) | Q(mfl_code__icontains=search))
        pq = PageQuerySerializer(data=params)
        pq.is_valid(raise_exception=True)
        rows, pagination = paginate(qs.order_by('name'), pq.validated_data['page'], pq.validated_data.get('limit'))
        return Response({'hospitals': [_serialize(h) for h in rows], 'pagination': pagination})

    require(request, 'hospitals.write')
    s = HospitalSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if not County.objects.filter(pk=vd['countyId']).exists():
        raise NotFound('County not found')
    ensure_county_access(principal, vd['countyId'], 'Access denied - can only add hospitals in your county')

    fields = {HOSPITAL_FIELD_MAP[k]: (dict(v) if k == 'coordinates' and v else v) for k, v in vd.items()}
    fields['available_beds'] = fields.get('total_beds', 0)
    fields['available_icu_beds'] = fields.get('icu_beds', 0)
    fields['available_emergency_beds'] = fields.get('emergency_beds', 0)
    with transaction.atomic():
        h = Hospital.objects.create(last_bed_update=timezone.now(), **fields)
        log_action(principal=principal, action='CREATE', entity_type='HOSPITAL', entity_id=h.id,
                   description=f"Created hospital {h.name}", changes={'code': h.code, 'level': h.level},
                   request=request)
    return Response(_serialize(h, detail=True), status=status.HTTP_201_CREATED)


def _can_edit(principal, h: Hospital) -> bool:
    if has_permission(principal, 'hospitals.write'):
        return True
    return principal.role == 'HOSPITAL_ADMIN' and principal.hospital_id == h.id


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
@audit_failures('HOSPITAL')
def hospital_detail(request, pk: str):
    principal = request_principal(request)
    h = get_or_404(_visible(principal).prefetch_related('departments'), pk, 'Hospital')
    if request.method == 'GET':
        return Response(_serialize(h, detail=True))

    if not _can_edit(principal, h):
        raise PermissionDenied('Insufficient permissions')
    s = HospitalSerializer(h, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if 'countyId' in vd:
        ensure_county_access(principal, vd['countyId'], 'Access denied - can only move hospitals within your county')
        if not County.objects.filter(pk=vd['countyId']).exists():
            raise NotFound('County not found')

    changes = {}
    with transaction.atomic():
        for k, v in vd.items():
            field = HOSPITAL_FIELD_MAP[k]
            v = dict(v) if k == 'coordinates' and v else v
            changes[k] = {'from': str(getattr(h, field)), 'to': str(v)}
            setattr(h, field, v)
        h.save()
        log_action(principal=principal, action='UPDATE', entity_type='HOSPITAL', entity_id=h.id,
                   description=f"Updated hospital {h.name}", changes=changes, request=request)
    return Response(_serialize(h, detail=True))


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
@audit_failures('HOSPITAL')
def hospital_capacity(request, pk: str):
    principal = request_principal(request)
    own = principal.hospital_id == pk and principal.role in CAPACITY_REPORTER_ROLES
    if not (own or can_access_module(principal, 'hospitals')):
        raise PermissionDenied('Insufficient permissions')
    h = get_or_404(_visible(principal), pk, 'Hospital')
    if request.method == 'GET':
        return Response({'hospitalId': h.id, 'name': h.name, **_capacity(h)})

    if not (has_permission(principal, 'hospitals.write') or own):
        raise PermissionDenied('Insufficient permissions')
    s = CapacitySerializer(h, data=request.data)
    s.is_valid(raise_exception=True)
    with transaction.atomic():
        for k, v in s.validated_data.items():
            setattr(h, CAPACITY_FIELD_MAP[k], v)
        h.last_bed_update = timezone.now()
        h.save()
        log_action(principal=principal, action='UPDATE', entity_type='HOSPITAL', entity_id=h.id,
                   description=f"Updated bed capacity for {h.name}",
                   changes={k: v for k, v in s.validated_data.items()}, request=request)
    return Response({'hospitalId': h.id, 'name': h.name, **_capacity(h)})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
@audit_failures('HOSPITAL')
def hospital_status(request, pk: str):
    """Operational status board entry; closing a hospital stops it accepting patients."""
    principal = request_principal(request)
    own = principal.role == 'HOSPITAL_ADMIN' and principal.hospital_id == pk
    if not (own or can_access_module(principal, 'hospitals')):
        raise PermissionDenied('Insufficient permissions')
    h = get_or_404(_visible(principal), pk, 'Hospital')
    if request.method == 'GET':
        return Response({'hospitalId': h.id, 'name': h.name, 'operationalStatus': h.operational_status,
                         'isActive': h.is_active, **_capacity(h)})

    if not _can_edit(principal, h):
        raise PermissionDenied('Insufficient permissions')
    s = HospitalStatusSerializer(h, data=request.data)
    s.is_valid(raise_exception=True)
    changes = {}
    with transaction.atomic():
        for k, v in s.validated_data.items():
            field = STATUS_FIELD_MAP[k]
            changes[k] = {'from': getattr(h, field), 'to': v}
            setattr(h, field, v)
        h.last_bed_update = timezone.now()
        h.save()
        log_action(principal=principal, action='UPDATE', entity_type='HOSPITAL', entity_id=h.id,
                   description=f"Updated operational status for {h.name}", changes=changes, request=request)
    return Response({'hospitalId': h.id, 'name': h.name, 'operationalStatus': h.operational_status,
                     'isActive': h.is_active, **_capacity(h)})
