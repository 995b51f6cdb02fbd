"""
Dispatch desk: incoming calls, ambulance assignment and the fleet.

Assigning an ambulance marks it DISPATCHED; completing or cancelling a
call returns it to AVAILABLE.
"""
import logging
from datetime import timedelta

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Ambulance, AuditLog, County, DispatchLog, Emergency, Hospital
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.dispatch import (
    AMBULANCE_FIELD_MAP,
    AmbulanceSerializer,
    DispatchCreateSerializer,
    DispatchListQuerySerializer,
    DispatchUpdateSerializer,
    LocationSerializer,
    MaintenanceSerializer,
    NearestQuerySerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.geo import ADVANCED_AMBULANCE_TYPES, needs_advanced, rank_by_distance
from coordination.services.numbering import yearly_number
from coordination.services.scoping import ensure_county_access, scope_by_county, scoped_county_id
from coordination.views.common import get_or_404, iso, paginate

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ['RECEIVED', 'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING']
RELEASE_STATUSES = {'COMPLETED', 'CANCELLED'}
SERVICE_INTERVAL = timedelta(days=90)


def _ambulance(a: Ambulance) -> dict:
    return {
        'id': a.id,
        'registrationNumber': a.registration_number,
        'callSign': a.call_sign,
        'type': a.ambulance_type,
        'status': a.status,
        'countyId': a.county_id,
        'hospitalId': a.hospital_id,
        'hospitalName': a.hospital.name if a.hospital_id else None,
        'currentLocation': a.current_location,
        'lastLocationUpdate': iso(a.last_location_update),
        'crewCapacity': a.crew_capacity,
        'lastMaintenance': iso(a.last_maintenance),
        'nextServiceDate': iso(a.next_service_date),
    }


def _serialize(d: DispatchLog) -> dict:
    return {
        'id': d.id,
        'dispatchNumber': d.dispatch_number,
        'emergencyId': d.emergency_id,
        'emergencyNumber': d.emergency.emergency_number if d.emergency_id else None,
        'ambulance': _ambulance(d.ambulance) if d.ambulance_id else None,
        'dispatcherId': d.dispatcher_id,
        'callerPhone': d.caller_phone,
        'callerName': d.caller_name,
        'callerLocation': d.caller_location,
        'emergencyType': d.emergency_type,
        'severity': d.severity,
        'description': d.description,
        'patientCount': d.patient_count,
        'coordinates': d.coordinates,
        'landmark': d.landmark,
        'status': d.status,
        'callReceived': iso(d.call_received),
        'dispatchedAt': iso(d.dispatched_at),
        'completedAt': iso(d.completed_at),
    }


def _visible_dispatches(principal):
    qs = DispatchLog.objects.select_related('emergency', 'ambulance', 'ambulance__hospital')
    county_id = scoped_county_id(principal)
    if county_id:
        qs = qs.filter(Q(emergency__county_id=county_id) | Q(ambulance__county_id=county_id))
    return qs


def _visible_ambulances(principal):
    return scope_by_county(Ambulance.objects.select_related('hospital'), principal)


def _placement(principal, county_id, hospital_id, message: str):
    """Resolve and scope-check where an ambulance is stationed; returns the hospital, if any."""
    hospital = None
    if hospital_id:
        hospital = Hospital.objects.filter(pk=hospital_id).first()
        if hospital is None:
            raise NotFound('Hospital not found')
        ensure_county_access(principal, hospital.county_id, message)
    if county_id:
        if not County.objects.filter(pk=county_id).exists():
            raise NotFound('County not found')
        if hospital is not None and hospital.county_id != county_id:
            raise ValidationError({'hospitalId': ['Hospital is not in the selected county']})
    return hospital


def _assignable(principal, ambulance_id: str) -> Ambulance:
    a = _visible_ambulances(principal).select_for_update(of=('self',)).filter(pk=ambulance_id).first()
    if a is None:
        raise NotFound('Ambulance not found')
    if a.status != 'AVAILABLE':
        raise ValidationError({'ambulanceId': [f"Ambulance {a.registration_number} is {a.status}"]})
    return a


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('dispatch')])
@audit_failures('DISPATCH')
def dispatch(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = DispatchListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible_dispatches(principal)
        active = qs.filter(status__in=ACTIVE_STATUSES).order_by('-call_received')
        recent = qs.exclude(status__in=ACTIVE_STATUSES)
        if vd.get('status'):
            recent = qs.filter(status=vd['status'])
        rows, pagination = paginate(recent.order_by('-call_received'), vd['page'], vd.get('limit'))
        available = _visible_ambulances(principal).filter(status='AVAILABLE').count()
        return Response({
            'activeCalls': [_serialize(d) for d in active],
            'recentDispatches': [_serialize(d) for d in rows],
            'availableAmbulances': available,
            'pagination': pagination,
        })

    require(request, 'dispatch.write')
    s = DispatchCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    emergency = None
    if vd.get('emergencyId'):
        emergency = Emergency.objects.filter(pk=vd['emergencyId']).first()
        if emergency is None:
            raise NotFound('Emergency not found')
        ensure_county_access(principal, emergency.county_id, 'Access denied - emergency is outside your county')

    now = timezone.now()
    with transaction.atomic():
        ambulance = _assignable(principal, vd['ambulanceId']) if vd.get('ambulanceId') else None
        d = DispatchLog.objects.create(
            dispatch_number=yearly_number('DISP', DispatchLog, 'dispatch_number'),
            emergency=emergency,
            ambulance=ambulance,
            dispatcher_id=principal.id,
            caller_phone=vd['callerPhone'],
            caller_name=vd.get('callerName') or None,
            caller_location=vd['callerLocation'],
            emergency_type=vd['emergencyType'],
            severity=vd['severity'],
            description=vd['description'],
            patient_count=vd['patientCount'],
            coordinates=dict(vd['coordinates']) if vd.get('coordinates') else None,
            landmark=vd.get('landmark', ''),
            status='DISPATCHED' if ambulance else 'RECEIVED',
            call_received=now,
            dispatched_at=now if ambulance else None,
        )
        if ambulance:
            ambulance.status = 'DISPATCHED'
            ambulance.save(update_fields=['status', 'updated_at'])
        if emergency and ambulance and emergency.status == 'REPORTED':
            emergency.status = 'DISPATCHED'
            emergency.save(update_fields=['status', 'updated_at'])
        log_action(principal=principal, action='CREATE', entity_type='DISPATCH', entity_id=d.id,
                   description=f"Logged dispatch call {d.dispatch_number}",
                   changes={'severity': d.severity, 'ambulanceId': d.ambulance_id}, request=request)
    return Response(_serialize(d), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('dispatch')])
@audit_failures('DISPATCH')
def dispatch_detail(request, pk: str):
    principal = request_principal(request)
    d = get_or_404(_visible_dispatches(principal), pk, 'Dispatch')
    if request.method == 'GET':
        return Response(_serialize(d))

    require(request, 'dispatch.write')
    s = DispatchUpdateSerializer(d, data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    changes = {}
    now = timezone.now()
    with transaction.atomic():
        if vd.get('emergencyId') and vd['emergencyId'] != d.emergency_id:
            emergency = Emergency.objects.filter(pk=vd['emergencyId']).first()
            if emergency is None:
                raise NotFound('Emergency not found')
            ensure_county_access(principal, emergency.county_id, 'Access denied - emergency is outside your county')
            changes['emergencyId'] = {'from': d.emergency_id, 'to': emergency.id}
            d.emergency = emergency

        if vd.get('ambulanceId') and vd['ambulanceId'] != d.ambulance_id:
            if d.status in RELEASE_STATUSES:
                raise ValidationError({'ambulanceId': [f"Dispatch is already {d.status}"]})
            ambulance = _assignable(principal, vd['ambulanceId'])
            if d.ambulance_id:
                Ambulance.objects.filter(pk=d.ambulance_id).update(status='AVAILABLE', updated_at=now)
            changes['ambulanceId'] = {'from': d.ambulance_id, 'to': ambulance.id}
            ambulance.status = 'DISPATCHED'
            ambulance.save(update_fields=['status', 'updated_at'])
            d.ambulance = ambulance
            if d.status == 'RECEIVED' and 'status' not in vd:
                vd['status'] = 'DISPATCHED'
            d.dispatched_at = d.dispatched_at or now

        new = vd.get('status')
        if new and new != d.status:
            if new == 'DISPATCHED' and not d.ambulance_id:
                raise ValidationError({'status': ['Assign an ambulance before dispatching']})
            changes['status'] = {'from': d.status, 'to': new}
            d.status = new
            if new == 'DISPATCHED':
                d.dispatched_at = d.dispatched_at or now
            if new in RELEASE_STATUSES:
                d.completed_at = now
                if d.ambulance_id:
                    Ambulance.objects.filter(pk=d.ambulance_id).update(status='AVAILABLE', updated_at=now)
            elif d.ambulance_id and new in ('EN_ROUTE', 'TRANSPORTING'):
                Ambulance.objects.filter(pk=d.ambulance_id).update(status=new, updated_at=now)
            elif d.ambulance_id and new == 'ON_SCENE':
                Ambulance.objects.filter(pk=d.ambulance_id).update(status='AT_SCENE', updated_at=now)
        d.save()
        action = 'CANCEL' if new == 'CANCELLED' else 'UPDATE'
        log_action(principal=principal, action=action, entity_type='DISPATCH', entity_id=d.id,
                   description=f"Updated dispatch {d.dispatch_number}", changes=changes, request=request)
    d = get_or_404(_visible_dispatches(principal), pk, 'Dispatch')
    return Response(_serialize(d))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('ambulances')])
@audit_failures('AMBULANCE')
def ambulances(request):
    principal = request_principal(request)
    if request.method == 'GET':
        qs = _visible_ambulances(principal)
        params = request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('countyId'):
            qs = qs.filter(county_id=params['countyId'])
        if params.get('hospitalId'):
            qs = qs.filter(hospital_id=params['hospitalId'])
        data = [_ambulance(a) for a in qs]
        return Response({
            'ambulances': data,
            'total': len(data),
            'available': sum(1 for a in data if a['status'] == 'AVAILABLE'),
        })

    require(request, 'ambulances.write')
    s = AmbulanceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    fields = {AMBULANCE_FIELD_MAP[k]: v for k, v in vd.items()}
    message = 'Access denied - can only register ambulances in your county'
    hospital = _placement(principal, fields.get('county_id'), fields.get('hospital_id'), message)
    if hospital is not None:
        fields.setdefault('county_id', hospital.county_id)
    fields.setdefault('county_id', principal.county_id)
    if fields.get('county_id') and not County.objects.filter(pk=fields['county_id']).exists():
        raise NotFound('County not found')
    ensure_county_access(principal, fields.get('county_id'), 'Access denied - can only register ambulances in your county')
    with transaction.atomic():
        a = Ambulance.objects.create(**fields)
        log_action(principal=principal, action='CREATE', entity_type='AMBULANCE', entity_id=a.id,
                   description=f"Registered ambulance {a.registration_number}", request=request)
    return Response(_ambulance(a), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('ambulances')])
@audit_failures('AMBULANCE')
def ambulance_detail(request, pk: str):
    principal = request_principal(request)
    a = get_or_404(_visible_ambulances(principal), pk, 'Ambulance')
    if request.method == 'GET':
        data = _ambulance(a)
        data['recentDispatches'] = [
            {'id': d.id, 'dispatchNumber': d.dispatch_number, 'status': d.status,
             'callReceived': iso(d.call_received)}
            for d in a.dispatches.order_by('-call_received')[:5]
        ]
        return Response(data)

    require(request, 'ambulances.write')
    s = AmbulanceSerializer(a, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    message = 'Access denied - can only move ambulances within your county'
    hospital = _placement(principal, vd.get('countyId'), vd.get('hospitalId'), message)
    if 'countyId' in vd:
        ensure_county_access(principal, vd['countyId'], message)
    elif hospital is not None:
        vd['countyId'] = hospital.county_id
    changes = {}
    with transaction.atomic():
        for k, v in vd.items():
            field = AMBULANCE_FIELD_MAP[k]
            changes[k] = {'from': str(getattr(a, field)), 'to': str(v)}
            setattr(a, field, v)
        a.save()
        log_action(principal=principal, action='UPDATE', entity_type='AMBULANCE', entity_id=a.id,
                   description=f"Updated ambulance {a.registration_number}", changes=changes, request=request)
    a.refresh_from_db()
    return Response(_ambulance(a))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('ambulances')])
@audit_failures('AMBULANCE')
def ambulance_location(request, pk: str):
    principal = request_principal(request)
    require(request, 'ambulances.write')
    a = get_or_404(_visible_ambulances(principal), pk, 'Ambulance')
    s = LocationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    previous = a.current_location
    with transaction.atomic():
        a.current_location = dict(s.validated_data)
        a.last_location_update = timezone.now()
        a.save(update_fields=['current_location', 'last_location_update', 'updated_at'])
        log_action(principal=principal, action='UPDATE', entity_type='AMBULANCE', entity_id=a.id,
                   description=f"Location update for {a.registration_number}",
                   changes={'currentLocation': {'from': previous, 'to': a.current_location}}, request=request)
    logger.debug('ambulance %s at %s', a.registration_number, a.current_location)
    return Response({'ok': True, 'ambulance': _ambulance(a)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('dispatch')])
@audit_failures('DISPATCH')
def nearest(request):
    """Rank free ambulances and receiving hospitals by distance from a caller."""
    principal = request_principal(request)
    q = NearestQuerySerializer(data=request.query_params if request.method == 'GET' else request.data)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    lat, lng = vd['latitude'], vd['longitude']

    fleet = _visible_ambulances(principal).filter(status='AVAILABLE')
    advanced = needs_advanced(vd.get('emergencyType'), vd.get('severity'), vd['requiredEquipment'])
    if advanced:
        fleet = fleet.filter(ambulance_type__in=ADVANCED_AMBULANCE_TYPES)
    ranked_ambulances = rank_by_distance(fleet, lat, lng, lambda a: a.current_location)[:vd['limit']]

    receiving = scope_by_county(
        Hospital.objects.select_related('county').filter(is_active=True, accepting_patients=True), principal)
    receiving = [h for h in receiving if 'EMERGENCY' in (h.services or [])]
    ranked_hospitals = rank_by_distance(receiving, lat, lng, lambda h: h.coordinates)[:3]

    ambulances_out = [dict(_ambulance(a), distanceKm=round(km, 2)) for km, a in ranked_ambulances]
    hospitals_out = [
        {'id': h.id, 'name': h.name, 'level': h.level, 'countyId': h.county_id,
         'availableEmergencyBeds': h.available_emergency_beds, 'coordinates': h.coordinates,
         'distanceKm': round(km, 2)}
        for km, h in ranked_hospitals
    ]
    return Response({
        'nearestAmbulances': ambulances_out,
        'nearestHospitals': hospitals_out,
        'recommendedAmbulance': ambulances_out[0] if ambulances_out else None,
        'recommendedHospital': hospitals_out[0] if hospitals_out else None,
        'advancedRequired': advanced,
    })


def _maintenance_history(a: Ambulance) -> list:
    rows = AuditLog.objects.filter(entity_type='AMBULANCE', entity_id=a.id, success=True,
                                   description__startswith='Maintenance')
    return [
        {'id': r.id, 'date': iso(r.timestamp), 'description': r.description,
         'details': r.changes or {}, 'recordedBy': r.user_name}
        for r in rows.order_by('-timestamp', '-id')[:20]
    ]


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('ambulances')])
@audit_failures('AMBULANCE')
def ambulance_maintenance(request, pk: str):
    principal = request_principal(request)
    if request.method == 'GET':
        a = get_or_404(_visible_ambulances(principal), pk, 'Ambulance')
        return Response({
            'ambulanceId': a.id,
            'status': a.status,
            'lastMaintenance': iso(a.last_maintenance),
            'nextServiceDate': iso(a.next_service_date),
            'records': _maintenance_history(a),
        })

    require(request, 'ambulances.write')
    with transaction.atomic():
        a = get_or_404(_visible_ambulances(principal).select_for_update(of=('self',)), pk, 'Ambulance')
        s = MaintenanceSerializer(a, data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        previous = a.status
        if vd['action'] == 'START':
            a.status = 'MAINTENANCE'
            description = f"Maintenance started on {a.registration_number}"
        else:
            today = timezone.localdate()
            a.status = 'AVAILABLE'
            a.last_maintenance = today
            a.next_service_date = vd.get('nextServiceDate') or today + SERVICE_INTERVAL
            description = f"Maintenance completed on {a.registration_number}"
        a.save(update_fields=['status', 'last_maintenance', 'next_service_date', 'updated_at'])
        record = {k: str(v) for k, v in vd.items() if k not in ('action', 'nextServiceDate')}
        record['status'] = {'from': previous, 'to': a.status}
        log_action(principal=principal, action='UPDATE', entity_type='AMBULANCE', entity_id=a.id,
                   description=description, changes=record, request=request)
    logger.info('%s', description)
    return Response(_ambulance(a))
