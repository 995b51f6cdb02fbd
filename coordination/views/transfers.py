"""
Inter-facility patient transfers.

A transfer is requested by the origin hospital and approved or rejected
by the destination.  Only REQUESTED transfers can be decided, and only
by the destination hospital's staff (super administrators excepted).
"""
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Ambulance, Department, Hospital, Patient, Transfer
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.transfer import (
    TRANSFER_FIELD_MAP,
    AvailableBedsQuerySerializer,
    TransferApproveSerializer,
    TransferCreateSerializer,
    TransferListQuerySerializer,
    TransferRejectSerializer,
    TransferUpdateSerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import yearly_number
from coordination.services.scoping import ensure_hospital_access, scoped_county_id, scoped_hospital_id
from coordination.views.common import get_or_404, iso, paginate


def _serialize(t: Transfer) -> dict:
    return {
        'id': t.id,
        'transferNumber': t.transfer_number,
        'patient': {'id': t.patient_id, 'name': t.patient.full_name, 'patientNumber': t.patient.patient_number},
        'originHospital': {'id': t.origin_hospital_id, 'name': t.origin_hospital.name},
        'destinationHospital': {'id': t.destination_hospital_id, 'name': t.destination_hospital.name},
        'ambulanceId': t.ambulance_id,
        'initiatedBy': t.initiated_by_id,
        'approvedBy': t.approved_by_id,
        'reason': t.reason,
        'urgency': t.urgency,
        'diagnosis': t.diagnosis,
        'vitalSigns': t.vital_signs,
        'transportMode': t.transport_mode,
        'status': t.status,
        'bedReserved': t.bed_reserved,
        'bedNumber': t.bed_number,
        'acceptedBy': t.accepted_by_name,
        'rejectionReason': t.rejection_reason,
        'notes': t.notes,
        'requestedAt': iso(t.requested_at),
        'approvedAt': iso(t.approved_at),
        'rejectedAt': iso(t.rejected_at),
        'departureTime': iso(t.departure_time),
        'arrivalTime': iso(t.arrival_time),
        'cancelledAt': iso(t.cancelled_at),
        'cancellationReason': t.cancellation_reason,
    }


def _visible(principal):
    qs = Transfer.objects.select_related('patient', 'origin_hospital', 'destination_hospital')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(Q(origin_hospital_id=hospital_id) | Q(destination_hospital_id=hospital_id))
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(Q(origin_hospital__county_id=county_id) | Q(destination_hospital__county_id=county_id))
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('transfers')])
@audit_failures('TRANSFER')
def transfers(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = TransferListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible(principal)
        own = principal.hospital_id
        if own and vd['direction'] == 'incoming':
            qs = qs.filter(destination_hospital_id=own)
        elif own and vd['direction'] == 'outgoing':
            qs = qs.filter(origin_hospital_id=own)
        if vd.get('status'):
            qs = qs.filter(status=vd['status'])
        if vd.get('urgency'):
            qs = qs.filter(urgency=vd['urgency'])
        rows, pagination = paginate(qs.order_by('-requested_at'), vd['page'], vd.get('limit'))
        return Response({'transfers': [_serialize(t) for t in rows], 'pagination': pagination})

    require(request, 'transfers.write')
    s = TransferCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(pk=vd['patientId']).first()
    if patient is None:
        raise NotFound('Patient not found')
    hospitals = {h.id: h for h in Hospital.objects.filter(pk__in=[vd['originHospitalId'], vd['destinationHospitalId']])}
    if vd['originHospitalId'] not in hospitals:
        raise NotFound('Origin hospital not found')
    destination = hospitals.get(vd['destinationHospitalId'])
    if destination is None:
        raise NotFound('Destination hospital not found')
    if not destination.is_active:
        raise ValidationError({'destinationHospitalId': ['Destination hospital is not active']})
    ensure_hospital_access(principal, vd['originHospitalId'],
                           message='Access denied - transfers must originate from your hospital')

    with transaction.atomic():
        t = Transfer.objects.create(
            transfer_number=yearly_number('TRF', Transfer, 'transfer_number'),
            patient=patient,
            origin_hospital_id=vd['originHospitalId'],
            destination_hospital=destination,
            initiated_by_id=principal.id,
            reason=vd['reason'],
            urgency=vd['urgency'],
            diagnosis=vd['diagnosis'],
            vital_signs=vd.get('vitalSigns') or {},
            transport_mode=vd.get('transportMode', 'AMBULANCE'),
            notes=vd.get('notes', ''),
            requested_at=timezone.now(),
        )
        patient.current_status = 'IN_TRANSFER'
        patient.save(update_fields=['current_status', 'updated_at'])
        log_action(principal=principal, action='TRANSFER', entity_type='TRANSFER', entity_id=t.id,
                   description=f"Requested transfer {t.transfer_number} to {destination.name}",
                   changes={'urgency': t.urgency}, request=request)
    return Response(_serialize(t), status=status.HTTP_201_CREATED)


def _decidable(request, pk: str) -> Transfer:
    principal = require(request, 'transfers.write')
    t = get_or_404(_visible(principal).select_for_update(of=('self',)), pk, 'Transfer')
    if not principal.is_super_admin and principal.hospital_id != t.destination_hospital_id:
        raise PermissionDenied('Only the destination hospital can decide on this transfer')
    if t.status != 'REQUESTED':
        raise ValidationError({'status': [f"Transfer is already {t.status}"]})
    return t


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('transfers')])
@audit_failures('TRANSFER')
def transfer_approve(request, pk: str):
    principal = request_principal(request)
    s = TransferApproveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    with transaction.atomic():
        t = _decidable(request, pk)
        if vd.get('ambulanceId'):
            if not Ambulance.objects.filter(pk=vd['ambulanceId']).exists():
                raise NotFound('Ambulance not found')
            t.ambulance_id = vd['ambulanceId']
        t.status = 'APPROVED'
        t.approved_by_id = principal.id
        t.approved_at = timezone.now()
        t.bed_number = vd.get('bedNumber', '')
        t.bed_reserved = bool(t.bed_number)
        t.accepted_by_name = vd.get('acceptedBy') or principal.name
        if vd.get('notes'):
            t.notes = f"{t.notes}\n{vd['notes']}".strip()
        t.save()
        log_action(principal=principal, action='APPROVE', entity_type='TRANSFER', entity_id=t.id,
                   description=f"Approved transfer {t.transfer_number}",
                   changes={'bedNumber': t.bed_number, 'acceptedBy': t.accepted_by_name}, request=request)
    return Response(_serialize(t))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('transfers')])
@audit_failures('TRANSFER')
def transfer_reject(request, pk: str):
    principal = request_principal(request)
    s = TransferRejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    with transaction.atomic():
        t = _decidable(request, pk)
        t.status = 'REJECTED'
        t.rejection_reason = s.validated_data['reason']
        t.rejected_at = timezone.now()
        t.save()
        # Patient stays where they are
        Patient.objects.filter(pk=t.patient_id, current_status='IN_TRANSFER').update(
            current_status='ACTIVE', updated_at=timezone.now())
        log_action(principal=principal, action='REJECT', entity_type='TRANSFER', entity_id=t.id,
                   description=f"Rejected transfer {t.transfer_number}",
                   changes={'reason': t.rejection_reason}, request=request)
    return Response(_serialize(t))


def _participant(principal, t: Transfer) -> None:
    if principal.is_super_admin or not principal.hospital_id:
        return
    if principal.hospital_id not in (t.origin_hospital_id, t.destination_hospital_id):
        raise PermissionDenied('Access denied - your hospital is not part of this transfer')


def _cancel(t: Transfer, reason: str, now) -> None:
    t.status = 'CANCELLED'
    t.cancelled_at = now
    t.cancellation_reason = reason
    Patient.objects.filter(pk=t.patient_id, current_status='IN_TRANSFER').update(
        current_status='ACTIVE', updated_at=now)


def _move(t: Transfer, new: str, vd: dict, now) -> None:
    """Apply a status move and its side effects on the patient and the ambulance."""
    if new == 'IN_TRANSIT':
        t.status = new
        t.departure_time = vd.get('departureTime') or now
        if t.ambulance_id:
            Ambulance.objects.filter(pk=t.ambulance_id).update(status='TRANSPORTING', updated_at=now)
    elif new == 'COMPLETED':
        t.status = new
        t.arrival_time = vd.get('arrivalTime') or now
        Patient.objects.filter(pk=t.patient_id).update(
            current_hospital_id=t.destination_hospital_id, current_status='ACTIVE', updated_at=now)
        if t.ambulance_id:
            Ambulance.objects.filter(pk=t.ambulance_id, status='TRANSPORTING').update(
                status='AVAILABLE', updated_at=now)
    elif new == 'CANCELLED':
        _cancel(t, vd.get('cancellationReason') or 'Cancelled', now)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess('transfers')])
@audit_failures('TRANSFER')
def transfer_detail(request, pk: str):
    principal = request_principal(request)
    if request.method == 'GET':
        t = get_or_404(_visible(principal), pk, 'Transfer')
        _participant(principal, t)
        return Response(_serialize(t))

    require(request, 'transfers.write')
    if request.method == 'DELETE':
        with transaction.atomic():
            t = get_or_404(_visible(principal).select_for_update(of=('self',)), pk, 'Transfer')
            _participant(principal, t)
            if t.status != 'REQUESTED':
                raise ValidationError({'status': [f"Only requested transfers can be cancelled; this one is {t.status}"]})
            _cancel(t, 'Cancelled by user', timezone.now())
            t.save()
            log_action(principal=principal, action='CANCEL', entity_type='TRANSFER', entity_id=t.id,
                       description=f"Cancelled transfer {t.transfer_number}", request=request)
        return Response({'message': 'Transfer cancelled', 'transfer': _serialize(t)})

    with transaction.atomic():
        t = get_or_404(_visible(principal).select_for_update(of=('self',)), pk, 'Transfer')
        _participant(principal, t)
        s = TransferUpdateSerializer(t, data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        changes = {}
        for key, attr in TRANSFER_FIELD_MAP.items():
            if key in vd:
                changes[key] = {'from': getattr(t, attr), 'to': vd[key]}
                setattr(t, attr, vd[key])
        if 'ambulanceId' in vd:
            if vd['ambulanceId'] and not Ambulance.objects.filter(pk=vd['ambulanceId']).exists():
                raise NotFound('Ambulance not found')
            changes['ambulanceId'] = {'from': t.ambulance_id, 'to': vd['ambulanceId']}
            t.ambulance_id = vd['ambulanceId'] or None
        if 'departureTime' in vd and 'status' not in vd:
            t.departure_time = vd['departureTime']
        if 'arrivalTime' in vd and 'status' not in vd:
            t.arrival_time = vd['arrivalTime']
        if vd.get('status'):
            changes['status'] = {'from': t.status, 'to': vd['status']}
            _move(t, vd['status'], vd, timezone.now())
        t.save()
        action = 'CANCEL' if t.status == 'CANCELLED' else 'UPDATE'
        log_action(principal=principal, action=action, entity_type='TRANSFER', entity_id=t.id,
                   description=f"Updated transfer {t.transfer_number}", changes=changes, request=request)
    return Response(_serialize(t))


def _beds(available: int, total: int) -> dict:
    occupancy = round((total - available) / total * 100, 1) if total else 0
    return {'available': available, 'total': total, 'occupancy': occupancy}


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('transfers')])
@audit_failures('TRANSFER')
def available_beds(request):
    """Bed picture of a prospective destination, with its departments that still have beds."""
    q = AvailableBedsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    h = Hospital.objects.filter(pk=vd['hospitalId']).first()
    if h is None:
        raise NotFound('Hospital not found')
    departments = Department.objects.filter(hospital=h, available_beds__gt=0)
    if vd.get('departmentType'):
        departments = departments.filter(department_type=vd['departmentType'])
    return Response({
        'hospital': {
            'id': h.id,
            'name': h.name,
            'acceptingPatients': h.accepting_patients,
            'operationalStatus': h.operational_status,
            'bedAvailability': {
                'general': _beds(h.available_beds, h.total_beds),
                'icu': _beds(h.available_icu_beds, h.icu_beds),
                'emergency': _beds(h.available_emergency_beds, h.emergency_beds),
            },
        },
        'departments': [
            {'id': d.id, 'name': d.name, 'type': d.department_type,
             'availableBeds': d.available_beds, 'totalBeds': d.total_beds}
            for d in departments.order_by('-available_beds', 'name')
        ],
    })
