"""
Emergency-department triage: intake, the live queue and the statistics
shown on the triage dashboard.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Department, Hospital, Patient, TriageEntry
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.triage import (
    TriageCreateSerializer,
    TriageListQuerySerializer,
    TriageStatsQuerySerializer,
    TriageUpdateSerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import sequence_number
from coordination.services.scoping import ensure_hospital_access, scoped_county_id, scoped_hospital_id
from coordination.services.triage import triage_queue, triage_stats, waiting_minutes
from coordination.views.common import get_or_404, iso, paginate

logger = logging.getLogger(__name__)

# Patient status implied by a triage outcome
PATIENT_STATUS_FOR = {'ADMITTED': 'ADMITTED', 'DISCHARGED': 'DISCHARGED', 'TRANSFERRED': 'IN_TRANSFER'}


def _serialize(t: TriageEntry, now=None) -> dict:
    return {
        'id': t.id,
        'triageNumber': t.triage_number,
        'patientId': t.patient_id,
        'patientName': t.patient.full_name,
        'patientNumber': t.patient.patient_number,
        'hospitalId': t.hospital_id,
        'departmentId': t.department_id,
        'departmentName': t.department.name if t.department_id else None,
        'chiefComplaint': t.chief_complaint,
        'triageLevel': t.triage_level,
        'arrivalMode': t.arrival_mode,
        'vitalSigns': t.vital_signs,
        'status': t.status,
        'assessedBy': t.assessed_by_id,
        'arrivalTime': iso(t.arrival_time),
        'waitingTime': waiting_minutes(t, now),
        'notes': t.notes,
    }


def _visible(principal):
    qs = TriageEntry.objects.select_related('patient', 'department')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(hospital_id=hospital_id)
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(hospital__county_id=county_id)
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('triage')])
@audit_failures('TRIAGE')
def triage(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = TriageListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible(principal)
        if vd.get('status'):
            qs = qs.filter(status=vd['status'])
        if vd.get('triageLevel'):
            qs = qs.filter(triage_level=vd['triageLevel'])
        if vd.get('hospitalId'):
            qs = qs.filter(hospital_id=vd['hospitalId'])
        search = (vd.get('search') or '').strip()
        if search:
            qs = qs.filter(
                Q(triage_number__icontains=search) | Q(chief_complaint__icontains=search)
                | Q(patient__first_name__icontains=search) | Q(patient__last_name__icontains=search)
            )
        rows, pagination = paginate(qs.order_by('-arrival_time'), vd['page'], vd.get('limit'))
        now = timezone.now()
        return Response({'entries': [_serialize(t, now) for t in rows], 'pagination': pagination})

    require(request, 'triage.write')
    s = TriageCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    patient = Patient.objects.filter(pk=vd['patientId']).first()
    if patient is None:
        raise NotFound('Patient not found')
    hospital_id = vd.get('hospitalId') or principal.hospital_id or patient.current_hospital_id
    if not hospital_id:
        raise ValidationError({'hospitalId': ['hospitalId is required']})
    if not Hospital.objects.filter(pk=hospital_id).exists():
        raise NotFound('Hospital not found')
    ensure_hospital_access(principal, hospital_id, message='Access denied - can only triage at your hospital')
    department_id = vd.get('departmentId')
    if department_id and not Department.objects.filter(pk=department_id, hospital_id=hospital_id).exists():
        raise NotFound('Department not found')

    with transaction.atomic():
        t = TriageEntry.objects.create(
            triage_number=sequence_number('TRI', TriageEntry, 'triage_number'),
            patient=patient,
            hospital_id=hospital_id,
            department_id=department_id,
            chief_complaint=vd['chiefComplaint'],
            triage_level=vd['triageLevel'],
            arrival_mode=vd.get('arrivalMode', 'WALK_IN'),
            vital_signs=dict(vd.get('vitalSigns') or {}),
            arrival_time=vd.get('arrivalTime') or timezone.now(),
            notes=vd.get('notes', ''),
            assessed_by_id=principal.id,
        )
        if patient.current_hospital_id != hospital_id:
            patient.current_hospital_id = hospital_id
            patient.save(update_fields=['current_hospital', 'updated_at'])
        log_action(principal=principal, action='CREATE', entity_type='TRIAGE', entity_id=t.id,
                   description=f"Triaged {patient.patient_number} as {t.triage_level}",
                   changes={'level': t.triage_level, 'complaint': t.chief_complaint}, request=request)
    if t.triage_level == 'IMMEDIATE':
        logger.info('Immediate triage %s at hospital %s', t.triage_number, hospital_id)
    return Response(_serialize(t), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('triage')])
@audit_failures('TRIAGE')
def triage_detail(request, pk: str):
    principal = request_principal(request)
    t = get_or_404(_visible(principal), pk, 'Triage entry')
    if request.method == 'GET':
        return Response(_serialize(t))

    require(request, 'triage.write')
    s = TriageUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if vd.get('departmentId') and not Department.objects.filter(pk=vd['departmentId'], hospital_id=t.hospital_id).exists():
        raise NotFound('Department not found')

    changes = {}
    with transaction.atomic():
        if 'triageLevel' in vd:
            changes['triageLevel'] = {'from': t.triage_level, 'to': vd['triageLevel']}
            t.triage_level = vd['triageLevel']
        if 'status' in vd:
            changes['status'] = {'from': t.status, 'to': vd['status']}
            t.status = vd['status']
            if vd['status'] != 'WAITING':
                t.assessed_by_id = principal.id
        if 'departmentId' in vd:
            t.department_id = vd['departmentId']
        if 'vitalSigns' in vd:
            t.vital_signs = {**t.vital_signs, **dict(vd['vitalSigns'])}
        if 'notes' in vd:
            t.notes = vd['notes']
        t.save()
        patient_status = PATIENT_STATUS_FOR.get(vd.get('status'))
        if patient_status:
            Patient.objects.filter(pk=t.patient_id).update(current_status=patient_status, updated_at=timezone.now())
        log_action(principal=principal, action='UPDATE', entity_type='TRIAGE', entity_id=t.id,
                   description=f"Updated triage {t.triage_number}", changes=changes, request=request)
    t.refresh_from_db()
    return Response(_serialize(t))


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('triage')])
def queue(request):
    principal = request_principal(request)
    qs = _visible(principal)
    hospital_id = request.query_params.get('hospitalId')
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    now = timezone.now()
    entries = [_serialize(t, now) for t in triage_queue(qs)]
    counts = {}
    for e in entries:
        counts[e['triageLevel']] = counts.get(e['triageLevel'], 0) + 1
    return Response({'queue': entries, 'total': len(entries), 'byLevel': counts})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('triage')])
@audit_failures('TRIAGE')
def stats(request):
    principal = request_principal(request)
    q = TriageStatsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    hospital_id = scoped_hospital_id(principal) or vd.get('hospitalId')
    data = triage_stats(
        _visible(principal),
        period=vd['period'],
        start=vd.get('startDate'),
        end=vd.get('endDate'),
        hospital_id=hospital_id,
    )
    return Response(data)
