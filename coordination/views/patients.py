"""
Patient registry endpoints and SHA membership verification.
"""
from django.db import transaction
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import County, Hospital, Patient, SHAClaim
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.patient import (
    PATIENT_FIELD_MAP,
    PatientListQuerySerializer,
    PatientSerializer,
    VerifyShaSerializer,
)
from coordination.services import sha
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import yearly_number
from coordination.services.scoping import scoped_county_id, scoped_hospital_id
from coordination.views.common import get_or_404, iso, paginate


def _serialize(p: Patient) -> dict:
    return {
        'id': p.id,
        'patientNumber': p.patient_number,
        'firstName': p.first_name,
        'lastName': p.last_name,
        'name': p.full_name,
        'gender': p.gender,
        'dateOfBirth': iso(p.date_of_birth),
        'nationalId': p.national_id,
        'shaNumber': p.sha_number,
        'phone': p.phone,
        'countyId': p.county_id,
        'currentHospitalId': p.current_hospital_id,
        'currentHospitalName': p.current_hospital.name if p.current_hospital_id else None,
        'currentStatus': p.current_status,
        'bloodType': p.blood_type,
        'allergies': p.allergies,
        'createdAt': iso(p.created_at),
    }


def _visible(principal):
    qs = Patient.objects.select_related('current_hospital')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(current_hospital_id=hospital_id)
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(Q(county_id=county_id) | Q(current_hospital__county_id=county_id))
    return qs


def _check_refs(vd):
    if vd.get('countyId') and not County.objects.filter(pk=vd['countyId']).exists():
        raise NotFound('County not found')
    if vd.get('currentHospitalId') and not Hospital.objects.filter(pk=vd['currentHospitalId']).exists():
        raise NotFound('Hospital not found')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('patients')])
@audit_failures('PATIENT')
def patients(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible(principal)
        search = (vd.get('search') or '').strip()
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search) | Q(last_name__icontains=search)
                | Q(patient_number__icontains=search) | Q(national_id__icontains=search)
                | Q(sha_number__icontains=search) | Q(phone__icontains=search)
            )
        if vd.get('status'):
            qs = qs.filter(current_status=vd['status'])
        if vd.get('hospitalId'):
            qs = qs.filter(current_hospital_id=vd['hospitalId'])
        rows, pagination = paginate(qs.order_by('-created_at'), vd['page'], vd.get('limit'))
        return Response({'patients': [_serialize(p) for p in rows], 'pagination': pagination})

    require(request, 'patients.write')
    s = PatientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    _check_refs(vd)
    fields = {PATIENT_FIELD_MAP[k]: v for k, v in vd.items() if v is not None}
    fields.setdefault('current_hospital_id', principal.hospital_id)
    fields.setdefault('county_id', principal.county_id)
    with transaction.atomic():
        p = Patient.objects.create(patient_number=yearly_number('PAT', Patient, 'patient_number'), **fields)
        log_action(principal=principal, action='CREATE', entity_type='PATIENT', entity_id=p.id,
                   description=f"Registered patient {p.patient_number}", request=request)
    return Response(_serialize(p), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('patients')])
@audit_failures('PATIENT')
def patient_detail(request, pk: str):
    principal = request_principal(request)
    p = get_or_404(_visible(principal), pk, 'Patient')
    if request.method == 'GET':
        log_action(principal=principal, action='READ', entity_type='PATIENT', entity_id=p.id,
                   description=f"Viewed patient {p.patient_number}", request=request)
        data = _serialize(p)
        data['recentTriage'] = [
            {'id': t.id, 'triageNumber': t.triage_number, 'level': t.triage_level,
             'status': t.status, 'arrivalTime': iso(t.arrival_time)}
            for t in p.triage_entries.order_by('-arrival_time')[:5]
        ]
        return Response(data)

    require(request, 'patients.write')
    s = PatientSerializer(p, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    _check_refs(vd)
    with transaction.atomic():
        changes = {}
        for k, v in vd.items():
            field = PATIENT_FIELD_MAP[k]
            changes[k] = {'from': str(getattr(p, field)), 'to': str(v)}
            setattr(p, field, v)
        p.save()
        action = 'DISCHARGE' if vd.get('currentStatus') == 'DISCHARGED' else 'UPDATE'
        log_action(principal=principal, action=action, entity_type='PATIENT', entity_id=p.id,
                   description=f"Updated patient {p.patient_number}", changes=changes, request=request)
    return Response(_serialize(p))


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('patients')])
@audit_failures('PATIENT')
def verify_sha(request):
    """Find a patient by any identifier and report SHA eligibility.

    When ``SHA_API_URL`` is configured the national registry is consulted;
    otherwise eligibility reflects only whether an SHA number is on file.
    """
    principal = request_principal(request)
    s = VerifyShaSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    cond = Q()
    for key, field in (('shaNumber', 'sha_number'), ('nationalId', 'national_id'),
                       ('patientNumber', 'patient_number'), ('phone', 'phone')):
        if vd.get(key):
            cond |= Q(**{field: vd[key]})
    p = _visible(principal).filter(cond).first()
    if p is None:
        raise NotFound('No patient matches the given identifiers')

    eligibility = sha.eligibility_for(p.sha_number)
    claims = SHAClaim.objects.filter(patient=p).order_by('-created_at')[:10]
    log_action(principal=principal, action='READ', entity_type='PATIENT', entity_id=p.id,
               description=f"Verified SHA membership for {p.patient_number}",
               changes={'eligibility': eligibility['status']}, request=request)
    return Response({
        'patient': _serialize(p),
        'eligibility': eligibility,
        'claims': [{
            'id': c.id,
            'claimNumber': c.claim_number,
            'serviceType': c.service_type,
            'amountClaimed': str(c.amount_claimed),
            'amountApproved': str(c.amount_approved) if c.amount_approved is not None else None,
            'status': c.status,
            'submittedAt': iso(c.submitted_at),
        } for c in claims],
    })
