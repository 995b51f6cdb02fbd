from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Hospital, Patient, Referral
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.transfer import (
    ReferralCreateSerializer,
    ReferralListQuerySerializer,
    ReferralRespondSerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import yearly_number
from coordination.services.scoping import ensure_hospital_access, scoped_county_id, scoped_hospital_id
from coordination.views.common import get_or_404, iso, paginate


def _serialize(r: Referral) -> dict:
    return {
        'id': r.id,
        'referralNumber': r.referral_number,
        'patient': {'id': r.patient_id, 'name': r.patient.full_name, 'patientNumber': r.patient.patient_number},
        'referringHospital': {'id': r.referring_hospital_id, 'name': r.referring_hospital.name},
        'receivingHospital': {'id': r.receiving_hospital_id, 'name': r.receiving_hospital.name},
        'referredBy': r.referred_by_id,
        'reason': r.reason,
        'clinicalSummary': r.clinical_summary,
        'urgency': r.urgency,
        'status': r.status,
        'responseNotes': r.response_notes,
        'respondedAt': iso(r.responded_at),
        'createdAt': iso(r.created_at),
    }


def _visible(principal):
    qs = Referral.objects.select_related('patient', 'referring_hospital', 'receiving_hospital')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(Q(referring_hospital_id=hospital_id) | Q(receiving_hospital_id=hospital_id))
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(Q(referring_hospital__county_id=county_id) | Q(receiving_hospital__county_id=county_id))
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('referrals')])
@audit_failures('REFERRAL')
def referrals(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = ReferralListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible(principal)
        if vd.get('status'):
            qs = qs.filter(status=vd['status'])
        rows, pagination = paginate(qs.order_by('-created_at'), vd['page'], vd.get('limit'))
        return Response({'referrals': [_serialize(r) for r in rows], 'pagination': pagination})

    require(request, 'referrals.write')
    s = ReferralCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(pk=vd['patientId']).first()
    if patient is None:
        raise NotFound('Patient not found')
    found = set(Hospital.objects.filter(pk__in=[vd['referringHospitalId'], vd['receivingHospitalId']])
                .values_list('id', flat=True))
    if vd['referringHospitalId'] not in found or vd['receivingHospitalId'] not in found:
        raise NotFound('Hospital not found')
    ensure_hospital_access(principal, vd['referringHospitalId'],
                           message='Access denied - referrals must come from your hospital')
    with transaction.atomic():
        r = Referral.objects.create(
            referral_number=yearly_number('REF', Referral, 'referral_number'),
            patient=patient,
            referring_hospital_id=vd['referringHospitalId'],
            receiving_hospital_id=vd['receivingHospitalId'],
            referred_by_id=principal.id,
            reason=vd['reason'],
            clinical_summary=vd.get('clinicalSummary', ''),
            urgency=vd.get('urgency', 'ROUTINE'),
        )
        log_action(principal=principal, action='CREATE', entity_type='REFERRAL', entity_id=r.id,
                   description=f"Created referral {r.referral_number}", request=request)
    return Response(_serialize(r), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('referrals')])
@audit_failures('REFERRAL')
def referral_respond(request, pk: str):
    principal = require(request, 'referrals.write')
    s = ReferralRespondSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    with transaction.atomic():
        r = get_or_404(_visible(principal).select_for_update(of=('self',)), pk, 'Referral')
        if not principal.is_super_admin and principal.hospital_id and principal.hospital_id != r.receiving_hospital_id:
            raise PermissionDenied('Only the receiving hospital can respond to this referral')
        if r.status != 'PENDING':
            raise ValidationError({'status': [f"Referral is already {r.status}"]})
        r.status = vd['decision']
        r.response_notes = vd.get('notes', '')
        r.responded_at = timezone.now()
        r.save()
        log_action(principal=principal, action='APPROVE' if r.status == 'ACCEPTED' else 'REJECT',
                   entity_type='REFERRAL', entity_id=r.id,
                   description=f"{r.status.title()} referral {r.referral_number}", request=request)
    return Response(_serialize(r))
