"""
Social Health Authority claims.

Claims move DRAFT → SUBMITTED → UNDER_REVIEW → APPROVED/REJECTED → PAID;
the allowed moves live in :data:`coordination.serializers.claim.CLAIM_TRANSITIONS`.
"""
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Hospital, Patient, SHAClaim
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.claim import ClaimCreateSerializer, ClaimListQuerySerializer, ClaimStatusSerializer
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import yearly_number
from coordination.services.scoping import ensure_hospital_access, scoped_county_id, scoped_hospital_id
from coordination.views.common import get_or_404, iso, paginate


def _money(v):
    return str(v) if v is not None else None


def _serialize(c: SHAClaim) -> dict:
    return {
        'id': c.id,
        'claimNumber': c.claim_number,
        'patient': {'id': c.patient_id, 'name': c.patient.full_name, 'patientNumber': c.patient.patient_number},
        'hospital': {'id': c.hospital_id, 'name': c.hospital.name},
        'shaNumber': c.sha_number,
        'serviceType': c.service_type,
        'diagnosisCode': c.diagnosis_code,
        'amountClaimed': _money(c.amount_claimed),
        'amountApproved': _money(c.amount_approved),
        'status': c.status,
        'submittedBy': c.submitted_by_id,
        'submittedAt': iso(c.submitted_at),
        'processedAt': iso(c.processed_at),
        'rejectionReason': c.rejection_reason,
    }


def _visible(principal):
    qs = SHAClaim.objects.select_related('patient', 'hospital')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(hospital_id=hospital_id)
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(hospital__county_id=county_id)
    return qs


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('sha-claims')])
@audit_failures('SHA_CLAIM')
def claims(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = ClaimListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = _visible(principal)
        for key, field in (('status', 'status'), ('hospitalId', 'hospital_id'), ('patientId', 'patient_id')):
            if vd.get(key):
                qs = qs.filter(**{field: vd[key]})
        summary = {
            row['status']: {'count': row['n'], 'amount': _money(row['amount'])}
            for row in qs.order_by().values('status').annotate(n=Count('id'), amount=Sum('amount_claimed'))
        }
        rows, pagination = paginate(qs.order_by('-created_at'), vd['page'], vd.get('limit'))
        return Response({'claims': [_serialize(c) for c in rows], 'summary': summary, 'pagination': pagination})

    require(request, 'claims.write')
    s = ClaimCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(pk=vd['patientId']).first()
    if patient is None:
        raise NotFound('Patient not found')
    if not patient.sha_number:
        raise ValidationError({'patientId': ['Patient has no SHA number on file']})
    hospital_id = vd.get('hospitalId') or principal.hospital_id or patient.current_hospital_id
    hospital = Hospital.objects.filter(pk=hospital_id).first() if hospital_id else None
    if hospital is None:
        raise NotFound('Hospital not found')
    if not hospital.sha_contracted:
        raise ValidationError({'hospitalId': ['Hospital is not SHA contracted']})
    ensure_hospital_access(principal, hospital.id, message='Access denied - can only claim for your hospital')

    draft = vd['draft']
    with transaction.atomic():
        c = SHAClaim.objects.create(
            claim_number=yearly_number('SHA', SHAClaim, 'claim_number'),
            patient=patient,
            hospital=hospital,
            sha_number=patient.sha_number,
            service_type=vd['serviceType'],
            diagnosis_code=vd.get('diagnosisCode', ''),
            amount_claimed=vd['amountClaimed'],
            status='DRAFT' if draft else 'SUBMITTED',
            submitted_by_id=principal.id,
            submitted_at=None if draft else timezone.now(),
        )
        log_action(principal=principal, action='CREATE' if draft else 'SUBMIT_CLAIM', entity_type='SHA_CLAIM',
                   entity_id=c.id, description=f"{'Drafted' if draft else 'Submitted'} claim {c.claim_number}",
                   changes={'amountClaimed': str(c.amount_claimed), 'serviceType': c.service_type},
                   request=request)
    return Response(_serialize(c), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, ModuleAccess('sha-claims')])
@audit_failures('SHA_CLAIM')
def claim_status(request, pk: str):
    principal = require(request, 'claims.write')
    with transaction.atomic():
        c = get_or_404(_visible(principal).select_for_update(of=('self',)), pk, 'Claim')
        s = ClaimStatusSerializer(c, data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        previous = c.status
        now = timezone.now()
        c.status = vd['status']
        if c.status == 'SUBMITTED':
            c.submitted_at = now
        elif c.status == 'APPROVED':
            c.amount_approved = vd['amountApproved']
            c.processed_at = now
        elif c.status == 'REJECTED':
            c.rejection_reason = vd['rejectionReason']
            c.amount_approved = None
            c.processed_at = now
        elif c.status == 'PAID':
            c.processed_at = now
        c.save()
        action = {'SUBMITTED': 'SUBMIT_CLAIM', 'APPROVED': 'APPROVE', 'REJECTED': 'REJECT'}.get(c.status, 'UPDATE')
        log_action(principal=principal, action=action, entity_type='SHA_CLAIM', entity_id=c.id,
                   description=f"Claim {c.claim_number} {previous} -> {c.status}",
                   changes={'status': {'from': previous, 'to': c.status},
                            'amountApproved': _money(c.amount_approved)},
                   request=request)
    return Response(_serialize(c))
