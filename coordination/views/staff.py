"""
Staff directory and duty rosters.

Creating a staff member also creates their login account; when no
password is supplied a random one is set and must be reset by an
administrator before first login.
"""
from django.contrib.auth.hashers import make_password
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import get_random_string
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import Department, Hospital, Staff, StaffShift, User
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.staff import (
    ShiftSerializer,
    StaffCreateSerializer,
    StaffListQuerySerializer,
    StaffUpdateSerializer,
)
from coordination.services.audit import audit_failures, log_action
from coordination.services.numbering import sequence_number
from coordination.services.scoping import ensure_hospital_access, scoped_county_id, scoped_hospital_id
from coordination.services.staff import format_staff, list_staff
from coordination.views.common import get_or_404, iso

STAFF_FIELDS = {
    'cadre': 'cadre',
    'specialization': 'specialization',
    'licenseNumber': 'license_number',
    'employmentStatus': 'employment_status',
    'phone': 'phone',
    'isActive': 'is_active',
}


def _visible(principal):
    qs = Staff.objects.select_related('user', 'hospital', 'department')
    hospital_id = scoped_hospital_id(principal)
    if hospital_id:
        return qs.filter(hospital_id=hospital_id)
    county_id = scoped_county_id(principal)
    if county_id:
        return qs.filter(hospital__county_id=county_id)
    return qs


def _check_placement(principal, hospital_id, department_id):
    if hospital_id and not Hospital.objects.filter(pk=hospital_id).exists():
        raise NotFound('Hospital not found')
    if department_id and not Department.objects.filter(pk=department_id, hospital_id=hospital_id).exists():
        raise NotFound('Department not found')
    if hospital_id:
        ensure_hospital_access(principal, hospital_id, message='Access denied - can only manage staff at your hospital')


def _shift(sh: StaffShift) -> dict:
    return {
        'id': sh.id,
        'staffId': sh.staff_id,
        'hospitalId': sh.hospital_id,
        'startAt': iso(sh.start_at),
        'endAt': iso(sh.end_at),
        'notes': sh.notes,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('staff')])
@audit_failures('STAFF')
def staff(request):
    principal = request_principal(request)
    if request.method == 'GET':
        q = StaffListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        hospital_id = scoped_hospital_id(principal) or vd.get('hospitalId')
        data, total = list_staff(
            hospital_id=hospital_id,
            county_id=scoped_county_id(principal),
            q=(vd.get('q') or '').strip() or None,
            on_duty_only=vd['onDutyOnly'],
            page=vd.get('page'),
            page_size=vd.get('pageSize'),
        )
        return Response({'staff': data, 'total': total, 'page': vd.get('page'), 'pageSize': vd.get('pageSize')})

    require(request, 'staff.write')
    s = StaffCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital_id = vd.get('hospitalId') or principal.hospital_id
    _check_placement(principal, hospital_id, vd.get('departmentId'))
    county_id = Hospital.objects.filter(pk=hospital_id).values_list('county_id', flat=True).first() \
        if hospital_id else principal.county_id

    with transaction.atomic():
        user = User.objects.create(
            username=vd['email'],
            email=vd['email'],
            first_name=vd['firstName'],
            last_name=vd['lastName'],
            password=make_password(vd.get('password') or get_random_string(24)),
            role=vd['role'],
            hospital_id=hospital_id,
            county_id=county_id,
            phone=vd.get('phone', ''),
        )
        member = Staff.objects.create(
            user=user,
            staff_number=vd.get('staffNumber') or sequence_number('STF', Staff, 'staff_number', width=5),
            hospital_id=hospital_id,
            department_id=vd.get('departmentId'),
            **{field: vd[key] for key, field in STAFF_FIELDS.items() if key in vd},
        )
        log_action(principal=principal, action='CREATE', entity_type='STAFF', entity_id=member.id,
                   description=f"Added staff {member.staff_number} ({user.role})", request=request)
    member = Staff.objects.select_related('user', 'hospital', 'department').get(pk=member.pk)
    return Response(format_staff(member, on_duty=False), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess('staff')])
@audit_failures('STAFF')
def staff_detail(request, pk: str):
    principal = request_principal(request)
    member = get_or_404(_visible(principal), pk, 'Staff member')
    now = timezone.now()
    if request.method == 'GET':
        on_duty = member.shifts.filter(start_at__lte=now, end_at__gt=now).exists()
        data = format_staff(member, on_duty=on_duty)
        data['upcomingShifts'] = [_shift(sh) for sh in member.shifts.filter(end_at__gt=now)[:10]]
        return Response(data)

    require(request, 'staff.write')
    s = StaffUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital_id = vd.get('hospitalId', member.hospital_id)
    if 'hospitalId' in vd or 'departmentId' in vd:
        _check_placement(principal, hospital_id, vd.get('departmentId', member.department_id))

    changes = {}
    with transaction.atomic():
        user = member.user
        for key, field in (('firstName', 'first_name'), ('lastName', 'last_name'), ('role', 'role')):
            if key in vd:
                changes[key] = {'from': getattr(user, field), 'to': vd[key]}
                setattr(user, field, vd[key])
        if 'hospitalId' in vd:
            changes['hospitalId'] = {'from': member.hospital_id, 'to': hospital_id}
            member.hospital_id = user.hospital_id = hospital_id
        if 'departmentId' in vd:
            member.department_id = vd['departmentId']
        for key, field in STAFF_FIELDS.items():
            if key in vd:
                changes[key] = {'from': str(getattr(member, field)), 'to': str(vd[key])}
                setattr(member, field, vd[key])
        if 'isActive' in vd:
            user.is_active = vd['isActive']
        user.save()
        member.save()
        log_action(principal=principal, action='UPDATE', entity_type='STAFF', entity_id=member.id,
                   description=f"Updated staff {member.staff_number}", changes=changes, request=request)
    member = get_or_404(Staff.objects.select_related('user', 'hospital', 'department'), pk, 'Staff member')
    return Response(format_staff(member))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('staff')])
@audit_failures('STAFF')
def staff_schedule(request, pk: str):
    principal = request_principal(request)
    member = get_or_404(_visible(principal), pk, 'Staff member')
    if request.method == 'GET':
        shifts = member.shifts.all()
        start, end = request.query_params.get('from'), request.query_params.get('to')
        if start:
            shifts = shifts.filter(end_at__date__gte=start)
        if end:
            shifts = shifts.filter(start_at__date__lte=end)
        return Response({'staffId': member.id, 'shifts': [_shift(sh) for sh in shifts]})

    require(request, 'staff.write')
    s = ShiftSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    hospital_id = vd.get('hospitalId') or member.hospital_id
    if hospital_id and hospital_id != member.hospital_id:
        _check_placement(principal, hospital_id, None)
    with transaction.atomic():
        sh = StaffShift.objects.create(
            staff=member,
            hospital_id=hospital_id,
            start_at=vd['startAt'],
            end_at=vd['endAt'],
            notes=vd.get('notes', ''),
        )
        log_action(principal=principal, action='CREATE', entity_type='STAFF_SHIFT', entity_id=sh.id,
                   description=f"Scheduled {member.staff_number} {sh.start_at:%Y-%m-%d %H:%M}-{sh.end_at:%H:%M}",
                   request=request)
    return Response(_shift(sh), status=status.HTTP_201_CREATED)
