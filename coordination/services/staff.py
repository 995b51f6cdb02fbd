from typing import Optional

from django.db.models import Q
from django.utils import timezone

from coordination.models import Staff


def list_staff(*, hospital_id: Optional[str] = None, county_id: Optional[str] = None, q: Optional[str] = None,
               on_duty_only: bool = False, now=None, page: Optional[int] = None,
               page_size: Optional[int] = None) -> tuple[list[dict], int]:
    now = now or timezone.now()
    qs = Staff.objects.select_related('user', 'hospital', 'department')
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    if county_id:
        qs = qs.filter(hospital__county_id=county_id)
    if q:
        qs = qs.filter(
            Q(user__first_name__icontains=q) | Q(user__last_name__icontains=q)
            | Q(staff_number__icontains=q) | Q(specialization__icontains=q)
        )
    if on_duty_only:
        qs = qs.filter(shifts__start_at__lte=now, shifts__end_at__gt=now).distinct()

    total = qs.count()
    qs = qs.order_by('staff_number')
    if page and page_size:
        start = (page - 1) * page_size
        qs = qs[start:start + page_size]

    on_duty = set(
        Staff.objects.filter(id__in=[s.id for s in qs], shifts__start_at__lte=now, shifts__end_at__gt=now)
        .values_list('id', flat=True)
    )
    return [format_staff(s, on_duty=s.id in on_duty) for s in qs], total


def format_staff(s: Staff, *, on_duty: Optional[bool] = None) -> dict:
    u = s.user
    data = {
        'id': s.id,
        'userId': u.id,
        'staffNumber': s.staff_number,
        'name': u.get_full_name() or u.username,
        'email': u.email,
        'role': u.role,
        'cadre': s.cadre,
        'specialization': s.specialization,
        'licenseNumber': s.license_number,
        'employmentStatus': s.employment_status,
        'phone': s.phone,
        'hospitalId': s.hospital_id,
        'hospitalName': s.hospital.name if s.hospital else None,
        'departmentId': s.department_id,
        'departmentName': s.department.name if s.department else None,
        'isActive': s.is_active,
    }
    if on_duty is not None:
        data['onDuty'] = on_duty
    return data
