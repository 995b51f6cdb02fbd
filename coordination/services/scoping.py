"""
Row-level scoping for county and hospital administrators.

County-scoped resources (emergencies, dispatch, ambulances, patients,
dashboard figures) are filtered by a county id; hospital-scoped
resources (triage, transfers, referrals, claims, staff) by a hospital.
``None`` from a helper means "no restriction".
"""
from typing import Optional

from rest_framework.exceptions import PermissionDenied

from coordination.models import Hospital
from coordination.permissions import Principal

COUNTY_ROLES = {'COUNTY_ADMIN'}
HOSPITAL_ROLES = {'HOSPITAL_ADMIN'}


def scoped_county_id(principal: Principal) -> Optional[str]:
    """County the caller is confined to, or ``None`` for national roles.

    Raises ``PermissionDenied`` for a hospital administrator whose hospital
    is missing or has no county.
    """
    if principal.role in COUNTY_ROLES:
        if not principal.county_id:
            raise PermissionDenied('User is not assigned to a county')
        return principal.county_id
    if principal.role in HOSPITAL_ROLES:
        county_id = (
            Hospital.objects.filter(pk=principal.hospital_id).values_list('county_id', flat=True).first()
            if principal.hospital_id else None
        )
        if not county_id:
            raise PermissionDenied('Hospital not found or not assigned to county')
        return county_id
    return None


def scoped_hospital_id(principal: Principal) -> Optional[str]:
    if principal.role in HOSPITAL_ROLES:
        if not principal.hospital_id:
            raise PermissionDenied('User is not assigned to a hospital')
        return principal.hospital_id
    return None


def scope_by_county(qs, principal: Principal, field: str = 'county_id'):
    county_id = scoped_county_id(principal)
    if county_id:
        qs = qs.filter(**{field: county_id})
    return qs


def ensure_county_access(principal: Principal, county_id: Optional[str], message: str = 'Access denied') -> None:
    allowed = scoped_county_id(principal)
    if allowed and county_id != allowed:
        raise PermissionDenied(message)


def ensure_hospital_access(principal: Principal, *hospital_ids: Optional[str], message: str = 'Access denied') -> None:
    """Hospital roles must be one of ``hospital_ids``; county roles must share their county."""
    own = scoped_hospital_id(principal)
    if own:
        if own not in hospital_ids:
            raise PermissionDenied(message)
        return
    county_id = scoped_county_id(principal)
    if county_id:
        counties = set(Hospital.objects.filter(pk__in=[h for h in hospital_ids if h])
                       .values_list('county_id', flat=True))
        if county_id not in counties:
            raise PermissionDenied(message)
