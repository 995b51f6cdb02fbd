"""
Role normalization, permission resolution and DRF permission classes.

Accounts are provisioned from several sources, so ``User.role`` shows up
in many spellings (``doctor``, ``DOCTOR``, ``medical_officer``).  Every
check goes through :func:`normalize_role` first and then consults the
static :data:`ROLE_PERMISSIONS` table.  ``'*'`` in a permission list
grants everything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)

WILDCARD = '*'
UNKNOWN_ROLE = 'UNKNOWN'
FULL_ACCESS_ROLES = {'SUPER_ADMIN', 'ADMIN'}

ALL_PERMISSIONS = [
    'dashboard.read',
    'triage.read', 'triage.write',
    'patients.read', 'patients.write',
    'transfers.read', 'transfers.write',
    'dispatch.read', 'dispatch.write',
    'ambulances.read', 'ambulances.write',
    'emergencies.read', 'emergencies.write',
    'referrals.read', 'referrals.write',
    'resources.read', 'resources.write',
    'procurement.read', 'procurement.write',
    'claims.read', 'claims.write',
    'telemedicine.read', 'telemedicine.write',
    'analytics.read',
    'staff.read', 'staff.write',
    'hospitals.read', 'hospitals.write',
    'settings.read', 'settings.write',
    'monitoring.read', 'monitoring.write',
    'audit.read',
    'system.read', 'system.write',
    WILDCARD,
]

# Same grants for every facility leadership role
_FACILITY_LEADERSHIP = [
    'dashboard.read',
    'triage.read', 'triage.write',
    'patients.read', 'patients.write',
    'transfers.read', 'transfers.write',
    'dispatch.read', 'dispatch.write',
    'ambulances.read',
    'emergencies.read', 'emergencies.write',
    'referrals.read', 'referrals.write',
    'resources.read', 'resources.write',
    'procurement.read', 'procurement.write',
    'claims.read', 'claims.write',
    'telemedicine.read', 'telemedicine.write',
    'analytics.read',
    'staff.read', 'staff.write',
    'hospitals.read',
    'settings.read',
]

_DISPATCH_DESK = [
    'dashboard.read',
    'dispatch.read', 'dispatch.write',
    'ambulances.read', 'ambulances.write',
    'emergencies.read', 'emergencies.write',
    'transfers.read',
    'referrals.read',
    'settings.read',
]

_AMBULANCE_TEAM = [
    'dashboard.read',
    'dispatch.read',
    'ambulances.read',
    'emergencies.read',
    'transfers.read',
    'referrals.read',
    'settings.read',
]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    'SUPER_ADMIN': ALL_PERMISSIONS,
    'ADMIN': ALL_PERMISSIONS,
    'COUNTY_ADMIN': [
        'dashboard.read',
        'triage.read',
        'patients.read',
        'transfers.read', 'transfers.write',
        'dispatch.read', 'dispatch.write',
        'ambulances.read', 'ambulances.write',
        'emergencies.read', 'emergencies.write',
        'referrals.read', 'referrals.write',
        'resources.read', 'resources.write',
        'procurement.read', 'procurement.write',
        'claims.read', 'claims.write',
        'telemedicine.read',
        'analytics.read',
        'staff.read', 'staff.write',
        'hospitals.read', 'hospitals.write',
        'settings.read',
        'monitoring.read',
        'audit.read',
    ],
    'COUNTY_HEALTH_OFFICER': [
        'dashboard.read',
        'triage.read',
        'patients.read',
        'transfers.read', 'transfers.write',
        'dispatch.read', 'dispatch.write',
        'ambulances.read',
        'emergencies.read', 'emergencies.write',
        'referrals.read', 'referrals.write',
        'resources.read',
        'procurement.read', 'procurement.write',
        'claims.read',
        'telemedicine.read',
        'analytics.read',
        'staff.read',
        'hospitals.read',
        'settings.read',
        'monitoring.read',
    ],
    'HOSPITAL_ADMIN': _FACILITY_LEADERSHIP[:] + ['ambulances.write', 'monitoring.read'],
    'FACILITY_MANAGER': _FACILITY_LEADERSHIP[:],
    'MEDICAL_SUPERINTENDENT': _FACILITY_LEADERSHIP[:],
    'HOSPITAL_DIRECTOR': _FACILITY_LEADERSHIP[:],
    'DOCTOR': [
        'dashboard.read',
        'triage.read',
        'patients.read', 'patients.write',
        'transfers.read', 'transfers.write',
        'referrals.read', 'referrals.write',
        'telemedicine.read', 'telemedicine.write',
        'emergencies.read',
        'settings.read',
    ],
    'NURSE': [
        'dashboard.read',
        'triage.read', 'triage.write',
        'patients.read', 'patients.write',
        'referrals.read',
        'settings.read',
    ],
    'TRIAGE_OFFICER': [
        'dashboard.read',
        'triage.read', 'triage.write',
        'patients.read', 'patients.write',
        'settings.read',
    ],
    'DISPATCHER': _DISPATCH_DESK[:],
    'DISPATCH_COORDINATOR': _DISPATCH_DESK[:],
    'EMERGENCY_MANAGER': _DISPATCH_DESK[:] + ['analytics.read'],
    'AMBULANCE_DRIVER': _AMBULANCE_TEAM[:],
    'AMBULANCE_CREW': _AMBULANCE_TEAM[:],
    'FINANCE_OFFICER': [
        'dashboard.read',
        'claims.read', 'claims.write',
        'analytics.read',
        'settings.read',
    ],
    'LAB_TECHNICIAN': [
        'dashboard.read',
        'patients.read',
        'settings.read',
    ],
    'PHARMACIST': [
        'dashboard.read',
        'patients.read',
        'resources.read',
        'settings.read',
    ],
}

# Keys are lower-case; lookups lower-case the input first.
ROLE_ALIASES: dict[str, str] = {
    'super_admin': 'SUPER_ADMIN',
    'superadmin': 'SUPER_ADMIN',
    'admin': 'ADMIN',
    'administrator': 'ADMIN',
    'county_admin': 'COUNTY_ADMIN',
    'countyadmin': 'COUNTY_ADMIN',
    'county_health_officer': 'COUNTY_HEALTH_OFFICER',
    'hospital_admin': 'HOSPITAL_ADMIN',
    'hospitaladmin': 'HOSPITAL_ADMIN',
    'facility_manager': 'FACILITY_MANAGER',
    'facilitymanager': 'FACILITY_MANAGER',
    'doctor': 'DOCTOR',
    'medical_officer': 'DOCTOR',
    'nurse': 'NURSE',
    'triage_officer': 'TRIAGE_OFFICER',
    'triageofficer': 'TRIAGE_OFFICER',
    'triage_nurse': 'TRIAGE_OFFICER',
    'dispatcher': 'DISPATCHER',
    'dispatch_coordinator': 'DISPATCH_COORDINATOR',
    'dispatchcoordinator': 'DISPATCH_COORDINATOR',
    'ambulance_driver': 'AMBULANCE_DRIVER',
    'ambulancedriver': 'AMBULANCE_DRIVER',
    'ambulance_crew': 'AMBULANCE_CREW',
    'ambulancecrew': 'AMBULANCE_CREW',
    'emergency_manager': 'EMERGENCY_MANAGER',
    'emergencymanager': 'EMERGENCY_MANAGER',
    'finance_officer': 'FINANCE_OFFICER',
    'financeofficer': 'FINANCE_OFFICER',
    'lab_technician': 'LAB_TECHNICIAN',
    'labtechnician': 'LAB_TECHNICIAN',
    'pharmacist': 'PHARMACIST',
    'medical_superintendent': 'MEDICAL_SUPERINTENDENT',
    'medicalsuperintendent': 'MEDICAL_SUPERINTENDENT',
    'hospital_director': 'HOSPITAL_DIRECTOR',
    'hospitaldirector': 'HOSPITAL_DIRECTOR',
}

MODULE_PERMISSIONS: dict[str, list[str]] = {
    'dashboard': ['dashboard.read', WILDCARD],
    'triage': ['triage.read', 'triage.write', WILDCARD],
    'patients': ['patients.read', 'patients.write', WILDCARD],
    'transfers': ['transfers.read', 'transfers.write', WILDCARD],
    'dispatch': ['dispatch.read', 'dispatch.write', WILDCARD],
    'ambulances': ['ambulances.read', 'ambulances.write', WILDCARD],
    'emergencies': ['emergencies.read', 'emergencies.write', WILDCARD],
    'referrals': ['referrals.read', 'referrals.write', WILDCARD],
    'resources': ['resources.read', 'resources.write', WILDCARD],
    'procurement': ['procurement.read', 'procurement.write', WILDCARD],
    'sha-claims': ['claims.read', 'claims.write', WILDCARD],
    'telemedicine': ['telemedicine.read', 'telemedicine.write', WILDCARD],
    'analytics': ['analytics.read', WILDCARD],
    'staff': ['staff.read', 'staff.write', WILDCARD],
    'hospitals': ['hospitals.read', WILDCARD],
    'settings': ['settings.read', WILDCARD],
    'monitoring': [WILDCARD],
}


@dataclass(frozen=True)
class Principal:
    """Per-request view of the caller with a normalized role."""
    id: str
    email: str
    name: str
    role: str
    county_id: Optional[str] = None
    hospital_id: Optional[str] = None
    permissions: list[str] = field(default_factory=list)

    @property
    def is_super_admin(self) -> bool:
        return self.role == 'SUPER_ADMIN'

    def as_dict(self) -> dict:
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'countyId': self.county_id,
            'hospitalId': self.hospital_id,
            'permissions': list(self.permissions),
        }


def normalize_role(role: Optional[str]) -> str:
    if not role:
        return UNKNOWN_ROLE
    return ROLE_ALIASES.get(role.lower(), role.upper())


def get_permissions_for_role(role: Optional[str]) -> list[str]:
    normalized = normalize_role(role)
    perms = ROLE_PERMISSIONS.get(normalized)
    if not perms:
        logger.warning("no permissions configured for role %r (normalized %s)", role, normalized)
        return []
    return list(perms)


def has_permission(user, permission: str) -> bool:
    """True if ``user`` (a :class:`Principal` or anything with ``role`` and
    ``permissions``) holds ``permission``.

    Full-access roles pass regardless of their list; everyone else needs
    the exact permission or the wildcard.
    """
    if user is None:
        return False
    perms = getattr(user, 'permissions', None)
    if not perms:
        return False
    if normalize_role(getattr(user, 'role', None)) in FULL_ACCESS_ROLES:
        return True
    return WILDCARD in perms or permission in perms


def can_access_module(user, module: str) -> bool:
    accepted = MODULE_PERMISSIONS.get(module, [])
    return any(has_permission(user, perm) for perm in accepted)


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def ensure_basic_permissions(principal: Principal) -> Principal:
    """Return ``principal`` with a normalized role and a usable permission list.

    With no explicit grants the role's list is used; a role without one
    falls back to ``['dashboard.read']`` so misconfigured accounts can
    still reach the dashboard.  Explicit grants are merged with the role's
    list, keeping first-seen order.
    """
    role = normalize_role(principal.role)
    role_perms = get_permissions_for_role(role)
    if not principal.permissions:
        if not role_perms:
            logger.warning("role %s has no permissions; granting dashboard.read only to %s",
                           role, principal.email)
            return replace(principal, role=role, permissions=['dashboard.read'])
        return replace(principal, role=role, permissions=role_perms)
    return replace(principal, role=role, permissions=_dedupe([*principal.permissions, *role_perms]))


def principal_for(user) -> Principal:
    """Build the resolved principal for an authenticated Django user."""
    explicit = user.permissions if isinstance(getattr(user, 'permissions', None), list) else []
    base = Principal(
        id=str(user.pk),
        email=user.email or '',
        name=user.get_full_name() or user.username,
        role=user.role or '',
        county_id=user.county_id,
        hospital_id=user.hospital_id,
        permissions=list(explicit),
    )
    return ensure_basic_permissions(base)


def request_principal(request) -> Optional[Principal]:
    """Resolve (once per request) the principal of the authenticated caller."""
    user = getattr(request, 'user', None)
    if not (user and user.is_authenticated):
        return None
    cached = getattr(request, '_principal', None)
    if cached is None:
        cached = principal_for(user)
        request._principal = cached
    return cached


# ---------------------------------------------------------------------------
# DRF permission classes
# ---------------------------------------------------------------------------

class _PrincipalPermission(BasePermission):
    message = 'Insufficient permissions'

    def check(self, principal: Principal) -> bool:
        raise NotImplementedError

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        principal = request_principal(request)
        return bool(principal and self.check(principal))


def ModuleAccess(module: str) -> type[BasePermission]:
    """Permission class granting access to callers who can use ``module``."""
    class _ModuleAccess(_PrincipalPermission):
        def check(self, principal):
            return can_access_module(principal, module)
    _ModuleAccess.__name__ = f"ModuleAccess[{module}]"
    return _ModuleAccess


def RequiresPermission(permission: str) -> type[BasePermission]:
    """Permission class requiring one specific permission string."""
    class _RequiresPermission(_PrincipalPermission):
        def check(self, principal):
            return has_permission(principal, permission)
    _RequiresPermission.__name__ = f"RequiresPermission[{permission}]"
    return _RequiresPermission


class IsSuperAdmin(_PrincipalPermission):
    """Only the super admin role."""
    def check(self, principal):
        return principal.is_super_admin


def require(request, permission: str) -> Principal:
    """Inline check for handlers whose methods need different permissions."""
    principal = request_principal(request)
    if not has_permission(principal, permission):
        raise PermissionDenied('Insufficient permissions')
    return principal
