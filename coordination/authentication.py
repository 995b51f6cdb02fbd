"""
Bearer token authentication for the coordination API.

Access tokens are SimpleJWT tokens carrying the caller's role and
facility claims so a client can render menus without an extra round
trip.  Authorization never trusts those claims: permissions are always
resolved from the database user (see :func:`coordination.permissions.principal_for`).
Keeping this class in its own module avoids circular imports when DRF
loads ``DEFAULT_AUTHENTICATION_CLASSES``.
"""
from __future__ import annotations

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.tokens import RefreshToken

from coordination.permissions import normalize_role


class BearerAuthentication(JWTAuthentication):
    """``Authorization: Bearer <access>`` using SimpleJWT.

    Exists to provide a stable import path for the settings and to add
    the ``WWW-Authenticate`` realm, which makes DRF answer 401 rather
    than 403 for anonymous callers.
    """

    www_authenticate_realm = 'healthnet'


def issue_tokens_for(user) -> tuple[str, str]:
    """Return ``(access, refresh)`` token strings for ``user``."""
    refresh = RefreshToken.for_user(user)
    refresh['email'] = user.email
    refresh['role'] = normalize_role(user.role)
    refresh['countyId'] = user.county_id
    refresh['hospitalId'] = user.hospital_id
    return str(refresh.access_token), str(refresh)
