"""
Authentication views.

Login is by email and password and answers with a SimpleJWT access and
refresh pair plus the resolved principal (role, facility, permissions).
A Django session is opened as well so the browsable API and the admin
work with the same credentials.  Kept apart from
``coordination.authentication`` to avoid circular imports while DRF
initialises its authentication classes.
"""
from __future__ import annotations

import logging

from django.contrib.auth import login, logout
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from coordination.authentication import issue_tokens_for
from coordination.models import User
from coordination.permissions import principal_for, request_principal
from coordination.serializers.auth import LoginSerializer, LogoutSerializer, RefreshSerializer
from coordination.services.audit import log_action

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid email or password'


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


def _login_failed(request, *, email: str, user: User | None, reason: str):
    principal = principal_for(user) if user is not None else None
    log_action(principal=principal, action='LOGIN', entity_type='USER',
               entity_id=user.pk if user is not None else email,
               description=f"Failed login attempt - {reason.lower()}",
               request=request, success=False, error_message=reason)


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']
    password = s.validated_data['password']

    user = User.objects.filter(email__iexact=email).select_related('hospital', 'county').first()
    if user is None:
        _login_failed(request, email=email, user=None, reason='User not found')
        raise AuthenticationFailed(INVALID_CREDENTIALS)
    if not user.is_active:
        _login_failed(request, email=email, user=user, reason='Account inactive')
        raise AuthenticationFailed('Account is deactivated. Please contact administrator.')
    if not user.check_password(password):
        _login_failed(request, email=email, user=user, reason='Invalid password')
        raise AuthenticationFailed(INVALID_CREDENTIALS)

    login(request._request, user, backend='django.contrib.auth.backends.ModelBackend')
    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])

    principal = principal_for(user)
    access, refresh = issue_tokens_for(user)
    log_action(principal=principal, action='LOGIN', entity_type='USER', entity_id=user.pk,
               description='User logged into the system', request=request)
    logger.info("login ok: %s (%s)", user.email, principal.role)

    payload = principal.as_dict()
    payload.update({
        'firstName': user.first_name,
        'lastName': user.last_name,
        'facilityName': user.hospital.name if user.hospital_id else None,
    })
    return Response({
        'ok': True,
        'message': 'Login successful',
        'token': access,
        'accessToken': access,
        'refreshToken': refresh,
        'user': payload,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    principal = request_principal(request)
    user = request.user
    data = principal.as_dict()
    data.update({
        'firstName': user.first_name,
        'lastName': user.last_name,
        'phone': user.phone,
        'facilityName': user.hospital.name if user.hospital_id else None,
        'countyName': user.county.name if user.county_id else None,
    })
    return Response({'user': data})


@api_view(['POST'])
@permission_classes([AllowAny])
def refresh_view(request):
    """Exchange a refresh token (``refreshToken`` or ``refresh``) for a new access token."""
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    inner = TokenRefreshSerializer(data=s.validated_data)
    try:
        inner.is_valid(raise_exception=True)
    except TokenError as e:
        raise AuthenticationFailed(str(e))
    data = {'accessToken': inner.validated_data['access'], 'token': inner.validated_data['access']}
    if 'refresh' in inner.validated_data:
        data['refreshToken'] = inner.validated_data['refresh']
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Blacklist the given refresh token, or every outstanding one, and end the session."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    raw = s.validated_data.get('refreshToken') or s.validated_data.get('refresh')
    principal = request_principal(request)
    count = 0
    if raw:
        try:
            RefreshToken(raw).blacklist()
            count = 1
        except TokenError as e:
            logger.info("logout with unusable refresh token: %s", e)
    else:
        for token in OutstandingToken.objects.filter(user_id=principal.id):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    log_action(principal=principal, action='LOGOUT', entity_type='USER', entity_id=principal.id,
               description='User logged out', changes={'blacklisted': count}, request=request)
    logout(request._request)
    return Response({'ok': True, 'blacklisted': count})
