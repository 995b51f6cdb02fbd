import logging
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


@dataclass
class ShaMember:
    sha_number: str
    status: str
    coverage_tier: Optional[str] = None
    member_since: Optional[str] = None
    annual_limit: Optional[float] = None


class ShaRegistryError(RuntimeError):
    pass


def lookup_member(sha_number: str) -> Optional[ShaMember]:
    """Query the remote SHA member registry.

    Returns ``None`` when no registry is configured or the member is
    unknown; raises :class:`ShaRegistryError` on transport or protocol
    errors.
    """
    if not settings.SHA_API_URL:
        return None
    url = f"{settings.SHA_API_URL}/members/{sha_number}"
    headers = {'Authorization': f"Bearer {settings.SHA_API_KEY}"} if settings.SHA_API_KEY else {}
    try:
        r = requests.get(url, headers=headers, timeout=settings.SHA_API_TIMEOUT)
    except requests.RequestException as e:
        raise ShaRegistryError(f"SHA registry unreachable: {e}") from e
    if r.status_code == 404:
        return None
    if r.status_code >= 400:
        raise ShaRegistryError(f"SHA registry error {r.status_code}")
    data = r.json()
    if not data.get('shaNumber'):
        raise ShaRegistryError('Invalid response from SHA registry: missing shaNumber')
    return ShaMember(
        sha_number=data['shaNumber'],
        status=str(data.get('status') or 'UNKNOWN').upper(),
        coverage_tier=data.get('coverageTier'),
        member_since=data.get('memberSince'),
        annual_limit=data.get('annualLimit'),
    )


def eligibility_for(sha_number: Optional[str]) -> dict:
    """Eligibility summary for a patient's SHA number, consulting the registry if configured."""
    if not sha_number:
        return {'status': 'NOT_REGISTERED', 'verified': False, 'registry': None}
    try:
        member = lookup_member(sha_number)
    except ShaRegistryError as e:
        logger.warning("SHA lookup failed for %s: %s", sha_number, e)
        return {'status': 'UNVERIFIED', 'verified': False, 'registry': None, 'message': str(e)}
    if member is None:
        status = 'UNVERIFIED' if settings.SHA_API_URL else 'REGISTERED'
        return {'status': status, 'verified': False, 'registry': None}
    return {
        'status': 'ELIGIBLE' if member.status == 'ACTIVE' else 'INELIGIBLE',
        'verified': True,
        'registry': {
            'shaNumber': member.sha_number,
            'status': member.status,
            'coverageTier': member.coverage_tier,
            'memberSince': member.member_since,
            'annualLimit': member.annual_limit,
        },
    }
