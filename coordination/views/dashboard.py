import datetime as dt

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import TriageEntry
from coordination.permissions import ModuleAccess, request_principal
from coordination.serializers.triage import AnalyticsQuerySerializer
from coordination.services.dashboard import dashboard_stats
from coordination.services.scoping import scoped_county_id, scoped_hospital_id
from coordination.services.triage import triage_analytics

DEFAULT_ANALYTICS_DAYS = 7


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('dashboard')])
def stats(request):
    principal = request_principal(request)
    return Response(dashboard_stats(county_id=scoped_county_id(principal)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('analytics')])
def triage_trends(request):
    """Per-day triage counts by level; defaults to the last seven days."""
    principal = request_principal(request)
    q = AnalyticsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    today = timezone.localdate()
    end = vd.get('endDate') or today
    start = vd.get('startDate') or end - dt.timedelta(days=DEFAULT_ANALYTICS_DAYS - 1)
    if start > end:
        start = end

    qs = TriageEntry.objects.all()
    county_id = scoped_county_id(principal)
    if county_id:
        qs = qs.filter(hospital__county_id=county_id)
    hospital_id = scoped_hospital_id(principal) or vd.get('hospitalId')
    return Response(triage_analytics(qs, start=start, end=end, hospital_id=hospital_id))
