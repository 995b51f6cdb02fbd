from django.db import transaction
from django.db.models import Count
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import County
from coordination.permissions import ModuleAccess, request_principal, require
from coordination.serializers.facility import CountyCreateSerializer
from coordination.services.audit import audit_failures, log_action
from coordination.services.scoping import scope_by_county
from coordination.views.common import get_or_404


def _serialize(c: County, *, detail: bool = False) -> dict:
    data = {
        'id': c.id,
        'name': c.name,
        'code': c.code,
        'region': c.region,
        'population': c.population,
        'isMarginalized': c.is_marginalized,
        'hospitalCount': getattr(c, 'hospital_count', None),
    }
    if detail:
        data.update({
            'areaKm2': c.area_km2,
            'coordinates': c.coordinates,
            'governorName': c.governor_name,
            'healthCECName': c.health_cec_name,
            'countyHealthDirector': c.county_health_director,
            'annualHealthBudget': str(c.annual_health_budget) if c.annual_health_budget is not None else None,
        })
    return data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess('dashboard')])
@audit_failures('COUNTY')
def counties(request):
    principal = request_principal(request)
    if request.method == 'GET':
        qs = scope_by_county(County.objects.annotate(hospital_count=Count('hospitals')), principal, field='id')
        return Response({'counties': [_serialize(c) for c in qs]})

    require(request, 'system.write')
    s = CountyCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    with transaction.atomic():
        c = County.objects.create(
            name=v['name'],
            code=v['code'],
            region=v.get('region', ''),
            population=v.get('population', 0),
            area_km2=v.get('areaKm2'),
            coordinates=dict(v['coordinates']) if v.get('coordinates') else None,
            governor_name=v.get('governorName', ''),
            health_cec_name=v.get('healthCECName', ''),
            county_health_director=v.get('countyHealthDirector', ''),
            annual_health_budget=v.get('annualHealthBudget'),
            is_marginalized=v.get('isMarginalized', False),
        )
        log_action(principal=principal, action='CREATE', entity_type='COUNTY', entity_id=c.id,
                   description=f"Created county {c.name}", request=request)
    return Response(_serialize(c, detail=True), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('dashboard')])
def county_detail(request, pk: str):
    principal = request_principal(request)
    qs = scope_by_county(County.objects.annotate(hospital_count=Count('hospitals')), principal, field='id')
    return Response(_serialize(get_or_404(qs, pk, 'County'), detail=True))
