"""Lower facility tiers and hospital departments (read only; edits go through the admin)."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from coordination.models import CommunityHealthUnit, Department, Dispensary, HealthCenter
from coordination.permissions import ModuleAccess, request_principal
from coordination.services.scoping import scope_by_county, scoped_county_id


def _county_filtered(request, qs):
    qs = scope_by_county(qs, request_principal(request))
    county_id = request.query_params.get('countyId')
    if county_id:
        qs = qs.filter(county_id=county_id)
    return qs


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
def health_centers(request):
    qs = _county_filtered(request, HealthCenter.objects.filter(is_active=True))
    data = [{
        'id': c.id,
        'name': c.name,
        'code': c.code,
        'mflCode': c.mfl_code,
        'countyId': c.county_id,
        'subCounty': c.sub_county,
        'ward': c.ward,
        'parentHospitalId': c.parent_hospital_id,
        'totalBeds': c.total_beds,
        'availableBeds': c.available_beds,
    } for c in qs]
    return Response({'healthCenters': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
def dispensaries(request):
    qs = _county_filtered(request, Dispensary.objects.filter(is_active=True))
    data = [{
        'id': d.id,
        'name': d.name,
        'code': d.code,
        'mflCode': d.mfl_code,
        'countyId': d.county_id,
        'subCounty': d.sub_county,
        'ward': d.ward,
        'healthCenterId': d.health_center_id,
    } for d in qs]
    return Response({'dispensaries': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
def community_health_units(request):
    qs = _county_filtered(request, CommunityHealthUnit.objects.all())
    data = [{
        'id': u.id,
        'name': u.name,
        'code': u.code,
        'countyId': u.county_id,
        'linkDispensaryId': u.link_dispensary_id,
        'householdsCovered': u.households_covered,
        'promotersCount': u.promoters_count,
    } for u in qs]
    return Response({'communityHealthUnits': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess('hospitals')])
def departments(request):
    qs = Department.objects.select_related('hospital')
    county_id = scoped_county_id(request_principal(request))
    if county_id:
        qs = qs.filter(hospital__county_id=county_id)
    hospital_id = request.query_params.get('hospitalId')
    if hospital_id:
        qs = qs.filter(hospital_id=hospital_id)
    dept_type = request.query_params.get('type')
    if dept_type:
        qs = qs.filter(department_type=dept_type)
    data = [{
        'id': d.id,
        'name': d.name,
        'type': d.department_type,
        'hospitalId': d.hospital_id,
        'hospitalName': d.hospital.name,
        'totalBeds': d.total_beds,
        'availableBeds': d.available_beds,
    } for d in qs]
    return Response({'departments': data})
