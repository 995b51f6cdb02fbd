"""
Emergency incident API: county scoping, validation, alert fan-out and
the audit trail.  Uses DRF's APITestCase with forced authentication so
no token round trip is needed.
"""

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from coordination.models import AuditLog, County, DispatchCenter, Emergency, Hospital, SystemAlert, User


class EmergencyAPITests(APITestCase):
    def setUp(self) -> None:
        self.nairobi = County.objects.create(id='county-001', name='Nairobi', code='KE-47')
        self.mombasa = County.objects.create(id='county-002', name='Mombasa', code='KE-01')
        self.knh = Hospital.objects.create(id='hosp-001', name='KNH', code='KNH-001',
                                           county=self.nairobi, level='LEVEL_6')
        self.mbagathi = Hospital.objects.create(id='hosp-003', name='Mbagathi', code='MBG-001',
                                                county=self.nairobi, level='LEVEL_4')
        # neither of these should receive alerts
        Hospital.objects.create(id='hosp-004', name='Closed', code='CLS-001', county=self.nairobi,
                                level='LEVEL_3', is_active=False)
        Hospital.objects.create(id='hosp-005', name='Full', code='FUL-001', county=self.nairobi,
                                level='LEVEL_3', accepting_patients=False)
        Hospital.objects.create(id='hosp-002', name='Coast', code='MCH-001', county=self.mombasa,
                                level='LEVEL_5')
        DispatchCenter.objects.create(id='dc-001', name='Nairobi Dispatch', county=self.nairobi)

        self.county_admin = User.objects.create_user(
            username='ca', email='ca@health.go.ke', password='x', role='COUNTY_ADMIN', county=self.nairobi)
        self.hospital_admin = User.objects.create_user(
            username='ha', email='ha@health.go.ke', password='x', role='hospital_admin', hospital=self.knh)
        self.super_admin = User.objects.create_user(
            username='sa', email='sa@health.go.ke', password='x', role='SUPER_ADMIN')
        self.nurse = User.objects.create_user(
            username='n', email='n@health.go.ke', password='x', role='NURSE', hospital=self.knh)

        self.payload = {
            'type': 'TRAFFIC_ACCIDENT',
            'severity': 'MAJOR',
            'countyId': 'county-001',
            'location': 'Thika Road',
            'description': 'Bus overturned',
            'estimatedCasualties': 12,
        }

    def test_county_admin_creates_emergency_and_alerts_fan_out(self) -> None:
        self.client.force_authenticate(self.county_admin)
        resp = self.client.post(reverse('emergencies'), self.payload, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data['emergencyNumber'].startswith('EMG-'))
        self.assertEqual(resp.data['status'], 'REPORTED')

        e = Emergency.objects.get(pk=resp.data['id'])
        alerts = SystemAlert.objects.filter(source_id=e.id)
        hospital_ids = set(alerts.filter(audience_type='SPECIFIC_HOSPITAL').values_list('hospital_id', flat=True))
        self.assertEqual(hospital_ids, {'hosp-001', 'hosp-003'})
        self.assertEqual(alerts.filter(audience_type='ALL_DISPATCHERS').count(), 1)
        self.assertTrue(all(a.severity == 'CRITICAL' and a.priority == 1 for a in alerts))

        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity_type='EMERGENCY',
                                                entity_id=e.id, success=True).exists())

    def test_county_admin_cannot_create_in_other_county(self) -> None:
        self.client.force_authenticate(self.county_admin)
        resp = self.client.post(reverse('emergencies'), {**self.payload, 'countyId': 'county-002'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.data['error'], 'Access denied - can only create emergencies in your county')
        self.assertFalse(Emergency.objects.exists())

    def test_invalid_payload_lists_details(self) -> None:
        self.client.force_authenticate(self.super_admin)
        resp = self.client.post(reverse('emergencies'), {'type': 'ALIENS', 'countyId': 'county-001'},
                                format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error'], 'Invalid data')
        fields = {d['field'] for d in resp.data['details']}
        self.assertTrue({'type', 'severity', 'location', 'description'} <= fields)

    def test_unknown_county_is_404(self) -> None:
        self.client.force_authenticate(self.super_admin)
        resp = self.client.post(reverse('emergencies'), {**self.payload, 'countyId': 'nope'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data, {'error': 'County not found'})

    def test_nurse_can_not_create(self) -> None:
        self.client.force_authenticate(self.nurse)
        resp = self.client.post(reverse('emergencies'), self.payload, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_is_scoped_to_county(self) -> None:
        Emergency.objects.create(emergency_number='EMG-A', emergency_type='FIRE', severity='MINOR',
                                 county=self.nairobi, location='CBD', description='x',
                                 reported_at='2025-01-01T10:00:00Z')
        Emergency.objects.create(emergency_number='EMG-B', emergency_type='FIRE', severity='MINOR',
                                 county=self.mombasa, location='Old Town', description='x',
                                 reported_at='2025-01-01T11:00:00Z')
        self.client.force_authenticate(self.hospital_admin)
        resp = self.client.get(reverse('emergencies'))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([e['emergencyNumber'] for e in resp.data['emergencies']], ['EMG-A'])
        self.assertEqual(resp.data['pagination']['total'], 1)

        self.client.force_authenticate(self.super_admin)
        resp = self.client.get(reverse('emergencies'), {'limit': 1, 'page': 2})
        self.assertEqual(resp.data['pagination'], {'page': 2, 'limit': 1, 'total': 2, 'pages': 2})
        self.assertEqual(resp.data['emergencies'][0]['emergencyNumber'], 'EMG-A')

    def test_detail_outside_county_is_404(self) -> None:
        e = Emergency.objects.create(emergency_number='EMG-C', emergency_type='FIRE', severity='MINOR',
                                     county=self.mombasa, location='Old Town', description='x',
                                     reported_at='2025-01-01T11:00:00Z')
        self.client.force_authenticate(self.county_admin)
        resp = self.client.get(reverse('emergency_detail', args=[e.id]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data, {'error': 'Emergency not found'})

    def test_resolving_sets_resolved_at(self) -> None:
        e = Emergency.objects.create(emergency_number='EMG-D', emergency_type='MEDICAL', severity='MODERATE',
                                     county=self.nairobi, location='Westlands', description='x',
                                     reported_at='2025-01-01T11:00:00Z')
        self.client.force_authenticate(self.county_admin)
        resp = self.client.patch(reverse('emergency_detail', args=[e.id]), {'status': 'RESOLVED'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['status'], 'RESOLVED')
        self.assertIsNotNone(resp.data['resolvedAt'])
        log = AuditLog.objects.get(action='UPDATE', entity_id=e.id)
        self.assertEqual(log.changes['status'], {'from': 'REPORTED', 'to': 'RESOLVED'})

    def test_bulk_update_rejects_foreign_rows(self) -> None:
        mine = Emergency.objects.create(emergency_number='EMG-E', emergency_type='FIRE', severity='MINOR',
                                        county=self.nairobi, location='a', description='x',
                                        reported_at='2025-01-01T11:00:00Z')
        other = Emergency.objects.create(emergency_number='EMG-F', emergency_type='FIRE', severity='MINOR',
                                         county=self.mombasa, location='b', description='x',
                                         reported_at='2025-01-01T11:00:00Z')
        self.client.force_authenticate(self.county_admin)
        resp = self.client.patch(reverse('emergencies'),
                                 {'ids': [mine.id, other.id], 'data': {'status': 'CONTAINED'}}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        resp = self.client.patch(reverse('emergencies'),
                                 {'ids': [mine.id], 'data': {'status': 'CONTAINED'}}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['count'], 1)
        mine.refresh_from_db()
        self.assertEqual(mine.status, 'CONTAINED')
