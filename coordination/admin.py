"""
Django admin registrations for the coordination models.

Gives superusers a read/edit view over facilities, accounts and
operational records at ``/admin/``.  Audit logs are read only.
"""

from django.contrib import admin

from .models import (
    Ambulance,
    AuditLog,
    CommunityHealthUnit,
    County,
    Department,
    DispatchCenter,
    DispatchLog,
    Dispensary,
    Emergency,
    HealthCenter,
    Hospital,
    Patient,
    Referral,
    SHAClaim,
    Staff,
    StaffShift,
    SystemAlert,
    Transfer,
    TriageEntry,
    User,
)


@admin.register(County)
class CountyAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'region', 'population')
    search_fields = ('id', 'name', 'code')


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'county', 'level', 'available_beds', 'total_beds', 'is_active')
    list_filter = ('level', 'county', 'sha_contracted', 'is_active')
    search_fields = ('id', 'name', 'code', 'mfl_code')


@admin.register(HealthCenter)
class HealthCenterAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'county', 'parent_hospital')
    list_filter = ('county',)
    search_fields = ('name', 'code')


@admin.register(Dispensary)
class DispensaryAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'county', 'health_center')
    list_filter = ('county',)
    search_fields = ('name', 'code')


@admin.register(CommunityHealthUnit)
class CommunityHealthUnitAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'county', 'households_covered')
    search_fields = ('name', 'code')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('name', 'hospital', 'department_type', 'available_beds', 'total_beds')
    list_filter = ('department_type',)
    search_fields = ('name', 'hospital__name')


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'role', 'county', 'hospital', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'username', 'first_name', 'last_name')


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ('staff_number', 'user', 'hospital', 'department', 'cadre', 'is_active')
    list_filter = ('hospital', 'employment_status')
    search_fields = ('staff_number', 'user__email', 'user__first_name', 'user__last_name')


@admin.register(StaffShift)
class StaffShiftAdmin(admin.ModelAdmin):
    list_display = ('staff', 'hospital', 'start_at', 'end_at')
    list_filter = ('hospital',)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_number', 'first_name', 'last_name', 'current_hospital', 'current_status')
    list_filter = ('current_status', 'gender')
    search_fields = ('patient_number', 'first_name', 'last_name', 'national_id', 'sha_number')


@admin.register(TriageEntry)
class TriageEntryAdmin(admin.ModelAdmin):
    list_display = ('triage_number', 'patient', 'hospital', 'triage_level', 'status', 'arrival_time')
    list_filter = ('triage_level', 'status')
    search_fields = ('triage_number', 'patient__patient_number')


@admin.register(Emergency)
class EmergencyAdmin(admin.ModelAdmin):
    list_display = ('emergency_number', 'emergency_type', 'severity', 'county', 'status', 'reported_at')
    list_filter = ('status', 'severity', 'county')
    search_fields = ('emergency_number', 'location')


@admin.register(DispatchCenter)
class DispatchCenterAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'county', 'is_active')


@admin.register(Ambulance)
class AmbulanceAdmin(admin.ModelAdmin):
    list_display = ('registration_number', 'call_sign', 'ambulance_type', 'county', 'status')
    list_filter = ('status', 'ambulance_type')
    search_fields = ('registration_number', 'call_sign')


@admin.register(DispatchLog)
class DispatchLogAdmin(admin.ModelAdmin):
    list_display = ('dispatch_number', 'emergency', 'ambulance', 'status', 'call_received')
    list_filter = ('status',)
    search_fields = ('dispatch_number', 'caller_phone')


@admin.register(Transfer)
class TransferAdmin(admin.ModelAdmin):
    list_display = ('transfer_number', 'patient', 'origin_hospital', 'destination_hospital', 'status')
    list_filter = ('status', 'urgency')
    search_fields = ('transfer_number',)


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ('referral_number', 'patient', 'referring_hospital', 'receiving_hospital', 'status')
    list_filter = ('status',)
    search_fields = ('referral_number',)


@admin.register(SHAClaim)
class SHAClaimAdmin(admin.ModelAdmin):
    list_display = ('claim_number', 'patient', 'hospital', 'amount_claimed', 'status')
    list_filter = ('status', 'service_type')
    search_fields = ('claim_number', 'sha_number')


@admin.register(SystemAlert)
class SystemAlertAdmin(admin.ModelAdmin):
    list_display = ('alert_number', 'title', 'severity', 'audience_type', 'hospital', 'created_at')
    list_filter = ('severity', 'audience_type')
    search_fields = ('alert_number', 'title')


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'action', 'entity_type', 'entity_id', 'user_name', 'success')
    list_filter = ('action', 'entity_type', 'success')
    search_fields = ('entity_id', 'user_name', 'description')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
