from rest_framework import serializers

from coordination.models import Department, Referral, Transfer
from coordination.serializers.common import CleanCharField


class TransferCreateSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=40)
    originHospitalId = serializers.CharField(max_length=40)
    destinationHospitalId = serializers.CharField(max_length=40)
    reason = CleanCharField()
    urgency = serializers.ChoiceField(choices=[c for c, _ in Transfer.URGENCY_CHOICES])
    diagnosis = CleanCharField(max_length=255)
    vitalSigns = serializers.DictField(required=False)
    transportMode = serializers.ChoiceField(choices=[c for c, _ in Transfer.TRANSPORT_CHOICES], required=False)
    notes = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['originHospitalId'] == attrs['destinationHospitalId']:
            raise serializers.ValidationError(
                {'destinationHospitalId': ['Destination must differ from origin']})
        return attrs


class TransferApproveSerializer(serializers.Serializer):
    bedNumber = serializers.CharField(required=False, allow_blank=True, max_length=40)
    acceptedBy = CleanCharField(required=False, allow_blank=True, max_length=120)
    ambulanceId = serializers.CharField(required=False, allow_null=True, max_length=40)
    notes = CleanCharField(required=False, allow_blank=True)


# Status moves after the destination has decided
TRANSFER_TRANSITIONS = {
    'REQUESTED': {'CANCELLED'},
    'APPROVED': {'IN_TRANSIT', 'CANCELLED'},
    'IN_TRANSIT': {'COMPLETED'},
}
EDITABLE_TRANSFER_STATUSES = {'REQUESTED', 'APPROVED'}


class TransferUpdateSerializer(serializers.Serializer):
    reason = CleanCharField(required=False)
    urgency = serializers.ChoiceField(choices=[c for c, _ in Transfer.URGENCY_CHOICES], required=False)
    diagnosis = CleanCharField(required=False, max_length=255)
    vitalSigns = serializers.DictField(required=False)
    transportMode = serializers.ChoiceField(choices=[c for c, _ in Transfer.TRANSPORT_CHOICES], required=False)
    ambulanceId = serializers.CharField(required=False, allow_null=True, max_length=40)
    notes = CleanCharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['IN_TRANSIT', 'COMPLETED', 'CANCELLED'], required=False)
    departureTime = serializers.DateTimeField(required=False)
    arrivalTime = serializers.DateTimeField(required=False)
    cancellationReason = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        t = self.instance
        new = attrs.get('status')
        details = set(attrs) - {'status', 'departureTime', 'arrivalTime', 'cancellationReason'}
        if t is not None:
            if new and new not in TRANSFER_TRANSITIONS.get(t.status, set()):
                raise serializers.ValidationError({'status': [f"Cannot move transfer from {t.status} to {new}"]})
            if details and t.status not in EDITABLE_TRANSFER_STATUSES:
                raise serializers.ValidationError({'status': [f"Transfer is {t.status} and can no longer be edited"]})
        dep = attrs.get('departureTime') or (t.departure_time if t is not None else None)
        arr = attrs.get('arrivalTime')
        if dep and arr and arr < dep:
            raise serializers.ValidationError({'arrivalTime': ['Arrival cannot be before departure']})
        return attrs


TRANSFER_FIELD_MAP = {
    'reason': 'reason',
    'urgency': 'urgency',
    'diagnosis': 'diagnosis',
    'vitalSigns': 'vital_signs',
    'transportMode': 'transport_mode',
    'notes': 'notes',
}


class AvailableBedsQuerySerializer(serializers.Serializer):
    hospitalId = serializers.CharField(max_length=40)
    departmentType = serializers.ChoiceField(choices=[c for c, _ in Department.TYPE_CHOICES], required=False)


class TransferRejectSerializer(serializers.Serializer):
    reason = CleanCharField()


class TransferListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=[c for c, _ in Transfer.STATUS_CHOICES], required=False)
    urgency = serializers.ChoiceField(choices=[c for c, _ in Transfer.URGENCY_CHOICES], required=False)
    direction = serializers.ChoiceField(choices=['incoming', 'outgoing', 'all'], required=False, default='all')


class ReferralCreateSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=40)
    referringHospitalId = serializers.CharField(max_length=40)
    receivingHospitalId = serializers.CharField(max_length=40)
    reason = CleanCharField()
    clinicalSummary = CleanCharField(required=False, allow_blank=True)
    urgency = serializers.ChoiceField(choices=[c for c, _ in Referral.URGENCY_CHOICES], required=False)

    def validate(self, attrs):
        if attrs['referringHospitalId'] == attrs['receivingHospitalId']:
            raise serializers.ValidationError(
                {'receivingHospitalId': ['Receiving hospital must differ from referring hospital']})
        return attrs


class ReferralRespondSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=['ACCEPTED', 'DECLINED'])
    notes = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs['decision'] == 'DECLINED' and not attrs.get('notes'):
            raise serializers.ValidationError({'notes': ['A reason is required when declining']})
        return attrs


class ReferralListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=[c for c, _ in Referral.STATUS_CHOICES], required=False)
