from decimal import Decimal

from rest_framework import serializers

from coordination.models import SHAClaim
from coordination.serializers.common import CleanCharField

CLAIM_STATUSES = [c for c, _ in SHAClaim.STATUS_CHOICES]

CLAIM_TRANSITIONS = {
    'DRAFT': {'SUBMITTED'},
    'SUBMITTED': {'UNDER_REVIEW', 'APPROVED', 'REJECTED'},
    'UNDER_REVIEW': {'APPROVED', 'REJECTED'},
    'APPROVED': {'PAID'},
}


class ClaimCreateSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=40)
    hospitalId = serializers.CharField(required=False, max_length=40)
    serviceType = serializers.ChoiceField(choices=[c for c, _ in SHAClaim.SERVICE_CHOICES])
    diagnosisCode = serializers.RegexField(r'^[A-Z][0-9]{2}(\.[0-9A-Z]{1,4})?$', required=False, allow_blank=True)
    amountClaimed = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    draft = serializers.BooleanField(required=False, default=False)


class ClaimStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CLAIM_STATUSES)
    amountApproved = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=Decimal('0'))
    rejectionReason = CleanCharField(required=False, allow_blank=True)

    def validate(self, attrs):
        claim = self.instance
        new = attrs['status']
        if claim is not None and new not in CLAIM_TRANSITIONS.get(claim.status, set()):
            raise serializers.ValidationError({'status': [f"Cannot move claim from {claim.status} to {new}"]})
        if new == 'REJECTED' and not attrs.get('rejectionReason'):
            raise serializers.ValidationError({'rejectionReason': ['Required when rejecting a claim']})
        if new == 'APPROVED' and claim is not None:
            approved = attrs.get('amountApproved', claim.amount_claimed)
            if approved > claim.amount_claimed:
                raise serializers.ValidationError({'amountApproved': ['Cannot exceed the amount claimed']})
            attrs['amountApproved'] = approved
        return attrs


class ClaimListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=CLAIM_STATUSES, required=False)
    hospitalId = serializers.CharField(required=False)
    patientId = serializers.CharField(required=False)
