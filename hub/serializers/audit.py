from rest_framework import serializers

from hub.models import AuditLog
from hub.services.audit_queries import TIMEFRAMES

ACTIONS = [choice for choice, _ in AuditLog.ACTION_CHOICES]


class AuditLogQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500, default=50)
    userId = serializers.CharField(required=False, allow_blank=True)
    entityType = serializers.CharField(required=False, allow_blank=True)
    entityId = serializers.CharField(required=False, allow_blank=True)
    action = serializers.ChoiceField(choices=ACTIONS, required=False)
    startDate = serializers.DateTimeField(required=False)
    endDate = serializers.DateTimeField(required=False)
    facilityId = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end and start > end:
            raise serializers.ValidationError('startDate must not be after endDate')
        return attrs


class AuditSearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=200)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=500, default=50)
    facilityId = serializers.CharField(required=False, allow_blank=True)

    def validate_q(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('search query must not be empty')
        return v


class AuditStatisticsQuerySerializer(serializers.Serializer):
    timeframe = serializers.ChoiceField(choices=list(TIMEFRAMES), required=False, default='24h')
    facilityId = serializers.CharField(required=False, allow_blank=True)


class AuditExportQuerySerializer(serializers.Serializer):
    startDate = serializers.DateTimeField(required=False)
    endDate = serializers.DateTimeField(required=False)
    entityType = serializers.CharField(required=False, allow_blank=True)
    userId = serializers.CharField(required=False, allow_blank=True)
    facilityId = serializers.CharField(required=False, allow_blank=True)
