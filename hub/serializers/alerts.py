from rest_framework import serializers

from hub.realtime.broadcast import is_valid_channel
from hub.realtime.messages import PRIORITIES, MessageType


class AlertBroadcastSerializer(serializers.Serializer):
    channel = serializers.CharField(max_length=80)
    type = serializers.ChoiceField(choices=[m.value for m in MessageType])
    data = serializers.DictField(required=False, default=dict)
    priority = serializers.ChoiceField(choices=list(PRIORITIES), required=False)
    countyId = serializers.CharField(required=False, allow_blank=True)

    def validate_channel(self, v):
        v = (v or '').strip()
        if not is_valid_channel(v):
            raise serializers.ValidationError('invalid channel name')
        return v
