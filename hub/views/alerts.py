from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hub.permissions import CanBroadcast
from hub.realtime.broadcast import broadcast_envelope
from hub.realtime.messages import Envelope
from hub.serializers.alerts import AlertBroadcastSerializer


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanBroadcast])
def broadcast_alert(request):
    """Push one envelope to every socket subscribed to ``channel``."""
    s = AlertBroadcastSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    envelope = Envelope(
        type=vd['type'],
        data=vd.get('data') or {},
        facility_id=request.user.facility_id,
        county_id=vd.get('countyId') or None,
        priority=vd.get('priority'),
    )
    delivered = broadcast_envelope(vd['channel'], envelope)
    return Response({'ok': True, 'data': {'channel': vd['channel'], 'delivered': delivered,
                                          'envelope': envelope.to_dict()}}, status=202)
