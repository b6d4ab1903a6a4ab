"""
Audit trail views.

Administrators can page through, search, aggregate and export the
audit trail.  Everyone except super administrators only sees entries
of their own facility.
"""
from __future__ import annotations

from django.http import HttpResponse
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hub.permissions import IsAdminRole, facility_scope
from hub.serializers.audit import (
    AuditExportQuerySerializer,
    AuditLogQuerySerializer,
    AuditSearchQuerySerializer,
    AuditStatisticsQuerySerializer,
)
from hub.services import audit_queries


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_logs(request):
    q = AuditLogQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    result = audit_queries.get_audit_logs(
        page=vd['page'],
        limit=vd['limit'],
        user_id=vd.get('userId'),
        entity_type=vd.get('entityType'),
        entity_id=vd.get('entityId'),
        action=vd.get('action'),
        start_date=vd.get('startDate'),
        end_date=vd.get('endDate'),
        facility_id=facility_scope(request.user, vd.get('facilityId')),
    )
    return Response({'ok': True, **result})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_search(request):
    q = AuditSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    result = audit_queries.search_audit_logs(
        vd['q'],
        page=vd['page'],
        limit=vd['limit'],
        facility_id=facility_scope(request.user, vd.get('facilityId')),
    )
    return Response({'ok': True, **result})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_statistics(request):
    q = AuditStatisticsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    stats = audit_queries.get_audit_statistics(
        vd['timeframe'], facility_scope(request.user, vd.get('facilityId'))
    )
    return Response({'ok': True, 'data': stats})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_export(request):
    """Download the filtered audit trail as CSV."""
    q = AuditExportQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    content = audit_queries.export_audit_logs_csv(
        start_date=vd.get('startDate'),
        end_date=vd.get('endDate'),
        entity_type=vd.get('entityType'),
        user_id=vd.get('userId'),
        facility_id=facility_scope(request.user, vd.get('facilityId')),
        exported_by=request.user,
    )
    filename = f"audit-logs-{timezone.now():%Y%m%d-%H%M%S}.csv"
    resp = HttpResponse(content, content_type='text/csv; charset=utf-8')
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    return resp
