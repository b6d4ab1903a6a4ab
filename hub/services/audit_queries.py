"""
Read side of the audit trail: paginated listing, search, dashboard
statistics, CSV export and retention cleanup.
"""
from __future__ import annotations

import csv
import io
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Optional

from django.db.models import Count, Q, QuerySet
from django.db.models.functions import TruncHour
from django.utils import timezone

from hub.models import AuditLog
from hub.services.audit import AuditAction, AuditRecord, AuditSink, get_audit_sink

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    '24h': timedelta(hours=24),
    '7d': timedelta(days=7),
    '30d': timedelta(days=30),
}

CSV_HEADERS = [
    'Timestamp', 'User ID', 'User Role', 'User Name', 'Action', 'Entity Type',
    'Entity ID', 'Description', 'Success', 'IP Address', 'Facility ID',
]


def format_audit_log(log: AuditLog) -> dict:
    return {
        'id': log.id,
        'timestamp': log.timestamp.isoformat(),
        'userId': log.user_id,
        'userRole': log.user_role,
        'userName': log.user_name,
        'action': log.action,
        'entityType': log.entity_type,
        'entityId': log.entity_id,
        'description': log.description,
        'changes': log.changes,
        'ipAddress': log.ip_address,
        'userAgent': log.user_agent,
        'facilityId': log.facility_id,
        'success': log.success,
        'errorMessage': log.error_message,
    }


def filter_audit_logs(
    *,
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    facility_id: Optional[str] = None,
) -> QuerySet:
    qs = AuditLog.objects.all()
    if user_id:
        qs = qs.filter(user_id=user_id)
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if action:
        qs = qs.filter(action=AuditAction(action).value)
    if facility_id:
        qs = qs.filter(facility_id=facility_id)
    if start_date:
        qs = qs.filter(timestamp__gte=start_date)
    if end_date:
        qs = qs.filter(timestamp__lte=end_date)
    return qs.order_by('-timestamp', '-id')


def _paginate(qs: QuerySet, page: int, limit: int) -> dict:
    total = qs.count()
    start = (page - 1) * limit
    logs = [format_audit_log(log) for log in qs[start:start + limit]]
    return {
        'logs': logs,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': math.ceil(total / limit) if limit else 0,
        },
    }


def get_audit_logs(*, page: int = 1, limit: int = 50, **filters: Any) -> dict:
    return _paginate(filter_audit_logs(**filters), page, limit)


def search_audit_logs(query: str, *, page: int = 1, limit: int = 50, facility_id: Optional[str] = None) -> dict:
    qs = AuditLog.objects.filter(
        Q(description__icontains=query)
        | Q(user_name__icontains=query)
        | Q(entity_type__icontains=query)
        | Q(user_role__icontains=query)
    )
    if facility_id:
        qs = qs.filter(facility_id=facility_id)
    return _paginate(qs.order_by('-timestamp', '-id'), page, limit)


def _hourly_activity(qs: QuerySet) -> list[dict]:
    rows = (
        qs.annotate(hour=TruncHour('timestamp'))
        .values('hour')
        .annotate(count=Count('id'))
        .order_by('hour')
    )
    return [{'hour': row['hour'].isoformat(), 'count': row['count']} for row in rows]


def get_audit_statistics(timeframe: str = '24h', facility_id: Optional[str] = None) -> dict:
    """Dashboard aggregation over ``timeframe``.

    The hourly histogram (24h only) is computed separately; if that
    query fails the rest of the statistics are still returned with an
    empty series.
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(f'unsupported timeframe: {timeframe}')
    now = timezone.now()
    qs = AuditLog.objects.filter(timestamp__gte=now - TIMEFRAMES[timeframe], timestamp__lte=now)
    if facility_id:
        qs = qs.filter(facility_id=facility_id)

    total = qs.count()
    by_action = qs.values('action').annotate(count=Count('id')).order_by('action')
    by_entity = qs.values('entity_type').annotate(count=Count('id')).order_by('entity_type')
    top_users = (
        qs.values('user_id', 'user_name')
        .annotate(count=Count('id'))
        .order_by('-count', 'user_id')[:10]
    )
    successful = qs.filter(success=True).count()
    success_rate = (successful / total) * 100 if total else 0

    hourly: list[dict] = []
    if timeframe == '24h':
        try:
            hourly = _hourly_activity(qs)
        except Exception:
            logger.exception("hourly audit activity query failed, returning empty series")
            hourly = []

    return {
        'timeframe': timeframe,
        'totalActions': total,
        'actionsByType': [{'action': r['action'], 'count': r['count']} for r in by_action],
        'actionsByEntity': [{'entityType': r['entity_type'], 'count': r['count']} for r in by_entity],
        'topUsers': [
            {'userId': r['user_id'], 'userName': r['user_name'], 'count': r['count']} for r in top_users
        ],
        'successRate': round(success_rate, 2),
        'hourlyActivity': hourly,
    }


def export_audit_logs_csv(
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    entity_type: Optional[str] = None,
    user_id: Optional[str] = None,
    facility_id: Optional[str] = None,
    exported_by: Optional[Any] = None,
    sink: Optional[AuditSink] = None,
) -> str:
    """Render the filtered audit trail as CSV; the export itself is audited."""
    logs = list(filter_audit_logs(
        start_date=start_date, end_date=end_date, entity_type=entity_type,
        user_id=user_id, facility_id=facility_id,
    ))
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(CSV_HEADERS)
    for log in logs:
        writer.writerow([
            log.timestamp.isoformat(),
            log.user_id,
            log.user_role,
            log.user_name,
            log.action,
            log.entity_type,
            log.entity_id,
            log.description,
            'Yes' if log.success else 'No',
            log.ip_address or '',
            log.facility_id or '',
        ])

    (sink or get_audit_sink()).enqueue(AuditRecord(
        action=AuditAction.READ,
        entity_type='AUDIT_LOG',
        entity_id='export-csv',
        user_id=str(getattr(exported_by, 'id', None) or 'system'),
        user_role=getattr(exported_by, 'role', None) or 'SYSTEM',
        user_name=getattr(exported_by, 'display_name', None) or 'Export System',
        description=f'Exported {len(logs)} audit logs to CSV',
        facility_id=getattr(exported_by, 'facility_id', None),
    ))
    return buf.getvalue()


def cleanup_audit_logs(retention_days: int = 365, *, sink: Optional[AuditSink] = None) -> int:
    """Delete entries older than ``retention_days``; the cleanup is audited."""
    sink = sink or get_audit_sink()
    cutoff = timezone.now() - timedelta(days=retention_days)
    try:
        deleted, _ = AuditLog.objects.filter(timestamp__lt=cutoff).delete()
    except Exception as exc:
        logger.exception("audit cleanup failed")
        sink.enqueue(AuditRecord(
            action=AuditAction.DELETE, entity_type='AUDIT_LOG', entity_id='batch-cleanup',
            user_id='system', user_role='SYSTEM', user_name='System Maintenance',
            description=f'Failed to cleanup audit logs: {exc}',
            success=False, error_message=str(exc),
        ))
        raise

    logger.info("cleaned up %d audit logs older than %d days", deleted, retention_days)
    sink.enqueue(AuditRecord(
        action=AuditAction.DELETE, entity_type='AUDIT_LOG', entity_id='batch-cleanup',
        user_id='system', user_role='SYSTEM', user_name='System Maintenance',
        description=f'Cleaned up {deleted} audit logs older than {retention_days} days',
    ))
    return deleted
