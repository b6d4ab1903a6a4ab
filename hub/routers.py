"""
URL mappings for the emergency hub API.

Trailing slashes are deliberately omitted; the front-end calls the
paths exactly as listed here.
"""
from django.urls import path, include

from .views import alerts, audit, health
from .views.auth import login_view, logout_view, jwt_refresh_view


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='auth-login'),
    path('api/auth/logout', logout_view, name='auth-logout'),
    path('api/auth/refresh', jwt_refresh_view, name='auth-refresh'),
    # Audit trail
    path('api/audit/logs', audit.audit_logs, name='audit-logs'),
    path('api/audit/search', audit.audit_search, name='audit-search'),
    path('api/audit/statistics', audit.audit_statistics, name='audit-statistics'),
    path('api/audit/export', audit.audit_export, name='audit-export'),
    # Realtime
    path('api/alerts/broadcast', alerts.broadcast_alert, name='alerts-broadcast'),
]
