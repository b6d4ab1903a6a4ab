"""
Request level auditing.

Every state-changing call under ``/api/`` is recorded as one audit
entry once the response is known.  Login and logout are audited by
their views with richer records, so ``/api/auth/`` is skipped here.
"""
from __future__ import annotations

from hub.services.audit import AuditAction, AuditRecord, get_audit_sink

METHOD_ACTIONS = {
    'POST': AuditAction.CREATE,
    'PUT': AuditAction.UPDATE,
    'PATCH': AuditAction.UPDATE,
    'DELETE': AuditAction.DELETE,
}


def client_ip(request):
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR')


def request_actor(request) -> dict:
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return {'user_id': 'unknown', 'user_role': 'unknown', 'user_name': 'Unknown User', 'facility_id': None}
    return {
        'user_id': str(user.pk),
        'user_role': getattr(user, 'role', None) or 'unknown',
        'user_name': getattr(user, 'display_name', None) or user.get_username(),
        'facility_id': getattr(user, 'facility_id', None),
    }


class AuditRequestMiddleware:
    PREFIX = '/api/'
    SKIP_PREFIXES = ('/api/auth/',)

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        path = request.path or ''
        action = METHOD_ACTIONS.get(request.method)
        if action is None or not path.startswith(self.PREFIX) or path.startswith(self.SKIP_PREFIXES):
            return response

        success = response.status_code < 400
        get_audit_sink().enqueue(AuditRecord(
            action=action,
            entity_type='API_REQUEST',
            entity_id=(request.resolver_match.url_name if request.resolver_match else None) or path[:128],
            description=f'API {request.method} request to {path}',
            ip_address=client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT'),
            success=success,
            error_message=None if success else f'HTTP {response.status_code}',
            **request_actor(request),
        ))
        return response
