from django.db import connections
from django.http import JsonResponse

from hub.services.audit import get_audit_sink


def healthz(request):
    sink = get_audit_sink()
    audit = {'pending': sink.pending, 'processing': sink.processing}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'audit': audit})
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e), 'audit': audit}, status=500)
