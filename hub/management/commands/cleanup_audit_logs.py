from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from hub.services.audit import get_audit_sink
from hub.services.audit_queries import cleanup_audit_logs


class Command(BaseCommand):
    help = "Delete audit log entries older than the retention period."

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=None,
                            help='Retention in days (default: AUDIT_RETENTION_DAYS)')
        parser.add_argument('--flush-timeout', type=float, default=10.0,
                            help='Seconds to wait for queued audit records before exiting')

    def handle(self, *args, **options):
        days = options['days'] if options['days'] is not None else settings.AUDIT_RETENTION_DAYS
        if days < 1:
            raise CommandError('--days must be at least 1')
        try:
            deleted = cleanup_audit_logs(days)
        except Exception as exc:
            raise CommandError(f'audit cleanup failed: {exc}') from exc
        finally:
            # The cleanup record itself is queued; let it land before the process exits.
            if not get_audit_sink().flush(options['flush_timeout']):
                self.stderr.write(self.style.WARNING('audit queue not drained before timeout'))

        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} audit logs older than {days} days"))
