import pytest

from hub.services import audit


class RecordingSink:
    """Stands in for the process-wide audit sink and keeps what it was given."""

    def __init__(self, critical_ok=True):
        self.queued = []
        self.critical = []
        self.critical_ok = critical_ok

    @property
    def pending(self):
        return 0

    @property
    def processing(self):
        return False

    def enqueue(self, record):
        self.queued.append(record)

    def write_critical(self, record):
        self.critical.append(record)
        if not self.critical_ok:
            self.enqueue(record)
        return self.critical_ok

    def flush(self, timeout=None):
        return True

    def close(self, timeout=None):
        pass


@pytest.fixture(autouse=True)
def audit_sink(monkeypatch):
    sink = RecordingSink()
    monkeypatch.setattr(audit, '_default_sink', sink)
    return sink


@pytest.fixture(autouse=True)
def clear_throttles():
    from django.core.cache import cache
    cache.clear()
    yield
