import asyncio
import logging
import threading
import time

import pytest

from hub.models import AuditLog
from hub.services import audit_actions
from hub.services.audit import AuditAction, AuditRecord, AuditSink, persist_record


def make_record(n, **kw):
    fields = dict(
        action=AuditAction.UPDATE, entity_type='PATIENT', entity_id=f'p{n}',
        user_id='u1', user_role='NURSE', description=f'record {n}',
    )
    fields.update(kw)
    return AuditRecord(**fields)


@pytest.fixture
def sinks():
    created = []

    def build(writer, **kw):
        sink = AuditSink(writer, **kw)
        created.append(sink)
        return sink
    yield build
    for sink in created:
        sink.close(timeout=2)


def test_records_are_written_in_enqueue_order(sinks):
    written = []

    async def writer(record):
        await asyncio.sleep(0)
        written.append(record.entity_id)

    sink = sinks(writer)
    for n in range(20):
        sink.enqueue(make_record(n))
    assert sink.flush(5)
    assert written == [f'p{n}' for n in range(20)]
    assert sink.pending == 0
    assert not sink.processing


def test_enqueue_returns_while_a_write_hangs(sinks):
    written = []
    release = threading.Event()

    async def writer(record):
        if record.entity_id == 'p0':
            while not release.is_set():
                await asyncio.sleep(0.01)
        written.append(record.entity_id)

    sink = sinks(writer, drain_timeout=5)
    started = time.monotonic()
    for n in range(3):
        sink.enqueue(make_record(n))
    assert time.monotonic() - started < 1
    assert sink.processing
    assert not sink.flush(0.05)

    release.set()
    assert sink.flush(5)
    assert written == ['p0', 'p1', 'p2']


def test_timed_out_write_is_dropped_and_next_record_attempted(sinks, caplog):
    attempts = []

    async def writer(record):
        attempts.append(record.entity_id)
        if record.entity_id == 'p0':
            await asyncio.Event().wait()

    sink = sinks(writer, drain_timeout=0.05)
    with caplog.at_level(logging.WARNING, logger='hub.services.audit'):
        sink.enqueue(make_record(0))
        sink.enqueue(make_record(1))
        assert sink.flush(5)
    assert attempts == ['p0', 'p1']
    assert 'timed out' in caplog.text
    assert 'entity=PATIENT/p0' in caplog.text


def test_failed_write_is_logged_not_retried(sinks, caplog):
    attempts = []

    async def writer(record):
        attempts.append(record.entity_id)
        if record.entity_id == 'p1':
            raise RuntimeError('db down')

    sink = sinks(writer)
    with caplog.at_level(logging.WARNING, logger='hub.services.audit'):
        for n in range(3):
            sink.enqueue(make_record(n))
        assert sink.flush(5)
    assert attempts == ['p0', 'p1', 'p2']
    assert 'db down' in caplog.text


def test_unknown_action_is_rejected_at_construction():
    with pytest.raises(ValueError):
        make_record(0, action='BOGUS')


def test_action_string_is_coerced_to_enum():
    record = make_record(0, action='LOGIN')
    assert record.action is AuditAction.LOGIN
    assert record.as_row()['action'] == 'LOGIN'


def test_bad_record_does_not_stall_the_records_behind_it(sinks, caplog):
    written = []

    async def writer(record):
        if record.entity_id == 'p0':
            raise RuntimeError('rejected')
        written.append(record.entity_id)

    bad = make_record(0)
    object.__setattr__(bad, 'action', 'BOGUS')
    sink = sinks(writer)
    with caplog.at_level(logging.WARNING, logger='hub.services.audit'):
        sink.enqueue(bad)
        sink.enqueue(make_record(1))
        assert sink.flush(5)
        sink.enqueue(make_record(2))
        assert sink.flush(5)
    assert written == ['p1', 'p2']
    assert 'action=BOGUS' in caplog.text
    assert not sink.processing


def test_drain_survives_a_crashing_attempt(sinks, caplog):
    written = []

    class CrashingSink(AuditSink):
        async def _attempt(self, record, timeout, *, critical=False):
            if record.entity_id == 'p0':
                raise KeyError('boom')
            return await super()._attempt(record, timeout, critical=critical)

    async def writer(record):
        written.append(record.entity_id)

    sink = CrashingSink(writer)
    try:
        with caplog.at_level(logging.ERROR, logger='hub.services.audit'):
            sink.enqueue(make_record(0))
            sink.enqueue(make_record(1))
            assert sink.flush(5)
        assert written == ['p1']
        assert sink.pending == 0
        assert not sink.processing
        assert 'audit drain crashed' in caplog.text
    finally:
        sink.close(timeout=2)

def test_single_writer_under_concurrent_producers(sinks):
    state = {'inflight': 0, 'max': 0, 'count': 0}

    async def writer(record):
        state['inflight'] += 1
        state['max'] = max(state['max'], state['inflight'])
        await asyncio.sleep(0)
        state['inflight'] -= 1
        state['count'] += 1

    sink = sinks(writer)

    def produce(t):
        for n in range(25):
            sink.enqueue(make_record(n, user_id=f't{t}'))

    threads = [threading.Thread(target=produce, args=(t,)) for t in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert sink.flush(10)
    assert state['count'] == 200
    assert state['max'] == 1


def test_per_producer_order_is_kept(sinks):
    written = []

    async def writer(record):
        written.append((record.user_id, record.entity_id))

    sink = sinks(writer)

    def produce(t):
        for n in range(30):
            sink.enqueue(make_record(n, user_id=f't{t}'))

    threads = [threading.Thread(target=produce, args=(t,)) for t in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert sink.flush(10)
    for t in range(4):
        mine = [eid for uid, eid in written if uid == f't{t}']
        assert mine == [f'p{n}' for n in range(30)]


def test_write_critical_success_does_not_queue(sinks):
    written = []

    async def writer(record):
        written.append(record.entity_id)

    sink = sinks(writer)
    assert sink.write_critical(make_record(7)) is True
    assert sink.flush(1)
    assert written == ['p7']


def test_write_critical_falls_back_to_queue_exactly_once(sinks):
    attempts = []

    async def writer(record):
        attempts.append(record.entity_id)
        if len(attempts) == 1:
            raise RuntimeError('boom')

    sink = sinks(writer)
    assert sink.write_critical(make_record(3)) is False
    assert sink.flush(5)
    assert attempts == ['p3', 'p3']


def test_write_critical_times_out_then_queues(sinks):
    attempts = []

    async def writer(record):
        attempts.append(record.entity_id)
        if len(attempts) == 1:
            await asyncio.Event().wait()

    sink = sinks(writer, critical_timeout=0.05)
    started = time.monotonic()
    assert sink.write_critical(make_record(4)) is False
    assert time.monotonic() - started < 2
    assert sink.flush(5)
    assert attempts == ['p4', 'p4']


@pytest.mark.asyncio
async def test_awrite_critical_from_a_running_loop(sinks):
    written = []

    async def writer(record):
        written.append(record.entity_id)

    sink = sinks(writer)
    assert await sink.awrite_critical(make_record(9)) is True
    assert written == ['p9']


def test_close_stops_worker_thread(sinks):
    async def writer(record):
        pass

    sink = sinks(writer, name='audit-sink-close-test')
    sink.enqueue(make_record(1))
    sink.close(timeout=2)
    assert not any(t.name == 'audit-sink-close-test' for t in threading.enumerate())
    # a closed sink starts a fresh worker on the next enqueue
    sink.enqueue(make_record(2))
    assert sink.flush(2)


@pytest.mark.django_db
def test_persist_record_writes_row_with_timestamp():
    log = persist_record(make_record(1, changes={'status': 'stable'}, facility_id='F1'))
    row = AuditLog.objects.get(pk=log.pk)
    assert row.action == 'UPDATE'
    assert row.entity_id == 'p1'
    assert row.changes == {'status': 'stable'}
    assert row.user_name == 'System'
    assert row.success is True
    assert row.timestamp is not None


def test_builders_shape_records(audit_sink):
    r = audit_actions.log_ambulance_assignment('d1', 'amb-7', 'u1', 'DISPATCHER', 'Jane', 'F1')
    assert r.action is AuditAction.UPDATE
    assert r.entity_type == 'DISPATCH'
    assert r.changes == {'ambulanceId': 'amb-7'}

    r = audit_actions.log_status_update('AMBULANCE', 'a1', 'available', 'en_route', 'u1', 'DISPATCHER', 'Jane')
    assert r.changes == {'oldStatus': 'available', 'newStatus': 'en_route'}
    assert 'available' in r.description and 'en_route' in r.description

    r = audit_actions.log_sha_claim_submission('c1', 'u2', 'HOSPITAL_ADMIN', 'Ali')
    assert r.action is AuditAction.SUBMIT_CLAIM
    assert r.entity_type == 'SHA_CLAIM'

    r = audit_actions.log_staff_deactivation('s1', 'u3', 'ADMIN', 'Root')
    assert r.action is AuditAction.DELETE

    assert len(audit_sink.queued) == 4
    assert audit_sink.critical == []


def test_failed_login_builder_uses_critical_path(audit_sink):
    r = audit_actions.log_failed_login('mary', 'unknown', 'mary', 'Invalid credentials', critical=True)
    assert r.success is False
    assert r.error_message == 'Invalid credentials'
    assert audit_sink.critical == [r]
    assert audit_sink.queued == []
