"""
Background audit sink.

Call sites all over the backend build an :class:`AuditRecord` and hand
it to :meth:`AuditSink.enqueue`, which never blocks and never raises.
A single drain worker persists queued records one at a time, racing
each write against a timeout; a write that fails or times out is
logged and dropped.  :meth:`AuditSink.write_critical` is the bounded
synchronous path for callers that want an immediate attempt; when that
attempt fails the record is handed to the queue instead.

The worker owns a private asyncio loop on a daemon thread so that
Django views (which run on arbitrary threads) can enqueue without an
event loop of their own.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Optional

from asgiref.sync import sync_to_async
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_TIMEOUT = 5.0
DEFAULT_CRITICAL_TIMEOUT = 3.0


class AuditAction(str, enum.Enum):
    CREATE = 'CREATE'
    READ = 'READ'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    LOGIN = 'LOGIN'
    LOGOUT = 'LOGOUT'
    APPROVE = 'APPROVE'
    REJECT = 'REJECT'
    TRANSFER = 'TRANSFER'
    DISCHARGE = 'DISCHARGE'
    PRESCRIBE = 'PRESCRIBE'
    SUBMIT_CLAIM = 'SUBMIT_CLAIM'
    CANCEL = 'CANCEL'
    OVERRIDE = 'OVERRIDE'


@dataclass(frozen=True)
class AuditRecord:
    """An audit entry as built by a call site, before persistence."""
    action: AuditAction
    entity_type: str
    entity_id: str
    user_id: str
    user_role: str
    description: str
    user_name: str = 'System'
    changes: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    facility_id: Optional[str] = None
    success: bool = True
    error_message: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'action', AuditAction(self.action))

    def as_row(self) -> dict[str, Any]:
        row = asdict(self)
        row['action'] = self.action.value
        return row

    def label(self) -> str:
        return f"{self.action.value} {self.entity_type}/{self.entity_id} by {self.user_id}"


def persist_record(record: AuditRecord):
    """Write one record to the ``audit_logs`` table (blocking)."""
    from hub.models import AuditLog

    return AuditLog.objects.create(**record.as_row())


Writer = Callable[[AuditRecord], Awaitable[Any]]

# Off the shared sync thread: a hung write must not stall later writes.
persist_record_async: Writer = sync_to_async(persist_record, thread_sensitive=False)


class AuditSink:
    """Unbounded FIFO of audit records drained by one worker.

    ``writer`` is an async callable persisting a single record; the
    default goes through the Django ORM.  The queue, the ``processing``
    flag and the idle event are only touched under ``_lock``.
    """

    def __init__(
        self,
        writer: Optional[Writer] = None,
        *,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        critical_timeout: float = DEFAULT_CRITICAL_TIMEOUT,
        name: str = 'audit-sink',
    ) -> None:
        self._writer = writer or persist_record_async
        self.drain_timeout = drain_timeout
        self.critical_timeout = critical_timeout
        self._name = name
        self._queue: deque[AuditRecord] = deque()
        self._lock = threading.Lock()
        self._processing = False
        self._idle = threading.Event()
        self._idle.set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # worker loop
    # ------------------------------------------------------------------
    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None or self._loop.is_closed():
                loop = asyncio.new_event_loop()
                started = threading.Event()

                def run() -> None:
                    asyncio.set_event_loop(loop)
                    loop.call_soon(started.set)
                    loop.run_forever()

                thread = threading.Thread(target=run, name=self._name, daemon=True)
                thread.start()
                started.wait()
                self._loop, self._thread = loop, thread
            return self._loop

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def processing(self) -> bool:
        with self._lock:
            return self._processing

    # ------------------------------------------------------------------
    # producers
    # ------------------------------------------------------------------
    def enqueue(self, record: AuditRecord) -> None:
        """Append ``record`` and wake the drain worker; returns immediately."""
        loop = self._ensure_loop()
        with self._lock:
            self._queue.append(record)
            self._idle.clear()
            if self._processing:
                return
            self._processing = True
        try:
            loop.call_soon_threadsafe(self._start_drain)
        except RuntimeError:
            # Loop closed under us; leave the record queued for the next start.
            logger.warning("audit sink loop unavailable, %s stays queued", record.label())
            with self._lock:
                self._processing = False

    def write_critical(self, record: AuditRecord) -> bool:
        """Try one bounded write now; on failure queue the record.

        Returns ``True`` when the write succeeded.  Never raises.
        """
        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(
            self._attempt(record, self.critical_timeout, critical=True), loop
        )
        try:
            ok = future.result()
        except Exception:
            logger.exception("critical audit write crashed for %s", record.label())
            ok = False
        if not ok:
            self.enqueue(record)
        return ok

    async def awrite_critical(self, record: AuditRecord) -> bool:
        """Coroutine flavour of :meth:`write_critical` for async callers."""
        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(
            self._attempt(record, self.critical_timeout, critical=True), loop
        )
        try:
            ok = await asyncio.wrap_future(future)
        except Exception:
            logger.exception("critical audit write crashed for %s", record.label())
            ok = False
        if not ok:
            self.enqueue(record)
        return ok

    # ------------------------------------------------------------------
    # consumer
    # ------------------------------------------------------------------
    def _start_drain(self) -> None:
        asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        drained = False
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._processing = False
                        self._idle.set()
                        drained = True
                        return
                    record = self._queue.popleft()
                try:
                    await self._attempt(record, self.drain_timeout)
                except Exception:
                    logger.exception("audit drain crashed on entity=%s/%s, skipping", record.entity_type, record.entity_id)
        finally:
            if not drained:
                with self._lock:
                    self._processing = False
                    self._idle.set()

    async def _attempt(self, record: AuditRecord, timeout: float, *, critical: bool = False) -> bool:
        path = 'critical' if critical else 'background'
        try:
            await asyncio.wait_for(self._writer(record), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "%s audit write timed out after %.1fs: action=%s entity=%s/%s user=%s",
                path, timeout, record.action,
                record.entity_type, record.entity_id, record.user_id,
            )
            return False
        except Exception as exc:
            logger.warning(
                "%s audit write failed: action=%s entity=%s/%s user=%s error=%s",
                path, record.action,
                record.entity_type, record.entity_id, record.user_id, exc,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty and no write is in flight."""
        return self._idle.wait(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Wait for the queue to drain, then stop the worker loop."""
        self.flush(timeout)
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        if not loop.is_running():
            loop.close()


_default_sink: Optional[AuditSink] = None
_default_lock = threading.Lock()


def get_audit_sink() -> AuditSink:
    """Process-wide sink configured from settings, created on first use."""
    global _default_sink
    if _default_sink is None:
        with _default_lock:
            if _default_sink is None:
                _default_sink = AuditSink(
                    drain_timeout=getattr(settings, 'AUDIT_DRAIN_TIMEOUT', DEFAULT_DRAIN_TIMEOUT),
                    critical_timeout=getattr(settings, 'AUDIT_CRITICAL_TIMEOUT', DEFAULT_CRITICAL_TIMEOUT),
                )
    return _default_sink


def audit_log(record: AuditRecord) -> None:
    """Queue ``record`` on the default sink."""
    get_audit_sink().enqueue(record)
