"""
Realtime notification channel (client side).

:class:`NotificationChannel` owns one WebSocket to the hub, keeps the
set of subscribed channels across reconnects, turns selected inbound
messages into notifications and reconnects with bounded exponential
backoff.  All methods must be called from the event loop the channel
runs on.

Status flow::

    disconnected -> connecting -> connected
    connected -> disconnected            (close 1000, no retry)
    connected -> disconnected -> reconnecting -> connecting ...
    connecting -> error -> reconnecting -> connecting ...   (at most 5 times)

Only :meth:`NotificationChannel.disconnect` stops automatic reconnects.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union
from urllib.parse import urlsplit

import aiohttp
from django.conf import settings

from hub.realtime.messages import Envelope, InvalidEnvelope, MessageType, control_message
from hub.realtime.notifications import Notification, NotificationCenter, NotificationKind
from hub.realtime.policy import build_notification

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 30000
MAX_RECONNECT_ATTEMPTS = 5
MANUAL_RECONNECT_DELAY = 0.5
DEV_WS_URL = 'ws://localhost:3001/ws'
DEFAULT_CHANNELS = ('emergency-alerts', 'system-status')


class ConnectionStatus(str, enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    RECONNECTING = 'reconnecting'
    ERROR = 'error'


@dataclass(frozen=True)
class ConnectionState:
    status: ConnectionStatus
    attempt_count: int
    subscriptions: frozenset
    last_message: Optional[Envelope]
    reconnect_pending: bool
    reconnect_exhausted: bool

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED


class Transport(Protocol):
    """The subset of :class:`aiohttp.ClientWebSocketResponse` the channel uses."""

    closed: bool
    close_code: Optional[int]

    async def send_str(self, data: str) -> None: ...

    async def close(self, *, code: int = NORMAL_CLOSURE, message: bytes = b'') -> bool: ...

    def exception(self) -> Optional[BaseException]: ...

    def __aiter__(self) -> Any: ...


TransportFactory = Callable[[str], Awaitable[Transport]]
Scheduler = Callable[[float, Callable[[], None]], Any]


def backoff_delay_ms(attempt: int) -> int:
    """``min(1000 * 2**attempt, 30000)`` milliseconds."""
    return min(BASE_DELAY_MS * (2 ** attempt), MAX_DELAY_MS)


def resolve_ws_url(origin: Optional[str] = None) -> str:
    """Pick the hub endpoint.

    An explicit ``EMERGENCY_HUB_WS_URL`` environment variable (read into
    the ``REALTIME_WS_URL`` setting) wins.  In development (or without a
    known page origin) the local hub is used; otherwise the same host as
    ``origin`` with ``wss`` for https origins and ``ws`` for http ones.
    """
    override = getattr(settings, 'REALTIME_WS_URL', '')
    if override:
        return override
    if getattr(settings, 'ENV', 'dev') == 'dev' or not origin:
        return DEV_WS_URL
    parts = urlsplit(origin)
    scheme = 'wss' if parts.scheme == 'https' else 'ws'
    return f'{scheme}://{parts.netloc}/api/ws'


class AiohttpTransportFactory:
    """Opens WebSocket transports on a lazily created ``aiohttp`` session."""

    def __init__(self, *, heartbeat: Optional[float] = 30.0) -> None:
        self._heartbeat = heartbeat
        self._session: Optional[aiohttp.ClientSession] = None

    async def __call__(self, url: str) -> Transport:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return await self._session.ws_connect(url, heartbeat=self._heartbeat)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class NotificationChannel:
    """Single supervised realtime connection."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        center: Optional[NotificationCenter] = None,
        transport_factory: Optional[TransportFactory] = None,
        call_later: Optional[Scheduler] = None,
        channels: Union[tuple, list, set] = DEFAULT_CHANNELS,
        max_reconnect_attempts: Optional[int] = None,
    ) -> None:
        self.url = url or resolve_ws_url()
        self.center = center or NotificationCenter()
        self._transport_factory = transport_factory or AiohttpTransportFactory()
        self._call_later = call_later
        if max_reconnect_attempts is None:
            max_reconnect_attempts = getattr(settings, 'REALTIME_MAX_RECONNECT_ATTEMPTS', MAX_RECONNECT_ATTEMPTS)
        self.max_reconnect_attempts = max_reconnect_attempts

        self._status = ConnectionStatus.DISCONNECTED
        self._attempt_count = 0
        self._subscriptions: set[str] = set(channels)
        self._last_message: Optional[Envelope] = None
        self._transport: Optional[Transport] = None
        self._task: Optional[asyncio.Task] = None
        self._reconnect_handle: Any = None
        self._manual_handle: Any = None
        self._manual_close = False
        self._listeners: list[Callable[[ConnectionState], None]] = []
        self._message_hooks: dict[str, list[Callable[[Envelope], None]]] = {}

    # ------------------------------------------------------------------
    # observable state
    # ------------------------------------------------------------------
    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def subscriptions(self) -> frozenset:
        return frozenset(self._subscriptions)

    @property
    def last_message(self) -> Optional[Envelope]:
        return self._last_message

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def reconnect_exhausted(self) -> bool:
        return (
            self._status is ConnectionStatus.ERROR
            and self._reconnect_handle is None
            and self._attempt_count >= self.max_reconnect_attempts
        )

    @property
    def state(self) -> ConnectionState:
        return ConnectionState(
            status=self._status,
            attempt_count=self._attempt_count,
            subscriptions=self.subscriptions,
            last_message=self._last_message,
            reconnect_pending=self.reconnect_pending,
            reconnect_exhausted=self.reconnect_exhausted,
        )

    def add_listener(self, callback: Callable[[ConnectionState], None]) -> Callable[[], None]:
        """Call ``callback`` with a fresh :class:`ConnectionState` on every change."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return remove

    def on_message(self, message_type: Union[MessageType, str], callback: Callable[[Envelope], None]) -> Callable[[], None]:
        """Call ``callback`` for every inbound envelope of ``message_type``."""
        key = MessageType(message_type).value if isinstance(message_type, MessageType) else message_type
        hooks = self._message_hooks.setdefault(key, [])
        hooks.append(callback)

        def remove() -> None:
            if callback in hooks:
                hooks.remove(callback)
        return remove

    def _changed(self) -> None:
        snapshot = self.state
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("realtime state listener failed")

    def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        self._changed()

    def _notify(self, notification: Notification) -> None:
        try:
            self.center.publish(notification)
        except Exception:
            logger.exception("failed to publish notification %r", notification.title)

    def _schedule(self, delay: float, callback: Callable[[], None]) -> Any:
        if self._call_later is not None:
            return self._call_later(delay, callback)
        return asyncio.get_running_loop().call_later(delay, callback)

    @property
    def _transport_open(self) -> bool:
        return self._transport is not None and not self._transport.closed

    # ------------------------------------------------------------------
    # connection lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> None:
        """Start a connection attempt unless one is live or in flight."""
        if self._status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED) or (
            self._task is not None and not self._task.done()
        ):
            logger.debug("realtime connection already in progress, skipping")
            return
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        self._manual_close = False
        self._set_status(ConnectionStatus.CONNECTING)
        logger.info("connecting to realtime hub %s", self.url)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            if not self.url.startswith(('ws://', 'wss://')):
                raise ValueError(f'invalid WebSocket URL {self.url!r}')
            transport = await self._transport_factory(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("realtime connection to %s failed: %s", self.url, exc)
            self._on_error(exc)
            self._supervise()
            return

        if self._manual_close:
            await transport.close(code=NORMAL_CLOSURE, message=b'Manual disconnect')
            return

        self._transport = transport
        await self._on_open()
        try:
            async for msg in transport:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self._on_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._on_error(transport.exception())
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._on_error(exc)
        self._on_close(transport)

    async def _on_open(self) -> None:
        logger.info("realtime connection established")
        self._attempt_count = 0
        self._set_status(ConnectionStatus.CONNECTED)
        for channel in sorted(self._subscriptions):
            await self._transmit(control_message('subscribe', channel))
        self._notify(Notification(
            kind=NotificationKind.SUCCESS,
            title='Real-time Connection Established',
            body='Live updates are now active',
            priority='low',
            source='system',
            duration_ms=3000,
        ))

    def _on_message(self, raw: Union[str, bytes]) -> None:
        try:
            envelope = Envelope.from_json(raw)
        except InvalidEnvelope as exc:
            logger.warning("dropping malformed realtime message: %s", exc)
            return
        self._last_message = envelope
        self._changed()
        for callback in list(self._message_hooks.get(envelope.type, ())):
            try:
                callback(envelope)
            except Exception:
                logger.exception("realtime message hook failed for %s", envelope.type)
        notification = build_notification(envelope)
        if notification is not None:
            self._notify(notification)

    def _on_error(self, exc: Optional[BaseException]) -> None:
        logger.error("realtime transport error: %s", exc)
        self._set_status(ConnectionStatus.ERROR)
        self._notify(Notification(
            kind=NotificationKind.ERROR,
            title='Connection Error',
            body='Failed to connect to real-time updates',
            priority='medium',
            source='system',
            duration_ms=5000,
        ))

    def _on_close(self, transport: Transport) -> None:
        code = transport.close_code if transport.close_code is not None else ABNORMAL_CLOSURE
        if self._transport is transport:
            self._transport = None
        if self._manual_close:
            return
        logger.info("realtime connection closed with code %s", code)
        self._set_status(ConnectionStatus.DISCONNECTED)
        if code != NORMAL_CLOSURE:
            self.schedule_reconnect()

    def _supervise(self) -> None:
        if self._status is not ConnectionStatus.ERROR:
            return
        if self._attempt_count < self.max_reconnect_attempts:
            self.schedule_reconnect()
        else:
            logger.error(
                "realtime hub unreachable after %d reconnect attempts, giving up until manual retry",
                self._attempt_count,
            )
            self._changed()

    def schedule_reconnect(self) -> None:
        """Arm the single reconnect timer with exponential backoff."""
        if self._reconnect_handle is not None:
            logger.debug("reconnect already scheduled, skipping")
            return
        delay_ms = backoff_delay_ms(self._attempt_count)
        logger.info("scheduling realtime reconnect in %dms (attempt %d)", delay_ms, self._attempt_count + 1)
        self._reconnect_handle = self._schedule(delay_ms / 1000, self._fire_reconnect)
        self._set_status(ConnectionStatus.RECONNECTING)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        self._attempt_count += 1
        self.connect()

    def _cancel_timers(self) -> None:
        for attr in ('_reconnect_handle', '_manual_handle'):
            handle = getattr(self, attr)
            if handle is not None:
                handle.cancel()
                setattr(self, attr, None)

    async def disconnect(self) -> None:
        """Close with normal closure and stop automatic reconnects."""
        logger.info("disconnecting from realtime hub")
        self._cancel_timers()
        self._manual_close = True
        transport, self._transport = self._transport, None
        task, self._task = self._task, None
        if transport is not None and not transport.closed:
            await transport.close(code=NORMAL_CLOSURE, message=b'Manual disconnect')
        if task is not None and not task.done() and task is not asyncio.current_task():
            if transport is None:
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def reconnect(self) -> None:
        """Manual retry: disconnect, then connect after a short settle delay."""
        logger.info("manual realtime reconnect triggered")
        await self.disconnect()
        self._manual_handle = self._schedule(MANUAL_RECONNECT_DELAY, self._manual_connect)

    def _manual_connect(self) -> None:
        self._manual_handle = None
        self.connect()

    async def aclose(self) -> None:
        await self.disconnect()
        close = getattr(self._transport_factory, 'close', None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # outbound
    # ------------------------------------------------------------------
    async def _transmit(self, envelope: Envelope) -> bool:
        transport = self._transport
        if transport is None or transport.closed:
            return False
        try:
            await transport.send_str(envelope.to_json())
        except Exception:
            logger.exception("failed to send realtime message %s", envelope.type)
            return False
        return True

    async def send(self, envelope: Envelope) -> bool:
        """Best-effort send; dropped with a warning notification when offline."""
        if self._status is ConnectionStatus.CONNECTED and self._transport_open:
            return await self._transmit(envelope)
        logger.warning("realtime hub not connected, dropping %s", envelope.type)
        self._notify(Notification(
            kind=NotificationKind.WARNING,
            title='Connection Issue',
            body='Real-time updates temporarily unavailable',
            priority='medium',
            source='system',
            duration_ms=5000,
        ))
        return False

    async def subscribe(self, channel: str) -> None:
        self._subscriptions.add(channel)
        self._changed()
        if self._status is ConnectionStatus.CONNECTED and self._transport_open:
            await self._transmit(control_message('subscribe', channel))

    async def unsubscribe(self, channel: str) -> None:
        self._subscriptions.discard(channel)
        self._changed()
        if self._status is ConnectionStatus.CONNECTED and self._transport_open:
            await self._transmit(control_message('unsubscribe', channel))
