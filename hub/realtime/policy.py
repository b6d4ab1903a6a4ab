"""
Which inbound realtime messages become user-facing notifications.

Every :class:`MessageType` has an entry in ``HANDLERS``; kinds that are
deliberately silent map to :func:`_ignore`.  The table is checked when
the module is imported so a new message kind cannot be added without
deciding how it is surfaced.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from hub.realtime.messages import Envelope, MessageType
from hub.realtime.notifications import Notification, NotificationAction, NotificationKind

logger = logging.getLogger(__name__)

Handler = Callable[[Envelope], Optional[Notification]]


def _message(envelope: Envelope) -> str:
    return str(envelope.data.get('message') or '')


def _emergency_alert(envelope: Envelope) -> Notification:
    action = None
    url = envelope.data.get('actionUrl')
    if url:
        action = NotificationAction(label='View Details', url=url)
    return Notification(
        kind=NotificationKind.EMERGENCY,
        title=envelope.data.get('title') or 'Emergency Alert',
        body=_message(envelope),
        priority='critical',
        source='dispatch',
        duration_ms=10000,
        action=action,
    )


def _triage_update(envelope: Envelope) -> Optional[Notification]:
    priority = envelope.data.get('priority')
    if priority not in ('high', 'critical'):
        return None
    return Notification(
        kind=NotificationKind.WARNING,
        title='Triage Update',
        body=_message(envelope),
        priority=priority,
        source='triage',
        duration_ms=6000,
    )


def _dispatch_alert(envelope: Envelope) -> Notification:
    critical = envelope.data.get('severity') == 'critical'
    return Notification(
        kind=NotificationKind.ERROR if critical else NotificationKind.WARNING,
        title='Dispatch Alert',
        body=_message(envelope),
        priority='critical' if critical else 'high',
        source='dispatch',
        duration_ms=8000,
    )


def _ambulance_status(envelope: Envelope) -> Optional[Notification]:
    if envelope.data.get('status') != 'emergency':
        return None
    return Notification(
        kind=NotificationKind.EMERGENCY,
        title='Ambulance Emergency',
        body=_message(envelope),
        priority='critical',
        source='dispatch',
        duration_ms=10000,
    )


def _resource_alert(envelope: Envelope) -> Notification:
    return Notification(
        kind=NotificationKind.WARNING,
        title='Resource Alert',
        body=_message(envelope),
        priority='high' if envelope.data.get('critical') else 'medium',
        source='resources',
        duration_ms=5000,
    )


def _system_status(envelope: Envelope) -> Optional[Notification]:
    if envelope.data.get('status') not in ('degraded', 'down'):
        return None
    return Notification(
        kind=NotificationKind.ERROR,
        title='System Status Update',
        body=_message(envelope),
        priority='high',
        source='system',
        duration_ms=8000,
    )


def _ignore(envelope: Envelope) -> None:
    return None


HANDLERS: dict[MessageType, Handler] = {
    MessageType.EMERGENCY_ALERT: _emergency_alert,
    MessageType.TRIAGE_UPDATE: _triage_update,
    MessageType.DISPATCH_ALERT: _dispatch_alert,
    MessageType.AMBULANCE_STATUS: _ambulance_status,
    MessageType.RESOURCE_ALERT: _resource_alert,
    MessageType.SYSTEM_STATUS: _system_status,
    MessageType.BED_CAPACITY: _ignore,
    MessageType.SHA_CLAIM_UPDATE: _ignore,
    MessageType.PATIENT_TRANSFER: _ignore,
}

_missing = set(MessageType) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"no notification handler for {sorted(m.value for m in _missing)}")


def build_notification(envelope: Envelope) -> Optional[Notification]:
    """Map ``envelope`` to at most one notification; never raises."""
    kind = envelope.kind
    if kind is None:
        logger.info("unhandled realtime message type %r", envelope.type)
        return None
    try:
        return HANDLERS[kind](envelope)
    except Exception:
        logger.exception("failed to build notification for %s", envelope.type)
        return None
