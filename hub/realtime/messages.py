"""
Wire envelope shared by the realtime client and the server consumer.

Every frame is a JSON object::

    {"type": "DISPATCH_ALERT", "data": {...}, "timestamp": "2024-...Z",
     "facilityId": "...", "countyId": "...", "priority": "high"}

``facilityId``, ``countyId`` and ``priority`` are optional.
"""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from django.utils import timezone

PRIORITIES = ('low', 'medium', 'high', 'critical')


class MessageType(str, enum.Enum):
    TRIAGE_UPDATE = 'TRIAGE_UPDATE'
    DISPATCH_ALERT = 'DISPATCH_ALERT'
    AMBULANCE_STATUS = 'AMBULANCE_STATUS'
    BED_CAPACITY = 'BED_CAPACITY'
    EMERGENCY_ALERT = 'EMERGENCY_ALERT'
    SYSTEM_STATUS = 'SYSTEM_STATUS'
    SHA_CLAIM_UPDATE = 'SHA_CLAIM_UPDATE'
    PATIENT_TRANSFER = 'PATIENT_TRANSFER'
    RESOURCE_ALERT = 'RESOURCE_ALERT'


class InvalidEnvelope(ValueError):
    """Raised when a frame cannot be decoded into an :class:`Envelope`."""


def now_iso() -> str:
    return timezone.now().isoformat()


@dataclass(frozen=True)
class Envelope:
    """One realtime message.

    ``type`` is kept as a plain string so that frames carrying a kind
    this build does not know about still decode; :attr:`kind` returns
    the :class:`MessageType` or ``None``.
    """
    type: str
    data: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=now_iso)
    facility_id: Optional[str] = None
    county_id: Optional[str] = None
    priority: Optional[str] = None

    @property
    def kind(self) -> Optional[MessageType]:
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {'type': self.type, 'data': self.data, 'timestamp': self.timestamp}
        if self.facility_id is not None:
            out['facilityId'] = self.facility_id
        if self.county_id is not None:
            out['countyId'] = self.county_id
        if self.priority is not None:
            out['priority'] = self.priority
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, raw: Any) -> 'Envelope':
        if not isinstance(raw, dict):
            raise InvalidEnvelope('envelope must be a JSON object')
        mtype = raw.get('type')
        if not isinstance(mtype, str) or not mtype:
            raise InvalidEnvelope('missing message type')
        data = raw.get('data')
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidEnvelope('data must be an object')
        priority = raw.get('priority')
        if priority is not None and priority not in PRIORITIES:
            raise InvalidEnvelope(f'unknown priority: {priority!r}')
        return cls(
            type=mtype,
            data=data,
            timestamp=str(raw.get('timestamp') or now_iso()),
            facility_id=raw.get('facilityId'),
            county_id=raw.get('countyId'),
            priority=priority,
        )

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> 'Envelope':
        try:
            raw = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise InvalidEnvelope(f'invalid JSON: {exc}') from exc
        return cls.from_dict(raw)


def control_message(action: str, channel: str) -> Envelope:
    """Subscribe/unsubscribe control frame (sent as ``SYSTEM_STATUS``)."""
    if action not in ('subscribe', 'unsubscribe'):
        raise ValueError(f'unknown control action: {action}')
    return Envelope(type=MessageType.SYSTEM_STATUS.value, data={'action': action, 'channel': channel})
