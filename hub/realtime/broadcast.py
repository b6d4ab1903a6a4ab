"""
Server-side fan-out of realtime envelopes to subscribed sockets.

Sockets subscribe to a named channel (``dispatch-alerts``,
``emergency-alerts`` ...) which maps to the Channels group
``alerts.<channel>``.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from hub.realtime.messages import Envelope

logger = logging.getLogger(__name__)

GROUP_PREFIX = 'alerts.'
EVENT_TYPE = 'alert.message'
CHANNEL_NAME_RE = re.compile(r'^[A-Za-z0-9_.-]{1,80}$')


def is_valid_channel(channel: str) -> bool:
    return bool(isinstance(channel, str) and CHANNEL_NAME_RE.match(channel))


def group_name(channel: str) -> str:
    if not is_valid_channel(channel):
        raise ValueError(f'invalid channel name: {channel!r}')
    return f'{GROUP_PREFIX}{channel}'


async def abroadcast_envelope(channel: str, envelope: Envelope, *, layer=None) -> bool:
    layer = layer or get_channel_layer()
    if layer is None:
        logger.warning("no channel layer configured, %s not broadcast", envelope.type)
        return False
    await layer.group_send(group_name(channel), {'type': EVENT_TYPE, 'envelope': envelope.to_dict()})
    return True


def broadcast_envelope(channel: str, envelope: Envelope, *, layer: Optional[object] = None) -> bool:
    """Send ``envelope`` to every socket subscribed to ``channel``."""
    return async_to_sync(abroadcast_envelope)(channel, envelope, layer=layer)
