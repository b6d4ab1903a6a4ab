import json

from channels.generic.websocket import AsyncWebsocketConsumer

from hub.realtime.broadcast import group_name, is_valid_channel
from hub.realtime.messages import Envelope, InvalidEnvelope, MessageType


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Error frame sent back to the client.
    App codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


class AlertsConsumer(AsyncWebsocketConsumer):
    """Realtime hub endpoint.

    Clients only send ``SYSTEM_STATUS`` control frames
    (``{"action": "subscribe"|"unsubscribe", "channel": ...}``); the hub
    pushes envelopes broadcast to the channels a socket subscribed to.
    """

    async def connect(self):
        self.joined: set[str] = set()
        await self.accept()

    async def disconnect(self, close_code):
        for channel in list(getattr(self, "joined", ())):
            await self.channel_layer.group_discard(group_name(channel), self.channel_name)
        self.joined = set()

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            envelope = Envelope.from_json(text_data)
        except InvalidEnvelope:
            await _ws_error(self, 4000, "invalid_envelope")
            return

        if envelope.kind is not MessageType.SYSTEM_STATUS:
            await _ws_error(self, 4002, "unsupported_type")
            return

        action = envelope.data.get("action")
        channel = envelope.data.get("channel")
        if action not in ("subscribe", "unsubscribe"):
            await _ws_error(self, 4003, "unsupported_action")
            return
        if not is_valid_channel(channel):
            await _ws_error(self, 4004, "invalid_channel")
            return

        if action == "subscribe":
            await self.channel_layer.group_add(group_name(channel), self.channel_name)
            self.joined.add(channel)
        else:
            await self.channel_layer.group_discard(group_name(channel), self.channel_name)
            self.joined.discard(channel)

    # group_send handler:
    # await channel_layer.group_send("alerts.<channel>", {"type": "alert.message", "envelope": {...}})
    async def alert_message(self, event):
        await self.send(text_data=json.dumps(event["envelope"]))
