import pytest
from channels.testing import WebsocketCommunicator

from hub.realtime.broadcast import abroadcast_envelope, group_name
from hub.realtime.consumers import AlertsConsumer
from hub.realtime.messages import Envelope, control_message


async def connected():
    communicator = WebsocketCommunicator(AlertsConsumer.as_asgi(), '/ws')
    ok, _ = await communicator.connect()
    assert ok
    return communicator


@pytest.mark.asyncio
async def test_subscribed_socket_receives_broadcast():
    ws = await connected()
    await ws.send_to(text_data=control_message('subscribe', 'dispatch-alerts').to_json())
    assert await ws.receive_nothing()

    sent = Envelope(type='DISPATCH_ALERT', data={'message': 'RTA at Kisumu bypass'},
                    facility_id='F1', priority='high')
    assert await abroadcast_envelope('dispatch-alerts', sent) is True
    got = await ws.receive_json_from()
    assert got == sent.to_dict()
    await ws.disconnect()


@pytest.mark.asyncio
async def test_other_channels_are_not_delivered():
    ws = await connected()
    await ws.send_to(text_data=control_message('subscribe', 'dispatch-alerts').to_json())
    assert await ws.receive_nothing()
    await abroadcast_envelope('bed-capacity', Envelope(type='BED_CAPACITY', data={}))
    assert await ws.receive_nothing()
    await ws.disconnect()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    ws = await connected()
    await ws.send_to(text_data=control_message('subscribe', 'triage').to_json())
    await ws.send_to(text_data=control_message('unsubscribe', 'triage').to_json())
    assert await ws.receive_nothing()
    await abroadcast_envelope('triage', Envelope(type='TRIAGE_UPDATE', data={'priority': 'high'}))
    assert await ws.receive_nothing()
    await ws.disconnect()


@pytest.mark.asyncio
@pytest.mark.parametrize('frame,code', [
    ('nonsense', 4000),
    ('{"type": "DISPATCH_ALERT", "data": {}}', 4002),
    ('{"type": "SYSTEM_STATUS", "data": {"action": "join", "channel": "x"}}', 4003),
    ('{"type": "SYSTEM_STATUS", "data": {"action": "subscribe", "channel": "bad channel!"}}', 4004),
])
async def test_bad_frames_get_error_and_socket_stays_open(frame, code):
    ws = await connected()
    await ws.send_to(text_data=frame)
    err = await ws.receive_json_from()
    assert err['type'] == 'error'
    assert err['code'] == code

    await ws.send_to(text_data=control_message('subscribe', 'ok-channel').to_json())
    assert await ws.receive_nothing()
    await ws.disconnect()


def test_group_name_validation():
    assert group_name('dispatch-alerts') == 'alerts.dispatch-alerts'
    with pytest.raises(ValueError):
        group_name('spaces are bad')
