import asyncio
import json

import pytest

from hub.realtime.messages import Envelope, InvalidEnvelope, MessageType, control_message
from hub.realtime.notifications import Notification, NotificationCenter, NotificationKind
from hub.realtime.policy import HANDLERS, build_notification


def env(mtype, **data):
    return Envelope(type=mtype.value if isinstance(mtype, MessageType) else mtype, data=data)


def test_every_message_type_has_a_handler():
    assert set(HANDLERS) == set(MessageType)


def test_emergency_alert_is_critical_with_action():
    n = build_notification(env(MessageType.EMERGENCY_ALERT, title='Mass casualty', message='Bus crash on A104',
                               actionUrl='https://hub.example/emergencies/12'))
    assert n.kind is NotificationKind.EMERGENCY
    assert n.title == 'Mass casualty'
    assert n.priority == 'critical'
    assert n.effective_duration_ms == 10000
    assert n.action.label == 'View Details'
    assert n.action.url == 'https://hub.example/emergencies/12'


def test_emergency_alert_defaults_title_and_has_no_action_without_url():
    n = build_notification(env(MessageType.EMERGENCY_ALERT, message='x'))
    assert n.title == 'Emergency Alert'
    assert n.action is None


@pytest.mark.parametrize('priority,expected', [('high', True), ('critical', True), ('medium', False), (None, False)])
def test_triage_update_only_for_high_priority(priority, expected):
    n = build_notification(env(MessageType.TRIAGE_UPDATE, priority=priority, message='Patient 4 escalated'))
    assert (n is not None) is expected
    if n:
        assert n.kind is NotificationKind.WARNING
        assert n.priority == priority
        assert n.effective_duration_ms == 6000


def test_dispatch_alert_severity_picks_kind():
    critical = build_notification(env(MessageType.DISPATCH_ALERT, severity='critical', message='m'))
    assert critical.kind is NotificationKind.ERROR
    assert critical.priority == 'critical'
    other = build_notification(env(MessageType.DISPATCH_ALERT, severity='low', message='m'))
    assert other.kind is NotificationKind.WARNING
    assert other.priority == 'high'
    assert other.effective_duration_ms == 8000


def test_ambulance_status_only_for_emergency():
    assert build_notification(env(MessageType.AMBULANCE_STATUS, status='available')) is None
    n = build_notification(env(MessageType.AMBULANCE_STATUS, status='emergency', message='KBX 123 crew down'))
    assert n.kind is NotificationKind.EMERGENCY
    assert n.priority == 'critical'


def test_resource_alert_priority_follows_critical_flag():
    assert build_notification(env(MessageType.RESOURCE_ALERT, critical=True)).priority == 'high'
    assert build_notification(env(MessageType.RESOURCE_ALERT)).priority == 'medium'


def test_system_status_only_when_degraded_or_down():
    assert build_notification(env(MessageType.SYSTEM_STATUS, status='ok')) is None
    assert build_notification(env(MessageType.SYSTEM_STATUS, action='subscribe', channel='x')) is None
    n = build_notification(env(MessageType.SYSTEM_STATUS, status='down', message='SHA gateway down'))
    assert n.kind is NotificationKind.ERROR
    assert n.priority == 'high'


@pytest.mark.parametrize('mtype', [MessageType.BED_CAPACITY, MessageType.SHA_CLAIM_UPDATE, MessageType.PATIENT_TRANSFER])
def test_silent_types(mtype):
    assert build_notification(env(mtype, message='x')) is None


def test_unknown_type_yields_nothing():
    assert build_notification(env('WEATHER_REPORT', message='rain')) is None


def test_envelope_round_trip_uses_camel_case():
    e = Envelope(type='DISPATCH_ALERT', data={'message': 'm'}, timestamp='2024-05-01T10:00:00+03:00',
                 facility_id='F1', county_id='047', priority='high')
    raw = json.loads(e.to_json())
    assert raw == {'type': 'DISPATCH_ALERT', 'data': {'message': 'm'}, 'timestamp': '2024-05-01T10:00:00+03:00',
                   'facilityId': 'F1', 'countyId': '047', 'priority': 'high'}
    assert Envelope.from_dict(raw) == e


def test_envelope_omits_unset_optional_keys():
    raw = Envelope(type='BED_CAPACITY').to_dict()
    assert set(raw) == {'type', 'data', 'timestamp'}


@pytest.mark.parametrize('text', ['not json', '[]', '{"data": {}}', '{"type": ""}',
                                  '{"type": "X", "data": []}', '{"type": "X", "priority": "urgent"}'])
def test_malformed_envelopes_are_rejected(text):
    with pytest.raises(InvalidEnvelope):
        Envelope.from_json(text)


def test_control_message_shape():
    msg = control_message('subscribe', 'dispatch-alerts')
    assert msg.kind is MessageType.SYSTEM_STATUS
    assert msg.data == {'action': 'subscribe', 'channel': 'dispatch-alerts'}
    with pytest.raises(ValueError):
        control_message('join', 'x')


def note(title='t', **kw):
    return Notification(kind=NotificationKind.INFO, title=title, body='', **kw)


def test_center_keeps_newest_first_and_bounded():
    center = NotificationCenter(max_kept=3)
    for n in range(5):
        center.publish(note(f'n{n}'))
    assert [n.title for n in center.notifications] == ['n4', 'n3', 'n2']
    assert center.unread_count == 5


def test_center_acknowledge_and_remove():
    center = NotificationCenter()
    a = center.publish(note('a'))
    b = center.publish(note('b'))
    center.acknowledge(a.id)
    center.acknowledge(a.id)
    assert center.unread_count == 1
    center.remove(b.id)
    assert center.unread_count == 0
    assert [n.title for n in center.notifications] == ['a']
    assert center.notifications[0].acknowledged


def test_center_subscriber_failure_does_not_stop_others():
    center = NotificationCenter()
    seen = []

    def broken(_):
        raise RuntimeError('listener bug')

    center.subscribe(broken)
    unsubscribe = center.subscribe(seen.append)
    center.publish(note('x'))
    unsubscribe()
    center.publish(note('y'))
    assert [n.title for n in seen] == ['x']


@pytest.mark.asyncio
async def test_center_expires_notifications():
    center = NotificationCenter()
    center.publish(note('short', duration_ms=10))
    center.publish(note('long', duration_ms=60000))
    await asyncio.sleep(0.05)
    assert [n.title for n in center.notifications] == ['long']
    center.clear()
    assert center.notifications == []
    assert center.unread_count == 0
