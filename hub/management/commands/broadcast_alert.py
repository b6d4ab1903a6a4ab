import json

from django.core.management.base import BaseCommand, CommandError

from hub.realtime.broadcast import broadcast_envelope, is_valid_channel
from hub.realtime.messages import PRIORITIES, MessageType, Envelope


class Command(BaseCommand):
    help = "Broadcast one realtime envelope to every socket subscribed to a channel."

    def add_arguments(self, parser):
        parser.add_argument('channel')
        parser.add_argument('type', choices=[m.value for m in MessageType])
        parser.add_argument('--data', default='{}', help='JSON object payload')
        parser.add_argument('--message', help='Shortcut for data.message')
        parser.add_argument('--priority', choices=PRIORITIES)
        parser.add_argument('--facility')
        parser.add_argument('--county')

    def handle(self, *args, **options):
        channel = options['channel']
        if not is_valid_channel(channel):
            raise CommandError(f'invalid channel name: {channel!r}')
        try:
            data = json.loads(options['data'])
        except ValueError as exc:
            raise CommandError(f'--data is not valid JSON: {exc}') from exc
        if not isinstance(data, dict):
            raise CommandError('--data must be a JSON object')
        if options['message']:
            data['message'] = options['message']

        envelope = Envelope(
            type=options['type'],
            data=data,
            facility_id=options['facility'],
            county_id=options['county'],
            priority=options['priority'],
        )
        if not broadcast_envelope(channel, envelope):
            raise CommandError('no channel layer configured')
        self.stdout.write(self.style.SUCCESS(f"Sent {envelope.type} to {channel}"))
