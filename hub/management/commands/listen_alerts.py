import asyncio

from django.core.management.base import BaseCommand

from hub.realtime.client import NotificationChannel, resolve_ws_url
from hub.realtime.notifications import NotificationCenter


class Command(BaseCommand):
    help = "Connect to the realtime endpoint and print notifications as they arrive."

    def add_arguments(self, parser):
        parser.add_argument('--url', help='WebSocket endpoint (default: resolved from settings)')
        parser.add_argument('--origin', help='Page origin used to derive the endpoint, e.g. https://hub.example')
        parser.add_argument('--channel', action='append', dest='channels', default=[],
                            help='Extra channel to subscribe to (repeatable)')

    def handle(self, *args, **options):
        url = options['url'] or resolve_ws_url(options['origin'])
        try:
            asyncio.run(self._listen(url, options['channels']))
        except KeyboardInterrupt:
            self.stdout.write('stopped')

    async def _listen(self, url, extra_channels):
        center = NotificationCenter()
        center.subscribe(lambda n: self.stdout.write(
            f"[{n.priority}] {n.title}: {n.body}" if n.body else f"[{n.priority}] {n.title}"
        ))
        channel = NotificationChannel(url, center=center)
        channel.add_listener(lambda s: self.stdout.write(self.style.NOTICE(
            f"status={s.status.value} attempts={s.attempt_count}"
        )))
        for name in extra_channels:
            await channel.subscribe(name)

        self.stdout.write(f"connecting to {url}")
        channel.connect()
        try:
            while not channel.reconnect_exhausted:
                await asyncio.sleep(1)
            self.stderr.write(self.style.ERROR('giving up: reconnect attempts exhausted'))
        finally:
            await channel.aclose()
